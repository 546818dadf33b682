# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import importlib
from pathlib import Path

import pytest

import coreason_harness.utils.logger as logger_module


def test_logger_creates_logs_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reloading the logger module re-runs the setup logic in the current directory."""
    monkeypatch.chdir(tmp_path)
    assert not (tmp_path / "logs").exists()

    importlib.reload(logger_module)

    assert (tmp_path / "logs").is_dir()
    # stderr and file sinks
    assert len(logger_module.logger._core.handlers) == 2
    logger_module.logger.remove()


def test_logger_sink_configuration(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.chdir(tmp_path)
    importlib.reload(logger_module)

    test_message = "Agent run trace written"
    logger_module.logger.info(test_message)

    captured = capsys.readouterr()
    assert test_message in captured.err

    # Removing the handlers flushes the enqueued file sink.
    logger_module.logger.remove()

    log_content = (tmp_path / "logs" / "app.log").read_text()
    assert '"message": "' + test_message + '"' in log_content
