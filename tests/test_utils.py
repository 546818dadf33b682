# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

from coreason_harness import utils
from coreason_harness.utils import logger


def test_logger_exports() -> None:
    assert logger.logger is not None
    assert logger.__all__ == ["logger"]


def test_syntax_helpers_exported() -> None:
    assert utils.validate_syntax("{}", "javascript") is True
    assert utils.is_bracket_language("rust") is True
    assert utils.is_bracket_language("python") is False
