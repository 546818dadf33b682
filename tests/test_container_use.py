# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from coreason_harness.errors import ProviderError
from coreason_harness.providers import ContainerUseProvider, parse_environment_table

LIST_OUTPUT = """ID                       TITLE                        CREATED
eval-builder-1a2b3c4d    Hello world module           2 minutes ago
happy-lemur              Refactor the parser          1 hour ago
"""


def test_parse_environment_table() -> None:
    records = parse_environment_table(LIST_OUTPUT)

    assert [r.id for r in records] == ["eval-builder-1a2b3c4d", "happy-lemur"]
    assert records[0].name == "Hello world module"
    assert records[1].created == "1 hour ago"


def test_parse_environment_table_tolerates_narrow_rows() -> None:
    records = parse_environment_table("ID TITLE\nenv-1 short title\nenv-2\n")

    assert [(r.id, r.name) for r in records] == [("env-1", "short title"), ("env-2", "")]
    assert parse_environment_table("") == []


@pytest.mark.asyncio
async def test_exists_uses_list(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path)

    with patch.object(provider, "_run", AsyncMock(return_value=(0, LIST_OUTPUT, ""))) as run:
        assert await provider.exists("happy-lemur") is True
        assert await provider.exists("eval-builder") is False

    run.assert_awaited_with("list")


@pytest.mark.asyncio
async def test_failed_command_raises_provider_error(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path)

    with patch.object(provider, "_run", AsyncMock(return_value=(1, "", "not a git repository"))):
        with pytest.raises(ProviderError, match="not a git repository"):
            await provider.list()


@pytest.mark.asyncio
async def test_read_file_checks_out_environment(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path)

    async def fake_run(*args: str) -> tuple[int, str, str]:
        if args[0] == "checkout":
            (tmp_path / "hello.js").write_text(f"// from {args[1]}\n")
        return 0, "", ""

    with patch.object(provider, "_run", side_effect=fake_run) as run:
        content = await provider.read_file("eval-builder-1a2b3c4d", "hello.js")
        missing = await provider.read_file("eval-builder-1a2b3c4d", "nope.js")

    assert content == "// from eval-builder-1a2b3c4d\n"
    assert missing is None
    run.assert_any_await("checkout", "eval-builder-1a2b3c4d")


@pytest.mark.asyncio
async def test_remove_deletes_environment(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path)

    with patch.object(provider, "_run", AsyncMock(return_value=(0, "", ""))) as run:
        await provider.remove("env-1")

    run.assert_awaited_once_with("delete", "env-1")


@pytest.mark.asyncio
async def test_missing_binary_raises_provider_error(tmp_path: Path) -> None:
    provider = ContainerUseProvider(binary=str(tmp_path / "no-such-binary"), repo_root=tmp_path)

    with pytest.raises(ProviderError, match="executable not found"):
        await provider.list()


@pytest.mark.asyncio
async def test_run_captures_output(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path)
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(LIST_OUTPUT.encode(), b""))
    proc.returncode = 0

    with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as create:
        records = await provider.list()

    assert len(records) == 2
    args: Any = create.await_args
    assert args.args[:2] == ("container-use", "list")
    assert args.kwargs["cwd"] == str(tmp_path)


@pytest.mark.asyncio
async def test_run_timeout_kills_process(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path, timeout=0.05)

    async def hang() -> tuple[bytes, bytes]:
        await asyncio.sleep(5)
        return b"", b""

    proc = MagicMock()
    proc.returncode = None
    proc.communicate = hang
    proc.wait = AsyncMock(return_value=-9)

    with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
        with pytest.raises(ProviderError, match="timed out"):
            await provider.list()

    proc.kill.assert_called_once()


@pytest.mark.asyncio
async def test_cancelled_command_is_killed(tmp_path: Path) -> None:
    provider = ContainerUseProvider(repo_root=tmp_path, timeout=30)
    started = asyncio.Event()

    async def hang() -> tuple[bytes, bytes]:
        started.set()
        await asyncio.sleep(30)
        return b"", b""

    proc = MagicMock()
    proc.returncode = None
    proc.communicate = hang
    proc.wait = AsyncMock(return_value=-9)

    with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
        task = asyncio.create_task(provider.list())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    proc.kill.assert_called_once()
    proc.wait.assert_awaited_once()
