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
import re
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]
from loguru import logger

from coreason_harness.errors import ProviderError
from coreason_harness.models import EnvironmentRecord
from coreason_harness.providers.base import IsolationProvider

_HEADER = re.compile(r"^ID\s+TITLE", re.IGNORECASE)
_COLUMNS = re.compile(r"\s{2,}")


class ContainerUseProvider(IsolationProvider):
    """Isolation provider backed by the ``container-use`` CLI.

    Environments are git branches managed by container-use; reading a file
    checks the environment out into ``repo_root`` and reads it from there.
    """

    name = "container-use"

    def __init__(self, binary: str = "container-use", repo_root: Path | str = ".", timeout: float = 30.0):
        """Initializes the ContainerUseProvider.

        Args:
            binary: The container-use executable.
            repo_root: The repository container-use operates on.
            timeout: Per-command timeout in seconds.
        """
        self.binary = binary
        self.repo_root = Path(repo_root)
        self.timeout = timeout
        # checkout rewrites the shared working tree
        self._checkout_lock = asyncio.Lock()

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Run a container-use command and capture its output."""
        cmd = [self.binary, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.repo_root),
            )
        except FileNotFoundError as e:
            raise ProviderError(f"{self.binary} executable not found") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"{' '.join(cmd)} timed out after {self.timeout}s") from e
        finally:
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def _run_checked(self, *args: str) -> str:
        code, stdout, stderr = await self._run(*args)
        if code != 0:
            raise ProviderError(f"{self.binary} {' '.join(args)} failed ({code}): {stderr.strip()}")
        return stdout

    async def list(self) -> list[EnvironmentRecord]:
        stdout = await self._run_checked("list")
        return parse_environment_table(stdout)

    async def exists(self, env_id: str) -> bool:
        records = await self.list()
        return any(record.id == env_id for record in records)

    async def read_file(self, env_id: str, path: str) -> str | None:
        local_path = Path(path)
        if not local_path.is_absolute():
            local_path = self.repo_root / local_path

        async with self._checkout_lock:
            await self._run_checked("checkout", env_id)
            try:
                async with aiofiles.open(local_path, "r", encoding="utf-8") as f:
                    content: str = await f.read()
            except FileNotFoundError:
                logger.debug(f"{path} not present in environment {env_id}")
                return None
        return content

    async def remove(self, env_id: str) -> None:
        logger.info(f"Deleting container-use environment {env_id}")
        await self._run_checked("delete", env_id)


def parse_environment_table(output: str) -> list[EnvironmentRecord]:
    """Parse the table printed by ``container-use list``.

    Args:
        output: Raw stdout of the list command.

    Returns:
        list[EnvironmentRecord]: One record per row, in the order printed.
    """
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if lines and _HEADER.match(lines[0]):
        lines = lines[1:]

    records = []
    for line in lines:
        cols = _COLUMNS.split(line)
        if len(cols) == 1:
            cols = line.split(None, 1)
        records.append(
            EnvironmentRecord(
                id=cols[0].strip(),
                name=cols[1].strip() if len(cols) > 1 else "",
                created=cols[2].strip() if len(cols) > 2 else "",
            )
        )
    return records
