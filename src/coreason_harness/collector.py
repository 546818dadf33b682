# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]
from loguru import logger

from coreason_harness.models import AgentMessage
from coreason_harness.providers.base import IsolationProvider


@dataclass
class CollectionContext:
    messages: list[AgentMessage] = field(default_factory=list)
    environment_id: str | None = None
    output_path: str | None = None
    isolated: bool = False


@dataclass
class CollectedOutput:
    content: str
    source: str | None = None


class OutputSource(ABC):
    """One tier of the output fallback chain."""

    name: str = "source"

    @abstractmethod
    async def read(self, context: CollectionContext) -> str:
        """Return this tier's content, or an empty string when it has none."""
        pass  # pragma: no cover


class EnvironmentFileSource(OutputSource):
    """The expected file as materialized inside the isolated environment."""

    name = "environment"

    def __init__(self, provider: IsolationProvider):
        self.provider = provider

    async def read(self, context: CollectionContext) -> str:
        if not (context.isolated and context.environment_id and context.output_path):
            return ""
        content = await self.provider.read_file(context.environment_id, context.output_path)
        return content or ""


class LocalFileSource(OutputSource):
    """The expected file on the host filesystem."""

    name = "local_file"

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root) if root is not None else None

    async def read(self, context: CollectionContext) -> str:
        if not context.output_path:
            return ""
        path = Path(context.output_path)
        if self.root is not None and not path.is_absolute():
            path = self.root / path

        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                content: str = await f.read()
        except FileNotFoundError:
            return ""
        return content


class TranscriptSource(OutputSource):
    """Plain-text parts of the agent transcript, in order."""

    name = "transcript"

    async def read(self, context: CollectionContext) -> str:
        texts = [m.text or "" for m in context.messages if m.type == "text"]
        return "\n\n".join(texts).strip()


class OutputCollector:
    """Retrieves the agent's artifact from the first source that has one.

    Sources are tried in order and never merged.
    """

    def __init__(self, sources: Sequence[OutputSource]):
        self.sources = list(sources)

    @classmethod
    def default(cls, provider: IsolationProvider, root: Path | str | None = None) -> "OutputCollector":
        """Environment file, then local file, then transcript."""
        return cls([EnvironmentFileSource(provider), LocalFileSource(root), TranscriptSource()])

    async def collect_detailed(self, context: CollectionContext) -> CollectedOutput:
        for source in self.sources:
            content = await source.read(context)
            if content.strip():
                logger.debug(f"Collected {len(content)} chars from {source.name}")
                return CollectedOutput(content=content, source=source.name)
            logger.debug(f"Output source {source.name} was empty")
        return CollectedOutput(content="")

    async def collect(self, context: CollectionContext) -> str:
        """Return the first non-empty tier's content, or an empty string."""
        return (await self.collect_detailed(context)).content
