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
import time
from typing import Protocol

import httpx
from loguru import logger

from coreason_harness.models import TokenUsage, TraceMessage, TraceRecord, TraceUsage


class MetricsCollector:
    """Wall-clock bookkeeping for one run."""

    def __init__(self) -> None:
        self.start_ms: int | None = None
        self.end_ms: int | None = None
        self._start_perf: float | None = None
        self._end_perf: float | None = None

    def start(self) -> None:
        self.start_ms = int(time.time() * 1000)
        self._start_perf = time.perf_counter()
        self.end_ms = None
        self._end_perf = None

    def end(self) -> None:
        self.end_ms = int(time.time() * 1000)
        self._end_perf = time.perf_counter()

    @property
    def execution_time_ms(self) -> float:
        """Elapsed milliseconds; measured up to now while the run is still open."""
        if self._start_perf is None:
            return 0.0
        end = self._end_perf if self._end_perf is not None else time.perf_counter()
        return (end - self._start_perf) * 1000


class TraceSink(Protocol):
    """Protocol for external metrics sinks."""

    async def send(self, record: TraceRecord) -> None:
        """Deliver a trace record. No acknowledgment is expected."""
        ...


class LogTraceSink:
    """Writes trace records to the structured log."""

    async def send(self, record: TraceRecord) -> None:
        logger.info(
            "Agent run trace",
            trace=record.model_dump(mode="json"),
            duration_ms=record.end - record.start,
            total_tokens=record.usage.total_tokens,
        )


class HttpTraceSink:
    """POSTs trace records as JSON to a collector endpoint."""

    def __init__(self, endpoint: str, client: httpx.AsyncClient | None = None, api_key: str | None = None):
        """Initializes the HttpTraceSink.

        Args:
            endpoint: URL the records are posted to.
            client: Optional shared httpx.AsyncClient.
            api_key: Optional bearer token.
        """
        self.endpoint = endpoint
        self._client = client or httpx.AsyncClient()
        self.headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

    async def send(self, record: TraceRecord) -> None:
        response = await self._client.post(self.endpoint, json=record.model_dump(mode="json"), headers=self.headers)
        response.raise_for_status()


class TraceReporter:
    """Builds trace records and hands them to the sink in the background.

    Emission never blocks or fails the run; ``flush`` waits for writes still in flight.
    """

    def __init__(self, sink: TraceSink | None = None):
        self.sink = sink
        self._pending: set[asyncio.Task[None]] = set()

    @staticmethod
    def build_record(
        start_ms: int,
        end_ms: int,
        prompt: str,
        output: str,
        usage: TokenUsage,
    ) -> TraceRecord:
        return TraceRecord(
            start=start_ms,
            end=end_ms,
            input=(TraceMessage(role="user", content=prompt),),
            output=output,
            usage=TraceUsage(
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
                total_tokens=usage.total,
            ),
        )

    def emit(self, record: TraceRecord) -> None:
        if self.sink is None:
            return
        task = asyncio.create_task(self._deliver(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, record: TraceRecord) -> None:
        assert self.sink is not None
        try:
            await self.sink.send(record)
        except Exception as e:
            logger.warning(f"Failed to emit trace record: {e}")

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
