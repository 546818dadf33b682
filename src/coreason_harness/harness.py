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
from typing import Protocol

import anyio
import httpx

from coreason_harness.adapters.base import AgentAdapter
from coreason_harness.collector import OutputCollector
from coreason_harness.config import HarnessConfig
from coreason_harness.errors import ScoringParseFailure
from coreason_harness.executor import TaskExecutor
from coreason_harness.factory import HarnessFactory
from coreason_harness.models import EvaluationResult, RunResult, ScenarioInput, ScoreResult
from coreason_harness.providers.base import IsolationProvider
from coreason_harness.reporter import TraceReporter
from coreason_harness.resolver import EnvironmentResolver
from coreason_harness.utils.logger import logger


class Scorer(Protocol):
    """Anything that turns an artifact into a ScoreResult without raising."""

    async def score(self, artifact: str) -> ScoreResult: ...


class HarnessAsync:
    """Async-native evaluation harness (The Core).

    Wires the configured adapter, provider, resolver, collector and trace
    reporter into a TaskExecutor, and scores successful runs.
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        client: httpx.AsyncClient | None = None,
        adapter: AgentAdapter | None = None,
        provider: IsolationProvider | None = None,
    ):
        """Initializes the HarnessAsync service.

        Args:
            config: Configuration for the harness.
            client: Optional httpx.AsyncClient for connection pooling.
            adapter: Agent adapter overriding the configured one.
            provider: Isolation provider overriding the configured one.
        """
        self.config = config or HarnessConfig()
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient()
        self.provider = provider or HarnessFactory.get_provider(self.config)
        self.adapter = adapter or HarnessFactory.get_adapter(self.config, self._client)
        self.reporter = TraceReporter(HarnessFactory.get_trace_sink(self.config, self._client))
        self.executor = TaskExecutor(
            adapter=self.adapter,
            provider=self.provider,
            resolver=EnvironmentResolver(
                self.provider,
                max_poll_seconds=self.config.resolver_max_poll_seconds,
                poll_interval=self.config.resolver_poll_interval,
            ),
            collector=OutputCollector.default(self.provider, self.config.repo_root),
            reporter=self.reporter,
            trust_reported_environment_id=self.config.trust_reported_environment_id,
        )

    async def __aenter__(self) -> "HarnessAsync":
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Waits for pending traces and releases the HTTP client."""
        await self.reporter.flush()
        if self._internal_client:
            await self._client.aclose()

    async def execute(self, scenario: ScenarioInput) -> RunResult:
        """Runs the agent for a scenario without scoring it."""
        return await self.executor.execute(scenario)

    async def run(self, scenario: ScenarioInput, scorer: Scorer) -> EvaluationResult:
        """Runs the agent and scores what it produced.

        A failed run is scored 0 without invoking the test runner. Agent run
        and scoring together share the scenario timeout; scoring that outlives
        it is cancelled and scored 0.

        Args:
            scenario: The evaluation to run.
            scorer: The scorer for the artifact.

        Returns:
            EvaluationResult: The run and its score.
        """
        run = await self.executor.execute(scenario)
        if not run.success:
            logger.info(f"Skipping scoring for failed run: {run.errors}")
            score = ScoreResult.zero(reason="; ".join(run.errors), failure_category=run.failure_category)
            return EvaluationResult(run=run, score=score)

        # Scoring gets whatever the agent run left of the scenario timeout.
        budget = scenario.timeout_ms / 1000
        remaining = max(0.0, budget - run.metrics.execution_time_ms / 1000)
        try:
            score = await asyncio.wait_for(scorer.score(run.output), timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning(f"Scoring exceeded the scenario timeout of {budget:g}s")
            score = ScoreResult.zero(
                reason=f"Scoring exceeded the scenario timeout of {budget:g}s",
                failure_category=ScoringParseFailure.category,
            )
        metadata = {**score.metadata, "output_source": run.output_source, "syntax_valid": run.syntax_valid}
        return EvaluationResult(run=run, score=score.model_copy(update={"metadata": metadata}))


class Harness:
    """Sync Facade for HarnessAsync (The Facade).

    Each call runs in its own event loop via anyio.run.
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        adapter: AgentAdapter | None = None,
        provider: IsolationProvider | None = None,
    ):
        self.config = config or HarnessConfig()
        self.adapter = adapter
        self.provider = provider

    def _open(self) -> HarnessAsync:
        return HarnessAsync(self.config, adapter=self.adapter, provider=self.provider)

    def execute(self, scenario: ScenarioInput) -> RunResult:
        """Runs the agent for a scenario synchronously."""

        async def _execute() -> RunResult:
            async with self._open() as harness:
                return await harness.execute(scenario)

        return anyio.run(_execute)

    def run(self, scenario: ScenarioInput, scorer: Scorer) -> EvaluationResult:
        """Runs and scores a scenario synchronously."""

        async def _run() -> EvaluationResult:
            async with self._open() as harness:
                return await harness.run(scenario, scorer)

        return anyio.run(_run)
