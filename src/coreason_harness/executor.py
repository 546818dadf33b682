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
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from loguru import logger

from coreason_harness.adapters.base import AgentAdapter, AgentSession, PromptParams, SessionParams, StartParams
from coreason_harness.collector import CollectionContext, OutputCollector
from coreason_harness.errors import CollectionEmpty, ScenarioTimeout, error_category, format_error
from coreason_harness.models import AgentResponse, RunMetrics, RunResult, ScenarioInput
from coreason_harness.providers.base import IsolationProvider
from coreason_harness.reporter import MetricsCollector, TraceReporter
from coreason_harness.resolver import EnvironmentResolver, detect_environment_id
from coreason_harness.utils.syntax import validate_syntax

ISOLATION_DIRECTIVE = (
    "You must work inside an isolated environment.\n"
    '- First call the environment_create tool to create an environment named "{env_id}".\n'
    "- Use only environment tools (environment_file_write, environment_run_cmd) to write files and run commands.\n"
    "- Do not write files on the host.\n"
    "- Report the environment ID when complete."
)


def plan_environment_id(agent_id: str) -> str:
    """Harness-supplied candidate id for the environment the agent must create."""
    return f"eval-{agent_id}-{uuid4().hex[:8]}"


def build_prompt(scenario: ScenarioInput, env_id: str) -> str:
    if not scenario.isolated:
        return scenario.prompt
    return f"{ISOLATION_DIRECTIVE.format(env_id=env_id)}\n\n{scenario.prompt}"


@dataclass
class _RunState:
    """What is known about a run so far; survives cancellation for cleanup."""

    env_id: str
    context: Any = None
    session: AgentSession | None = None
    response: AgentResponse | None = None
    resolved_env_id: str | None = None
    output: str = ""
    output_source: str | None = None
    syntax_valid: bool = False
    errors: list[str] = field(default_factory=list)


class TaskExecutor:
    """Runs one scenario end to end and normalizes the outcome.

    ``execute`` never raises: every failure is returned as a ``RunResult`` with
    ``success=False`` and a categorized diagnostic in ``errors``.
    """

    def __init__(
        self,
        adapter: AgentAdapter,
        provider: IsolationProvider,
        resolver: EnvironmentResolver | None = None,
        collector: OutputCollector | None = None,
        reporter: TraceReporter | None = None,
        trust_reported_environment_id: bool = False,
    ):
        """Initializes the TaskExecutor.

        Args:
            adapter: The agent runtime adapter.
            provider: The isolation provider.
            resolver: Environment resolver; defaults to one over ``provider``.
            collector: Output collector; defaults to the standard three-tier chain.
            reporter: Trace reporter; traces are dropped when omitted.
            trust_reported_environment_id: Resolve the environment id the agent
                reports in its transcript instead of the planned one.
        """
        self.adapter = adapter
        self.provider = provider
        self.resolver = resolver or EnvironmentResolver(provider)
        self.collector = collector or OutputCollector.default(provider)
        self.reporter = reporter or TraceReporter()
        self.trust_reported_environment_id = trust_reported_environment_id

    async def execute(self, scenario: ScenarioInput) -> RunResult:
        """Execute a scenario.

        Args:
            scenario: The evaluation to run.

        Returns:
            RunResult: The normalized outcome.
        """
        metrics = MetricsCollector()
        metrics.start()
        state = _RunState(env_id=plan_environment_id(scenario.agent_id))
        timeout = scenario.timeout_ms / 1000

        logger.info(
            "Starting agent run",
            agent_id=scenario.agent_id,
            isolated=scenario.isolated,
            environment_id=state.env_id,
        )

        try:
            try:
                await asyncio.wait_for(self._run(scenario, state), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise ScenarioTimeout(f"scenario timed out after {timeout:g}s") from e
        except Exception as e:
            logger.warning(f"Agent run failed: {format_error(e)}")
            metrics.end()
            self._emit_trace(scenario, metrics, state)
            return RunResult(
                success=False,
                metrics=RunMetrics(
                    token_count=self._token_count(state.response),
                    execution_time_ms=metrics.execution_time_ms,
                    step_count=self._step_count(state.response),
                ),
                errors=[format_error(e)],
                environment_id=state.resolved_env_id,
                failure_category=error_category(e),
                adapter=self.adapter.name,
            )
        finally:
            await self._cleanup(scenario, state)

        metrics.end()
        response = state.response
        assert response is not None

        result = RunResult(
            success=True,
            output=state.output,
            metrics=RunMetrics(
                token_count=self._token_count(response),
                execution_time_ms=metrics.execution_time_ms,
                step_count=self._step_count(response),
            ),
            syntax_valid=state.syntax_valid,
            environment_id=state.resolved_env_id,
            output_source=state.output_source,
            adapter=self.adapter.name,
        )

        self._emit_trace(scenario, metrics, state)

        logger.info(
            "Agent run finished",
            agent_id=scenario.agent_id,
            output_source=result.output_source,
            syntax_valid=result.syntax_valid,
            tokens=result.metrics.token_count,
        )
        return result

    async def _run(self, scenario: ScenarioInput, state: _RunState) -> None:
        prompt = build_prompt(scenario, state.env_id)

        state.context = await self.adapter.start(
            StartParams(
                agent_id=scenario.agent_id,
                prompt=prompt,
                environment_id=state.env_id,
                isolated=scenario.isolated,
                metadata=dict(scenario.metadata),
            )
        )
        state.session = await self.adapter.create_session(
            state.context,
            SessionParams(agent_id=scenario.agent_id, prompt=prompt, environment_id=state.env_id),
        )
        state.response = await self.adapter.prompt(
            state.context,
            state.session,
            PromptParams(prompt=prompt, metadata=dict(scenario.metadata)),
        )

        if scenario.isolated:
            candidate = state.env_id
            if self.trust_reported_environment_id:
                candidate = detect_environment_id(state.response.messages) or candidate
            await self.resolver.resolve(candidate, scenario.timeout_ms)
            state.resolved_env_id = candidate

        collected = await self.collector.collect_detailed(
            CollectionContext(
                messages=state.response.messages,
                environment_id=state.resolved_env_id,
                output_path=scenario.output_path,
                isolated=scenario.isolated,
            )
        )
        if not collected.content.strip():
            raise CollectionEmpty("No output found in the environment, the local file or the transcript.")

        state.output = collected.content
        state.output_source = collected.source
        state.syntax_valid = validate_syntax(collected.content, scenario.language)

    async def _cleanup(self, scenario: ScenarioInput, state: _RunState) -> None:
        try:
            await self.adapter.cleanup(state.context, state.session)
        except Exception as e:
            logger.warning(f"Adapter cleanup failed: {e}")

        if scenario.cleanup_environment and state.resolved_env_id:
            try:
                await self.provider.remove(state.resolved_env_id)
            except Exception as e:
                logger.warning(f"Failed to remove environment {state.resolved_env_id}: {e}")

    def _emit_trace(self, scenario: ScenarioInput, metrics: MetricsCollector, state: _RunState) -> None:
        """Emit one trace for the run when the agent reported usage, whatever the outcome."""
        usage = state.response.usage if state.response is not None else None
        if usage is None or metrics.start_ms is None or metrics.end_ms is None:
            return
        self.reporter.emit(
            TraceReporter.build_record(metrics.start_ms, metrics.end_ms, scenario.prompt, state.output, usage)
        )

    @staticmethod
    def _token_count(response: AgentResponse | None) -> int:
        if response is None or response.usage is None:
            return 0
        return response.usage.total

    @staticmethod
    def _step_count(response: AgentResponse | None) -> int:
        if response is None:
            return 0
        if response.step_count is not None:
            return response.step_count
        return sum(1 for m in response.messages if m.type == "step-finish")
