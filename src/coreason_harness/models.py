# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ScenarioInput(BaseModel):
    """Describes one evaluation run.

    Attributes:
        prompt: The natural-language task given to the agent.
        agent_id: The agent identifier understood by the adapter.
        language: The language of the expected artifact.
        isolated: Whether the agent must work inside an isolated environment.
        timeout_ms: Outer timeout for the whole run, in milliseconds.
        output_path: Path of the expected artifact, if the task names one.
        cleanup_environment: Remove the environment once the run is over.
        metadata: Free-form context forwarded to the adapter.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str
    agent_id: str
    language: str = "javascript"
    isolated: bool = True
    timeout_ms: int = Field(default=60_000, gt=0)
    output_path: str | None = None
    cleanup_environment: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentMessage(BaseModel):
    """A single part of the agent transcript."""

    type: str
    text: str | None = None
    metadata: dict[str, Any] | None = None


class TokenUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int | None = None

    @property
    def total(self) -> int:
        if self.total_tokens is not None:
            return self.total_tokens
        return self.prompt_tokens + self.completion_tokens


class AgentResponse(BaseModel):
    """What the agent runtime returned for one prompt."""

    messages: list[AgentMessage] = Field(default_factory=list)
    usage: TokenUsage | None = None
    step_count: int | None = None
    raw: Any = None


class EnvironmentRecord(BaseModel):
    """An environment as listed by the isolation provider."""

    id: str
    name: str = ""
    created: str = ""


class RunMetrics(BaseModel):
    token_count: int = 0
    execution_time_ms: float = 0.0
    step_count: int = 0


class RunResult(BaseModel):
    """Normalized outcome of one coordinator run.

    Attributes:
        success: Whether the run produced an artifact without a fatal failure.
        output: The retrieved artifact or transcript text.
        metrics: Token, timing and step metrics.
        syntax_valid: Result of the syntax guard over ``output``.
        errors: Ordered diagnostics, empty on success.
        environment_id: The confirmed environment, only set after resolution.
        output_source: The collector tier that produced ``output``.
        failure_category: Taxonomy name of the failure, if any.
        adapter: Name of the agent adapter used.
    """

    success: bool
    output: str = ""
    metrics: RunMetrics = Field(default_factory=RunMetrics)
    syntax_valid: bool = False
    errors: list[str] = Field(default_factory=list)
    environment_id: str | None = None
    output_source: str | None = None
    failure_category: str | None = None
    adapter: str = ""

    @model_validator(mode="after")
    def _failures_carry_errors(self) -> "RunResult":
        if not self.success and not self.errors:
            raise ValueError("a failed run must report at least one error")
        return self


class ScoreResult(BaseModel):
    """Score of an artifact against a test suite."""

    score: float = Field(ge=0.0, le=1.0)
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_counts(cls, passed: int, failed: int, total: int, **metadata: Any) -> "ScoreResult":
        score = passed / total if total > 0 else 0.0
        return cls(score=score, passed=passed, failed=failed, total=total, metadata=metadata)

    @classmethod
    def zero(cls, **metadata: Any) -> "ScoreResult":
        return cls(score=0.0, metadata=metadata)


class TraceMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    content: str


class TraceUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class TraceRecord(BaseModel):
    """Write-once record of one run, sent to the metrics sink.

    ``start`` and ``end`` are epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    input: tuple[TraceMessage, ...]
    output: str
    usage: TraceUsage


class EvaluationResult(BaseModel):
    run: RunResult
    score: ScoreResult
