# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import pytest
from pydantic import ValidationError

from coreason_harness.models import (
    RunMetrics,
    RunResult,
    ScenarioInput,
    ScoreResult,
    TokenUsage,
    TraceMessage,
    TraceRecord,
    TraceUsage,
)


def test_scenario_input_defaults() -> None:
    scenario = ScenarioInput(prompt="do it", agent_id="agent")
    assert scenario.isolated is True
    assert scenario.language == "javascript"
    assert scenario.timeout_ms == 60_000
    assert scenario.output_path is None
    assert scenario.cleanup_environment is False


def test_scenario_input_is_immutable() -> None:
    scenario = ScenarioInput(prompt="do it", agent_id="agent")
    with pytest.raises(ValidationError):
        scenario.prompt = "something else"  # type: ignore[misc]


def test_scenario_input_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValidationError) as excinfo:
        ScenarioInput(prompt="do it", agent_id="agent", timeout_ms=0)
    assert "timeout_ms" in str(excinfo.value)


def test_failed_run_requires_errors() -> None:
    with pytest.raises(ValidationError) as excinfo:
        RunResult(success=False)
    assert "at least one error" in str(excinfo.value)

    result = RunResult(success=False, errors=["RuntimeError: boom"])
    assert result.errors == ["RuntimeError: boom"]
    assert result.environment_id is None


def test_successful_run_defaults() -> None:
    result = RunResult(success=True, output="code", metrics=RunMetrics(token_count=5))
    assert result.errors == []
    assert result.metrics.token_count == 5
    assert result.syntax_valid is False


def test_token_usage_total_prefers_reported_total() -> None:
    assert TokenUsage(prompt_tokens=10, completion_tokens=5).total == 15
    assert TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=20).total == 20


@pytest.mark.parametrize(
    ("passed", "failed", "total", "expected"),
    [(1, 0, 1, 1.0), (1, 1, 2, 0.5), (0, 3, 3, 0.0), (0, 0, 0, 0.0), (2, 1, 4, 0.5)],
)
def test_score_from_counts(passed: int, failed: int, total: int, expected: float) -> None:
    result = ScoreResult.from_counts(passed, failed, total, command="pytest")
    assert result.score == expected
    assert 0.0 <= result.score <= 1.0
    assert result.metadata == {"command": "pytest"}


def test_score_bounds_are_enforced() -> None:
    with pytest.raises(ValidationError):
        ScoreResult(score=1.5)
    with pytest.raises(ValidationError):
        ScoreResult(score=-0.1)


def test_zero_score_carries_metadata() -> None:
    result = ScoreResult.zero(reason="boom", raw_output="stderr")
    assert result.score == 0.0
    assert result.total == 0
    assert result.metadata["raw_output"] == "stderr"


def test_trace_record_is_write_once() -> None:
    record = TraceRecord(
        start=1,
        end=2,
        input=(TraceMessage(role="user", content="task"),),
        output="out",
        usage=TraceUsage(input_tokens=1, output_tokens=2, total_tokens=3),
    )
    with pytest.raises(ValidationError):
        record.output = "changed"  # type: ignore[misc]

    dumped = record.model_dump(mode="json")
    assert dumped["input"] == [{"role": "user", "content": "task"}]
    assert dumped["usage"]["total_tokens"] == 3
