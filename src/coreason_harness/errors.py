# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

"""Failure taxonomy for harness runs and scoring."""


class HarnessError(Exception):
    """Base class for failures the harness converts into structured results."""

    category = "HarnessError"


class ResolutionTimeout(HarnessError):
    """Isolation was requested but the environment never appeared."""

    category = "ResolutionTimeout"


class CollectionEmpty(HarnessError):
    """Every output source returned empty content."""

    category = "CollectionEmpty"


class ScoringParseFailure(HarnessError):
    """The test runner report could not be read."""

    category = "ScoringParseFailure"


class TamperDetected(HarnessError):
    """A guarded file changed after it was snapshotted."""

    category = "TamperDetected"


class AgentRuntimeError(HarnessError):
    """The agent runtime errored or was unreachable."""

    category = "RuntimeError"


class AdapterError(AgentRuntimeError):
    """The agent runtime answered with something the adapter cannot use."""


class ScenarioTimeout(AgentRuntimeError):
    """The outer scenario timeout elapsed."""


class ProviderError(HarnessError):
    """An isolation provider command failed."""

    category = "ProviderError"


def error_category(exc: BaseException) -> str:
    """Return the taxonomy name for an exception.

    Anything that is not a HarnessError surfaced from the agent run is treated as
    an agent runtime failure.
    """
    if isinstance(exc, HarnessError):
        return exc.category
    return AgentRuntimeError.category


def format_error(exc: BaseException) -> str:
    """Render an exception as a single ``"<category>: <message>"`` diagnostic."""
    message = str(exc) or type(exc).__name__
    return f"{error_category(exc)}: {message}"
