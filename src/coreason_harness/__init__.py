# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

"""
coreason-harness
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .collector import OutputCollector
from .config import HarnessConfig
from .errors import (
    CollectionEmpty,
    HarnessError,
    ResolutionTimeout,
    ScoringParseFailure,
    TamperDetected,
)
from .executor import TaskExecutor
from .factory import HarnessFactory
from .harness import Harness, HarnessAsync
from .models import EvaluationResult, RunResult, ScenarioInput, ScoreResult, TraceRecord
from .providers.base import IsolationProvider
from .reporter import TraceReporter
from .resolver import EnvironmentResolver
from .scoring import TestRunnerConfig, TestRunnerScorer
from .utils.syntax import validate_syntax

__all__ = [
    "CollectionEmpty",
    "EnvironmentResolver",
    "EvaluationResult",
    "Harness",
    "HarnessAsync",
    "HarnessConfig",
    "HarnessError",
    "HarnessFactory",
    "IsolationProvider",
    "OutputCollector",
    "ResolutionTimeout",
    "RunResult",
    "ScenarioInput",
    "ScoreResult",
    "ScoringParseFailure",
    "TamperDetected",
    "TaskExecutor",
    "TestRunnerConfig",
    "TestRunnerScorer",
    "TraceRecord",
    "TraceReporter",
    "validate_syntax",
]
