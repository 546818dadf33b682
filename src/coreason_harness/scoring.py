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
import hashlib
import inspect
import json
import os
import tempfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles  # type: ignore[import-untyped]
from loguru import logger

from coreason_harness.errors import ScoringParseFailure, TamperDetected
from coreason_harness.models import ScoreResult

DEFAULT_NAME = "Test Runner Functional Scorer"
DEFAULT_DESCRIPTION = "Runs a test suite against generated artifacts to compute pass/fail based scores."

_PASSING_STATUSES = frozenset({"pass", "passed", "skipped", "pending", "todo", "xfailed"})


@dataclass
class TestRunnerConfig:
    """How to invoke the external test runner.

    Attributes:
        command: The runner executable and leading arguments.
        report_args: Arguments requesting a JSON report; ``{report_file}`` is
            replaced with the per-run report path.
        extra_args: Additional arguments appended last.
        timeout: Seconds before the runner is killed.
        raw_output_limit: Maximum characters of stdout/stderr kept in metadata.
    """

    __test__ = False

    command: list[str] = field(default_factory=lambda: ["pytest"])
    report_args: list[str] = field(
        default_factory=lambda: ["-q", "--json-report", "--json-report-file={report_file}"]
    )
    extra_args: list[str] = field(default_factory=list)
    timeout: float = 120.0
    raw_output_limit: int = 4000

    @classmethod
    def pytest(cls, **kwargs: Any) -> "TestRunnerConfig":
        """pytest with the pytest-json-report plugin."""
        return cls(**kwargs)

    @classmethod
    def vitest(cls, **kwargs: Any) -> "TestRunnerConfig":
        """``npx vitest run`` with the JSON reporter."""
        kwargs.setdefault("command", ["npx", "vitest", "run"])
        kwargs.setdefault("report_args", ["--reporter=json", "--outputFile={report_file}"])
        return cls(**kwargs)

    def build_command(self, test_file: str, report_file: str) -> list[str]:
        report = [arg.replace("{report_file}", report_file) for arg in self.report_args]
        return [*self.command, test_file, *report, *self.extra_args]


@dataclass
class GuardedFile:
    absolute_path: Path
    display_path: str
    digest: str


@dataclass
class ReportCounts:
    passed: int
    failed: int
    total: int
    failing_tests: list[str] = field(default_factory=list)


@dataclass
class TestRunMetadata:
    """Details of a completed, parsed test run."""

    __test__ = False

    command: str
    cwd: str
    stdout: str
    stderr: str
    exit_code: int | None
    passed_tests: int
    failed_tests: int
    total_tests: int
    failing_tests: list[str]


OnComplete = Callable[[TestRunMetadata], Awaitable[None] | None]


def compute_digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def build_guards(root: Path, files: Sequence[str]) -> list[GuardedFile]:
    """Snapshot the digests of files that must not change during a run.

    Raises:
        FileNotFoundError: If a guarded file does not exist.
    """
    guards = []
    for file in files:
        absolute = _to_absolute(root, file)
        if not absolute.exists():
            raise FileNotFoundError(f"Guarded file does not exist: {file}")
        try:
            display = str(absolute.relative_to(root))
        except ValueError:
            display = str(absolute)
        guards.append(GuardedFile(absolute_path=absolute, display_path=display, digest=compute_digest(absolute)))
    return guards


def check_guards(guards: Sequence[GuardedFile]) -> str | None:
    """Return the display path of the first guarded file that changed or vanished."""
    for guard in guards:
        if not guard.absolute_path.exists() or compute_digest(guard.absolute_path) != guard.digest:
            return guard.display_path
    return None


def parse_report(data: Any) -> ReportCounts:
    """Reduce a JSON test report to pass/fail/total counts.

    Understands pytest-json-report (``summary``), Jest/Vitest (``numPassedTests``)
    and a plain ``{passed, failed, total}`` object.

    Raises:
        ScoringParseFailure: If the report has none of these shapes or
            inconsistent counts.
    """
    if not isinstance(data, dict):
        raise ScoringParseFailure("Test report is not a JSON object")

    summary = data.get("summary")
    if isinstance(summary, dict):
        passed = _count(summary, "passed")
        failed = _count(summary, "failed") + _count(summary, "error")
        total = _count(summary, "total", default=passed + failed)
        failing = _pytest_failures(data.get("tests"))
    elif "numTotalTests" in data or "numPassedTests" in data:
        total = _count(data, "numTotalTests")
        passed = _count(data, "numPassedTests")
        failed = _count(data, "numFailedTests", default=max(total - passed, 0))
        failing = _jest_failures(data.get("testResults"))
    elif "passed" in data:
        passed = _count(data, "passed")
        failed = _count(data, "failed")
        total = _count(data, "total", default=passed + failed)
        failing = []
    else:
        raise ScoringParseFailure("Test report has no recognizable counts")

    if passed > total:
        raise ScoringParseFailure(f"Test report claims {passed} passed out of {total}")
    return ReportCounts(passed=passed, failed=failed, total=total, failing_tests=failing)


def _count(data: dict[str, Any], key: str, default: int = 0) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ScoringParseFailure(f"Invalid count for {key!r}: {value!r}")
    return value


def _pytest_failures(tests: Any) -> list[str]:
    if not isinstance(tests, list):
        return []
    failures = []
    for test in tests:
        if not isinstance(test, dict) or str(test.get("outcome", "")).lower() in _PASSING_STATUSES:
            continue
        name = str(test.get("nodeid", "unknown"))
        call = test.get("call")
        crash = call.get("crash") if isinstance(call, dict) else None
        message = crash.get("message") if isinstance(crash, dict) else None
        failures.append(f"{name}: {message.strip()}" if message else name)
    return failures


def _jest_failures(suites: Any) -> list[str]:
    if not isinstance(suites, list):
        return []
    failures = []
    for suite in suites:
        if not isinstance(suite, dict):
            continue
        tests = suite.get("assertionResults") or suite.get("tests") or []
        for test in tests:
            if not isinstance(test, dict) or str(test.get("status", "")).lower() in _PASSING_STATUSES:
                continue
            parts = (suite.get("name"), test.get("title") or test.get("name"))
            name = " › ".join(str(part) for part in parts if part)
            messages = [str(m).strip() for m in test.get("failureMessages") or [] if str(m).strip()]
            messages += [
                str(err.get("message")).strip()
                for err in test.get("errors") or []
                if isinstance(err, dict) and err.get("message")
            ]
            failures.append(f"{name}: {' | '.join(messages)}" if messages else name)
    return failures


def _to_absolute(root: Path, maybe_relative: str) -> Path:
    path = Path(maybe_relative)
    return path if path.is_absolute() else root / path


def _excerpt(text: str, limit: int) -> str:
    """Keep the tail of long output, where runners print their failure."""
    if len(text) <= limit:
        return text
    return text[-limit:]


class TestRunnerScorer:
    """Scores an artifact by running an external test suite against it.

    The test file and immutable files are snapshotted when the scorer is built,
    i.e. before the agent run; any later change zeroes the score.
    """

    __test__ = False

    def __init__(
        self,
        test_file: str,
        immutable_files: Sequence[str] = (),
        project_root: Path | str | None = None,
        artifact_path: str | None = None,
        runner: TestRunnerConfig | None = None,
        name: str = DEFAULT_NAME,
        description: str = DEFAULT_DESCRIPTION,
        on_complete: OnComplete | None = None,
    ):
        """Initializes the TestRunnerScorer.

        Args:
            test_file: Path of the test definition, relative to ``project_root``.
            immutable_files: Extra files that must stay untouched.
            project_root: Working directory of the runner; defaults to the cwd.
            artifact_path: Where to write the artifact before running, if anywhere.
            runner: Test runner invocation; defaults to pytest with a JSON report.
            name: Human-friendly scorer name.
            description: Scorer description.
            on_complete: Callback receiving the details of each parsed run.

        Raises:
            FileNotFoundError: If the test file or a guarded file does not exist.
        """
        self.root = Path(project_root) if project_root is not None else Path.cwd()
        self.test_file = test_file
        self.test_file_absolute = _to_absolute(self.root, test_file)
        if not self.test_file_absolute.exists():
            raise FileNotFoundError(f"Test runner scorer could not find test file: {test_file}")

        self.guards = build_guards(self.root, [test_file, *immutable_files])
        self.artifact_path = _to_absolute(self.root, artifact_path) if artifact_path else None
        self.runner = runner or TestRunnerConfig()
        self.name = name
        self.description = description
        self.on_complete = on_complete

    async def score(self, artifact: str) -> ScoreResult:
        """Score an artifact. Never raises.

        Args:
            artifact: The content the agent produced.

        Returns:
            ScoreResult: The score with diagnostic metadata.
        """
        violation = check_guards(self.guards)
        if violation:
            logger.warning(f"Guarded file was modified during eval: {violation}")
            return ScoreResult.zero(
                reason=f"Guarded file was modified during eval: {violation}",
                tampered_guard_file=violation,
                failure_category=TamperDetected.category,
                scorer=self.name,
            )

        if self.artifact_path is not None and artifact.strip():
            try:
                await self._write_artifact(artifact)
            except OSError as e:
                logger.error(f"Failed to write artifact to {self.artifact_path}: {e}")
                return ScoreResult.zero(
                    reason=f"Failed to write artifact: {e}",
                    failure_category="HarnessError",
                    scorer=self.name,
                )

        with tempfile.TemporaryDirectory(prefix="coreason-harness-") as tmp_dir:
            report_file = Path(tmp_dir) / "report.json"
            command = self.runner.build_command(self.test_file, str(report_file))
            return await self._run_and_score(command, report_file)

    async def _write_artifact(self, artifact: str) -> None:
        assert self.artifact_path is not None
        self.artifact_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.artifact_path, "w", encoding="utf-8") as f:
            await f.write(artifact)

    async def _run_and_score(self, command: list[str], report_file: Path) -> ScoreResult:
        # The report path changes per run and is kept out of the recorded command.
        pretty = " ".join(self.runner.build_command(self.test_file, "<report>"))
        limit = self.runner.raw_output_limit
        logger.info(f"Running test runner: {pretty}")

        try:
            exit_code, stdout, stderr = await self._run(command)
        except asyncio.TimeoutError:
            logger.warning(f"Test runner timed out after {self.runner.timeout}s")
            return self._parse_failure(
                f"Test runner timed out after {self.runner.timeout:g}s", pretty, None, "", "", limit
            )
        except OSError as e:
            logger.error(f"Failed to launch test runner: {e}")
            return self._parse_failure(f"Failed to launch test runner: {e}", pretty, None, "", str(e), limit)

        try:
            data = self._load_report(report_file, stdout)
            counts = parse_report(data)
        except ScoringParseFailure as e:
            logger.warning(f"Unreadable test report (exit code {exit_code}): {e}")
            return self._parse_failure(str(e), pretty, exit_code, stdout, stderr, limit)

        logger.info(f"Test run finished: {counts.passed}/{counts.total} passed")

        if self.on_complete is not None:
            details = TestRunMetadata(
                command=pretty,
                cwd=str(self.root),
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                passed_tests=counts.passed,
                failed_tests=counts.failed,
                total_tests=counts.total,
                failing_tests=counts.failing_tests,
            )
            try:
                maybe_awaitable = self.on_complete(details)
                if inspect.isawaitable(maybe_awaitable):
                    await maybe_awaitable
            except Exception as e:
                logger.error(f"on_complete callback failed: {e}")

        metadata: dict[str, Any] = {
            "scorer": self.name,
            "command": pretty,
            "exit_code": exit_code,
            "stdout": _excerpt(stdout, limit),
            "stderr": _excerpt(stderr, limit),
        }
        if counts.failing_tests:
            metadata["failing_tests"] = counts.failing_tests
        return ScoreResult.from_counts(counts.passed, counts.failed, counts.total, **metadata)

    async def _run(self, command: list[str]) -> tuple[int | None, str, str]:
        env = {**os.environ, "FORCE_COLOR": "0", "NO_COLOR": "1"}
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self.root),
            env=env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.runner.timeout)
        finally:
            # Timeouts and outer cancellation must not leave the runner behind.
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    @staticmethod
    def _load_report(report_file: Path, stdout: str) -> Any:
        if report_file.exists():
            source = str(report_file)
            try:
                raw = report_file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ScoringParseFailure(f"Failed to read JSON report from {source}: {e}") from e
        elif stdout.strip().startswith("{"):
            raw = stdout
            source = "stdout"
        else:
            raise ScoringParseFailure("Test report was not generated. Confirm the test path is correct.")

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise ScoringParseFailure(f"Failed to parse JSON report from {source}: {e}") from e

    def _parse_failure(
        self,
        reason: str,
        command: str,
        exit_code: int | None,
        stdout: str,
        stderr: str,
        limit: int,
    ) -> ScoreResult:
        raw = stderr if stderr.strip() else stdout
        return ScoreResult.zero(
            reason=reason,
            failure_category=ScoringParseFailure.category,
            scorer=self.name,
            command=command,
            exit_code=exit_code,
            raw_output=_excerpt(raw, limit),
        )
