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

import pytest

from coreason_harness.adapters.base import AgentAdapter, AgentSession, PromptParams, SessionParams, StartParams
from coreason_harness.models import AgentMessage, AgentResponse, EnvironmentRecord, ScenarioInput, TokenUsage
from coreason_harness.providers.base import IsolationProvider


class FakeProvider(IsolationProvider):
    """In-memory isolation provider."""

    name = "fake"

    def __init__(self) -> None:
        self.environments: dict[str, dict[str, str]] = {}
        self.exists_calls = 0
        self.removed: list[str] = []

    def create(self, env_id: str, files: dict[str, str] | None = None) -> None:
        self.environments[env_id] = dict(files or {})

    async def list(self) -> list[EnvironmentRecord]:
        return [EnvironmentRecord(id=env_id, name=env_id) for env_id in self.environments]

    async def exists(self, env_id: str) -> bool:
        self.exists_calls += 1
        return env_id in self.environments

    async def read_file(self, env_id: str, path: str) -> str | None:
        return self.environments.get(env_id, {}).get(path)

    async def remove(self, env_id: str) -> None:
        self.removed.append(env_id)
        self.environments.pop(env_id, None)


class FakeAdapter(AgentAdapter):
    """Scripted agent: optionally creates its environment, then answers."""

    name = "fake-agent"

    def __init__(
        self,
        provider: FakeProvider | None = None,
        response: AgentResponse | None = None,
        env_files: dict[str, str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.provider = provider
        self.response = response or AgentResponse()
        self.env_files = env_files
        self.error = error
        self.prompts: list[str] = []
        self.started: list[StartParams] = []
        self.cleaned_up = False

    async def start(self, params: StartParams) -> Any:
        self.started.append(params)
        return {"agent": params.agent_id}

    async def create_session(self, context: Any, params: SessionParams) -> AgentSession:
        return AgentSession(id="session-1", data={"environment_id": params.environment_id})

    async def prompt(self, context: Any, session: AgentSession, params: PromptParams) -> AgentResponse:
        self.prompts.append(params.prompt)
        if self.error is not None:
            raise self.error
        if self.provider is not None and self.env_files is not None:
            self.provider.create(session.data["environment_id"], self.env_files)
        return self.response

    async def cleanup(self, context: Any, session: AgentSession | None) -> None:
        self.cleaned_up = True


HELLO_JS = 'export function hello(name) {\n  return "Hello, " + name + "!";\n}\n'


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def usage_response() -> AgentResponse:
    return AgentResponse(
        messages=[
            AgentMessage(type="text", text="Created environment and wrote hello.js"),
            AgentMessage(type="tool", text=None),
            AgentMessage(type="step-finish"),
        ],
        usage=TokenUsage(prompt_tokens=120, completion_tokens=30),
    )


@pytest.fixture
def scenario() -> ScenarioInput:
    return ScenarioInput(
        prompt="Create hello.js exporting hello(name).",
        agent_id="container-task-executor",
        language="javascript",
        isolated=True,
        timeout_ms=5_000,
        output_path="hello.js",
    )
