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
from dataclasses import dataclass, field
from typing import Any

from coreason_harness.models import AgentResponse


@dataclass
class StartParams:
    agent_id: str
    prompt: str
    environment_id: str
    isolated: bool
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionParams:
    agent_id: str
    prompt: str
    environment_id: str


@dataclass
class PromptParams:
    prompt: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentSession:
    id: str
    data: dict[str, Any] = field(default_factory=dict)


class AgentAdapter(ABC):
    """
    Abstract base class for agent runtimes (e.g., OpenCode).

    Swapping the adapter lets the same scenario be compared across runtimes
    without touching the coordinator.
    """

    name: str = "agent"

    async def start(self, params: StartParams) -> Any:
        """Boot or connect to the agent runtime.

        Args:
            params: The run being started.

        Returns:
            Any: An opaque context handed back to the other methods.
        """
        return None

    @abstractmethod
    async def create_session(self, context: Any, params: SessionParams) -> AgentSession:
        """Open a conversation with the agent.

        Raises:
            AdapterError: If the runtime does not return a session.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def prompt(self, context: Any, session: AgentSession, params: PromptParams) -> AgentResponse:
        """Send the task and wait for the agent to finish.

        Raises:
            AdapterError: If the runtime does not return a response.
        """
        pass  # pragma: no cover

    async def cleanup(self, context: Any, session: AgentSession | None) -> None:
        """Release the session and any runtime resources."""
        return None
