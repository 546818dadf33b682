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

import httpx
from loguru import logger

from coreason_harness.adapters.base import AgentAdapter, AgentSession, PromptParams, SessionParams, StartParams
from coreason_harness.errors import AdapterError
from coreason_harness.models import AgentMessage, AgentResponse, TokenUsage


class OpencodeAdapter(AgentAdapter):
    """Agent adapter for an OpenCode server reached over HTTP.

    The server is expected to be running already (``opencode serve``); the
    adapter only opens sessions, prompts them and deletes them.
    """

    name = "opencode"

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:4096",
        client: httpx.AsyncClient | None = None,
        password: str | None = None,
        timeout: float = 600.0,
    ):
        """Initializes the OpencodeAdapter.

        Args:
            base_url: Root URL of the OpenCode server.
            client: Optional shared httpx.AsyncClient.
            password: Server password, sent as basic auth when set.
            timeout: Request timeout in seconds; prompting blocks until the agent is done.
        """
        self.base_url = base_url.rstrip("/")
        self._internal_client = client is None
        self._client = client or httpx.AsyncClient()
        self.auth = httpx.BasicAuth("opencode", password) if password else None
        self.timeout = timeout

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                auth=self.auth if self.auth is not None else httpx.USE_CLIENT_DEFAULT,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise AdapterError(f"OpenCode request {method} {path} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise AdapterError(f"OpenCode returned invalid JSON for {method} {path}") from e

    async def start(self, params: StartParams) -> httpx.AsyncClient:
        logger.info(f"Using OpenCode server at {self.base_url} for agent {params.agent_id}")
        return self._client

    async def create_session(self, context: Any, params: SessionParams) -> AgentSession:
        title = f"Eval: {params.agent_id} - {params.prompt[:50]} [env: {params.environment_id}]"
        data = await self._request("POST", "/session", json={"title": title})
        if not isinstance(data, dict) or not data.get("id"):
            raise AdapterError("Failed to create session")
        return AgentSession(id=str(data["id"]), data={"agent_id": params.agent_id})

    async def prompt(self, context: Any, session: AgentSession, params: PromptParams) -> AgentResponse:
        body: dict[str, Any] = {"parts": [{"type": "text", "text": params.prompt}]}
        agent_id = session.data.get("agent_id")
        if agent_id:
            body["agent"] = agent_id

        data = await self._request("POST", f"/session/{session.id}/message", json=body)
        if not isinstance(data, dict):
            raise AdapterError("Failed to get agent response")

        messages = normalize_parts(data.get("parts"))
        info = data.get("info") if isinstance(data.get("info"), dict) else None
        return AgentResponse(
            messages=messages,
            usage=extract_usage(info),
            step_count=sum(1 for m in messages if m.type == "step-finish"),
            raw=data,
        )

    async def cleanup(self, context: Any, session: AgentSession | None) -> None:
        if session is not None:
            try:
                await self._request("DELETE", f"/session/{session.id}")
            except AdapterError as e:
                logger.warning(f"Failed to delete OpenCode session {session.id}: {e}")

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()


def normalize_parts(parts: Any) -> list[AgentMessage]:
    """Turn raw OpenCode message parts into AgentMessages, dropping anything malformed."""
    if not isinstance(parts, list):
        return []

    messages = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        part_type = part.get("type")
        text = part.get("text")
        metadata = part.get("metadata")
        messages.append(
            AgentMessage(
                type=part_type if isinstance(part_type, str) else "unknown",
                text=text if isinstance(text, str) else None,
                metadata=metadata if isinstance(metadata, dict) else None,
            )
        )
    return messages


def extract_usage(info: dict[str, Any] | None) -> TokenUsage | None:
    """Read ``info.tokens.{input,output}``; usage is only reported when both are numbers."""
    if not info:
        return None
    tokens = info.get("tokens")
    if not isinstance(tokens, dict):
        return None

    input_tokens = tokens.get("input")
    output_tokens = tokens.get("output")
    if not isinstance(input_tokens, (int, float)) or not isinstance(output_tokens, (int, float)):
        return None
    return TokenUsage(prompt_tokens=int(input_tokens), completion_tokens=int(output_tokens))
