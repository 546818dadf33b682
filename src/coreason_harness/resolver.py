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
import re
import time

from loguru import logger

from coreason_harness.errors import ProviderError, ResolutionTimeout
from coreason_harness.models import AgentMessage
from coreason_harness.providers.base import IsolationProvider

_REPORTED_ID_PATTERNS = (
    re.compile(r"created environment[: ]+([\w-]+)", re.IGNORECASE),
    re.compile(r"environment id[: ]+([\w-]+)", re.IGNORECASE),
)


class EnvironmentResolver:
    """Confirms that the agent really created its isolated environment.

    Polls the provider for a short, capped window instead of the full scenario
    timeout so that a run whose agent never created the environment fails fast.
    """

    def __init__(self, provider: IsolationProvider, max_poll_seconds: float = 10.0, poll_interval: float = 0.5):
        """Initializes the EnvironmentResolver.

        Args:
            provider: The isolation provider to query.
            max_poll_seconds: Upper bound of the polling window.
            poll_interval: Delay between existence checks, in seconds.
        """
        self.provider = provider
        self.max_poll_seconds = max_poll_seconds
        self.poll_interval = poll_interval

    def poll_window(self, requested_timeout_ms: float) -> float:
        """Seconds to poll for: the lesser of the cap and the requested timeout."""
        return max(0.0, min(self.max_poll_seconds, requested_timeout_ms / 1000))

    async def resolve(self, candidate_id: str, requested_timeout_ms: float) -> None:
        """Wait until ``candidate_id`` exists.

        At least one existence check is made, however small the timeout.

        Args:
            candidate_id: The environment the agent was told to create.
            requested_timeout_ms: The scenario timeout in milliseconds.

        Raises:
            ResolutionTimeout: If the environment did not appear within the window.
        """
        window = self.poll_window(requested_timeout_ms)
        deadline = time.monotonic() + window
        attempts = 0
        last_error: ProviderError | None = None

        while True:
            attempts += 1
            try:
                if await self.provider.exists(candidate_id):
                    logger.info(f"Environment {candidate_id} confirmed after {attempts} check(s)")
                    return
                last_error = None
            except ProviderError as e:
                logger.warning(f"Existence check for {candidate_id} failed: {e}")
                last_error = e

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.poll_interval, remaining))

        message = (
            f'Environment "{candidate_id}" was not created within {window:g}s. '
            "Agent may not have called the environment creation tool"
        )
        if last_error is not None:
            message += f"; the provider also reported an error: {last_error}"
        else:
            message += " or the provider may not be configured correctly."
        raise ResolutionTimeout(message)


def detect_environment_id(messages: list[AgentMessage]) -> str | None:
    """Find an environment id the agent reported in its transcript."""
    for message in messages:
        if not message.text:
            continue
        for pattern in _REPORTED_ID_PATTERNS:
            match = pattern.search(message.text)
            if match:
                return match.group(1)
    return None
