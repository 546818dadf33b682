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

from coreason_harness.models import EnvironmentRecord


class IsolationProvider(ABC):
    """
    Abstract base class for isolation providers (e.g., container-use, Docker).
    Follows the Strategy Pattern.

    The harness never owns an environment: the agent creates it, the harness only
    observes it, reads from it and asks for its removal.
    """

    name: str = "provider"

    @abstractmethod
    async def list(self) -> list[EnvironmentRecord]:
        """List environments known to the provider.

        Returns:
            list[EnvironmentRecord]: The environments, most recent first.

        Raises:
            ProviderError: If the provider cannot be queried.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def exists(self, env_id: str) -> bool:
        """Check whether an environment exists.

        Args:
            env_id: The environment identifier.

        Returns:
            bool: True if the environment is present.

        Raises:
            ProviderError: If the provider cannot be queried.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def read_file(self, env_id: str, path: str) -> str | None:
        """Read a file from inside an environment.

        Args:
            env_id: The environment identifier.
            path: The file path, relative to the environment workspace.

        Returns:
            str | None: The file content, or None if the file does not exist.

        Raises:
            ProviderError: If the provider fails for any other reason.
        """
        pass  # pragma: no cover

    @abstractmethod
    async def remove(self, env_id: str) -> None:
        """Delete an environment.

        Args:
            env_id: The environment identifier.

        Raises:
            ProviderError: If the removal fails.
        """
        pass  # pragma: no cover
