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
import io
import posixpath
import tarfile

import docker
from docker.errors import DockerException, NotFound
from docker.models.containers import Container
from loguru import logger

from coreason_harness.errors import ProviderError
from coreason_harness.models import EnvironmentRecord
from coreason_harness.providers.base import IsolationProvider

ENVIRONMENT_LABEL = "coreason.harness.environment"


class DockerProvider(IsolationProvider):
    """
    Docker-based implementation of the IsolationProvider.

    An environment is a container whose name is the environment id. Containers
    created for the harness carry the ``coreason.harness.environment`` label.
    """

    name = "docker"

    def __init__(self, base_url: str | None = None, work_dir: str = "/home/user"):
        self.client = docker.DockerClient(base_url=base_url) if base_url else docker.from_env()
        self.work_dir = work_dir

    async def _get_container(self, env_id: str) -> Container | None:
        try:
            container: Container = await asyncio.to_thread(self.client.containers.get, env_id)
        except NotFound:
            return None
        except DockerException as e:
            raise ProviderError(f"Docker lookup of {env_id} failed: {e}") from e
        # containers.get also resolves id prefixes
        if container.name != env_id and container.id != env_id:
            return None
        return container

    async def list(self) -> list[EnvironmentRecord]:
        try:
            containers = await asyncio.to_thread(
                self.client.containers.list, all=True, filters={"label": ENVIRONMENT_LABEL}
            )
        except DockerException as e:
            raise ProviderError(f"Failed to list Docker environments: {e}") from e

        records = [
            EnvironmentRecord(
                id=c.name,
                name=c.labels.get(ENVIRONMENT_LABEL, c.name),
                created=c.attrs.get("Created", ""),
            )
            for c in containers
        ]
        return sorted(records, key=lambda r: r.created, reverse=True)

    async def exists(self, env_id: str) -> bool:
        return await self._get_container(env_id) is not None

    async def read_file(self, env_id: str, path: str) -> str | None:
        """
        Retrieve a file from the environment via ``get_archive``.
        """
        container = await self._get_container(env_id)
        if container is None:
            return None

        remote_path = path if path.startswith("/") else posixpath.join(self.work_dir, path)
        logger.info(f"Reading {remote_path} from environment {env_id}")

        try:
            bits, _ = await asyncio.to_thread(container.get_archive, remote_path)

            tar_stream = io.BytesIO()
            for chunk in bits:
                tar_stream.write(chunk)
            tar_stream.seek(0)

            with tarfile.open(fileobj=tar_stream, mode="r") as tar:
                member = tar.next()
                if member is None:
                    return None

                f = tar.extractfile(member)
                if f is None:
                    # Directories have no payload
                    return None
                return f.read().decode("utf-8", errors="replace")

        except NotFound:
            logger.debug(f"Remote file not found: {remote_path}")
            return None
        except DockerException as e:
            logger.error(f"Download failed: {e}")
            raise ProviderError(f"Failed to read {remote_path} from {env_id}: {e}") from e

    async def remove(self, env_id: str) -> None:
        container = await self._get_container(env_id)
        if container is None:
            logger.warning(f"Attempted to remove non-existent Docker environment {env_id}")
            return

        logger.info(f"Removing Docker environment: {env_id}")
        try:
            await asyncio.to_thread(container.remove, force=True)
        except DockerException as e:
            raise ProviderError(f"Failed to remove {env_id}: {e}") from e
