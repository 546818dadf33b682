# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import httpx

from coreason_harness.adapters.base import AgentAdapter
from coreason_harness.adapters.opencode import OpencodeAdapter
from coreason_harness.config import HarnessConfig
from coreason_harness.providers.base import IsolationProvider
from coreason_harness.providers.container_use import ContainerUseProvider
from coreason_harness.reporter import HttpTraceSink, LogTraceSink, TraceSink
from coreason_harness.scoring import TestRunnerConfig


class HarnessFactory:
    """
    Factory to create harness collaborators based on configuration.
    """

    @staticmethod
    def get_provider(config: HarnessConfig) -> IsolationProvider:
        """
        Returns an instance of the configured IsolationProvider.
        """
        if config.provider == "container-use":
            return ContainerUseProvider(binary=config.container_use_bin, repo_root=config.repo_root)
        elif config.provider == "docker":
            # Imported lazily so container-use users do not need a Docker daemon.
            from coreason_harness.providers.docker import DockerProvider

            return DockerProvider(base_url=config.docker_base_url)
        else:
            raise ValueError(f"Unknown provider: {config.provider}")  # pragma: no cover

    @staticmethod
    def get_adapter(config: HarnessConfig, client: httpx.AsyncClient | None = None) -> AgentAdapter:
        """
        Returns an instance of the configured AgentAdapter.
        """
        if config.adapter == "opencode":
            return OpencodeAdapter(
                base_url=config.opencode_base_url,
                client=client,
                password=config.opencode_password,
                timeout=config.agent_request_timeout,
            )
        raise ValueError(f"Unknown adapter: {config.adapter}")  # pragma: no cover

    @staticmethod
    def get_trace_sink(config: HarnessConfig, client: httpx.AsyncClient | None = None) -> TraceSink | None:
        """
        Returns the configured trace sink, or None when tracing is disabled.
        """
        if config.trace_sink == "none":
            return None
        if config.trace_sink == "http":
            if not config.trace_endpoint:
                raise ValueError("trace_endpoint is required when trace_sink is 'http'")
            return HttpTraceSink(config.trace_endpoint, client=client, api_key=config.trace_api_key)
        return LogTraceSink()

    @staticmethod
    def get_runner_config(config: HarnessConfig, preset: str = "pytest") -> TestRunnerConfig:
        """
        Returns a test runner invocation carrying the configured timeout and output limit.
        """
        if preset == "pytest":
            return TestRunnerConfig.pytest(timeout=config.test_runner_timeout, raw_output_limit=config.raw_output_limit)
        if preset == "vitest":
            return TestRunnerConfig.vitest(timeout=config.test_runner_timeout, raw_output_limit=config.raw_output_limit)
        raise ValueError(f"Unknown test runner preset: {preset}")
