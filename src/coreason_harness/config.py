# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

from typing import Any, Literal

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from coreason_harness.integrations.vault import VaultIntegrator


class VaultSettingsSource(PydanticBaseSettingsSource):
    """
    Custom Pydantic Settings Source that reads secrets from Vault.
    """

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Required by the abstract base class; __call__ returns the full dict instead.
        return None, field_name, False  # pragma: no cover

    def __call__(self) -> dict[str, Any]:
        vault = VaultIntegrator()
        secrets: dict[str, Any] = {}

        # Config Field -> Vault Key
        mapping = {
            "opencode_password": "OPENCODE_SERVER_PASSWORD",
            "trace_api_key": "TRACE_API_KEY",
        }

        for field, key in mapping.items():
            val = vault.get_secret(key)
            if val:
                secrets[field] = val

        return secrets


class HarnessConfig(BaseSettings):
    """
    Configuration for the evaluation harness.
    """

    # Isolation provider
    provider: Literal["container-use", "docker"] = "container-use"
    container_use_bin: str = "container-use"
    repo_root: str = "."
    docker_base_url: str | None = None

    # Agent runtime
    adapter: Literal["opencode"] = "opencode"
    opencode_base_url: str = "http://127.0.0.1:4096"
    opencode_password: str | None = None
    agent_request_timeout: float = 600.0

    # Environment resolution
    resolver_max_poll_seconds: float = 10.0
    resolver_poll_interval: float = 0.5
    trust_reported_environment_id: bool = False

    # Metrics sink
    trace_sink: Literal["log", "http", "none"] = "log"
    trace_endpoint: str | None = None
    trace_api_key: str | None = None

    # Scoring
    test_runner_timeout: float = 120.0
    raw_output_limit: int = 4000

    model_config = SettingsConfigDict(
        env_prefix="COREASON_HARNESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            VaultSettingsSource(settings_cls),
            file_secret_settings,
        )
