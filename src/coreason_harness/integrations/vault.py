# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import os

from loguru import logger


class VaultIntegrator:
    """
    Simplified Integrator: Directly reads secrets from Environment Variables.
    """

    def __init__(self, prefix: str = "COREASON_HARNESS_"):
        self.prefix = prefix

    def get_secret(self, key: str) -> str | None:
        """
        Fetch secret directly from Environment Variables.

        The bare key wins over the prefixed one.
        """
        val = os.getenv(key)
        if not val:
            val = os.getenv(f"{self.prefix}{key}")

        if not val:
            logger.debug(f"Secret {key} not found in environment.")

        return val
