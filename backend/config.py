"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants (those live in spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the app factory and session gateway.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Backend API (classification, command execution, voice socket)
    # ------------------------------------------------------------------

    api_base_url: str
    api_auth_token: str | None

    # ------------------------------------------------------------------
    # Remote classifier
    # ------------------------------------------------------------------

    classifier_provider: str
    classifier_model: str
    openai_api_key: str | None

    # ------------------------------------------------------------------
    # Conversation channel
    # ------------------------------------------------------------------

    voice_ws_url: str
    voice_name: str

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    executor_provider: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Missing credentials are allowed here; the adapters that need them
        raise at call time so classification can fall back.
        """
        api_base_url = os.environ.get(
            "API_BASE_URL", "https://squirrel2.vercel.app/api"
        ).rstrip("/")

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            api_base_url=api_base_url,
            api_auth_token=os.environ.get("API_AUTH_TOKEN"),

            classifier_provider=os.environ.get("CLASSIFIER_PROVIDER", "openai"),
            classifier_model=os.environ.get("CLASSIFIER_MODEL", "gpt-4o-mini"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),

            voice_ws_url=os.environ.get(
                "VOICE_WS_URL",
                api_base_url.replace("https://", "wss://", 1) + "/voice/ws",
            ),
            voice_name=os.environ.get("VOICE_NAME", "shimmer"),

            executor_provider=os.environ.get("EXECUTOR_PROVIDER", "memory"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
