"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (OpenAI client)
- Register routes
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from config import AppConfig
from observability import logger

from server.routes import register_routes


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = AppConfig.load_from_env()
    logger.configure(enabled=config.enable_json_logs)

    app = FastAPI(title="Voice Intent Router API")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Create OpenAI client ONCE per process. Without a key the classifier
    # reports a missing credential and every utterance goes to conversation.
    app.state.openai_client = build_classifier_client(config)

    # Routes
    register_routes(app)

    return app


def build_classifier_client(config: AppConfig) -> AsyncOpenAI | None:
    if not config.openai_api_key:
        logger.log_event({
            "ts_ms": logger.now_ms(),
            "event_type": "OPENAI_CLIENT_DISABLED",
            "reason": "OPENAI_API_KEY not set",
        })
        return None
    return AsyncOpenAI(api_key=config.openai_api_key)
