"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (intent service client)
- Register routes
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from config import AppConfig
from observability.logger import log_event

from server.routes import register_routes

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


def create_app(config: AppConfig | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()

    app = FastAPI(title="CampyGo Voice Assistant API")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Create the intent client ONCE per process
    if not config.llm_api_key:
        raise RuntimeError(
            f"API key for LLM_PROVIDER={config.llm_provider} is not set"
        )

    app.state.openai_client = build_llm_client(config=config)

    log_event({
        "event_type": "APP_CREATED",
        "env": config.env,
        "llm_provider": config.llm_provider,
        "llm_model": config.llm_model,
    })

    # Routes
    register_routes(app)

    return app


def build_llm_client(config: AppConfig) -> AsyncOpenAI:
    """Build an LLM client with the provider selected by environment variables."""
    if config.llm_provider.lower() == "groq":
        return AsyncOpenAI(
            api_key=config.groq_api_key,
            base_url=GROQ_BASE_URL,
        )

    return AsyncOpenAI(api_key=config.openai_api_key)
