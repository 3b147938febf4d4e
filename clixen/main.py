"""
Clixen core API.

Run with:
    uvicorn clixen.main:create_app --factory

Settings are read from the environment once, here; every component gets
what it needs through its constructor.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import FastAPI
from openai import AsyncOpenAI
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

import clixen.models  # noqa: F401  (registers tables on Base.metadata)
from clixen import __version__
from clixen.api.routes import health, webhooks_stripe, webhooks_telegram
from clixen.config import Settings
from clixen.database.session import create_db_engine, create_session_factory
from clixen.db_base import Base
from clixen.integrations.telegram.client import TelegramClient
from clixen.integrations.workflows.executor_client import WorkflowExecutorClient
from clixen.logging_setup import configure_logging
from clixen.platform.errors import AppError, ErrorHandlerMiddleware, app_error_handler
from clixen.services.intent_classifier import IntentClassifier

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Process-wide collaborators shared by all requests."""
    settings: Settings
    session_factory: Optional[sessionmaker]
    http_client: Optional[httpx.AsyncClient]
    telegram: TelegramClient
    classifier: IntentClassifier
    executor: WorkflowExecutorClient
    engine: Optional[Engine] = None


def build_services(settings: Settings) -> AppServices:
    """Construct engine, HTTP client and API clients from settings."""
    engine = create_db_engine(settings.database_url)
    http_client = httpx.AsyncClient()

    openai_client = None
    if settings.openai_api_key:
        openai_client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.classifier_timeout_seconds,
            max_retries=0,
        )

    return AppServices(
        settings=settings,
        session_factory=create_session_factory(engine),
        http_client=http_client,
        telegram=TelegramClient(
            http_client,
            settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            timeout_seconds=settings.telegram_timeout_seconds,
        ),
        classifier=IntentClassifier(
            openai_client,
            model=settings.classifier_model,
            timeout_seconds=settings.classifier_timeout_seconds,
        ),
        executor=WorkflowExecutorClient(
            http_client,
            settings.executor_base_url,
            api_key=settings.executor_api_key,
            timeout_seconds=settings.executor_timeout_seconds,
        ),
        engine=engine,
    )


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[AppServices] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration; read from the environment when omitted
        services: Prebuilt collaborators (tests); built at startup when omitted
    """
    if settings is None:
        settings = services.settings if services is not None else Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.services is None
        if owned:
            app.state.services = build_services(settings)
        current = app.state.services

        if settings.auto_create_schema and current.engine is not None:
            Base.metadata.create_all(current.engine)
            logger.info("Database schema ensured")

        missing = settings.missing_required()
        logger.info(
            "Clixen core started",
            extra={"version": __version__, "missing_config": missing},
        )
        try:
            yield
        finally:
            if owned:
                if current.http_client is not None:
                    await current.http_client.aclose()
                if current.engine is not None:
                    current.engine.dispose()

    app = FastAPI(title="Clixen Core", version=__version__, lifespan=lifespan)
    app.state.services = services

    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(health.router)
    app.include_router(webhooks_stripe.router)
    app.include_router(webhooks_telegram.router)

    return app
