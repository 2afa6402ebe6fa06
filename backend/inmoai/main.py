"""
InmoAI Analytics Backend - Main FastAPI Application.

This is the entry point for the InmoAI Analytics API.
It provides endpoints for requesting AI-generated investment viability
reports on residential properties, browsing stored reports and handing
the conversation off to the Telegram assistant.

Run with:
    uvicorn inmoai.main:app --reload
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from supabase import acreate_client
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from inmoai.api.v1.analyze import router as analyze_router
from inmoai.api.v1.chat import router as chat_router
from inmoai.api.v1.locations import router as locations_router
from inmoai.api.v1.properties import router as properties_router
from inmoai.config import get_settings
from inmoai.constants import API_TITLE, API_VERSION
from inmoai.logging_config import setup_logging
from inmoai.middleware import RequestContextMiddleware
from inmoai.services.chat_assistant import PropertyChatAssistant
from inmoai.services.fallback_agent import FallbackAgentClient
from inmoai.services.geocoding import GeocodingService
from inmoai.services.orchestrator import ReportOrchestrator
from inmoai.services.persistence import create_persistence_adapter
from inmoai.services.primary_agent import PrimaryAgentClient
from inmoai.services.session import SessionRegistry
from inmoai.services.telegram import TelegramService

# Get settings before logging setup so we know the debug flag
settings = get_settings()

# pydantic-settings does NOT inject .env values into os.environ, which is
# where langsmith and openai_client.py look.
if settings.langchain_tracing_v2 and settings.langsmith_api_key:
    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGSMITH_API_KEY"] = settings.langsmith_api_key
    os.environ["LANGSMITH_PROJECT"] = settings.langsmith_project

setup_logging(settings.debug)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler for startup and shutdown."""
    logger.info("api_startup", cors_origins=settings.cors_origins)

    if not settings.telegram_bot_token:
        logger.warning("telegram_token_missing", detail="Telegram hand-off will be disabled")
    if not settings.primary_agent.webhook_url:
        logger.warning("primary_agent_webhook_missing", detail="Every analysis will use the fallback agent")

    # Database mode only when credentials are present; decided once here
    supabase_client: AsyncSupabaseClient | None = None
    if settings.supabase_configured:
        try:
            supabase_client = await acreate_client(
                settings.supabase_url,
                settings.supabase_publishable_key,
            )
            logger.info("supabase_configured")
        except Exception as e:
            logger.warning("supabase_init_failed", error=str(e))
    else:
        logger.info("supabase_not_configured", detail="Using local storage")

    _app.state.supabase = supabase_client

    repository = create_persistence_adapter(settings, supabase_client)
    primary_agent = PrimaryAgentClient(settings.primary_agent)
    fallback_agent = FallbackAgentClient(
        settings.openai_api_key,
        model=settings.openai_model,
        config=settings.fallback_agent,
    )
    orchestrator = ReportOrchestrator(
        primary_agent,
        fallback_agent,
        repository,
        failure_keyword=settings.primary_agent.failure_keyword,
        primary_timeout=settings.orchestrator.primary_timeout_seconds,
        fallback_timeout=settings.orchestrator.fallback_timeout_seconds,
    )
    sessions = SessionRegistry(orchestrator, repository)

    geocoding_service = GeocodingService(settings.geocoding)
    telegram_service = TelegramService(settings.telegram_bot_token, settings.telegram_api_base)

    _app.state.sessions = sessions
    _app.state.geocoding_service = geocoding_service
    _app.state.telegram_service = telegram_service
    _app.state.chat_assistant = PropertyChatAssistant(
        settings.openai_api_key,
        model=settings.openai_chat_model,
        config=settings.fallback_agent,
    )

    logger.info("services_initialized", persistence=type(repository).__name__)

    yield

    await primary_agent.close()
    await geocoding_service.close()
    await telegram_service.close()
    logger.info("api_shutdown")


app = FastAPI(
    title=API_TITLE,
    description=(
        "API de evaluación inmobiliaria inteligente. Genera informes de viabilidad "
        "de inversión orquestados por IA (agente n8n con respaldo directo en OpenAI), "
        "guarda los informes y ofrece un asistente en Telegram."
    ),
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Request context middleware must come before CORS so every response gets
# the X-Request-ID header (including preflight OPTIONS responses).
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analyze_router, prefix="/api/v1")
app.include_router(properties_router, prefix="/api/v1")
app.include_router(locations_router, prefix="/api/v1")
app.include_router(chat_router, prefix="/api/v1")


@app.get("/")
async def root() -> dict:
    """Root endpoint with API info."""
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "Evaluación inmobiliaria inteligente orquestada por IA",
        "docs": "/docs",
    }


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}
