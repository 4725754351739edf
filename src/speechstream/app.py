"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .routers.voice_chat import router as voice_chat_router
from .services.chat_service import ChatService, build_openai_client
from .services.tts_service import TTSService
from .services.voice_session import VoiceConnectionManager


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("speechstream").setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Quiet the HTTP stack unless debugging
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)


def create_app(
    settings: Settings | None = None,
    *,
    chat_service: ChatService | None = None,
    tts_service: TTSService | None = None,
) -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = settings or get_settings()

    if chat_service is None or tts_service is None:
        # One pooled client serves both chat and speech requests
        openai_client = build_openai_client(settings)
        chat_service = chat_service or ChatService(settings, openai_client)
        tts_service = tts_service or TTSService(settings, openai_client)

    manager = VoiceConnectionManager(settings, chat_service, tts_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await manager.close_all()
            # Add timeout to prevent hanging during shutdown (especially in tests)
            try:
                await asyncio.wait_for(chat_service.aclose(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("OpenAI client shutdown timed out after 10s")
            except Exception as exc:
                logging.warning("Error during OpenAI client shutdown: %s", exc)

    app = FastAPI(
        title="Speech Stream Chat Backend",
        version="0.1.0",
        description="Streams chat responses sentence by sentence with synthesized speech.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.chat_service = chat_service
    app.state.tts_service = tts_service
    app.state.voice_manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(voice_chat_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | int]:
        return {
            "status": "ok",
            "chat_model": settings.chat_model,
            "active_connections": len(manager.active_connections),
        }

    return app


__all__ = ["create_app"]
