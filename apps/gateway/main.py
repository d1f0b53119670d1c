"""
ConvoFlow Gateway - Main Application Entry Point

Mounts the conversation router under a single FastAPI application.

Features:
- Standard logging plus an in-memory log buffer for the UI log viewer
- CORS configuration for development
- Request logging for conversation actions
- WebSocket mirror of the conversation event stream

Configuration (via environment/.env):
- LOG_LEVEL: Root log level
- CONVO_LOG_BUFFER_SIZE: Records kept for GET /conversation/logs
- USE_MOCK / USE_OPENROUTER / USE_OLLAMA / USE_OPENAI: Completion backend
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import time

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from convolib.config import settings
from convolib.di import container
from convolib.observability import install_memory_handler

# Import containers to register providers
from apps.conversation import container as _conversation_container  # noqa: F401

# Routers
from apps.conversation.routes import router as conversation_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
install_memory_handler(max_entries=settings.conversation.log_buffer_size)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=" * 60)
    logger.info("Starting ConvoFlow Gateway...")
    logger.info("=" * 60)
    logger.info("Configuration:")
    logger.info(f"   - LLM Provider: {settings.llm.get_active_provider()}")
    logger.info(f"   - Conversation Mode: {settings.conversation.mode}")
    logger.info(f"   - Max Retries: {settings.conversation.max_retries}")
    logger.info(f"   - Timeout: {settings.conversation.timeout_seconds}s")
    logger.info(f"   - Audit Dir: {settings.conversation.audit_dir or 'in-memory'}")
    yield

    # Invalidate any in-flight completion before shutdown
    container.resolve('conversation.controller').stop_conversation()
    logger.info("ConvoFlow Gateway shutdown complete")


app = FastAPI(
    title=f"{settings.app_name} (Gateway)",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ==============================================================================
# Middleware Configuration
# ==============================================================================

# CORS middleware - allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_conversation_actions(request: Request, call_next):
    """Log every conversation action with its status code and duration."""
    start_time = time.time()
    path = request.url.path
    method = request.method
    is_action = method == "POST" and path.startswith("/conversation")

    response = await call_next(request)

    if is_action:
        duration = (time.time() - start_time) * 1000
        status = response.status_code
        if status < 400:
            logger.info(f"Conversation action: {method} {path} - Status: {status} - Duration: {duration:.2f}ms")
        elif status < 500:
            logger.warning(f"Conversation action rejected: {method} {path} - Status: {status}")
        else:
            logger.error(f"Conversation action error: {method} {path} - Status: {status}")
    return response


# ==============================================================================
# Health Check
# ==============================================================================


@app.get("/healthz")
async def healthz():
    return {
        "status": "ok",
        "provider": settings.llm.get_active_provider(),
        "mode": settings.conversation.mode,
    }


@app.get("/health/llm")
async def health_llm():
    """
    Completion backend health check.

    Sends a minimal request through the configured provider.
    """
    provider = container.resolve('conversation.provider')
    config = provider.get_config()
    available = await provider.is_available()
    return {
        "status": "ok" if available else "unavailable",
        "provider": config.provider,
        "model": config.model,
    }


# ==============================================================================
# Router Registration
# ==============================================================================

app.include_router(conversation_router)


# ==============================================================================
# WebSocket Endpoint for Conversation Events
# ==============================================================================


@app.websocket("/ws/conversation")
async def websocket_conversation(websocket: WebSocket):
    """
    WebSocket endpoint mirroring the conversation event stream.

    Clients receive ``state_changed`` and ``history_committed`` events as JSON.
    """
    publisher = container.resolve('conversation.events')
    queue: asyncio.Queue = asyncio.Queue(maxsize=500)
    await websocket.accept()
    publisher.subscribe_queue(queue)
    try:
        while True:
            event = await queue.get()
            await websocket.send_json(event)
    except WebSocketDisconnect:
        logger.debug("Conversation WebSocket disconnected")
    finally:
        publisher.unsubscribe_queue(queue)
