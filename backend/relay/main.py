"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from relay.api.router import api_router
from relay.api.socket import websocket_relay
from relay.config import settings
from relay.dependencies import (
    get_connection_registry,
    get_database,
    get_gateway,
    get_message_store,
    get_token_verifier,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting message relay...")

    # Fail fast: no relay without durable storage
    database = get_database()
    await database.initialize()
    await get_connection_registry().ensure_indexes()
    await get_message_store().ensure_indexes()
    logger.info("Storage initialized successfully")

    verifier = get_token_verifier()
    await verifier.initialize()

    get_gateway()
    logger.info("Session gateway ready")

    yield

    # Cleanup
    await verifier.close()
    await database.close()
    logger.info("Message relay shut down cleanly")


app = FastAPI(
    title="Message Relay",
    description="Authenticated real-time direct messaging over WebSockets",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router, prefix="/api")

# Mount WebSocket endpoint
app.websocket("/ws")(websocket_relay)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
