"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from relay.api.conversations import router as conversations_router
from relay.api.health import router as health_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(
    conversations_router, prefix="/conversations", tags=["conversations"]
)
