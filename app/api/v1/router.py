"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import health, scheduling

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Scheduling
api_router.include_router(
    scheduling.router,
    prefix="/scheduling",
    tags=["scheduling"],
)
