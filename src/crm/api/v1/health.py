"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from src.crm.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "record_store": settings.RECORD_STORE.value,
    }
