from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter()

ENDPOINTS = {
    "healthCheck": "GET /api/health",
    "submitForm": "POST /api/submit-form",
}


@router.get("/api/health")
async def health():
    """Liveness probe; carries no business logic."""
    return {
        "success": True,
        "message": "Form submission service is healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/")
async def root():
    return {
        "success": True,
        "message": "Form submission service is running",
        "endpoints": ENDPOINTS,
    }
