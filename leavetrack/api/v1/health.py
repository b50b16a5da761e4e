"""
Health check endpoint
"""
from fastapi import APIRouter
from leavetrack.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint

    Returns service status and version.
    """
    return {
        "status": "ok",
        "service": "leavetrack",
        "version": settings.VERSION or "dev",
    }
