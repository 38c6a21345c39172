"""
Health router — GET /health endpoint.

Used by container liveness/readiness probes.
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Return a simple health status for probes."""
    return {"status": "healthy", "service": "codechat"}
