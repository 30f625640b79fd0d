"""
Health check endpoints
"""
from fastapi import APIRouter, Request

from salesdash.core.config import settings

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


@router.get("/health/loads")
def loads_health(request: Request):
    """Phase of each progressive load (no auth, no data)"""
    context = getattr(request.app.state, "dashboard", None)
    if context is None:
        return {"status": "starting"}

    phases = {resource.value: store.state.phase.value for resource, store in context.stores.items()}
    errored = any(store.state.is_errored for store in context.stores.values())
    return {
        "status": "degraded" if errored else "healthy",
        "loads": phases,
    }
