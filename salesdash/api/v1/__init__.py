"""
API v1 routes
"""
from fastapi import APIRouter

from salesdash.api.v1 import analytics, auth, checkouts, clients, health, loads, sales

api_router = APIRouter(prefix="/api/v1")

# Include routers
api_router.include_router(auth.router)
api_router.include_router(health.router)
api_router.include_router(loads.router)
api_router.include_router(analytics.router)
api_router.include_router(sales.router)
api_router.include_router(clients.router)
api_router.include_router(checkouts.router)
