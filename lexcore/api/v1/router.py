"""
API v1 Router
Main router for all API v1 endpoints
"""

from fastapi import APIRouter
from lexcore.api.v1.endpoints import access, clients, health

api_router = APIRouter()

# Access control endpoints
api_router.include_router(
    access.router,
    prefix="/access",
    tags=["access"]
)

# Client lifecycle endpoints
api_router.include_router(
    clients.router,
    prefix="/clients",
    tags=["clients"]
)

# Health endpoints
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"]
)
