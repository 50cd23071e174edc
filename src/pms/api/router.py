"""Main API router that aggregates all route modules."""

from fastapi import APIRouter

from pms.api import auth, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
