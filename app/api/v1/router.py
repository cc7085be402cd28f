"""API v1 router configuration."""

from fastapi import APIRouter

from app.api.v1.endpoints import auth, health, jobs, profiles

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(profiles.router, tags=["Profiles"])
api_router.include_router(jobs.router, tags=["Jobs"])
