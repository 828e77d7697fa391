"""Top-level API router."""

from fastapi import APIRouter

from forecast.api.routes.forecast import router as forecast_router
from forecast.api.routes.health import router as health_router
from forecast.api.routes.skills import router as skills_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(forecast_router)
api_router.include_router(skills_router)
