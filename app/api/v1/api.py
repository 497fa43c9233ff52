"""
API v1 main router
Combines all v1 endpoint routers
"""

from fastapi import APIRouter

from app.api.v1.endpoints import health, quizzes

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(quizzes.router, tags=["Quizzes"])
