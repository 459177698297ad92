from fastapi import APIRouter
from app.api.v1.endpoints import narratives

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(narratives.router, prefix="/narratives", tags=["Narratives"])

__all__ = ["api_router"]
