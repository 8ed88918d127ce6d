from fastapi import APIRouter
from cardflow.api.v1.cards import router as cards_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(cards_router)
