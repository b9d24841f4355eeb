"""API router configuration."""

from fastapi import APIRouter

from src.modules.sync.interfaces.router import router as sync_router

api_router = APIRouter()

# Catalog sync
api_router.include_router(sync_router)
