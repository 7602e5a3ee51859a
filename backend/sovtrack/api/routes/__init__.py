"""
API Routes
"""

from fastapi import APIRouter

from .brands import router as brands_router
from .blog import router as blog_router

api_router = APIRouter()

api_router.include_router(brands_router, prefix="/brands", tags=["Share of Voice"])
api_router.include_router(blog_router, prefix="/brands", tags=["GEO Blog Scoring"])
