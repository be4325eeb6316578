"""Bookshelf API Router - aggregates all API routes."""

from fastapi import APIRouter

from bookshelf.api import auth, books, cache, health

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(prefix="/api")

# Include routers
api_router.include_router(auth.router)
api_router.include_router(books.router)
api_router.include_router(cache.router)
api_router.include_router(health.router)
