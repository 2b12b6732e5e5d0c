"""
API routes
"""
from fastapi import APIRouter

from .v1 import candidates, rankings

api_router = APIRouter()

api_router.include_router(
    candidates.router,
    prefix="/candidates",
    tags=["Candidates"]
)
api_router.include_router(
    rankings.router,
    prefix="/rankings",
    tags=["Rankings"]
)
