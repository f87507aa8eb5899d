"""
API v1 routes aggregation
"""
from fastapi import APIRouter
from app.api.v1 import rankings, tournaments

api_router = APIRouter()

# Rankings
api_router.include_router(rankings.router, tags=["rankings"])

# Tournaments
api_router.include_router(tournaments.router, tags=["tournaments"])
