"""
Main API router aggregator
"""
from fastapi import APIRouter

from app.api.v1.endpoints import case_priority

api_router = APIRouter()

api_router.include_router(case_priority.router, prefix="/case-priority", tags=["Case Priority"])
