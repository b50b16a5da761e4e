"""
Main API router
"""
from fastapi import APIRouter

from leavetrack.api.v1 import (
    health,
    leaves,
    wfh,
    balances,
)
from leavetrack.api.v1.admin import admin_router

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(wfh.router, prefix="/wfh", tags=["wfh"])
api_router.include_router(balances.router, prefix="/balances", tags=["balances"])
api_router.include_router(admin_router)
