"""Module: api."""

# backend/vetmed/api/v1/api.py
from fastapi import APIRouter

# Operational routes.
from vetmed.api.v1.routes.health import router as health_router

# Scheduling and recording routes used by the caregiver app.
from vetmed.api.v1.routes.regimens import router as regimens_router
from vetmed.api.v1.routes.administrations import router as administrations_router
from vetmed.api.v1.routes.cosign import router as cosign_router
from vetmed.api.v1.routes.sync import router as sync_router
from vetmed.api.v1.routes.reports import router as reports_router


api_router = APIRouter()

# Register operational endpoints first for service-level concerns.
api_router.include_router(health_router, prefix="/health", tags=["health"])

api_router.include_router(regimens_router, prefix="/regimens", tags=["regimens"])
api_router.include_router(administrations_router, prefix="/administrations", tags=["administrations"])
api_router.include_router(cosign_router, prefix="/cosign-requests", tags=["cosign"])
api_router.include_router(sync_router, prefix="/sync", tags=["sync"])
api_router.include_router(reports_router, prefix="/reports", tags=["reports"])
