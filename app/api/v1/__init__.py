"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import admin, auth, health, verification

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(verification.router, prefix="/auth", tags=["verification"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
