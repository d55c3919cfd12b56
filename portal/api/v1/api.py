"""API v1 router composition."""

from fastapi import APIRouter

from portal.api.v1.endpoints import admin, auth, orders

api_router: APIRouter = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
