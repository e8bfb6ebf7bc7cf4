"""API v1 router aggregating all route modules."""

from fastapi import APIRouter

from app.api.v1.routes import access_control

api_router = APIRouter()

api_router.include_router(access_control.router)
