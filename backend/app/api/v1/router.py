from fastapi import APIRouter

from app.api.v1 import health, payments


def build_api_router() -> APIRouter:
    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(payments.router)
    return api_router
