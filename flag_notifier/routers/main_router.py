from fastapi import APIRouter

from flag_notifier.routers.shared import health_router

main_router = APIRouter()

main_router.include_router(health_router, prefix="/health", tags=["Health Checks"])
