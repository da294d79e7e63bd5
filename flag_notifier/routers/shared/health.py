from fastapi import APIRouter, Request

from flag_notifier.config.settings import settings
from flag_notifier.utils.responses import ResponseBuilder

health_router = APIRouter()


@health_router.get("")
async def health_check(request: Request):
    """Liveness probe"""
    return ResponseBuilder.success(
        request=request,
        data={
            "status": "healthy",
            "service": settings.NAME,
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        },
        message="Service is running",
    )
