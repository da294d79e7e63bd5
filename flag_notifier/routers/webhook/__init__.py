from fastapi import APIRouter

from .content import content_router

webhook_router = APIRouter()

webhook_router.include_router(content_router, tags=["Content Webhook"])
