import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from flag_notifier.config.settings import settings
from flag_notifier.schemas.content_event_schemas import ContentUpdatedEvent
from flag_notifier.services.queue.content_update_service import ContentUpdateService
from flag_notifier.services.queue.factory import get_content_update_service
from flag_notifier.utils.responses import ResponseBuilder

content_router = APIRouter()


def verify_webhook_token(
    x_webhook_token: Optional[str] = Header(default=None),
) -> None:
    """Reject callers without the shared secret when WEBHOOK_TOKEN is configured."""
    if not settings.WEBHOOK_TOKEN:
        return
    if not x_webhook_token or not secrets.compare_digest(
        x_webhook_token, settings.WEBHOOK_TOKEN
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing X-Webhook-Token header",
        )


@content_router.post(
    "/content-updated",
    dependencies=[Depends(verify_webhook_token)],
)
async def content_updated(
    request: Request,
    event: ContentUpdatedEvent,
    service: ContentUpdateService = Depends(get_content_update_service),
):
    """
    Content-update event hook.

    Queues a notification job for the item unless one is already pending.
    """
    result = service.handle_content_updated(
        event.item_id, request_id=request.state.request_id
    )

    return ResponseBuilder.success(
        request=request,
        data=result.model_dump(exclude_none=True, by_alias=True),
        message=(
            "Notification job queued"
            if result.queued
            else "No notification job queued"
        ),
        status_code=status.HTTP_202_ACCEPTED if result.queued else status.HTTP_200_OK,
    )
