import asyncio
from typing import Optional

from flag_notifier.celery import celery
from flag_notifier.config.settings import settings
from flag_notifier.db.session import get_sync_session
from flag_notifier.services.queue.factory import create_queue_consumer
from flag_notifier.services.queue.queue_consumer import JobOutcome
from flag_notifier.utils.logging import get_logger


@celery.task(
    bind=True,
    max_retries=settings.TASK_MAX_RETRIES,
    default_retry_delay=settings.TASK_RETRY_DELAY,
)
def process_content_update_task(self, request_id: str, item_id: int):
    """
    Celery task that sends the update notifications for one content item.

    A retry re-delivers this same task; no second job is created for the item
    and its pending entry stays in place until the job finally succeeds or is
    dropped.

    Args:
        request_id: The request ID of the update event that queued the job
        item_id: ID of the updated content item
    """
    result = asyncio.run(_async_process_content_update(request_id, item_id))

    if result["outcome"] != JobOutcome.RETRY_REQUESTED.value:
        return result

    logger = get_logger().bind(request_id=request_id)
    retries = self.request.retries or 0
    if retries >= self.max_retries:
        return _abandon_content_update(request_id, item_id, result.get("error"))

    countdown = min(
        settings.TASK_RETRY_DELAY * (2**retries),
        settings.TASK_RETRY_BACKOFF_MAX,
    )
    logger.warning(
        f"Retrying notification job for item {item_id} in {countdown}s "
        f"(attempt {retries + 1}/{self.max_retries})"
    )
    raise self.retry(countdown=countdown)


async def _async_process_content_update(request_id: str, item_id: int):
    logger = get_logger().bind(request_id=request_id)

    for db_session in get_sync_session():
        consumer = create_queue_consumer(db_session, logger=logger)
        job = await consumer.process(item_id)

        return {
            "success": job.outcome == JobOutcome.SUCCEEDED,
            "request_id": request_id,
            **job.to_dict(),
        }


def _abandon_content_update(request_id: str, item_id: int, error: Optional[str]):
    logger = get_logger().bind(request_id=request_id)

    for db_session in get_sync_session():
        consumer = create_queue_consumer(db_session, logger=logger)
        job = consumer.abandon(item_id, error)

        return {
            "success": False,
            "request_id": request_id,
            **job.to_dict(),
        }
