from typing import Optional

from redis.exceptions import RedisError

from flag_notifier.schemas.content_event_schemas import ContentUpdatedResult
from flag_notifier.services.notifications.interfaces import ContentStore, WorkQueue
from flag_notifier.services.notifications.notifier_settings_service import (
    NotifierSettingsService,
)
from flag_notifier.utils.errors import QueueUnavailableError
from flag_notifier.utils.logging import get_logger

from .pending_work_lock import PendingWorkLock

logger = get_logger()


class ContentUpdateService:
    """Intake for content-update events: debounce against the pending entry, then enqueue."""

    def __init__(
        self,
        content: ContentStore,
        settings_service: NotifierSettingsService,
        lock: PendingWorkLock,
        queue: WorkQueue,
    ):
        self.content = content
        self.settings_service = settings_service
        self.lock = lock
        self.queue = queue

    def handle_content_updated(
        self, item_id: int, request_id: Optional[str] = None
    ) -> ContentUpdatedResult:
        """
        Queue a notification job for the item unless one is already pending.

        Raises:
            QueueUnavailableError: the pending entry or the work queue could not be reached
        """
        item = self.content.load_item(item_id)
        if item is None:
            logger.info(f"Ignoring update for unknown content item {item_id}")
            return ContentUpdatedResult(
                item_id=item_id, queued=False, reason="item_not_found"
            )

        run_settings = self.settings_service.load()
        channels = self.settings_service.build_channels(
            run_settings, self.content.list_flags()
        )
        if not any(
            channel.enabled and channel.applies_to(item.kind) for channel in channels
        ):
            logger.info(
                f"No enabled channel applies to item {item_id} ({item.kind}), not queueing"
            )
            return ContentUpdatedResult(
                item_id=item_id, queued=False, reason="no_enabled_channels"
            )

        try:
            acquired = self.lock.try_acquire(item_id)
        except RedisError as e:
            raise QueueUnavailableError(
                f"Could not record pending work for item {item_id}: {str(e)}"
            ) from e

        if not acquired:
            logger.info(f"Notification job for item {item_id} is already pending")
            return ContentUpdatedResult(
                item_id=item_id, queued=False, reason="already_pending"
            )

        try:
            self.queue.enqueue(item_id, request_id)
        except Exception as e:
            self._release_after_failed_enqueue(item_id)
            raise QueueUnavailableError(
                f"Could not enqueue notification job for item {item_id}: {str(e)}"
            ) from e

        logger.info(f"Queued notification job for item {item_id}")
        return ContentUpdatedResult(item_id=item_id, queued=True)

    def _release_after_failed_enqueue(self, item_id: int) -> None:
        try:
            self.lock.release(item_id)
        except RedisError as e:
            logger.error(
                f"Failed to release pending entry for item {item_id} after enqueue failure: {str(e)}"
            )
