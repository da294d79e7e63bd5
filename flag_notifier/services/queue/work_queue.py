from typing import Optional

from flag_notifier.utils.context import get_request_id


class CeleryWorkQueue:
    """Places content-update jobs on the Celery queue; one job carries one item id."""

    def enqueue(self, item_id: int, request_id: Optional[str] = None) -> None:
        # Import here to avoid circular import
        from flag_notifier.tasks.background.content_notification_processing import (
            process_content_update_task,
        )

        process_content_update_task.delay(  # type: ignore
            request_id=request_id or get_request_id() or "celery",
            item_id=item_id,
        )
