from .content_update_service import ContentUpdateService
from .pending_work_lock import PendingWorkLock, get_redis_client
from .queue_consumer import JobOutcome, JobResult, QueueConsumer
from .work_queue import CeleryWorkQueue

__all__ = [
    "ContentUpdateService",
    "PendingWorkLock",
    "get_redis_client",
    "JobOutcome",
    "JobResult",
    "QueueConsumer",
    "CeleryWorkQueue",
]
