from functools import lru_cache

import redis

from flag_notifier.config.settings import settings


class PendingWorkLock:
    """
    Redis-backed record of content items that already have a job queued.

    One key per item, `<namespace>.queued.<item_id>`, created with SET NX and
    no expiry. The key is removed when the job succeeds or is dropped and is
    kept while the job waits for a retry.
    """

    def __init__(self, client: redis.Redis, namespace: str = settings.LOCK_NAMESPACE):
        self.client = client
        self.namespace = namespace

    def key(self, item_id: int) -> str:
        return f"{self.namespace}.queued.{item_id}"

    def try_acquire(self, item_id: int) -> bool:
        """Record the item as pending. False when it was already pending."""
        return bool(self.client.set(self.key(item_id), "1", nx=True))

    def release(self, item_id: int) -> None:
        self.client.delete(self.key(item_id))

    def is_pending(self, item_id: int) -> bool:
        return bool(self.client.exists(self.key(item_id)))


@lru_cache
def get_redis_client() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)
