from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from flag_notifier.config.settings import settings
from flag_notifier.services.notifications.dispatch_engine import DispatchEngine
from flag_notifier.services.notifications.notifier_settings_service import (
    NotifierSettingsService,
)
from flag_notifier.services.notifications.types import DispatchReport
from flag_notifier.utils.errors import ConfigurationUnavailableError, is_systemic_failure
from flag_notifier.utils.logging import get_logger

from .pending_work_lock import PendingWorkLock


class JobOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    RETRY_REQUESTED = "retry_requested"
    DROPPED = "dropped"


@dataclass
class JobResult:
    item_id: int
    outcome: JobOutcome
    report: Optional[DispatchReport] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.outcome != JobOutcome.RETRY_REQUESTED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "item_id": self.item_id,
            "outcome": self.outcome.value,
        }
        if self.report is not None:
            data["report"] = self.report.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


class QueueConsumer:
    """
    Runs one claimed job and decides what happens to it and to its pending entry.

    Succeeded: entry released. Systemic failure with retry enabled: entry kept,
    retry requested. Any other failure: entry released, job dropped.
    """

    def __init__(
        self,
        engine: DispatchEngine,
        lock: PendingWorkLock,
        settings_service: NotifierSettingsService,
        retry_fallback: bool = settings.RETRY_ON_FAILURE,
        logger=None,
    ):
        self.engine = engine
        self.lock = lock
        self.settings_service = settings_service
        self.retry_fallback = retry_fallback
        self.logger = logger or get_logger()

    async def process(self, item_id: int) -> JobResult:
        try:
            report = await self.engine.dispatch(item_id)
        except Exception as e:
            return self._handle_failure(item_id, e)

        self._release(item_id)
        return JobResult(item_id=item_id, outcome=JobOutcome.SUCCEEDED, report=report)

    def abandon(self, item_id: int, error: Optional[str] = None) -> JobResult:
        """Give up on a job whose retries are exhausted so later updates can queue again."""
        self._release(item_id)
        self.logger.error(
            f"Dropped notification job for item {item_id} after exhausting retries: {error}"
        )
        return JobResult(item_id=item_id, outcome=JobOutcome.DROPPED, error=error)

    def _handle_failure(self, item_id: int, exc: Exception) -> JobResult:
        if self._retry_enabled() and is_systemic_failure(exc):
            self.logger.error(
                f"Notification job for item {item_id} failed, re-queueing: {str(exc)}"
            )
            return JobResult(
                item_id=item_id, outcome=JobOutcome.RETRY_REQUESTED, error=str(exc)
            )

        self._release(item_id)
        self.logger.error(f"Dropped notification job for item {item_id}: {str(exc)}")
        return JobResult(item_id=item_id, outcome=JobOutcome.DROPPED, error=str(exc))

    def _retry_enabled(self) -> bool:
        try:
            return self.settings_service.retry_on_failure()
        except ConfigurationUnavailableError as e:
            self.logger.warning(
                f"Could not read retry_on_failure, using default {self.retry_fallback}: {e.message}"
            )
            return self.retry_fallback

    def _release(self, item_id: int) -> None:
        try:
            self.lock.release(item_id)
        except RedisError as e:
            self.logger.error(f"Failed to release pending entry for item {item_id}: {str(e)}")
