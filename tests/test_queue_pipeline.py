from unittest.mock import AsyncMock, Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from flag_notifier.services.notifications.notifier_settings_service import (
    NotifierSettingsService,
)
from flag_notifier.services.notifications.types import DispatchReport
from flag_notifier.services.queue.content_update_service import ContentUpdateService
from flag_notifier.services.queue.pending_work_lock import PendingWorkLock
from flag_notifier.services.queue.queue_consumer import JobOutcome, QueueConsumer
from flag_notifier.utils.errors import (
    ConfigurationUnavailableError,
    QueueUnavailableError,
)


def _db_down() -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.unit
class TestPendingWorkLock:
    def test_key_format(self, fake_redis):
        lock = PendingWorkLock(fake_redis, namespace="flag_notifier")

        assert lock.key(42) == "flag_notifier.queued.42"

    def test_second_acquire_fails_until_released(self, fake_redis):
        lock = PendingWorkLock(fake_redis)

        assert lock.try_acquire(42) is True
        assert lock.try_acquire(42) is False
        assert lock.is_pending(42) is True

        lock.release(42)

        assert lock.is_pending(42) is False
        assert lock.try_acquire(42) is True

    def test_release_is_idempotent(self, fake_redis):
        lock = PendingWorkLock(fake_redis)

        lock.release(42)
        lock.release(42)

        assert lock.is_pending(42) is False

    def test_items_are_independent(self, fake_redis):
        lock = PendingWorkLock(fake_redis)

        assert lock.try_acquire(1) is True
        assert lock.try_acquire(2) is True


@pytest.mark.unit
class TestQueueConsumer:
    """Retry and drop policy around one dispatch run."""

    @pytest.fixture
    def config(self, pipeline):
        return pipeline.config

    def _consumer(self, config, lock, dispatch, retry_fallback=False):
        engine = Mock()
        engine.dispatch = dispatch
        return QueueConsumer(
            engine=engine,
            lock=lock,
            settings_service=NotifierSettingsService(config),
            retry_fallback=retry_fallback,
            logger=Mock(),
        )

    @pytest.mark.asyncio
    async def test_success_releases_lock(self, config, fake_redis):
        lock = PendingWorkLock(fake_redis)
        lock.try_acquire(42)
        consumer = self._consumer(
            config, lock, AsyncMock(return_value=DispatchReport(item_id=42))
        )

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.SUCCEEDED
        assert result.is_terminal
        assert lock.is_pending(42) is False

    @pytest.mark.asyncio
    async def test_systemic_failure_with_retry_keeps_lock(self, config, fake_redis):
        config.values["retry_on_failure"] = True
        lock = PendingWorkLock(fake_redis)
        lock.try_acquire(42)
        consumer = self._consumer(config, lock, AsyncMock(side_effect=_db_down()))

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.RETRY_REQUESTED
        assert not result.is_terminal
        assert lock.is_pending(42) is True
        # The item stays debounced while the retry is outstanding
        assert lock.try_acquire(42) is False

    @pytest.mark.asyncio
    async def test_failure_without_retry_releases_lock_exactly_once(self, config):
        lock = Mock(spec=PendingWorkLock)
        consumer = self._consumer(config, lock, AsyncMock(side_effect=_db_down()))

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.DROPPED
        lock.release.assert_called_once_with(42)
        consumer.logger.error.assert_called_once()

    @pytest.mark.asyncio
    async def test_programming_error_is_dropped_even_with_retry(self, config):
        config.values["retry_on_failure"] = True
        lock = Mock(spec=PendingWorkLock)
        consumer = self._consumer(config, lock, AsyncMock(side_effect=KeyError("title")))

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.DROPPED
        lock.release.assert_called_once_with(42)

    @pytest.mark.asyncio
    async def test_unreadable_retry_flag_uses_fallback(self, config):
        config.error = _db_down()
        lock = Mock(spec=PendingWorkLock)
        dispatch = AsyncMock(side_effect=ConfigurationUnavailableError())
        consumer = self._consumer(config, lock, dispatch, retry_fallback=True)

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.RETRY_REQUESTED
        lock.release.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreadable_retry_flag_without_fallback_drops(self, config):
        config.error = _db_down()
        lock = Mock(spec=PendingWorkLock)
        dispatch = AsyncMock(side_effect=ConfigurationUnavailableError())
        consumer = self._consumer(config, lock, dispatch, retry_fallback=False)

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.DROPPED
        lock.release.assert_called_once_with(42)

    @pytest.mark.asyncio
    async def test_release_failure_after_success_is_logged(self, config, fake_redis):
        lock = PendingWorkLock(fake_redis)
        fake_redis.error = RedisConnectionError("redis is down")
        consumer = self._consumer(
            config, lock, AsyncMock(return_value=DispatchReport(item_id=42))
        )

        result = await consumer.process(42)

        assert result.outcome == JobOutcome.SUCCEEDED
        consumer.logger.error.assert_called_once()

    def test_abandon_releases_lock(self, config, fake_redis):
        lock = PendingWorkLock(fake_redis)
        lock.try_acquire(42)
        consumer = self._consumer(config, lock, AsyncMock())

        result = consumer.abandon(42, "database is down")

        assert result.outcome == JobOutcome.DROPPED
        assert lock.is_pending(42) is False
        assert result.to_dict() == {
            "item_id": 42,
            "outcome": "dropped",
            "error": "database is down",
        }


@pytest.mark.unit
class TestContentUpdateService:
    """Debounce and enqueue on content-update events."""

    @pytest.fixture
    def service_parts(self, pipeline, fake_redis, fake_work_queue):
        pipeline.add_item(42)
        pipeline.configure_channel("subscribe")
        lock = PendingWorkLock(fake_redis)
        service = ContentUpdateService(
            content=pipeline.content,
            settings_service=pipeline.settings_service(),
            lock=lock,
            queue=fake_work_queue,
        )
        return pipeline, service, lock, fake_work_queue

    def test_first_event_queues_job(self, service_parts):
        _, service, lock, queue = service_parts

        result = service.handle_content_updated(42, request_id="req-1")

        assert result.queued is True
        assert result.reason is None
        assert queue.jobs == [(42, "req-1")]
        assert lock.is_pending(42) is True

    def test_burst_of_events_queues_one_job(self, service_parts):
        _, service, _, queue = service_parts

        results = [service.handle_content_updated(42) for _ in range(5)]

        assert [r.queued for r in results] == [True, False, False, False, False]
        assert results[1].reason == "already_pending"
        assert len(queue.jobs) == 1

    def test_event_after_release_queues_again(self, service_parts):
        _, service, lock, queue = service_parts

        service.handle_content_updated(42)
        lock.release(42)
        result = service.handle_content_updated(42)

        assert result.queued is True
        assert len(queue.jobs) == 2

    def test_unknown_item_is_not_queued(self, service_parts):
        _, service, lock, queue = service_parts

        result = service.handle_content_updated(99)

        assert result.queued is False
        assert result.reason == "item_not_found"
        assert queue.jobs == []
        assert lock.is_pending(99) is False

    def test_item_without_enabled_channel_is_not_queued(self, service_parts):
        pipeline, service, lock, queue = service_parts
        pipeline.configure_channel("subscribe", enabled=False)

        result = service.handle_content_updated(42)

        assert result.reason == "no_enabled_channels"
        assert queue.jobs == []
        assert lock.is_pending(42) is False

    def test_enqueue_failure_releases_lock(self, service_parts):
        _, service, lock, queue = service_parts
        queue.error = RuntimeError("broker unreachable")

        with pytest.raises(QueueUnavailableError):
            service.handle_content_updated(42)

        assert lock.is_pending(42) is False

    def test_lock_backend_failure_is_reported(self, service_parts, fake_redis):
        _, service, _, queue = service_parts
        fake_redis.error = RedisConnectionError("redis is down")

        with pytest.raises(QueueUnavailableError):
            service.handle_content_updated(42)

        assert queue.jobs == []
