from typing import Optional

import redis
from fastapi import Depends
from sqlalchemy.orm import Session

from flag_notifier.db.session import get_sync_session
from flag_notifier.services.notifications.factory import (
    create_dispatch_engine,
    create_notifier_settings_service,
)
from flag_notifier.services.notifications.interfaces import MailTransport, WorkQueue
from flag_notifier.services.notifications.stores import SqlContentStore

from .content_update_service import ContentUpdateService
from .pending_work_lock import PendingWorkLock, get_redis_client
from .queue_consumer import QueueConsumer
from .work_queue import CeleryWorkQueue


def create_queue_consumer(
    db_session: Session,
    redis_client: Optional[redis.Redis] = None,
    mail: Optional[MailTransport] = None,
    logger=None,
) -> QueueConsumer:
    return QueueConsumer(
        engine=create_dispatch_engine(db_session, mail=mail, logger=logger),
        lock=PendingWorkLock(redis_client or get_redis_client()),
        settings_service=create_notifier_settings_service(db_session),
        logger=logger,
    )


def create_content_update_service(
    db_session: Session,
    redis_client: Optional[redis.Redis] = None,
    queue: Optional[WorkQueue] = None,
) -> ContentUpdateService:
    return ContentUpdateService(
        content=SqlContentStore(db_session),
        settings_service=create_notifier_settings_service(db_session),
        lock=PendingWorkLock(redis_client or get_redis_client()),
        queue=queue or CeleryWorkQueue(),
    )


def get_content_update_service(
    db: Session = Depends(get_sync_session),
) -> ContentUpdateService:
    return create_content_update_service(db)
