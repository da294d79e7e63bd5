"""
SQLAlchemy-backed implementations of the dispatch collaborators.

All stores share the caller's session; none of them commits except
`SqlConfigStore.set`.
"""

import json
from typing import Any, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from flag_notifier.db.models import (
    CONTENT_ITEM_ENTITY_TYPE,
    ContentItem,
    Flag,
    Flagging,
    NotifierSetting,
    NotifierSettingOverride,
    User,
)
from flag_notifier.utils.logging import get_logger

logger = get_logger()


def _decode(raw: Optional[str], label: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed JSON value for {label}")
        return None


class SqlContentStore:
    def __init__(self, db_session: Session):
        self.db = db_session

    def load_item(self, item_id: int) -> Optional[ContentItem]:
        result = self.db.execute(
            select(ContentItem)
            .where(ContentItem.id == item_id)
            .options(selectinload(ContentItem.access_grants))
        )
        return result.scalar_one_or_none()

    def can_view(self, item: ContentItem, account: User) -> bool:
        return item.can_view(account)

    def list_flags(self) -> List[Flag]:
        return list(self.db.scalars(select(Flag).order_by(Flag.id)).all())


class SqlSubscriptionStore:
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_subscribers(self, channel_id: str, item_id: int) -> List[int]:
        result = self.db.scalars(
            select(Flagging.uid)
            .where(
                Flagging.flag_id == channel_id,
                Flagging.entity_type == CONTENT_ITEM_ENTITY_TYPE,
                Flagging.entity_id == item_id,
                Flagging.uid > 0,
            )
            .distinct()
            .order_by(Flagging.uid)
        )
        return list(result.all())


class SqlAccountStore:
    def __init__(self, db_session: Session):
        self.db = db_session

    def load_accounts(self, account_ids: Sequence[int]) -> List[User]:
        if not account_ids:
            return []
        result = self.db.scalars(
            select(User).where(User.id.in_(list(account_ids))).order_by(User.id)
        )
        return list(result.all())


class SqlConfigStore:
    """Notifier settings stored as JSON text in `notifier_settings`."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get(self, key: str) -> Any:
        setting = self.db.get(NotifierSetting, key)
        if setting is None:
            return None
        return _decode(setting.value, key)

    def set(self, key: str, value: Any) -> None:
        setting = self.db.get(NotifierSetting, key)
        if setting is None:
            setting = NotifierSetting(key=key)
            self.db.add(setting)
        setting.value = json.dumps(value)
        self.db.commit()


class SqlLocaleOverrideStore:
    """Per-locale translations of notifier settings."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get(self, locale: str, key: str) -> Any:
        result = self.db.execute(
            select(NotifierSettingOverride.value).where(
                NotifierSettingOverride.langcode == locale,
                NotifierSettingOverride.key == key,
            )
        )
        raw = result.scalar_one_or_none()
        return _decode(raw, f"{locale}:{key}")
