import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from flag_notifier.db.db import create_tables
from flag_notifier.db.models import (
    CONTENT_ITEM_ENTITY_TYPE,
    ContentAccessGrant,
    ContentItem,
    Flagging,
    User,
)
from flag_notifier.services.notifications.dispatch_engine import DispatchEngine
from flag_notifier.services.notifications.notifier_settings_service import (
    NotifierSettingsService,
)
from flag_notifier.services.notifications.recipient_resolver import RecipientResolver
from flag_notifier.services.notifications.token_renderer import TokenRenderer
from flag_notifier.services.notifications.types import MailResult, SiteInfo


# In-memory collaborators
@dataclass
class FakeAccount:
    id: int
    email: Optional[str]
    is_active: bool = True
    preferred_locale: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class FakeItem:
    id: int
    kind: str = "article"
    title: str = "Quarterly Report"
    is_published: bool = True


@dataclass
class FakeFlag:
    id: str
    label: str = ""
    entity_type: str = CONTENT_ITEM_ENTITY_TYPE
    bundles: Optional[str] = None


@dataclass
class SentMail:
    to: str
    locale: str
    subject: str
    body: str


class FakeContentStore:
    def __init__(self):
        self.items: Dict[int, FakeItem] = {}
        self.flags: List[FakeFlag] = []
        self.denied: Set[Tuple[int, int]] = set()

    def load_item(self, item_id):
        return self.items.get(item_id)

    def can_view(self, item, account):
        return (item.id, account.id) not in self.denied

    def list_flags(self):
        return list(self.flags)


class FakeSubscriptionStore:
    def __init__(self):
        self.subscriptions: Dict[Tuple[str, int], List[int]] = {}

    def find_subscribers(self, channel_id, item_id):
        return list(self.subscriptions.get((channel_id, item_id), []))


class FakeAccountStore:
    def __init__(self):
        self.accounts: Dict[int, FakeAccount] = {}
        self.load_calls: List[List[int]] = []

    def load_accounts(self, account_ids):
        self.load_calls.append(list(account_ids))
        return [self.accounts[i] for i in account_ids if i in self.accounts]


class FakeConfigStore:
    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})
        self.error: Optional[Exception] = None

    def get(self, key):
        if self.error:
            raise self.error
        return self.values.get(key)

    def set(self, key, value):
        if self.error:
            raise self.error
        self.values[key] = value


class FakeLocaleOverrideStore:
    def __init__(self):
        self.values: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Tuple[str, str]] = []

    def get(self, locale, key):
        self.calls.append((locale, key))
        return self.values.get((locale, key))


class FakeMailTransport:
    def __init__(self):
        self.sent: List[SentMail] = []
        self.rejected: Set[str] = set()
        self.broken: Set[str] = set()

    async def send(self, to, locale, subject, body_html):
        if to in self.broken:
            raise RuntimeError("transport exploded")
        if to in self.rejected:
            return MailResult(delivered=False, error="550 mailbox unavailable")
        self.sent.append(SentMail(to=to, locale=locale, subject=subject, body=body_html))
        return MailResult(delivered=True)


class FakeRedis:
    """Dictionary-backed stand-in for the handful of redis-py calls the lock uses."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.error: Optional[Exception] = None

    def _check(self):
        if self.error:
            raise self.error

    def set(self, key, value, nx=False):
        self._check()
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def exists(self, *keys):
        self._check()
        return sum(1 for key in keys if key in self.store)


class FakeWorkQueue:
    def __init__(self):
        self.jobs: List[Tuple[int, Optional[str]]] = []
        self.error: Optional[Exception] = None

    def enqueue(self, item_id, request_id=None):
        if self.error:
            raise self.error
        self.jobs.append((item_id, request_id))


@dataclass
class Pipeline:
    """Bundle of fakes wired into a DispatchEngine on demand."""

    content: FakeContentStore = field(default_factory=FakeContentStore)
    subscriptions: FakeSubscriptionStore = field(default_factory=FakeSubscriptionStore)
    accounts: FakeAccountStore = field(default_factory=FakeAccountStore)
    config: FakeConfigStore = field(default_factory=FakeConfigStore)
    locale_overrides: FakeLocaleOverrideStore = field(
        default_factory=FakeLocaleOverrideStore
    )
    mail: FakeMailTransport = field(default_factory=FakeMailTransport)
    logger: Mock = field(default_factory=Mock)
    site: SiteInfo = field(
        default_factory=lambda: SiteInfo(
            name="Example Site",
            base_url="https://example.com",
            default_locale="en",
        )
    )

    def add_item(self, item_id: int = 42, **kwargs) -> FakeItem:
        item = FakeItem(id=item_id, **kwargs)
        self.content.items[item_id] = item
        return item

    def add_account(self, account_id: int, email: Optional[str] = None, **kwargs) -> FakeAccount:
        account = FakeAccount(
            id=account_id,
            email=f"user{account_id}@example.com" if email is None else email,
            **kwargs,
        )
        self.accounts.accounts[account_id] = account
        return account

    def subscribe(self, channel_id: str, item_id: int, *account_ids: int) -> None:
        self.subscriptions.subscriptions.setdefault((channel_id, item_id), []).extend(
            account_ids
        )

    def configure_channel(self, channel_id: str, **entry) -> None:
        entry.setdefault("enabled", True)
        self.config.values.setdefault("flags_config", {})[channel_id] = entry

    def settings_service(self) -> NotifierSettingsService:
        return NotifierSettingsService(self.config)

    def engine(self, batch_size: int = 50) -> DispatchEngine:
        return DispatchEngine(
            content=self.content,
            accounts=self.accounts,
            recipients=RecipientResolver(self.subscriptions),
            settings_service=self.settings_service(),
            locale_overrides=self.locale_overrides,
            renderer=TokenRenderer(),
            mail=self.mail,
            site=self.site,
            batch_size=batch_size,
            logger=self.logger,
        )


@pytest.fixture
def pipeline() -> Pipeline:
    """Fakes pre-loaded with the `subscribe` and `bookmark` flags and global defaults."""
    pipe = Pipeline()
    pipe.content.flags = [
        FakeFlag(id="subscribe", label="Subscribe"),
        FakeFlag(id="bookmark", label="Bookmark"),
    ]
    pipe.config.values.update(
        {
            "debug_mode": False,
            "retry_on_failure": False,
            "prevent_duplicate_emails": True,
            "default_subject": "Default: [item:title]",
            "default_body": "<p>[item:title] was updated.</p>",
            "flags_config": {},
        }
    )
    return pipe


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_work_queue() -> FakeWorkQueue:
    return FakeWorkQueue()


@pytest.fixture
def fake_mail() -> FakeMailTransport:
    return FakeMailTransport()


# Test database setup
@pytest.fixture
def db_engine():
    """Create an in-memory SQLite engine with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create a database session for each test."""
    session_maker = sessionmaker(bind=db_engine, class_=Session, expire_on_commit=False)
    session = session_maker()
    yield session
    session.rollback()
    session.close()


# Test data factories
@pytest.fixture
def make_user(db_session: Session):
    def _make_user(username: str, email: Optional[str] = None, **kwargs) -> User:
        user = User(
            username=username,
            email=email if email is not None else f"{username}@example.com",
            **kwargs,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_item(db_session: Session):
    def _make_item(title: str = "Quarterly Report", kind: str = "article", **kwargs) -> ContentItem:
        item = ContentItem(title=title, kind=kind, **kwargs)
        db_session.add(item)
        db_session.commit()
        return item

    return _make_item


@pytest.fixture
def add_flagging(db_session: Session):
    def _add_flagging(flag_id: str, item: ContentItem, uid: int) -> Flagging:
        flagging = Flagging(
            flag_id=flag_id,
            entity_type=CONTENT_ITEM_ENTITY_TYPE,
            entity_id=item.id,
            uid=uid,
        )
        db_session.add(flagging)
        db_session.commit()
        return flagging

    return _add_flagging


@pytest.fixture
def grant_access(db_session: Session):
    def _grant_access(item: ContentItem, user: User) -> ContentAccessGrant:
        grant = ContentAccessGrant(item_id=item.id, user_id=user.id)
        db_session.add(grant)
        db_session.commit()
        return grant

    return _grant_access
