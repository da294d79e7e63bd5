"""
Collaborator contracts consumed by the dispatch pipeline.

The pipeline only relies on these protocols; the SQLAlchemy-backed
implementations live in `stores.py`, the SMTP transport in `services/mail`.
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .types import MailResult


class Item(Protocol):
    id: int
    kind: str
    title: str
    is_published: bool


class Account(Protocol):
    id: int
    email: Optional[str]
    is_active: bool
    preferred_locale: Optional[str]


class FlagDefinition(Protocol):
    id: str
    label: str
    entity_type: str
    bundles: Optional[str]


class ContentStore(Protocol):
    def load_item(self, item_id: int) -> Optional[Item]: ...

    def can_view(self, item: Item, account: Account) -> bool: ...

    def list_flags(self) -> List[FlagDefinition]: ...


class SubscriptionStore(Protocol):
    def find_subscribers(self, channel_id: str, item_id: int) -> List[int]: ...


class AccountStore(Protocol):
    def load_accounts(self, account_ids: Sequence[int]) -> List[Account]: ...


class ConfigStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class LocaleOverrideStore(Protocol):
    def get(self, locale: str, key: str) -> Any: ...


class TemplateRenderer(Protocol):
    def render(
        self,
        template: str,
        context: Dict[str, Any],
        locale: str,
        *,
        markup: bool = False,
    ) -> str: ...


class MailTransport(Protocol):
    async def send(
        self, to: str, locale: str, subject: str, body_html: str
    ) -> MailResult: ...


class WorkQueue(Protocol):
    def enqueue(self, item_id: int, request_id: Optional[str] = None) -> None: ...
