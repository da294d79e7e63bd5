from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from flag_notifier.db.models import CONTENT_ITEM_ENTITY_TYPE

FALLBACK_SUBJECT = "[site:name] Notification"
FALLBACK_BODY = "Content updated."


def is_filled(value: Any) -> bool:
    """Blank strings count as "not configured" at every configuration level."""
    return isinstance(value, str) and value.strip() != ""


class ChannelSettings(BaseModel):
    """One entry of the `flags_config` setting."""

    enabled: bool = False
    subject: Optional[str] = None
    body: Optional[str] = None


class Channel(BaseModel):
    """A subscription channel (a flag) as seen by one dispatch run."""

    id: str
    label: str = ""
    enabled: bool = False
    subject: Optional[str] = None
    body: Optional[str] = None
    entity_type: str = CONTENT_ITEM_ENTITY_TYPE
    kinds: List[str] = Field(default_factory=list)

    def applies_to(self, item_kind: str) -> bool:
        if self.entity_type != CONTENT_ITEM_ENTITY_TYPE:
            return False
        return not self.kinds or item_kind in self.kinds


class GlobalDefaults(BaseModel):
    subject: Optional[str] = None
    body: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return is_filled(self.subject) and is_filled(self.body)

    @classmethod
    def fallback(cls) -> "GlobalDefaults":
        return cls(subject=FALLBACK_SUBJECT, body=FALLBACK_BODY)


class NotifierSettings(BaseModel):
    """Snapshot of the notifier settings read from the config store."""

    debug_mode: bool = False
    retry_on_failure: bool = False
    prevent_duplicate_emails: bool = True
    defaults: GlobalDefaults = Field(default_factory=GlobalDefaults)
    flags_config: Dict[str, ChannelSettings] = Field(default_factory=dict)


@dataclass(frozen=True)
class LocaleOverrides:
    """Translated settings for one locale; None means "no override at this level"."""

    locale: str
    default_subject: Optional[str] = None
    default_body: Optional[str] = None
    flags_config: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def channel_value(self, channel_id: str, name: str) -> Optional[str]:
        value = (self.flags_config.get(channel_id) or {}).get(name)
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class ResolvedTemplates:
    subject: str
    body: str


@dataclass(frozen=True)
class SiteInfo:
    name: str
    base_url: str
    default_locale: str


@dataclass
class MailResult:
    delivered: bool
    error: Optional[str] = None


@dataclass
class ChannelReport:
    candidates: int = 0
    batches: int = 0
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "candidates": self.candidates,
            "batches": self.batches,
            "attempted": self.attempted,
            "delivered": self.delivered,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class DispatchReport:
    item_id: int
    status: str = "completed"
    channels: Dict[str, ChannelReport] = field(default_factory=dict)

    @property
    def attempted(self) -> int:
        return sum(channel.attempted for channel in self.channels.values())

    @property
    def delivered(self) -> int:
        return sum(channel.delivered for channel in self.channels.values())

    @property
    def failed(self) -> int:
        return sum(channel.failed for channel in self.channels.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "status": self.status,
            "attempted": self.attempted,
            "delivered": self.delivered,
            "failed": self.failed,
            "channels": {
                channel_id: report.to_dict()
                for channel_id, report in self.channels.items()
            },
        }
