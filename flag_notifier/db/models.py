from typing import List, Optional
from datetime import datetime
from sqlalchemy import (
    String,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Index,
    func,
    UniqueConstraint,
    CheckConstraint,
    DateTime,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# Entity type targeted by flags that can notify about content items
CONTENT_ITEM_ENTITY_TYPE = "content_item"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


# Models
class User(Base, AuditMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(60), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(320))  # RFC 5321 max length
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    preferred_locale: Mapped[Optional[str]] = mapped_column(String(12))

    # Constraints
    __table_args__ = (
        Index("idx_users_username", "username"),
        Index("idx_users_active", "is_active"),
    )

    @property
    def label(self) -> str:
        return self.display_name or self.username


class ContentItem(Base, AuditMixin):
    __tablename__ = "content_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_restricted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    owner_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL")
    )

    # Relationships
    owner: Mapped[Optional["User"]] = relationship()
    access_grants: Mapped[List["ContentAccessGrant"]] = relationship(
        back_populates="item", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (
        Index("idx_content_items_kind", "kind"),
        Index("idx_content_items_published", "is_published"),
    )

    def can_view(self, account: "User") -> bool:
        """
        Published, unrestricted items are visible to everyone. Restricted items
        are visible to their owner and to users holding an explicit grant.
        Unpublished items are visible to their owner only.
        """
        if self.owner_id is not None and self.owner_id == account.id:
            return True
        if not self.is_published:
            return False
        if not self.is_restricted:
            return True
        return any(grant.user_id == account.id for grant in self.access_grants)


class ContentAccessGrant(Base, AuditMixin):
    __tablename__ = "content_access_grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("content_items.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Relationships
    item: Mapped["ContentItem"] = relationship(back_populates="access_grants")

    # Constraints
    __table_args__ = (
        UniqueConstraint("item_id", "user_id", name="uq_content_grant_item_user"),
        Index("idx_content_grant_item", "item_id"),
    )


class Flag(Base, AuditMixin):
    __tablename__ = "flags"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str] = mapped_column(
        String(64), default=CONTENT_ITEM_ENTITY_TYPE, nullable=False
    )
    # JSON list of content kinds stored as Text; empty means every kind
    bundles: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    flaggings: Mapped[List["Flagging"]] = relationship(
        back_populates="flag", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_flags_entity_type", "entity_type"),)


class Flagging(Base, AuditMixin):
    __tablename__ = "flaggings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    flag_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("flags.id", ondelete="CASCADE"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(
        String(64), default=CONTENT_ITEM_ENTITY_TYPE, nullable=False
    )
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # uid 0 is the anonymous account
    uid: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    flag: Mapped["Flag"] = relationship(back_populates="flaggings")

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "flag_id", "entity_type", "entity_id", "uid", name="uq_flaggings_unique"
        ),
        CheckConstraint("uid >= 0", name="ck_flaggings_uid_not_negative"),
        Index("idx_flaggings_entity", "entity_type", "entity_id", "flag_id"),
        Index("idx_flaggings_uid", "uid"),
    )


class NotifierSetting(Base, AuditMixin):
    __tablename__ = "notifier_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    # JSON stored as Text - serialize/deserialize in application
    value: Mapped[Optional[str]] = mapped_column(Text)


class NotifierSettingOverride(Base, AuditMixin):
    __tablename__ = "notifier_setting_overrides"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    langcode: Mapped[str] = mapped_column(String(12), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    # JSON stored as Text - serialize/deserialize in application
    value: Mapped[Optional[str]] = mapped_column(Text)

    # Constraints
    __table_args__ = (
        UniqueConstraint("langcode", "key", name="uq_setting_override_lang_key"),
        Index("idx_setting_override_langcode", "langcode"),
    )
