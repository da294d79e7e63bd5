from typing import Any, Dict, Optional

from .interfaces import LocaleOverrideStore
from .types import (
    Channel,
    GlobalDefaults,
    LocaleOverrides,
    ResolvedTemplates,
    is_filled,
)


def load_locale_overrides(
    store: LocaleOverrideStore, locale: str
) -> LocaleOverrides:
    """Read the translated defaults and channel overrides for one locale."""
    flags_config = store.get(locale, "flags_config")
    return LocaleOverrides(
        locale=locale,
        default_subject=_as_text(store.get(locale, "default_subject")),
        default_body=_as_text(store.get(locale, "default_body")),
        flags_config=flags_config if isinstance(flags_config, dict) else {},
    )


def resolve_templates(
    channel: Channel, defaults: GlobalDefaults, overrides: LocaleOverrides
) -> ResolvedTemplates:
    """
    Pick the subject and body templates for one channel and one locale.

    Precedence, highest first:
        1. locale-level override for this channel
        2. channel override in base configuration
        3. locale override of the global default
        4. global default

    Levels 1-2 are only consulted when the channel carries a base override:
    a locale-level channel override on its own is ignored. Subject and body
    are resolved independently.
    """
    return ResolvedTemplates(
        subject=_resolve_field(channel, "subject", defaults.subject, overrides),
        body=_resolve_field(channel, "body", defaults.body, overrides),
    )


def _resolve_field(
    channel: Channel,
    name: str,
    global_default: Optional[str],
    overrides: LocaleOverrides,
) -> str:
    base_override = getattr(channel, name)
    if is_filled(base_override):
        locale_channel = overrides.channel_value(channel.id, name)
        return locale_channel if is_filled(locale_channel) else base_override

    locale_default = getattr(overrides, f"default_{name}")
    if is_filled(locale_default):
        return locale_default
    return global_default or ""


def _as_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def describe_overrides(overrides: LocaleOverrides) -> Dict[str, Any]:
    return {
        "locale": overrides.locale,
        "default_subject": is_filled(overrides.default_subject),
        "default_body": is_filled(overrides.default_body),
        "channels": sorted(overrides.flags_config.keys()),
    }
