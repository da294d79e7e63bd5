from .dedup_tracker import DedupTracker
from .dispatch_engine import DispatchEngine, DispatchRun
from .notifier_settings_service import NotifierSettingsService
from .override_resolver import load_locale_overrides, resolve_templates
from .recipient_resolver import RecipientResolver
from .token_renderer import TokenRenderer
from .types import Channel, DispatchReport, GlobalDefaults, LocaleOverrides

__all__ = [
    "DedupTracker",
    "DispatchEngine",
    "DispatchRun",
    "NotifierSettingsService",
    "load_locale_overrides",
    "resolve_templates",
    "RecipientResolver",
    "TokenRenderer",
    "Channel",
    "DispatchReport",
    "GlobalDefaults",
    "LocaleOverrides",
]
