import json
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from flag_notifier.utils.errors import ConfigurationUnavailableError
from flag_notifier.utils.logging import get_logger

from .interfaces import ConfigStore, FlagDefinition
from .types import Channel, ChannelSettings, GlobalDefaults, NotifierSettings

logger = get_logger()


class NotifierSettingsService:
    """Reads and writes the runtime notifier settings held in the config store."""

    def __init__(self, config: ConfigStore):
        self.config = config

    def load(self) -> NotifierSettings:
        """
        Take a snapshot of every setting a dispatch run needs.

        Raises:
            ConfigurationUnavailableError: the store could not be read at all
        """
        try:
            raw = {
                key: self.config.get(key)
                for key in (
                    "debug_mode",
                    "retry_on_failure",
                    "prevent_duplicate_emails",
                    "default_subject",
                    "default_body",
                    "flags_config",
                )
            }
        except (SQLAlchemyError, OSError) as e:
            raise ConfigurationUnavailableError(
                f"Failed to read notifier settings: {str(e)}"
            ) from e

        prevent_duplicates = raw["prevent_duplicate_emails"]
        return NotifierSettings(
            debug_mode=bool(raw["debug_mode"]),
            retry_on_failure=bool(raw["retry_on_failure"]),
            prevent_duplicate_emails=(
                True if prevent_duplicates is None else bool(prevent_duplicates)
            ),
            defaults=GlobalDefaults(
                subject=_as_text(raw["default_subject"]),
                body=_as_text(raw["default_body"]),
            ),
            flags_config=self._parse_flags_config(raw["flags_config"]),
        )

    def retry_on_failure(self) -> bool:
        try:
            return bool(self.config.get("retry_on_failure"))
        except (SQLAlchemyError, OSError) as e:
            raise ConfigurationUnavailableError(
                f"Failed to read retry_on_failure: {str(e)}"
            ) from e

    def build_channels(
        self, run_settings: NotifierSettings, flags: Iterable[FlagDefinition]
    ) -> List[Channel]:
        """Channels in configuration order; entries without a flag definition are left out."""
        catalog = {flag.id: flag for flag in flags}
        channels = []
        for channel_id, channel_settings in run_settings.flags_config.items():
            flag = catalog.get(channel_id)
            if flag is None:
                logger.warning(f"Configured channel {channel_id} has no flag definition")
                continue
            channels.append(
                Channel(
                    id=channel_id,
                    label=flag.label,
                    enabled=channel_settings.enabled,
                    subject=channel_settings.subject,
                    body=channel_settings.body,
                    entity_type=flag.entity_type,
                    kinds=_parse_kinds(flag.bundles),
                )
            )
        return channels

    def save_flags_config(self, flags_config: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """Persist channel settings, keeping enabled entries only."""
        kept = {}
        for channel_id, entry in flags_config.items():
            channel_settings = ChannelSettings.model_validate(entry)
            if channel_settings.enabled:
                kept[channel_id] = channel_settings.model_dump()

        try:
            self.config.set("flags_config", kept)
        except SQLAlchemyError as e:
            raise ConfigurationUnavailableError(
                f"Failed to save flags_config: {str(e)}"
            ) from e

        logger.info(f"Saved notification settings for {len(kept)} channel(s)")
        return kept

    def _parse_flags_config(self, value: Any) -> Dict[str, ChannelSettings]:
        if not isinstance(value, dict):
            return {}

        parsed = {}
        for channel_id, entry in value.items():
            try:
                parsed[channel_id] = ChannelSettings.model_validate(entry or {})
            except ValidationError as e:
                logger.warning(f"Ignoring invalid settings for channel {channel_id}: {e}")
        return parsed


def _as_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _parse_kinds(bundles: Optional[str]) -> List[str]:
    if not bundles:
        return []
    try:
        kinds = json.loads(bundles)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed flag bundles: {bundles}")
        return []
    return [str(kind) for kind in kinds] if isinstance(kinds, list) else []

