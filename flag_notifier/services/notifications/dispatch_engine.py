from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Sequence

from flag_notifier.utils.logging import get_logger

from .dedup_tracker import DedupTracker
from .interfaces import (
    Account,
    AccountStore,
    ContentStore,
    Item,
    LocaleOverrideStore,
    MailTransport,
    TemplateRenderer,
)
from .notifier_settings_service import NotifierSettingsService
from .override_resolver import (
    describe_overrides,
    load_locale_overrides,
    resolve_templates,
)
from .recipient_resolver import RecipientResolver
from .types import (
    Channel,
    ChannelReport,
    DispatchReport,
    GlobalDefaults,
    LocaleOverrides,
    NotifierSettings,
    ResolvedTemplates,
    SiteInfo,
)

DEFAULT_BATCH_SIZE = 50


@dataclass
class DispatchRun:
    """State of one dispatch job. Lives only for the duration of `dispatch`."""

    item: Item
    settings: NotifierSettings
    defaults: GlobalDefaults
    channels: List[Channel]
    tracker: DedupTracker
    locale_overrides: Dict[str, LocaleOverrides] = field(default_factory=dict)

    @property
    def verbose(self) -> bool:
        return self.settings.debug_mode


class DispatchEngine:
    """
    Fans one content-update event out into individual emails.

    Channels are processed in configuration order, recipients in memory-bounded
    batches. A recipient reachable through several channels gets a single email
    while duplicate suppression is on.
    """

    def __init__(
        self,
        content: ContentStore,
        accounts: AccountStore,
        recipients: RecipientResolver,
        settings_service: NotifierSettingsService,
        locale_overrides: LocaleOverrideStore,
        renderer: TemplateRenderer,
        mail: MailTransport,
        site: SiteInfo,
        batch_size: int = DEFAULT_BATCH_SIZE,
        logger=None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.content = content
        self.accounts = accounts
        self.recipients = recipients
        self.settings_service = settings_service
        self.locale_overrides = locale_overrides
        self.renderer = renderer
        self.mail = mail
        self.site = site
        self.batch_size = batch_size
        self.logger = logger or get_logger()

    async def dispatch(self, item_id: int) -> DispatchReport:
        """
        Send the update notifications for one content item.

        A missing or unpublished item is a no-op. Only failures that prevent
        the run as a whole (settings or storage unavailable) are raised.
        """
        run_settings = self.settings_service.load()

        item = self.content.load_item(item_id)
        if item is None:
            self.logger.debug(f"Content item {item_id} not found, nothing to send")
            return DispatchReport(item_id=item_id, status="item_not_found")
        if not item.is_published:
            self.logger.debug(f"Content item {item_id} is unpublished, nothing to send")
            return DispatchReport(item_id=item_id, status="item_unpublished")

        run = DispatchRun(
            item=item,
            settings=run_settings,
            defaults=self._effective_defaults(run_settings.defaults),
            channels=self._active_channels(run_settings, item),
            tracker=DedupTracker(enabled=run_settings.prevent_duplicate_emails),
        )

        report = DispatchReport(item_id=item_id)
        if not run.channels:
            self._verbose(run, f"No enabled channel applies to item {item_id} ({item.kind})")
            report.status = "no_channels"
            return report

        for channel in run.channels:
            report.channels[channel.id] = await self._dispatch_channel(run, channel)

        self.logger.info(
            f"Dispatch for item {item_id} finished: {report.delivered} delivered, "
            f"{report.failed} failed, {report.attempted} attempted"
        )
        return report

    def _effective_defaults(self, defaults: GlobalDefaults) -> GlobalDefaults:
        if defaults.is_complete:
            return defaults
        self.logger.warning(
            "Default subject or body is not configured, using built-in fallback templates"
        )
        return GlobalDefaults.fallback()

    def _active_channels(self, run_settings: NotifierSettings, item: Item) -> List[Channel]:
        channels = self.settings_service.build_channels(
            run_settings, self.content.list_flags()
        )
        return [
            channel
            for channel in channels
            if channel.enabled and channel.applies_to(item.kind)
        ]

    async def _dispatch_channel(self, run: DispatchRun, channel: Channel) -> ChannelReport:
        channel_report = ChannelReport()

        candidate_ids = self.recipients.resolve(channel.id, run.item.id)
        channel_report.candidates = len(candidate_ids)
        if not candidate_ids:
            self._verbose(run, f"Channel {channel.id} has no subscribers for item {run.item.id}")
            return channel_report

        for batch in _batches(candidate_ids, self.batch_size):
            channel_report.batches += 1
            survivors = self._filter_accounts(
                run, self.accounts.load_accounts(batch), channel_report
            )

            for locale, group in _group_by_locale(survivors, self.site.default_locale).items():
                templates = resolve_templates(
                    channel, run.defaults, self._overrides_for(run, locale)
                )
                for account in group:
                    await self._deliver(run, channel, account, locale, templates, channel_report)

        return channel_report

    def _filter_accounts(
        self, run: DispatchRun, accounts: Sequence[Account], channel_report: ChannelReport
    ) -> List[Account]:
        survivors = []
        for account in accounts:
            if account.id is None or account.id <= 0 or not account.is_active:
                channel_report.skipped += 1
                self._verbose(run, f"Skipping account {account.id}: inactive or anonymous")
                continue
            if run.tracker.should_skip(account.id):
                channel_report.skipped += 1
                self._verbose(run, f"Skipping account {account.id}: already notified in this run")
                continue
            survivors.append(account)
        return survivors

    def _overrides_for(self, run: DispatchRun, locale: str) -> LocaleOverrides:
        if locale not in run.locale_overrides:
            overrides = load_locale_overrides(self.locale_overrides, locale)
            run.locale_overrides[locale] = overrides
            self._verbose(run, f"Loaded locale overrides: {describe_overrides(overrides)}")
        return run.locale_overrides[locale]

    async def _deliver(
        self,
        run: DispatchRun,
        channel: Channel,
        account: Account,
        locale: str,
        templates: ResolvedTemplates,
        channel_report: ChannelReport,
    ) -> None:
        if not self.content.can_view(run.item, account):
            channel_report.skipped += 1
            self._verbose(
                run, f"Skipping account {account.id}: no view access to item {run.item.id}"
            )
            return
        if not account.email:
            channel_report.skipped += 1
            self._verbose(run, f"Skipping account {account.id}: no email address")
            return

        context = {
            "item": run.item,
            "recipient": account,
            "site": self.site,
            "locale": locale,
        }
        subject = self.renderer.render(templates.subject, context, locale)
        subject = subject.replace("\r", "").replace("\n", "").strip()
        body = self.renderer.render(templates.body, context, locale, markup=True).strip()

        if not subject or not body:
            channel_report.skipped += 1
            self._verbose(
                run,
                f"Skipping account {account.id}: rendered subject or body is empty "
                f"(channel {channel.id}, locale {locale})",
            )
            return

        channel_report.attempted += 1
        try:
            result = await self.mail.send(account.email, locale, subject, body)
        except Exception as e:
            channel_report.failed += 1
            self.logger.error(
                f"Failed to send notification for item {run.item.id} to {account.email}: {str(e)}"
            )
            return

        if not result.delivered:
            channel_report.failed += 1
            self.logger.error(
                f"Failed to send notification for item {run.item.id} to {account.email}: "
                f"{result.error}"
            )
            return

        channel_report.delivered += 1
        run.tracker.mark(account.id)
        self._verbose(
            run,
            f"Sent notification via {channel.id} to {account.email} ({locale}). "
            f"Subject: {subject} | Body: {body}",
        )

    def _verbose(self, run: DispatchRun, message: str) -> None:
        if run.verbose:
            self.logger.info(message)
        else:
            self.logger.debug(message)


def _batches(ids: Sequence[int], size: int) -> Iterator[List[int]]:
    for start in range(0, len(ids), size):
        yield list(ids[start : start + size])


def _group_by_locale(
    accounts: Sequence[Account], default_locale: str
) -> Dict[str, List[Account]]:
    groups: Dict[str, List[Account]] = {}
    for account in accounts:
        locale = account.preferred_locale or default_locale
        groups.setdefault(locale, []).append(account)
    return groups
