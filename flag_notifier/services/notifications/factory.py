from typing import Optional

from sqlalchemy.orm import Session

from flag_notifier.config.settings import settings
from flag_notifier.services.mail import SmtpMailTransport

from .dispatch_engine import DispatchEngine
from .interfaces import MailTransport
from .notifier_settings_service import NotifierSettingsService
from .recipient_resolver import RecipientResolver
from .stores import (
    SqlAccountStore,
    SqlConfigStore,
    SqlContentStore,
    SqlLocaleOverrideStore,
    SqlSubscriptionStore,
)
from .token_renderer import TokenRenderer
from .types import SiteInfo


def create_notifier_settings_service(db_session: Session) -> NotifierSettingsService:
    return NotifierSettingsService(SqlConfigStore(db_session))


def create_dispatch_engine(
    db_session: Session, mail: Optional[MailTransport] = None, logger=None
) -> DispatchEngine:
    """Wire a DispatchEngine on top of the SQL stores sharing `db_session`."""
    return DispatchEngine(
        content=SqlContentStore(db_session),
        accounts=SqlAccountStore(db_session),
        recipients=RecipientResolver(SqlSubscriptionStore(db_session)),
        settings_service=create_notifier_settings_service(db_session),
        locale_overrides=SqlLocaleOverrideStore(db_session),
        renderer=TokenRenderer(),
        mail=mail or SmtpMailTransport.from_settings(),
        site=SiteInfo(
            name=settings.SITE_NAME,
            base_url=settings.SITE_BASE_URL,
            default_locale=settings.DEFAULT_LOCALE,
        ),
        batch_size=settings.DISPATCH_BATCH_SIZE,
        logger=logger,
    )
