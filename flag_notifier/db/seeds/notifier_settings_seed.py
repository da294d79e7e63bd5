import json

from sqlalchemy import select
from sqlalchemy.orm import Session

from flag_notifier.db.models import NotifierSetting
from flag_notifier.utils.logging import get_logger

logger = get_logger()

DEFAULT_SUBJECT = '[site:name] Update: "[item:title]"'
DEFAULT_BODY = (
    "<p>Hello <strong>[user:display-name]</strong>,</p>"
    "<p>We wanted to let you know that the content you bookmarked, "
    '<a href="[item:url:absolute]">[item:title]</a>, has recently been updated.</p>'
    '<p><a href="[item:url:absolute]" style="display: inline-block; padding: 10px 20px; '
    "background-color: #007bff; color: white; text-decoration: none; "
    'border-radius: 5px;">View Update</a></p>'
    "<p>Best regards,<br>[site:name] Team</p>"
)

DEFAULT_NOTIFIER_SETTINGS = {
    "debug_mode": False,
    "retry_on_failure": False,
    "prevent_duplicate_emails": True,
    "default_subject": DEFAULT_SUBJECT,
    "default_body": DEFAULT_BODY,
    "flags_config": {},
}


def seed_notifier_settings(db_session: Session):
    """Insert default notifier settings; keys that already exist are left untouched."""
    existing_keys = set(db_session.scalars(select(NotifierSetting.key)).all())

    created = 0
    for key, value in DEFAULT_NOTIFIER_SETTINGS.items():
        if key in existing_keys:
            continue
        db_session.add(NotifierSetting(key=key, value=json.dumps(value)))
        created += 1

    db_session.commit()
    logger.info(f"Seeded {created} notifier settings")
