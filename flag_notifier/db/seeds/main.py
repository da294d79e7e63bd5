"""
Main seeding file for the notifier's own tables.

Content items, users and flaggings belong to the content platform and are not
seeded here.
"""

from typing import Optional

from sqlalchemy.orm import Session

from flag_notifier.db.session import SessionLocal
from flag_notifier.utils.logging import get_logger

from .flags_seed import seed_flags
from .notifier_settings_seed import seed_notifier_settings

logger = get_logger()


def seed_all_data(db_session: Optional[Session] = None):
    """Seed flag definitions and default notifier settings. Safe to run repeatedly."""
    owns_session = db_session is None
    db_session = db_session or SessionLocal()
    try:
        logger.info("Starting database seeding...")
        seed_flags(db_session)
        seed_notifier_settings(db_session)
        logger.info("Database seeding complete.")
    except Exception as e:
        db_session.rollback()
        logger.error(f"Database seeding failed: {e}")
        raise
    finally:
        if owns_session:
            db_session.close()
