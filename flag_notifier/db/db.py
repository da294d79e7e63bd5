from typing import Optional

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from .models import Base
from .seeds.main import seed_all_data
from .session import engine

from flag_notifier.utils.logging import get_logger

logger = get_logger()


def create_tables(bind: Optional[Engine] = None):
    Base.metadata.create_all(bind or engine)
    logger.info("Created all tables.")


def drop_tables(bind: Optional[Engine] = None):
    Base.metadata.drop_all(bind or engine)
    logger.info("Dropped all tables.")


def seed_db(db_session: Optional[Session] = None):
    """Seed flag definitions and notifier settings"""
    seed_all_data(db_session)


def reset_db():
    logger.info("Resetting database...")
    drop_tables()
    create_tables()
    seed_db()
    logger.info("Database reset complete.")


if __name__ == "__main__":
    reset_db()
