from sqlalchemy import select
from sqlalchemy.orm import Session

from flag_notifier.db.models import Flag, CONTENT_ITEM_ENTITY_TYPE
from flag_notifier.utils.logging import get_logger

logger = get_logger()

DEFAULT_FLAGS = [
    {"id": "subscribe", "label": "Subscribe"},
    {"id": "bookmark", "label": "Bookmark"},
]


def seed_flags(db_session: Session):
    existing_ids = set(db_session.scalars(select(Flag.id)).all())

    created = 0
    for flag_data in DEFAULT_FLAGS:
        if flag_data["id"] in existing_ids:
            continue
        db_session.add(
            Flag(
                id=flag_data["id"],
                label=flag_data["label"],
                entity_type=CONTENT_ITEM_ENTITY_TYPE,
            )
        )
        created += 1

    db_session.commit()
    logger.info(f"Seeded {created} flags")
