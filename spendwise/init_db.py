"""
Create the DynamoDB tables and seed the default categories.

    spendwise-init-db
"""
import logging

from spendwise.core.config import settings
from spendwise.db.dynamo import RecordStore

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    store = RecordStore()
    created = store.create_tables()
    logger.info(f"Created tables: {', '.join(created) or 'none (all exist)'}")
    seeded = store.seed_default_categories()
    logger.info(f"Seeded {seeded} default categories")


if __name__ == "__main__":
    main()
