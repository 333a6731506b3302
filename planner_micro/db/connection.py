import logging
from typing import Annotated, Optional

from fastapi import Depends

from planner_micro.config import config
from planner_micro.db.database import get_engine
from planner_micro.services.record_store import RecordStore

# Setup logging
logger = logging.getLogger(__name__)

_store: Optional[RecordStore] = None


def create_store() -> RecordStore:
    """Build the store from configuration; no DATABASE_URL means offline (cache-only) mode"""
    if not config.DATABASE_URL:
        logger.warning("DATABASE_URL not set. Store is running in OFFLINE mode (local cache only).")
        return RecordStore()
    try:
        return RecordStore(get_engine())
    except Exception as e:
        logger.error(f"Failed to initialize remote store: {e}")
        return RecordStore()


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = create_store()
    return _store


def configure_store(store: RecordStore) -> RecordStore:
    """Install a specific store instance (used by tests and scripts)"""
    global _store
    _store = store
    return store


store_dependency = Annotated[RecordStore, Depends(get_store)]
