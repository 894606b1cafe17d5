"""Key/value snapshot store backed by SQLite."""
from typing import Any
from datetime import datetime
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..errors import PersistenceError
from .models import SnapshotBlob

logger = logging.getLogger(__name__)

EXACT_CACHE_KEY = "exactCache"
DOMAIN_CACHE_KEY = "domainPatternCache"
TAB_GROUPS_KEY = "tabGroups"
USER_CATEGORIES_KEY = "userCategories"


class SnapshotStore:
    """Independent blobs, each loaded once and rewritten wholesale on change."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def load(self, key: str, default: Any = None) -> Any:
        db = self.session_factory()
        try:
            blob = db.query(SnapshotBlob).filter_by(key=key).first()
            return blob.value if blob is not None else default
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load snapshot '{key}': {e}") from e
        finally:
            db.close()

    def save(self, key: str, value: Any) -> None:
        db = self.session_factory()
        try:
            blob = db.query(SnapshotBlob).filter_by(key=key).first()
            if blob:
                blob.value = value
                blob.updated_at = datetime.utcnow()
            else:
                db.add(SnapshotBlob(key=key, value=value))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to save snapshot '{key}': {e}") from e
        finally:
            db.close()

    def delete(self, *keys: str) -> int:
        db = self.session_factory()
        try:
            count = db.query(SnapshotBlob).filter(SnapshotBlob.key.in_(keys)).delete(synchronize_session=False)
            db.commit()
            return count
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to delete snapshots {keys}: {e}") from e
        finally:
            db.close()

    def load_or_default(self, key: str, default: Any = None) -> Any:
        """Like load(), but a broken store only costs the snapshot, not startup."""
        try:
            return self.load(key, default)
        except PersistenceError as e:
            logger.error(f"{e}; starting with empty '{key}'")
            return default

    def save_quietly(self, key: str, value: Any) -> bool:
        try:
            self.save(key, value)
            return True
        except PersistenceError as e:
            logger.error(str(e))
            return False
