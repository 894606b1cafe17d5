"""Database module for the tab organizer."""
from .db import init_db, make_engine, make_session_factory
from .models import SnapshotBlob
from .snapshot_store import SnapshotStore

__all__ = ["init_db", "make_engine", "make_session_factory", "SnapshotBlob", "SnapshotStore"]
