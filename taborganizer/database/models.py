"""Database models for the local snapshot store."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class SnapshotBlob(Base):
    """One independently rewritten key/value blob (cache tier, tab groups, user categories)."""
    __tablename__ = "snapshot_blobs"

    id = Column(Integer, primary_key=True)
    key = Column(String(200), nullable=False, unique=True)
    value = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<SnapshotBlob(id={self.id}, key={self.key})>"
