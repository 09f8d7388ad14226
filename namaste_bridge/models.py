from sqlalchemy import Column, String, DateTime, JSON
from datetime import datetime, timezone

from .database import Base


def utcnow():
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class StoredBundle(Base):
    """
    Append-only storage for uploaded FHIR Bundles.
    
    The primary key is the Bundle id, so a second insert with the same id
    fails at the database and is reported as a conflict. Rows are never
    updated or deleted; amendments arrive as new Bundles.
    """
    __tablename__ = "bundles"
    
    id = Column(String(64), primary_key=True, index=True)
    document = Column(JSON, nullable=False)  # Bundle JSON exactly as uploaded
    created_at = Column(DateTime, default=utcnow)
