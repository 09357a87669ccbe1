# service_nexus/app/models.py
from sqlalchemy import Column, DateTime, String, Text, func
from ..database import Base

class StorageEntry(Base):
    """One key-value pair; the whole service collection lives in a single row."""
    __tablename__ = "storage_entries"

    key = Column(String(255), primary_key=True, index=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StorageEntry(key='{self.key}', size={len(self.value or '')})>"
