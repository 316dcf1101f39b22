from sqlalchemy import Column, String, Integer, Text, JSON, TIMESTAMP
from sqlalchemy.sql import func
import uuid
from .db import Base

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})


class ImportBatch(Base):
    __tablename__ = "import_batches"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(String, nullable=False, default=PENDING)  # 'pending'|'processing'|'completed'|'failed'
    total_chunks = Column(Integer, nullable=False, default=0)
    processed_chunks = Column(Integer, nullable=False, default=0)
    total_leads = Column(Integer, nullable=False, default=0)
    leads_data = Column(JSON)
    error_message = Column(Text)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "total_chunks": self.total_chunks,
            "processed_chunks": self.processed_chunks,
            "total_leads": self.total_leads,
            "leads_data": self.leads_data,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
