from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from sqlalchemy.orm import Session

from travel_crm.models.db import SessionLocal, get_engine
from travel_crm.models.import_batch import ImportBatch, PENDING

# Columns callers may write through update_batch
WRITABLE_FIELDS = frozenset({
    "status",
    "total_chunks",
    "processed_chunks",
    "total_leads",
    "leads_data",
    "error_message",
})


class BatchStore:
    """Thin pass-through to the import_batches table."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def create_batch(self) -> str:
        """
        Insert a new batch in the pending state.

        Returns:
            str: The new batch id
        """
        db = self._session_factory()
        try:
            batch = ImportBatch(status=PENDING)
            db.add(batch)
            db.commit()
            db.refresh(batch)
            return batch.id
        finally:
            db.close()

    def update_batch(self, batch_id: str, fields: Dict[str, Any]) -> bool:
        """
        Write a partial set of fields and refresh updated_at.

        Args:
            batch_id: Batch identifier
            fields: Column name -> new value

        Returns:
            bool: False if the batch does not exist
        """
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown batch fields: {sorted(unknown)}")

        db = self._session_factory()
        try:
            batch = db.get(ImportBatch, batch_id)
            if batch is None:
                return False
            for name, value in fields.items():
                setattr(batch, name, value)
            batch.updated_at = datetime.now(timezone.utc)
            db.commit()
            return True
        finally:
            db.close()

    def get_batch(self, batch_id: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            batch = db.get(ImportBatch, batch_id)
            return batch.to_dict() if batch else None
        finally:
            db.close()

    def delete_batch(self, batch_id: str) -> bool:
        """Delete a batch; an already-deleted batch is not an error."""
        db = self._session_factory()
        try:
            batch = db.get(ImportBatch, batch_id)
            if batch is None:
                return False
            db.delete(batch)
            db.commit()
            return True
        finally:
            db.close()


def build_batch_store() -> BatchStore:
    """
    Raises:
        ConfigurationError: if DATABASE_URL is not set
    """
    get_engine()
    return BatchStore()
