from typing import Callable
from fastapi import APIRouter, Depends, HTTPException, Response, status

from travel_crm.api.deps import get_batch_store_factory
from travel_crm.services.batch_store import BatchStore

router = APIRouter(prefix="/api/v1/batches", tags=["batches"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_batch(store_factory: Callable[[], BatchStore] = Depends(get_batch_store_factory)):
    batch_id = store_factory().create_batch()
    return {"id": batch_id, "status": "pending"}


@router.get("/{batch_id}")
def get_batch(batch_id: str, store_factory: Callable[[], BatchStore] = Depends(get_batch_store_factory)):
    batch = store_factory().get_batch(batch_id)
    if batch is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return batch


@router.delete("/{batch_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_batch(batch_id: str, store_factory: Callable[[], BatchStore] = Depends(get_batch_store_factory)):
    # already-consumed batches are fine
    store_factory().delete_batch(batch_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
