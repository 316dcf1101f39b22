import logging
from typing import Callable
from fastapi import APIRouter, Depends, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from travel_crm.api.deps import get_batch_store_factory, get_extraction_client_factory
from travel_crm.config import settings
from travel_crm.errors import BatchNotFoundError, BatchStateError, ConfigurationError
from travel_crm.models.import_batch import FAILED, TERMINAL_STATUSES
from travel_crm.services.batch_store import BatchStore
from travel_crm.services.openai_service import LeadExtractor
from travel_crm.services.pipeline import BatchTracker, LeadExtractionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/leads", tags=["leads"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


class ExtractReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_text: str = Field(alias="conversationText", min_length=1)


class BackgroundExtractReq(ExtractReq):
    batch_id: str = Field(alias="batchId", min_length=1)


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    body = {"error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def _pipeline(extractor: LeadExtractor, wave_size: int) -> LeadExtractionPipeline:
    return LeadExtractionPipeline(
        extractor,
        max_tokens=settings.EXTRACTION_MAX_TOKENS,
        wave_size=wave_size,
        dedupe_key=settings.LEAD_DEDUPE_KEY,
    )


@router.post("/extract")
async def extract_leads(
    req: ExtractReq,
    extractor_factory: Callable[[], LeadExtractor] = Depends(get_extraction_client_factory),
):
    try:
        extractor = extractor_factory()
    except ConfigurationError as e:
        logger.error("Server configuration error: %s", e)
        return _error(500, "Server configuration error")

    try:
        leads = await _pipeline(extractor, settings.SYNC_WAVE_SIZE).run(req.conversation_text)
    except Exception as e:
        logger.exception("Lead extraction failed")
        return _error(500, "Internal server error", str(e))

    return {"leads": [lead.to_json() for lead in leads]}


@router.post("/extract-background")
async def extract_leads_background(
    req: BackgroundExtractReq,
    extractor_factory: Callable[[], LeadExtractor] = Depends(get_extraction_client_factory),
    store_factory: Callable[[], BatchStore] = Depends(get_batch_store_factory),
):
    try:
        store = store_factory()
    except ConfigurationError as e:
        logger.error("Server configuration error: %s", e)
        return _error(500, "Server configuration error")

    tracker = BatchTracker(store, req.batch_id)

    try:
        extractor = extractor_factory()
    except ConfigurationError as e:
        logger.error("[%s] Server configuration error: %s", req.batch_id, e)
        # let pollers see the failure too
        batch = await run_in_threadpool(store.get_batch, req.batch_id)
        if batch is not None and batch["status"] not in TERMINAL_STATUSES:
            await run_in_threadpool(store.update_batch, req.batch_id, {"status": FAILED, "error_message": "Server configuration error"})
        return _error(500, "Server configuration error")

    pipeline = _pipeline(extractor, settings.BACKGROUND_WAVE_SIZE)
    try:
        leads = await pipeline.run_batch(req.conversation_text, tracker)
    except BatchNotFoundError as e:
        return _error(404, "Batch not found", str(e))
    except BatchStateError as e:
        return _error(409, "Batch already finished", str(e))
    except Exception as e:
        return _error(500, "Internal server error", str(e))

    return {"message": "Background processing completed", "leadsCount": len(leads)}


# Pre-flight without Origin / Access-Control-Request-Method skips CORSMiddleware
@router.options("/extract")
@router.options("/extract-background")
def extract_leads_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)
