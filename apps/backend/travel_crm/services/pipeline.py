"""
Lead extraction pipeline.

A conversation is split into chunks, the chunks are sent to the extractor
in waves of at most wave_size concurrent requests, and the merged leads are
deduplicated. When a BatchTracker is supplied, progress is written to the
import_batches record after every wave:

    pending --start--> processing --complete--> completed
                                  --fail------> failed
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

from travel_crm.config import settings
from travel_crm.errors import BatchNotFoundError, BatchStateError
from travel_crm.models.import_batch import (
    COMPLETED,
    FAILED,
    PENDING,
    PROCESSING,
    TERMINAL_STATUSES,
)
from travel_crm.models.lead import ExtractedLead
from travel_crm.services.batch_store import BatchStore
from travel_crm.services.chunking import DEFAULT_MAX_TOKENS, chunk_conversation, estimate_tokens
from travel_crm.services.dedupe import dedupe_leads

logger = logging.getLogger(__name__)


class ChunkExtractor(Protocol):
    async def extract_leads_from_chunk(
        self, text: str, chunk_number: int = 1, total_chunks: int = 1
    ) -> List[ExtractedLead]:  # pragma: no cover - protocol
        ...


class BatchTracker:
    """
    Owns the state transitions of one import batch.

    Store calls are blocking SQLAlchemy work, so they run in a worker thread
    and each write is a suspension point for the event loop.
    """

    def __init__(self, store: BatchStore, batch_id: str) -> None:
        self.store = store
        self.batch_id = batch_id
        self.status: Optional[str] = None
        self.total_chunks = 0
        self.processed_chunks = 0

    async def _write(self, **fields: Any) -> None:
        if not await asyncio.to_thread(self.store.update_batch, self.batch_id, fields):
            raise BatchNotFoundError(self.batch_id)

    def _ensure_active(self) -> None:
        if self.status in TERMINAL_STATUSES:
            raise BatchStateError(self.batch_id, self.status)

    async def start(self) -> None:
        """
        Move the batch to processing.

        A batch that is already processing (a retried submission) keeps its
        stored counters so progress seen by pollers never goes backwards.
        """
        batch = await asyncio.to_thread(self.store.get_batch, self.batch_id)
        if batch is None:
            raise BatchNotFoundError(self.batch_id)
        if batch["status"] not in (PENDING, PROCESSING):
            raise BatchStateError(self.batch_id, batch["status"])

        self.total_chunks = batch["total_chunks"] or 0
        self.processed_chunks = batch["processed_chunks"] or 0
        await self._write(status=PROCESSING)
        self.status = PROCESSING

    async def set_total(self, total_chunks: int) -> None:
        self._ensure_active()
        self.total_chunks = max(total_chunks, self.processed_chunks)
        await self._write(total_chunks=self.total_chunks, processed_chunks=self.processed_chunks)

    async def advance(self, processed_chunks: int) -> None:
        """Record progress; the counter never decreases and never exceeds total_chunks."""
        self._ensure_active()
        self.processed_chunks = max(self.processed_chunks, min(processed_chunks, self.total_chunks))
        await self._write(processed_chunks=self.processed_chunks)

    async def complete(self, leads: List[ExtractedLead]) -> None:
        self._ensure_active()
        await self._write(
            status=COMPLETED,
            leads_data=[lead.to_json() for lead in leads],
            total_leads=len(leads),
        )
        self.status = COMPLETED

    async def fail(self, message: str) -> None:
        self._ensure_active()
        await self._write(status=FAILED, error_message=message)
        self.status = FAILED


class LeadExtractionPipeline:
    def __init__(
        self,
        extractor: ChunkExtractor,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        wave_size: int = 3,
        dedupe_key: str = "phone_number",
    ) -> None:
        if wave_size < 1:
            raise ValueError("wave_size must be at least 1")
        self._extractor = extractor
        self.max_tokens = max_tokens
        self.wave_size = wave_size
        self.dedupe_key = dedupe_key

    def split(self, text: str) -> List[str]:
        estimated = estimate_tokens(text)
        if estimated <= self.max_tokens:
            logger.info("Conversation estimated tokens: %s (single chunk)", estimated)
            return [text]

        chunks = chunk_conversation(text, self.max_tokens)
        logger.info("Conversation estimated tokens: %s, split into %s chunks", estimated, len(chunks))
        return chunks

    async def run(self, text: str, tracker: Optional[BatchTracker] = None) -> List[ExtractedLead]:
        """
        Extract and deduplicate leads from a whole conversation.

        Waves run strictly one after another. Inside a wave the requests are
        concurrent, but results are merged in chunk order.

        Args:
            text: Full conversation text
            tracker: Optional progress sink for a batch record

        Returns:
            list: Deduplicated leads
        """
        prefix = f"[{tracker.batch_id}] " if tracker else ""
        chunks = self.split(text)
        total = len(chunks)
        if tracker:
            await tracker.set_total(total)

        collected: List[ExtractedLead] = []
        waves = (total + self.wave_size - 1) // self.wave_size
        for start in range(0, total, self.wave_size):
            wave = chunks[start:start + self.wave_size]
            logger.info(
                "%sProcessing wave %s/%s (chunks %s-%s)",
                prefix, start // self.wave_size + 1, waves, start + 1, start + len(wave),
            )

            results = await asyncio.gather(*(
                self._extractor.extract_leads_from_chunk(chunk, start + offset + 1, total)
                for offset, chunk in enumerate(wave)
            ))
            for leads in results:
                collected.extend(leads)

            if tracker:
                await tracker.advance(start + len(wave))

        unique = dedupe_leads(collected, self.dedupe_key)
        logger.info("%sTotal unique leads extracted: %s (from %s)", prefix, len(unique), len(collected))
        return unique

    async def run_batch(self, text: str, tracker: BatchTracker) -> List[ExtractedLead]:
        """
        Run the pipeline for a batch record and finalize it.

        Raises:
            BatchNotFoundError: if the batch does not exist
            BatchStateError: if the batch already completed or failed
        """
        await tracker.start()
        try:
            leads = await self.run(text, tracker)
            await tracker.complete(leads)
        except Exception as e:
            logger.exception("[%s] Processing failed", tracker.batch_id)
            if tracker.status not in TERMINAL_STATUSES:
                try:
                    await tracker.fail(str(e) or e.__class__.__name__)
                except Exception:
                    logger.exception("[%s] Failed to update batch status", tracker.batch_id)
            raise

        logger.info("[%s] Processing completed successfully", tracker.batch_id)
        return leads


async def wait_for_batch(
    store: BatchStore,
    batch_id: str,
    *,
    interval: Optional[float] = None,
    timeout: Optional[float] = None,
    delete: bool = True,
) -> Dict[str, Any]:
    """
    Poll a batch until it reaches completed or failed.

    Args:
        store: Batch store to read from
        batch_id: Batch identifier
        interval: Seconds between polls (default BATCH_POLL_INTERVAL_SECONDS)
        timeout: Give up after this many seconds (None waits forever)
        delete: Remove the record once a terminal state is observed

    Returns:
        dict: The terminal batch record

    Raises:
        BatchNotFoundError: if the record is missing
        asyncio.TimeoutError: if timeout elapses first
    """
    if interval is None:
        interval = settings.BATCH_POLL_INTERVAL_SECONDS
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None

    while True:
        batch = await asyncio.to_thread(store.get_batch, batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        if batch["status"] in TERMINAL_STATUSES:
            if delete:
                await asyncio.to_thread(store.delete_batch, batch_id)
            return batch

        if deadline is not None and loop.time() + interval > deadline:
            raise asyncio.TimeoutError(f"Batch {batch_id} still {batch['status']} after {timeout}s")
        await asyncio.sleep(interval)
