"""
Ingestion Pipeline

Two entry points:
- live: one message at a time, parsed and written immediately
- historical: a whole inbox parsed in memory and written as one batch
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set, Tuple

from .errors import ExpenseTrackerError
from .message_source import Message, select_messages
from .models import Transaction

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class IngestOutcome(str, Enum):
    SAVED = "SAVED"
    DUPLICATE = "DUPLICATE"
    NO_MATCH = "NO_MATCH"
    FAILED = "FAILED"


@dataclass
class ImportResult:
    """Summary of one historical import"""
    total_processed: int
    transactions_found: int
    duplicates: int
    cancelled: bool = False


class HistoricalImportTask:
    """
    A cancellable, progress-reporting historical import

    Call run() to import on the current thread, or start() and wait() to
    import on a background thread. Only one task per pipeline imports at a
    time; others block until it finishes.
    """

    def __init__(
        self,
        pipeline: "IngestionPipeline",
        messages: Sequence[Message],
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.pipeline = pipeline
        self.messages = list(messages)
        self.on_progress = on_progress
        self.result: Optional[ImportResult] = None
        self.error: Optional[BaseException] = None
        self._progress: Tuple[int, int] = (0, len(self.messages))
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def progress(self) -> Tuple[int, int]:
        """(processed, total) as of the last report"""
        return self._progress

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self):
        """Ask the import to stop; checked before each message"""
        self._cancel.set()

    def _report(self, processed: int, total: int):
        self._progress = (processed, total)
        if self.on_progress:
            self.on_progress(processed, total)

    def run(self) -> ImportResult:
        with self.pipeline.import_lock:
            self.result = self._import()
        return self.result

    def _import(self) -> ImportResult:
        store = self.pipeline.store
        parser = self.pipeline.parser
        every = self.pipeline.progress_every
        total = len(self.messages)

        found: List[Transaction] = []
        seen_refs: Set[str] = set()
        duplicates = 0
        processed = 0

        logger.info("Historical import started: %d messages", total)

        for message in self.messages:
            if self._cancel.is_set():
                logger.info("Historical import cancelled after %d of %d messages", processed, total)
                return ImportResult(
                    total_processed=processed,
                    transactions_found=0,
                    duplicates=duplicates,
                    cancelled=True,
                )

            txn = parser.parse(message.body, message.sender, message.timestamp)
            if txn is not None:
                ref = txn.reference_id
                if ref and (ref in seen_refs or store.find_by_reference_id(ref) is not None):
                    duplicates += 1
                else:
                    if ref:
                        seen_refs.add(ref)
                    found.append(txn)

            processed += 1
            if processed % every == 0:
                self._report(processed, total)

        inserted = 0
        if found:
            inserted = store.insert_transactions(found)
            if inserted != len(found):
                # another writer stored some of these references first
                logger.warning("Store skipped %d rows as duplicates", len(found) - inserted)
                duplicates += len(found) - inserted

        self._report(total, total)
        logger.info(
            "Historical import finished: %d processed, %d new, %d duplicates",
            processed, inserted, duplicates,
        )

        return ImportResult(
            total_processed=processed,
            transactions_found=inserted,
            duplicates=duplicates,
        )

    def _run_in_background(self):
        try:
            self.run()
        except Exception as e:
            logger.exception("Historical import failed")
            self.error = e

    def start(self) -> "HistoricalImportTask":
        if self._thread is not None:
            raise RuntimeError("Import task already started")
        self._thread = threading.Thread(
            target=self._run_in_background, name="historical-import", daemon=True
        )
        self._thread.start()
        return self

    def wait(self, timeout: Optional[float] = None) -> Optional[ImportResult]:
        """
        Block until a started task finishes

        Returns:
            The ImportResult, or None if the timeout expired first.
            Errors raised on the worker thread are re-raised here.
        """
        if self._thread is None:
            raise RuntimeError("Import task was not started")
        self._thread.join(timeout)
        if self._thread.is_alive():
            return None
        if self.error is not None:
            raise self.error
        return self.result


class IngestionPipeline:
    """Parse, categorize, dedup and store incoming messages"""

    def __init__(self, store, parser, progress_every: int = 10):
        if progress_every < 1:
            raise ValueError("progress_every must be at least 1")
        self.store = store
        self.parser = parser
        self.progress_every = progress_every
        self.import_lock = threading.Lock()

    def ingest_message(self, sender: str, body: str, timestamp: int) -> IngestOutcome:
        """
        Live ingestion of a single message

        Raises:
            StoreError: if the store lookup or write fails
        """
        txn = self.parser.parse(body, sender, timestamp)
        if txn is None:
            return IngestOutcome.NO_MATCH

        if txn.reference_id and self.store.find_by_reference_id(txn.reference_id) is not None:
            logger.debug("Duplicate reference %s from %s", txn.reference_id, sender)
            return IngestOutcome.DUPLICATE

        if self.store.insert_transaction(txn) is None:
            return IngestOutcome.DUPLICATE

        logger.info("Saved %s %s %s (%s)", txn.direction.value, txn.amount, txn.recipient_name, txn.category)
        return IngestOutcome.SAVED

    def on_message_received(self, message: Message) -> IngestOutcome:
        """Passive receipt: failures are logged, never raised"""
        try:
            return self.ingest_message(message.sender, message.body, message.timestamp)
        except ExpenseTrackerError as e:
            logger.error("Failed to ingest message from %s: %s", message.sender, e)
            return IngestOutcome.FAILED

    def create_import(
        self,
        messages: Sequence[Message],
        on_progress: Optional[ProgressCallback] = None,
        days: Optional[int] = None,
        now: Optional[int] = None,
    ) -> HistoricalImportTask:
        """
        Prepare a historical import over `messages`, newest first

        Args:
            days: Skip messages older than N days (None imports everything)
            now: Reference time in epoch millis for the cutoff
        """
        return HistoricalImportTask(self, select_messages(messages, days, now), on_progress)

    def import_history(
        self,
        messages: Sequence[Message],
        on_progress: Optional[ProgressCallback] = None,
        days: Optional[int] = None,
        now: Optional[int] = None,
    ) -> ImportResult:
        """Run a historical import on the calling thread"""
        return self.create_import(messages, on_progress, days, now).run()
