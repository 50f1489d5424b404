"""Background worker that indexes conversations off the request path."""

from __future__ import annotations

import queue
import random
import threading
from dataclasses import dataclass, field

from memory_cache.core.errors import MemoryFeatureError, report_degradation
from memory_cache.core.logging import get_logger
from memory_cache.core.metrics import INDEX_JOBS
from memory_cache.retrieval.knowledge import DEFAULT_KIND, IndexResult, KnowledgeRetrievalService
from memory_cache.utils.ids import new_id

logger = get_logger(__name__)


@dataclass(slots=True)
class RetryConfig:
    """Exponential backoff between attempts of one job.

    ``max_attempts`` includes the first try. With ``jitter`` each delay is
    scaled by a random factor in [0.75, 1.25].
    """

    max_attempts: int = 3
    initial_delay_ms: float = 250.0
    max_delay_ms: float = 4000.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def delay_seconds(self, attempt: int) -> float:
        """Delay after the 0-based ``attempt`` failed."""
        delay_ms = min(self.initial_delay_ms * (self.backoff_multiplier**attempt), self.max_delay_ms)
        if self.jitter:
            delay_ms *= 0.75 + random.random() * 0.5
        return delay_ms / 1000.0


@dataclass(slots=True)
class IndexJob:
    owner_id: str
    source_ref: str
    turns: list[tuple[str, str]]
    source_label: str | None = None
    source_kind: str = DEFAULT_KIND
    skip_existing: bool = True
    job_id: str = field(default_factory=lambda: new_id("job"))
    attempts: int = 0


class IndexingFailed(MemoryFeatureError):
    """Every chunk of a job was skipped."""

    kind = "indexing_failed"


class BackgroundIndexer:
    """Single daemon thread draining a queue of :class:`IndexJob`.

    A job is retried when indexing raises or when it skipped chunks without
    indexing any. Jobs that indexed at least one chunk are not retried, so a
    retry never duplicates stored chunks.
    """

    def __init__(self, knowledge: KnowledgeRetrievalService, retry: RetryConfig | None = None) -> None:
        self.knowledge = knowledge
        self.retry = retry or RetryConfig()
        self._queue: queue.Queue[IndexJob | None] = queue.Queue()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return self._queue.unfinished_tasks

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(target=self._run, name="memc-indexer", daemon=True)
            self._thread.start()
        logger.info("Background indexer started")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop after the job in progress; queued jobs are dropped."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop.set()
            self._queue.put(None)
        thread.join(timeout)
        with self._lock:
            self._thread = None
        dropped = self._drain()
        if dropped:
            logger.warning("Background indexer stopped with %s queued jobs dropped", dropped)
        else:
            logger.info("Background indexer stopped")

    def submit(self, job: IndexJob) -> str:
        if self._stop.is_set() or not self.running:
            self.start()
        self._queue.put(job)
        logger.debug("Queued index job %s for %s", job.job_id, job.owner_id)
        return job.job_id

    def join(self) -> None:
        """Block until every submitted job has finished or failed."""
        self._queue.join()

    def _run(self) -> None:
        while not self._stop.is_set():
            job = self._queue.get()
            try:
                if job is None:
                    break
                self._process(job)
            except Exception:
                self.failed += 1
                INDEX_JOBS.labels(status="failed").inc()
                logger.exception("Index job %s crashed", job.job_id if job else None)
            finally:
                self._queue.task_done()

    def _process(self, job: IndexJob) -> None:
        last_error: Exception | None = None
        for attempt in range(self.retry.max_attempts):
            job.attempts = attempt + 1
            try:
                result = self._attempt(job)
            except MemoryFeatureError as exc:
                last_error = exc
            else:
                self.completed += 1
                INDEX_JOBS.labels(status="completed").inc()
                if attempt:
                    logger.info("Index job %s succeeded after %s attempts", job.job_id, job.attempts)
                logger.debug(
                    "Index job %s done: %s indexed, %s skipped",
                    job.job_id,
                    result.chunks_indexed,
                    result.chunks_skipped,
                )
                return
            if attempt + 1 < self.retry.max_attempts:
                delay = self.retry.delay_seconds(attempt)
                logger.debug("Index job %s attempt %s failed, retrying in %.2fs", job.job_id, job.attempts, delay)
                if self._stop.wait(delay):
                    break
        self.failed += 1
        INDEX_JOBS.labels(status="failed").inc()
        if last_error is not None:
            report_degradation(
                logger,
                "indexer",
                last_error,
                owner_id=job.owner_id,
                action=f"gave up on job {job.job_id} after {job.attempts} attempts",
            )

    def _attempt(self, job: IndexJob) -> IndexResult:
        result = self.knowledge.index_conversation(
            job.owner_id,
            job.source_ref,
            job.turns,
            source_label=job.source_label,
            source_kind=job.source_kind,
            skip_existing=job.skip_existing,
        )
        if result.chunks_indexed == 0 and result.chunks_skipped > 0:
            raise IndexingFailed(f"all {result.chunks_skipped} chunks of {job.source_ref} were skipped")
        return result

    def _drain(self) -> int:
        dropped = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return dropped
            if item is not None:
                dropped += 1
            self._queue.task_done()


__all__ = ["BackgroundIndexer", "IndexJob", "RetryConfig", "IndexingFailed"]
