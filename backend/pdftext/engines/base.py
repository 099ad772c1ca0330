"""
PDF engine interface: open a document from bytes, fetch a page, fetch its text runs, release the document.
The engine is a black box to the extraction pipeline; everything it raises on open is classified
by pdftext.services.extraction_errors.classify_engine_error.
"""
import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EngineErrorCode(str, Enum):
    PASSWORD_REQUIRED = "password_required"
    INVALID_PDF = "invalid_pdf"
    MISSING_PDF = "missing_pdf"
    UNKNOWN = "unknown"


class EngineError(Exception):
    """Open failure signalled by an engine, with a code the pipeline maps to an error kind."""

    def __init__(self, code: EngineErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class WorkerOptions:
    """Process-wide worker configuration for one engine (set by ensure_worker_configured)."""

    worker_src: str | None = None


@dataclass(frozen=True)
class TextContent:
    """Text of one page as an ordered sequence of runs."""

    runs: list[str] = field(default_factory=list)


class DocumentHandle(Protocol):
    page_count: int


class PdfEngine(Protocol):
    """Abstract interface for the PDF parsing engine."""

    name: str
    worker_options: WorkerOptions

    async def open_document(self, data: bytes) -> DocumentHandle:
        """Parse bytes into a document handle. Raises EngineError (or anything else) on failure."""
        ...

    async def get_page(self, handle: DocumentHandle, index: int) -> Any:
        """Return page object for 1-based index."""
        ...

    async def get_page_text(self, page: Any) -> TextContent:
        ...

    async def release(self, handle: DocumentHandle) -> None:
        """Free the document and its worker. Must be called exactly once per opened handle."""
        ...


class DocumentWorker:
    """
    Single background thread that owns one document's blocking engine calls.
    Calls are serialized (PDF libraries are not thread-safe per document); separate documents
    get separate workers and run in parallel. Release is queued behind in-flight page work.
    """

    def __init__(self, label: str = "pdf-worker"):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=label)

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def open(self, fn: Callable[..., T], data: bytes, discard: Callable[[T], Any]) -> T:
        """
        Run a blocking open on the worker thread. If the caller is cancelled (or times out) while the
        thread is still opening, whatever the thread produces later is passed to discard.
        """
        future = self._executor.submit(fn, data)
        try:
            return await asyncio.wrap_future(future)
        except asyncio.CancelledError:
            future.add_done_callback(lambda f: _discard_late_open(f, discard))
            raise

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


def _discard_late_open(future: Future, discard: Callable[[Any], Any]) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    try:
        discard(future.result())
        logger.info("Closed document opened after its caller was cancelled")
    except Exception:
        logger.exception("Error closing document opened after its caller was cancelled")


def log_worker_source(engine: PdfEngine) -> None:
    """Debug-log the worker source an engine was configured with before opening a document."""
    logger.debug("%s: opening document (worker_src=%s)", engine.name, engine.worker_options.worker_src)
