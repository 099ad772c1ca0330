"""
Text extraction pipeline for uploaded PDFs:
1. Validate input (UploadFile or binary file object) → InvalidInput.
2. Point the engine at its worker → EngineUnavailable.
3. Read all bytes (async; per-stage timeout) → FileReadError.
4. Open document via engine → PasswordProtected / InvalidDocument / DocumentUnreadable / UnknownError.
5. Fetch page text for pages 1..N concurrently (capped), join runs with spaces.
6. Any page failure fails the whole call (PageExtractionError); no partial text is returned.
7. Join pages in page order with a blank line.
The document handle is released exactly once on every path after a successful open, cancellation included.
Every failure is logged, counted, notified once, and raised as ExtractionError.
"""
import asyncio
import io
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, TypeVar

from starlette.datastructures import UploadFile as StarletteUploadFile

from pdftext import metrics
from pdftext.config import DEFAULT_PDF_WORKER_SRC, settings
from pdftext.engines import get_pdf_engine
from pdftext.engines.base import DocumentHandle, PdfEngine
from pdftext.services.extraction_errors import (
    USER_MESSAGES,
    ErrorClassifier,
    ErrorKind,
    ExtractionError,
    classify_engine_error,
)
from pdftext.services.notifier import Notifier, log_notifier
from pdftext.services.worker_bootstrap import ensure_worker_configured

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAGE_SEPARATOR = "\n\n"
RUN_SEPARATOR = " "


@dataclass(frozen=True)
class ExtractionResult:
    text: str
    page_count: int
    filename: str | None = None


def is_source_file(file: Any) -> bool:
    """True for an UploadFile or a file object opened in binary mode."""
    return isinstance(file, (StarletteUploadFile, io.BufferedIOBase, io.RawIOBase))


def validate_source_file(file: Any) -> None:
    """Raise ExtractionError(INVALID_INPUT) for missing or non-file input. No I/O."""
    if file is None:
        raise ExtractionError(ErrorKind.INVALID_INPUT, "No file provided for PDF extraction.")
    if not is_source_file(file):
        raise ExtractionError(
            ErrorKind.INVALID_INPUT,
            "Invalid input: Expected a file object for PDF extraction.",
            detail={"type": type(file).__name__},
        )


def _source_name(file: Any) -> str | None:
    name = getattr(file, "filename", None) or getattr(file, "name", None)
    return name if isinstance(name, str) else None


async def _with_timeout(aw: Awaitable[T], timeout: float | None) -> T:
    if timeout is None:
        return await aw
    return await asyncio.wait_for(aw, timeout)


async def _cancel_all(tasks) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


class TextExtractionService:
    """Extract text from one PDF per call. Stateless between calls; safe to share across requests."""

    def __init__(
        self,
        engine: PdfEngine | None,
        *,
        worker_src: str = DEFAULT_PDF_WORKER_SRC,
        notify: Notifier | None = None,
        classifier: ErrorClassifier = classify_engine_error,
        read_timeout: float | None = None,
        open_timeout: float | None = None,
        page_timeout: float | None = None,
        max_concurrent_pages: int = 8,
        notify_success: bool = False,
    ):
        if max_concurrent_pages < 1:
            raise ValueError("max_concurrent_pages must be >= 1")
        self.engine = engine
        self.worker_src = worker_src
        self.notify = notify or log_notifier
        self.classifier = classifier
        self.read_timeout = read_timeout
        self.open_timeout = open_timeout
        self.page_timeout = page_timeout
        self.max_concurrent_pages = max_concurrent_pages
        self.notify_success = notify_success

    async def extract_text(self, file: Any) -> str:
        """Extracted text of all pages, or raise ExtractionError."""
        result = await self.extract(file)
        return result.text

    async def extract(self, file: Any) -> ExtractionResult:
        started = time.monotonic()
        try:
            validate_source_file(file)
        except ExtractionError as e:
            raise self._report(e)
        if not ensure_worker_configured(self.engine, self.worker_src):
            raise self._fail(ErrorKind.ENGINE_UNAVAILABLE)

        filename = _source_name(file)
        # Bytes are only referenced for the duration of the open call.
        handle = await self._open(await self._read_bytes(file))
        try:
            page_count = handle.page_count
            text = await self._collect_text(handle, page_count)
        except ExtractionError:
            raise
        except Exception as e:
            raise self._fail(ErrorKind.UNKNOWN_ERROR, detail={"error": repr(e)}, exc=e) from e
        finally:
            await self._release(handle)

        logger.info(
            "PDF extraction ok: filename=%s pages=%s chars=%s elapsed=%.2fs",
            filename, page_count, len(text), time.monotonic() - started,
        )
        if self.notify_success:
            self._notify_user(f"Extracted text from {page_count} page(s).", False)
        return ExtractionResult(text=text, page_count=page_count, filename=filename)

    async def _read_bytes(self, file: Any) -> bytes:
        try:
            if isinstance(file, StarletteUploadFile):
                data = await _with_timeout(file.read(), self.read_timeout)
            else:
                data = await _with_timeout(asyncio.to_thread(file.read), self.read_timeout)
            if not isinstance(data, (bytes, bytearray)):
                raise TypeError(f"read() returned {type(data).__name__}, expected bytes")
        except asyncio.TimeoutError as e:
            timeouts = metrics.increment_extraction_timeouts_total()
            raise self._fail(
                ErrorKind.FILE_READ_ERROR,
                detail={"stage": "read", "timeout_seconds": self.read_timeout, "extraction_timeouts_total": timeouts},
            ) from e
        except Exception as e:
            raise self._fail(ErrorKind.FILE_READ_ERROR, detail={"error": repr(e)}) from e
        return bytes(data)

    async def _open(self, data: bytes) -> DocumentHandle:
        try:
            return await _with_timeout(self.engine.open_document(data), self.open_timeout)
        except asyncio.TimeoutError as e:
            timeouts = metrics.increment_extraction_timeouts_total()
            raise self._fail(
                ErrorKind.UNKNOWN_ERROR,
                f"Opening the PDF timed out after {self.open_timeout}s.",
                detail={"stage": "open", "timeout_seconds": self.open_timeout, "extraction_timeouts_total": timeouts},
            ) from e
        except Exception as e:
            kind = self.classifier(e)
            raise self._fail(kind, detail={"error": str(e)}, exc=e) from e

    async def _page_fragment(self, handle: DocumentHandle, index: int) -> str:
        page = await self.engine.get_page(handle, index)
        content = await self.engine.get_page_text(page)
        return RUN_SEPARATOR.join(content.runs)

    async def _collect_text(self, handle: DocumentHandle, page_count: int) -> str:
        if page_count == 0:
            return ""
        semaphore = asyncio.Semaphore(self.max_concurrent_pages)

        async def fetch(index: int) -> str:
            async with semaphore:
                return await _with_timeout(self._page_fragment(handle, index), self.page_timeout)

        # tasks[i] is page i + 1 whatever finished first.
        tasks = [asyncio.create_task(fetch(i)) for i in range(1, page_count + 1)]
        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except BaseException:
            await _cancel_all(tasks)
            raise
        # Anything still pending means a page failed; the rest of the fetches are abandoned.
        await _cancel_all(pending)

        failed = {
            i: t.exception()
            for i, t in enumerate(tasks, start=1)
            if not t.cancelled() and t.exception() is not None
        }
        if failed:
            timed_out = [i for i, e in failed.items() if isinstance(e, asyncio.TimeoutError)]
            for _ in timed_out:
                metrics.increment_extraction_timeouts_total()
            cancelled = [i for i, t in enumerate(tasks, start=1) if t.cancelled()]
            extracted = page_count - len(failed) - len(cancelled)
            first_page, first_error = next(iter(failed.items()))
            logger.warning(
                "Page text fetch failed: pages=%s of %s (first: page %s: %r), %s fetch(es) cancelled",
                sorted(failed), page_count, first_page, first_error, len(cancelled),
            )
            raise self._fail(
                ErrorKind.PAGE_EXTRACTION_ERROR,
                f"{USER_MESSAGES[ErrorKind.PAGE_EXTRACTION_ERROR]} "
                f"({extracted} of {page_count} page(s) were extracted before the failure.)",
                detail={
                    "page_count": page_count,
                    "extracted_pages": extracted,
                    "failed_pages": sorted(failed),
                    "timed_out_pages": timed_out,
                    "cancelled_pages": cancelled,
                    "error": repr(first_error),
                },
            )
        return PAGE_SEPARATOR.join(t.result() for t in tasks)

    async def _release(self, handle: DocumentHandle) -> None:
        """Release once; failures are logged and counted, never raised over the call's outcome."""
        try:
            await self.engine.release(handle)
        except Exception:
            n = metrics.increment_release_failures_total()
            logger.exception("Error releasing PDF document (release_failures_total=%s)", n)

    def _fail(
        self,
        kind: ErrorKind,
        message: str | None = None,
        detail: dict[str, Any] | None = None,
        exc: BaseException | None = None,
    ) -> ExtractionError:
        return self._report(ExtractionError(kind, message, detail), exc)

    def _report(self, error: ExtractionError, exc: BaseException | None = None) -> ExtractionError:
        metrics.increment_extraction_failures_total(error.kind.value)
        if error.kind is ErrorKind.UNKNOWN_ERROR:
            logger.error("PDF extraction failed (%s): %s %s", error.kind.value, error.message, error.detail, exc_info=exc)
        else:
            logger.warning("PDF extraction failed (%s): %s %s", error.kind.value, error.message, error.detail)
        self._notify_user(error.message, True)
        return error

    def _notify_user(self, message: str, is_error: bool) -> None:
        try:
            self.notify(message, is_error)
        except Exception:
            logger.exception("User notifier failed for message: %s", message)


def get_text_extraction_service(notify: Notifier | None = None) -> TextExtractionService:
    """Service wired from settings: engine by PDF_ENGINE, worker source, timeouts, page concurrency."""
    return TextExtractionService(
        get_pdf_engine(settings.pdf_engine),
        worker_src=settings.pdf_worker_src,
        notify=notify,
        read_timeout=settings.read_timeout_seconds,
        open_timeout=settings.open_timeout_seconds,
        page_timeout=settings.page_timeout_seconds,
        max_concurrent_pages=settings.max_concurrent_pages,
        notify_success=settings.notify_success,
    )


async def extract_text(file: Any, notify: Notifier | None = None) -> str:
    """Extract text from one PDF with the configured service."""
    return await get_text_extraction_service(notify).extract_text(file)
