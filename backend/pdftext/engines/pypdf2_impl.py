"""
PyPDF2 engine (pure Python, text-based PDFs). Page text runs are the non-empty lines of extract_text().
"""
import io
import logging
from dataclasses import dataclass
from typing import Any

from PyPDF2 import PdfReader
from PyPDF2.errors import DependencyError, EmptyFileError, PdfReadError

from pdftext.engines.base import (
    DocumentWorker,
    EngineError,
    EngineErrorCode,
    TextContent,
    WorkerOptions,
    log_worker_source,
)

logger = logging.getLogger(__name__)

WORKER_OPTIONS = WorkerOptions()


@dataclass
class PyPDF2Document:
    reader: PdfReader
    stream: io.BytesIO
    worker: DocumentWorker
    page_count: int


@dataclass
class PyPDF2Page:
    page: Any  # PyPDF2.PageObject
    worker: DocumentWorker
    index: int  # 1-based


def _decrypt_with_empty_password(reader: PdfReader) -> None:
    """Encrypted PDFs are only readable when the empty user password opens them."""
    try:
        ok = reader.decrypt("")
    # DependencyError: AES needs PyCryptodome; without it the document stays locked.
    except (DependencyError, NotImplementedError, PdfReadError) as e:
        raise EngineError(EngineErrorCode.PASSWORD_REQUIRED, f"Encrypted PDF could not be decrypted: {e}") from e
    if not ok:
        raise EngineError(EngineErrorCode.PASSWORD_REQUIRED, "No password given for encrypted PDF")


def _open_reader(data: bytes) -> tuple[PdfReader, io.BytesIO, int]:
    if not data:
        raise EngineError(EngineErrorCode.MISSING_PDF, "Missing PDF: empty stream")
    stream = io.BytesIO(data)
    try:
        reader = PdfReader(stream)
        if reader.is_encrypted:
            _decrypt_with_empty_password(reader)
        return reader, stream, len(reader.pages)
    except DependencyError as e:
        # Raised while checking the empty password on an AES document without PyCryptodome.
        stream.close()
        raise EngineError(EngineErrorCode.PASSWORD_REQUIRED, f"Encrypted PDF could not be decrypted: {e}") from e
    except EmptyFileError as e:
        stream.close()
        raise EngineError(EngineErrorCode.MISSING_PDF, f"Missing PDF: {e}") from e
    except PdfReadError as e:
        stream.close()
        raise EngineError(EngineErrorCode.INVALID_PDF, f"Invalid PDF structure: {e}") from e
    except BaseException:
        stream.close()
        raise


def _close_opened(opened: tuple[PdfReader, io.BytesIO, int]) -> None:
    opened[1].close()


def _page_runs(page) -> list[str]:
    text = page.extract_text() or ""
    return [line.strip() for line in text.splitlines() if line.strip()]


class PyPDF2Engine:
    name = "pypdf2"

    def __init__(self, worker_options: WorkerOptions | None = None):
        self.worker_options = worker_options or WORKER_OPTIONS

    async def open_document(self, data: bytes) -> PyPDF2Document:
        log_worker_source(self)
        worker = DocumentWorker("pypdf2-worker")
        try:
            reader, stream, page_count = await worker.open(_open_reader, data, _close_opened)
        except BaseException:
            worker.shutdown()
            raise
        return PyPDF2Document(reader=reader, stream=stream, worker=worker, page_count=page_count)

    async def get_page(self, handle: PyPDF2Document, index: int) -> PyPDF2Page:
        if index < 1 or index > handle.page_count:
            raise IndexError(f"Page out of range: {index} (1..{handle.page_count})")
        page = await handle.worker.run(handle.reader.pages.__getitem__, index - 1)
        return PyPDF2Page(page=page, worker=handle.worker, index=index)

    async def get_page_text(self, page: PyPDF2Page) -> TextContent:
        runs = await page.worker.run(_page_runs, page.page)
        return TextContent(runs=runs)

    async def release(self, handle: PyPDF2Document) -> None:
        try:
            await handle.worker.run(handle.stream.close)
        finally:
            handle.worker.shutdown()


def get_pdf_engine() -> PyPDF2Engine:
    return PyPDF2Engine()
