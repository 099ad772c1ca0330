"""
PyMuPDF engine. Open from an in-memory stream; page text runs are the text spans of every
text block/line, in the order PyMuPDF reports them.
"""
import logging
from dataclasses import dataclass
from typing import Any

import pymupdf

from pdftext.engines.base import (
    DocumentWorker,
    EngineError,
    EngineErrorCode,
    TextContent,
    WorkerOptions,
    log_worker_source,
)

logger = logging.getLogger(__name__)

# Shared by every PyMuPDFEngine instance: MuPDF itself is process-wide.
WORKER_OPTIONS = WorkerOptions()


@dataclass
class PyMuPDFDocument:
    doc: Any  # pymupdf.Document
    worker: DocumentWorker
    page_count: int


@dataclass
class PyMuPDFPage:
    page: Any  # pymupdf.Page
    worker: DocumentWorker
    index: int  # 1-based


def _open_stream(data: bytes) -> tuple[Any, int]:
    """Blocking open. Maps PyMuPDF failures to engine error codes; never returns an encrypted doc."""
    if not data:
        raise EngineError(EngineErrorCode.MISSING_PDF, "Missing PDF: empty stream")
    try:
        doc = pymupdf.open(stream=data, filetype="pdf")
    except pymupdf.EmptyFileError as e:
        raise EngineError(EngineErrorCode.MISSING_PDF, f"Missing PDF: {e}") from e
    except pymupdf.FileDataError as e:
        raise EngineError(EngineErrorCode.INVALID_PDF, f"Invalid PDF structure: {e}") from e
    if doc.needs_pass:
        doc.close()
        raise EngineError(EngineErrorCode.PASSWORD_REQUIRED, "No password given for encrypted PDF")
    try:
        return doc, len(doc)
    except BaseException:
        doc.close()
        raise


def _close_opened(opened: tuple[Any, int]) -> None:
    opened[0].close()


def _page_runs(page) -> list[str]:
    """Span texts from text blocks (block type 0) in reading order reported by PyMuPDF."""
    raw = page.get_text("dict", flags=pymupdf.TEXT_PRESERVE_WHITESPACE)
    runs: list[str] = []
    for blk in raw.get("blocks", []):
        if blk.get("type", 0) != 0:
            continue
        for line in blk.get("lines", []):
            for span in line.get("spans", []):
                text = span.get("text", "")
                if text:
                    runs.append(text)
    return runs


class PyMuPDFEngine:
    name = "pymupdf"

    def __init__(self, worker_options: WorkerOptions | None = None):
        self.worker_options = worker_options or WORKER_OPTIONS

    async def open_document(self, data: bytes) -> PyMuPDFDocument:
        log_worker_source(self)
        worker = DocumentWorker("pymupdf-worker")
        try:
            doc, page_count = await worker.open(_open_stream, data, _close_opened)
        except BaseException:
            worker.shutdown()
            raise
        return PyMuPDFDocument(doc=doc, worker=worker, page_count=page_count)

    async def get_page(self, handle: PyMuPDFDocument, index: int) -> PyMuPDFPage:
        if index < 1 or index > handle.page_count:
            raise IndexError(f"Page out of range: {index} (1..{handle.page_count})")
        page = await handle.worker.run(handle.doc.load_page, index - 1)
        return PyMuPDFPage(page=page, worker=handle.worker, index=index)

    async def get_page_text(self, page: PyMuPDFPage) -> TextContent:
        runs = await page.worker.run(_page_runs, page.page)
        return TextContent(runs=runs)

    async def release(self, handle: PyMuPDFDocument) -> None:
        try:
            await handle.worker.run(handle.doc.close)
        finally:
            handle.worker.shutdown()


def get_pdf_engine() -> PyMuPDFEngine:
    return PyMuPDFEngine()
