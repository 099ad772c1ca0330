"""
PDF engine abstraction: open_document(bytes), get_page(handle, i), get_page_text(page), release(handle).
PyMuPDF by default; PyPDF2 or mock by PDF_ENGINE.
"""
import logging

from pdftext.engines.base import (
    DocumentHandle,
    EngineError,
    EngineErrorCode,
    PdfEngine,
    TextContent,
    WorkerOptions,
)

logger = logging.getLogger(__name__)


def get_pdf_engine(name: str = "pymupdf") -> PdfEngine | None:
    """Return the named engine, or None if its library cannot be imported (engine unavailable)."""
    name = (name or "pymupdf").strip().lower()
    if name == "mock":
        from pdftext.engines.mock_impl import get_pdf_engine as _get_mock
        return _get_mock()
    try:
        if name == "pymupdf":
            from pdftext.engines.pymupdf_impl import get_pdf_engine as _get
        elif name == "pypdf2":
            from pdftext.engines.pypdf2_impl import get_pdf_engine as _get
        else:
            raise ValueError(f"Unsupported PDF engine: {name}")
    except ImportError as e:
        logger.error("PDF engine %s is not available: %s", name, e)
        return None
    return _get()


__all__ = [
    "DocumentHandle",
    "EngineError",
    "EngineErrorCode",
    "PdfEngine",
    "TextContent",
    "WorkerOptions",
    "get_pdf_engine",
]
