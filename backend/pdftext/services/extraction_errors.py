"""
Closed error taxonomy for text extraction, user-facing messages, and the engine-error classifier.
"""
from enum import Enum
from typing import Any, Callable

from pdftext.engines.base import EngineErrorCode


class ErrorKind(str, Enum):
    ENGINE_UNAVAILABLE = "engine_unavailable"
    INVALID_INPUT = "invalid_input"
    FILE_READ_ERROR = "file_read_error"
    PASSWORD_PROTECTED = "password_protected"
    INVALID_DOCUMENT = "invalid_document"
    DOCUMENT_UNREADABLE = "document_unreadable"
    PAGE_EXTRACTION_ERROR = "page_extraction_error"
    UNKNOWN_ERROR = "unknown_error"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.ENGINE_UNAVAILABLE: (
        "PDF library worker could not be configured. Please ensure the PDF library is installed "
        "and check your internet connection if the worker is loaded remotely."
    ),
    ErrorKind.INVALID_INPUT: "Invalid input: expected a file for PDF extraction.",
    ErrorKind.FILE_READ_ERROR: (
        "Error reading the file. Please ensure the file is selected correctly and not damaged."
    ),
    ErrorKind.PASSWORD_PROTECTED: (
        "The PDF file is encrypted and requires a password. Password-protected PDFs cannot be processed."
    ),
    ErrorKind.INVALID_DOCUMENT: "The file is not a valid PDF or it is corrupted.",
    ErrorKind.DOCUMENT_UNREADABLE: "The PDF file could not be found or is unreadable.",
    ErrorKind.PAGE_EXTRACTION_ERROR: (
        "Could not fully extract text from the PDF. It might contain non-standard fonts, "
        "be partially corrupted, or be image-based."
    ),
    ErrorKind.UNKNOWN_ERROR: (
        "Could not read text from PDF. The file might be corrupted, or an unknown error occurred."
    ),
}


class ExtractionError(Exception):
    """Classified failure rejected to callers of the extraction pipeline."""

    def __init__(self, kind: ErrorKind, message: str | None = None, detail: dict[str, Any] | None = None):
        self.kind = kind
        self.message = message or USER_MESSAGES[kind]
        self.detail = detail or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"ExtractionError({self.kind.value!r}, {self.message!r})"


# Engine-defined codes → taxonomy. Checked before any name or message heuristics.
_CODE_TO_KIND: dict[EngineErrorCode, ErrorKind] = {
    EngineErrorCode.PASSWORD_REQUIRED: ErrorKind.PASSWORD_PROTECTED,
    EngineErrorCode.INVALID_PDF: ErrorKind.INVALID_DOCUMENT,
    EngineErrorCode.MISSING_PDF: ErrorKind.DOCUMENT_UNREADABLE,
    EngineErrorCode.UNKNOWN: ErrorKind.UNKNOWN_ERROR,
}

# Exception class names some engines use instead of codes.
_NAME_TO_KIND: dict[str, ErrorKind] = {
    "PasswordException": ErrorKind.PASSWORD_PROTECTED,
    "InvalidPDFException": ErrorKind.INVALID_DOCUMENT,
    "MissingPDFException": ErrorKind.DOCUMENT_UNREADABLE,
}

# Last resort for unstructured messages; first match wins.
_MESSAGE_TO_KIND: tuple[tuple[str, ErrorKind], ...] = (
    ("password", ErrorKind.PASSWORD_PROTECTED),
    ("invalid pdf", ErrorKind.INVALID_DOCUMENT),
    ("missing pdf", ErrorKind.DOCUMENT_UNREADABLE),
)

ErrorClassifier = Callable[[BaseException], ErrorKind]


def classify_engine_error(exc: BaseException) -> ErrorKind:
    """Map a document-open failure to an error kind: engine code, then class name, then message."""
    code = getattr(exc, "code", None)
    if isinstance(code, EngineErrorCode):
        return _CODE_TO_KIND[code]
    kind = _NAME_TO_KIND.get(type(exc).__name__)
    if kind is not None:
        return kind
    msg = str(exc).lower()
    for needle, kind in _MESSAGE_TO_KIND:
        if needle in msg:
            return kind
    return ErrorKind.UNKNOWN_ERROR
