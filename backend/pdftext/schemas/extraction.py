"""
Text extraction request/response schemas. PDF upload only.
"""
from pydantic import BaseModel


class ExtractTextResponse(BaseModel):
    """Response for POST /documents/extract-text: text of every page, in page order."""
    filename: str | None = None
    page_count: int
    extracted_text: str
    character_count: int = 0
    word_count: int = 0
    elapsed_time: float | None = None  # extraction duration in seconds


class ExtractionErrorDetail(BaseModel):
    """HTTPException detail for a classified extraction failure."""
    error: str  # ErrorKind value, e.g. "password_protected"
    message: str


class ExtractionErrorResponse(BaseModel):
    """Error body of POST /documents/extract-text (FastAPI wraps HTTPException detail)."""
    detail: ExtractionErrorDetail


class HealthResponse(BaseModel):
    status: str
    engine: str
    engine_available: bool
    worker_src: str | None = None
    metrics: dict
