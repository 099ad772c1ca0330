"""
Shared dependencies: the text extraction service used by the documents API.
Override get_extraction_service in tests (app.dependency_overrides) to inject a mock engine.
"""
from pdftext.services.text_extraction_service import TextExtractionService, get_text_extraction_service


def get_extraction_service() -> TextExtractionService:
    """Service built from settings; notifications go to the log (no display surface on the API)."""
    return get_text_extraction_service()
