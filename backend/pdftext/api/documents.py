"""
Documents API: upload a PDF and get its text back. Extraction runs inline on the event loop;
blocking engine work runs on the document's worker thread.
"""
import logging
import time

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from pdftext.api.deps import get_extraction_service
from pdftext.schemas.extraction import ExtractionErrorDetail, ExtractionErrorResponse, ExtractTextResponse
from pdftext.services.extraction_errors import ErrorKind, ExtractionError
from pdftext.services.text_extraction_service import TextExtractionService

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.FILE_READ_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PASSWORD_PROTECTED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_DOCUMENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.DOCUMENT_UNREADABLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.PAGE_EXTRACTION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.ENGINE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.UNKNOWN_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ERROR_RESPONSES: dict[int | str, dict] = {
    code: {"model": ExtractionErrorResponse} for code in sorted(set(ERROR_STATUS.values()))
}


def _word_count(s: str) -> int:
    return len(s.split()) if s else 0


@router.post("/extract-text", response_model=ExtractTextResponse, responses=ERROR_RESPONSES)
async def extract_pdf_text(
    file: UploadFile = File(...),
    service: TextExtractionService = Depends(get_extraction_service),
):
    """Upload a PDF; return the text of all pages joined by blank lines. Fails whole on any page error."""
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be a PDF")
    started = time.monotonic()
    try:
        result = await service.extract(file)
    except ExtractionError as e:
        raise HTTPException(
            status_code=ERROR_STATUS.get(e.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail=ExtractionErrorDetail(error=e.kind.value, message=e.message).model_dump(),
        ) from e
    finally:
        await file.close()
    text = result.text
    return ExtractTextResponse(
        filename=result.filename,
        page_count=result.page_count,
        extracted_text=text,
        character_count=len(text),
        word_count=_word_count(text),
        elapsed_time=round(time.monotonic() - started, 3),
    )
