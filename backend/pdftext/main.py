"""
FastAPI application entrypoint.
Run with: uvicorn pdftext.main:app --reload --port 8000 (from backend/)

  - Documents: POST /documents/extract-text (multipart "file", PDF only)
  - Health:    GET /health

Engine: PDF_ENGINE=pymupdf (default) | pypdf2 | mock. Worker source: PDF_WORKER_SRC.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from pdftext import metrics
from pdftext.api.documents import router as documents_router
from pdftext.config import settings
from pdftext.engines import get_pdf_engine
from pdftext.schemas.extraction import HealthResponse
from pdftext.services.worker_bootstrap import ensure_worker_configured

app = FastAPI(
    title="PDF Text Extraction API",
    description="Upload a PDF, get the text of every page back in page order.",
    version="0.1.0",
)

_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents_router)


@app.on_event("startup")
def startup():
    """Configure logging and point the engine at its worker. Requests re-check, so a missing engine is not fatal."""
    logging.basicConfig(
        level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    _log = logging.getLogger("pdftext.main")
    engine = get_pdf_engine(settings.pdf_engine)
    if ensure_worker_configured(engine, settings.pdf_worker_src):
        _log.info("PDF engine %s ready (worker_src=%s).", settings.pdf_engine, settings.pdf_worker_src)
    else:
        _log.warning(
            "PDF engine %s unavailable. Extraction requests will fail with engine_unavailable "
            "until it is installed (pip install pymupdf).",
            settings.pdf_engine,
        )


@app.get("/", response_class=HTMLResponse)
def root():
    """Root: minimal page with links to API docs."""
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>PDF Text Extraction API</title></head>
    <body style="font-family: system-ui; max-width: 600px; margin: 2rem auto; padding: 1rem;">
    <h1>PDF Text Extraction API</h1>
    <p>POST a PDF as multipart field <code>file</code> to <code>/documents/extract-text</code>.</p>
    <ul>
    <li><a href="/docs">OpenAPI docs (Swagger)</a></li>
    <li><a href="/redoc">ReDoc</a></li>
    <li>Health: <a href="/health">/health</a></li>
    </ul>
    </body>
    </html>
    """


@app.get("/health", response_model=HealthResponse)
def health():
    """Health check (JSON): engine availability, configured worker source, counters."""
    engine = get_pdf_engine(settings.pdf_engine)
    options = getattr(engine, "worker_options", None)
    return HealthResponse(
        status="ok" if engine is not None else "degraded",
        engine=settings.pdf_engine,
        engine_available=engine is not None,
        worker_src=getattr(options, "worker_src", None),
        metrics=metrics.snapshot(),
    )
