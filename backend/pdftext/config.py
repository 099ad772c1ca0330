"""
Application configuration from environment variables.
Loads .env from the backend directory so settings are found regardless of cwd.
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Versioned location of the PDF engine's background worker script.
DEFAULT_PDF_WORKER_SRC = "https://cdnjs.cloudflare.com/ajax/libs/pdf.js/3.9.179/pdf.worker.min.js"

_SUPPORTED_ENGINES = frozenset({"pymupdf", "pypdf2", "mock"})

# .env next to backend/ (parent of pdftext/); load explicitly so values are set even when run from repo root
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    from dotenv import load_dotenv
    load_dotenv(_ENV_FILE, override=False)
else:
    # Fallback: try backend/.env relative to cwd (e.g. when running from repo root)
    import os
    _cwd_env = Path(os.getcwd()) / "backend" / ".env"
    if _cwd_env.exists():
        from dotenv import load_dotenv
        load_dotenv(_cwd_env, override=False)


class Settings(BaseSettings):
    """Load and validate config from env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Engine: pymupdf (default), pypdf2, or mock (scripted pages, no PDF library needed).
    pdf_engine: str = "pymupdf"
    pdf_worker_src: str = DEFAULT_PDF_WORKER_SRC

    # Per-stage timeouts in seconds; 0 or unset disables the limit for that stage.
    read_timeout_seconds: float | None = 30.0
    open_timeout_seconds: float | None = 60.0
    # Per page: page fetch + text content fetch.
    page_timeout_seconds: float | None = 30.0
    # Cap on in-flight page fetches for one document.
    max_concurrent_pages: int = 8

    # Notify the messenger on success too (errors are always notified).
    notify_success: bool = False

    log_level: str = "INFO"

    # CORS: comma-separated origins
    cors_origins: str = "http://localhost:3000"

    debug: bool = False

    @field_validator("pdf_engine", mode="before")
    @classmethod
    def _normalize_engine(cls, v: str) -> str:
        s = (v or "pymupdf").strip().lower()
        if s not in _SUPPORTED_ENGINES:
            raise ValueError(f"PDF_ENGINE must be one of {sorted(_SUPPORTED_ENGINES)}, got {v!r}")
        return s

    @field_validator("read_timeout_seconds", "open_timeout_seconds", "page_timeout_seconds", mode="after")
    @classmethod
    def _zero_disables_timeout(cls, v: float | None) -> float | None:
        if v is None or v <= 0:
            return None
        return v

    @field_validator("max_concurrent_pages")
    @classmethod
    def _at_least_one_page(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_CONCURRENT_PAGES must be >= 1")
        return v


settings = Settings()
