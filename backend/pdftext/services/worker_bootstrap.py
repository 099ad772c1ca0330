"""
Worker bootstrap: point the PDF engine at its background worker before any parse attempt.
"""
import logging

from pdftext.engines.base import PdfEngine

logger = logging.getLogger(__name__)


def ensure_worker_configured(engine: PdfEngine | None, worker_src: str) -> bool:
    """
    Set engine.worker_options.worker_src and return True. Idempotent: repeat calls re-set the same value.
    Returns False with no side effect if the engine or its worker configuration surface is missing.
    """
    if engine is None:
        logger.error("PDF engine is not loaded.")
        return False
    options = getattr(engine, "worker_options", None)
    if options is None or not hasattr(options, "worker_src"):
        logger.error("PDF engine %s exposes no worker options. Cannot set worker source.", getattr(engine, "name", engine))
        return False
    options.worker_src = worker_src
    return True
