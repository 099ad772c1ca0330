"""
In-process counters for observability. Process-local; for multi-worker use external metrics (e.g. Prometheus).
"""
import threading

# Classified extraction failures, keyed by error kind value (e.g. "invalid_document").
extraction_failures_total: dict[str, int] = {}
# Document handles whose release raised (logged, never surfaced to callers).
release_failures_total: int = 0
# Stage timeouts (read, open, or per-page).
extraction_timeouts_total: int = 0
_lock = threading.Lock()


def increment_extraction_failures_total(kind: str) -> int:
    """Increment the failure counter for one error kind; return new value. Thread-safe."""
    with _lock:
        extraction_failures_total[kind] = extraction_failures_total.get(kind, 0) + 1
        return extraction_failures_total[kind]


def increment_release_failures_total() -> int:
    """Increment release_failures_total; return new value. Thread-safe."""
    global release_failures_total
    with _lock:
        release_failures_total += 1
        return release_failures_total


def increment_extraction_timeouts_total() -> int:
    """Increment extraction_timeouts_total; return new value. Thread-safe."""
    global extraction_timeouts_total
    with _lock:
        extraction_timeouts_total += 1
        return extraction_timeouts_total


def snapshot() -> dict:
    """Copy of all counters (for /health and tests)."""
    with _lock:
        return {
            "extraction_failures_total": dict(extraction_failures_total),
            "release_failures_total": release_failures_total,
            "extraction_timeouts_total": extraction_timeouts_total,
        }
