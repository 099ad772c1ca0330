"""
Mock engine: scripted pages and failures, no PDF library needed.
Used by tests and by PDF_ENGINE=mock for local development. Records every call.
"""
import asyncio
import logging
from dataclasses import dataclass, field

from pdftext.engines.base import TextContent, WorkerOptions, log_worker_source

logger = logging.getLogger(__name__)

WORKER_OPTIONS = WorkerOptions()

# Pages returned when PDF_ENGINE=mock and no script is given.
DEFAULT_PAGES: list[list[str]] = [["[Mock]", "page", "one"], ["[Mock]", "page", "two"]]


@dataclass
class MockDocument:
    page_count: int
    released: int = 0


@dataclass
class MockPage:
    index: int  # 1-based
    runs: list[str] = field(default_factory=list)


class MockPdfEngine:
    """
    pages: text runs per page (page 1 first).
    open_error: raised by open_document instead of returning a handle.
    page_errors: {page_index: exception} raised by get_page for that page.
    text_errors: {page_index: exception} raised by get_page_text for that page.
    page_delays: {page_index: seconds} awaited inside get_page (to shuffle completion order).
    open_delay: seconds awaited inside open_document.
    release_error: raised by release (after the release is recorded).
    """

    name = "mock"

    def __init__(
        self,
        pages: list[list[str]] | None = None,
        *,
        open_error: BaseException | None = None,
        page_errors: dict[int, BaseException] | None = None,
        text_errors: dict[int, BaseException] | None = None,
        page_delays: dict[int, float] | None = None,
        open_delay: float = 0.0,
        release_error: BaseException | None = None,
        worker_options: WorkerOptions | None = None,
    ):
        self.pages = DEFAULT_PAGES if pages is None else pages
        self.open_error = open_error
        self.page_errors = page_errors or {}
        self.text_errors = text_errors or {}
        self.page_delays = page_delays or {}
        self.open_delay = open_delay
        self.release_error = release_error
        self.worker_options = worker_options if worker_options is not None else WorkerOptions()
        self.opened: list[bytes] = []
        self.page_calls: list[int] = []
        self.completed_pages: list[int] = []
        self.released: list[MockDocument] = []

    async def open_document(self, data: bytes) -> MockDocument:
        log_worker_source(self)
        self.opened.append(data)
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if self.open_error is not None:
            raise self.open_error
        return MockDocument(page_count=len(self.pages))

    async def get_page(self, handle: MockDocument, index: int) -> MockPage:
        self.page_calls.append(index)
        delay = self.page_delays.get(index)
        if delay:
            await asyncio.sleep(delay)
        if index in self.page_errors:
            raise self.page_errors[index]
        return MockPage(index=index, runs=list(self.pages[index - 1]))

    async def get_page_text(self, page: MockPage) -> TextContent:
        await asyncio.sleep(0)
        if page.index in self.text_errors:
            raise self.text_errors[page.index]
        self.completed_pages.append(page.index)
        return TextContent(runs=page.runs)

    async def release(self, handle: MockDocument) -> None:
        handle.released += 1
        self.released.append(handle)
        if self.release_error is not None:
            raise self.release_error


def get_pdf_engine() -> MockPdfEngine:
    logger.warning("PDF_ENGINE=mock: extraction returns scripted placeholder pages.")
    return MockPdfEngine(worker_options=WORKER_OPTIONS)
