"""
Unit tests for the text extraction pipeline with the mock engine: page order, zero pages, invalid input,
engine unavailable, open-failure classification, page failures, release guarantees, timeouts, cancellation.
"""
import asyncio
import io
import time

import pytest
from starlette.datastructures import UploadFile

from pdftext import metrics
from pdftext.engines.base import EngineError, EngineErrorCode
from pdftext.engines.mock_impl import MockPdfEngine
from pdftext.services.extraction_errors import USER_MESSAGES, ErrorKind, ExtractionError
from pdftext.services.text_extraction_service import TextExtractionService

PDF_BYTES = b"%PDF-1.4 mock document"
WORKER_SRC = "https://cdn.example.com/pdf.worker/1.0.0/pdf.worker.min.js"


class Recorder:
    """Notifier that keeps every (message, is_error) call."""

    def __init__(self):
        self.messages: list[tuple[str, bool]] = []

    def __call__(self, message: str, is_error: bool) -> None:
        self.messages.append((message, is_error))


class TrackingBytesIO(io.BytesIO):
    def __init__(self, data: bytes = b""):
        super().__init__(data)
        self.reads = 0

    def read(self, *args):
        self.reads += 1
        return super().read(*args)


def _upload(data: bytes = PDF_BYTES, filename: str = "doc.pdf") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=filename)


def _service(engine, **kwargs) -> tuple[TextExtractionService, Recorder]:
    notes = Recorder()
    return TextExtractionService(engine, worker_src=WORKER_SRC, notify=notes, **kwargs), notes


def _rejected(service: TextExtractionService, file) -> ExtractionError:
    with pytest.raises(ExtractionError) as exc_info:
        asyncio.run(service.extract_text(file))
    return exc_info.value


def test_three_pages_joined_in_page_order():
    engine = MockPdfEngine([["Hello", "World"], ["Foo"], ["Bar", "Baz"]])
    service, notes = _service(engine)
    text = asyncio.run(service.extract_text(_upload()))
    assert text == "Hello World\n\nFoo\n\nBar Baz"
    assert engine.opened == [PDF_BYTES]
    assert len(engine.released) == 1
    assert engine.released[0].released == 1
    assert notes.messages == []


def test_order_independent_of_completion_order():
    engine = MockPdfEngine(
        [["first"], ["second"], ["third"]],
        page_delays={1: 0.05, 2: 0.02},
    )
    service, _ = _service(engine)
    text = asyncio.run(service.extract_text(_upload()))
    assert engine.completed_pages == [3, 2, 1]
    assert text == "first\n\nsecond\n\nthird"


def test_sequential_fetch_with_concurrency_one():
    engine = MockPdfEngine(
        [["first"], ["second"], ["third"]],
        page_delays={1: 0.03, 2: 0.01},
    )
    service, _ = _service(engine, max_concurrent_pages=1)
    text = asyncio.run(service.extract_text(_upload()))
    assert engine.completed_pages == [1, 2, 3]
    assert text == "first\n\nsecond\n\nthird"


def test_zero_pages_returns_empty_and_releases():
    engine = MockPdfEngine([])
    service, notes = _service(engine)
    result = asyncio.run(service.extract(_upload()))
    assert result.text == ""
    assert result.page_count == 0
    assert engine.page_calls == []
    assert len(engine.released) == 1
    assert notes.messages == []


def test_empty_runs_give_empty_fragment():
    engine = MockPdfEngine([["a"], [], ["c"]])
    service, _ = _service(engine)
    assert asyncio.run(service.extract_text(_upload())) == "a\n\n\n\nc"


def test_result_carries_page_count_and_filename():
    engine = MockPdfEngine([["x"], ["y"]])
    service, _ = _service(engine)
    result = asyncio.run(service.extract(_upload(filename="report.pdf")))
    assert result.page_count == 2
    assert result.filename == "report.pdf"


def test_binary_file_object_is_accepted(tmp_path):
    path = tmp_path / "local.pdf"
    path.write_bytes(PDF_BYTES)
    engine = MockPdfEngine([["local"]])
    service, _ = _service(engine)
    with path.open("rb") as f:
        result = asyncio.run(service.extract(f))
    assert result.text == "local"
    assert result.filename.endswith("local.pdf")
    assert engine.opened == [PDF_BYTES]


@pytest.mark.parametrize(
    "bad_input",
    [None, "doc.pdf", PDF_BYTES, io.StringIO("not binary"), 42, {"name": "doc.pdf"}],
)
def test_invalid_input_rejected_without_io(bad_input):
    engine = MockPdfEngine([["never"]])
    service, notes = _service(engine)
    err = _rejected(service, bad_input)
    assert err.kind is ErrorKind.INVALID_INPUT
    assert engine.opened == []
    assert engine.released == []
    assert engine.worker_options.worker_src is None
    assert notes.messages == [(err.message, True)]


def test_missing_input_message():
    service, _ = _service(MockPdfEngine())
    err = _rejected(service, None)
    assert err.message == "No file provided for PDF extraction."


def test_engine_unavailable_before_read():
    f = TrackingBytesIO(PDF_BYTES)
    service, notes = _service(None)
    err = _rejected(service, UploadFile(file=f, filename="doc.pdf"))
    assert err.kind is ErrorKind.ENGINE_UNAVAILABLE
    assert err.message == USER_MESSAGES[ErrorKind.ENGINE_UNAVAILABLE]
    assert f.reads == 0
    assert notes.messages == [(err.message, True)]


def test_engine_without_worker_options_is_unavailable():
    engine = MockPdfEngine([["x"]])
    engine.worker_options = None
    f = TrackingBytesIO(PDF_BYTES)
    service, _ = _service(engine)
    err = _rejected(service, f)
    assert err.kind is ErrorKind.ENGINE_UNAVAILABLE
    assert f.reads == 0
    assert engine.opened == []


def test_worker_source_configured_before_open():
    engine = MockPdfEngine([["x"]])
    service, _ = _service(engine)
    asyncio.run(service.extract_text(_upload()))
    assert engine.worker_options.worker_src == WORKER_SRC


def test_file_read_error_no_open_no_release():
    f = io.BytesIO(PDF_BYTES)
    f.close()
    engine = MockPdfEngine([["x"]])
    service, notes = _service(engine)
    err = _rejected(service, UploadFile(file=f, filename="doc.pdf"))
    assert err.kind is ErrorKind.FILE_READ_ERROR
    assert engine.opened == []
    assert engine.released == []
    assert notes.messages == [(USER_MESSAGES[ErrorKind.FILE_READ_ERROR], True)]


def test_closed_binary_file_is_read_error():
    f = io.BytesIO(PDF_BYTES)
    f.close()
    service, _ = _service(MockPdfEngine([["x"]]))
    assert _rejected(service, f).kind is ErrorKind.FILE_READ_ERROR


@pytest.mark.parametrize(
    "code, kind",
    [
        (EngineErrorCode.PASSWORD_REQUIRED, ErrorKind.PASSWORD_PROTECTED),
        (EngineErrorCode.INVALID_PDF, ErrorKind.INVALID_DOCUMENT),
        (EngineErrorCode.MISSING_PDF, ErrorKind.DOCUMENT_UNREADABLE),
        (EngineErrorCode.UNKNOWN, ErrorKind.UNKNOWN_ERROR),
    ],
)
def test_open_failure_classified_and_not_released(code, kind):
    engine = MockPdfEngine([["x"]], open_error=EngineError(code, "engine says no"))
    service, notes = _service(engine)
    err = _rejected(service, _upload())
    assert err.kind is kind
    assert err.message == USER_MESSAGES[kind]
    assert engine.released == []
    assert engine.page_calls == []
    assert notes.messages == [(USER_MESSAGES[kind], True)]


def test_open_failure_unstructured_errors():
    class PasswordException(Exception):
        pass

    cases = [
        (PasswordException("locked"), ErrorKind.PASSWORD_PROTECTED),
        (RuntimeError("Invalid PDF structure."), ErrorKind.INVALID_DOCUMENT),
        (RuntimeError("Missing PDF file."), ErrorKind.DOCUMENT_UNREADABLE),
        (RuntimeError("worker crashed"), ErrorKind.UNKNOWN_ERROR),
    ]
    for exc, kind in cases:
        engine = MockPdfEngine([["x"]], open_error=exc)
        service, _ = _service(engine)
        assert _rejected(service, _upload()).kind is kind
        assert engine.released == []


def test_injected_classifier_is_used():
    engine = MockPdfEngine([["x"]], open_error=RuntimeError("anything"))
    service, _ = _service(engine, classifier=lambda exc: ErrorKind.DOCUMENT_UNREADABLE)
    assert _rejected(service, _upload()).kind is ErrorKind.DOCUMENT_UNREADABLE


def test_page_failure_rejects_whole_call_and_releases():
    engine = MockPdfEngine(
        [["one"], ["two"], ["three"]],
        page_errors={2: RuntimeError("bad font program")},
    )
    service, notes = _service(engine)
    err = _rejected(service, _upload())
    assert err.kind is ErrorKind.PAGE_EXTRACTION_ERROR
    assert err.detail["failed_pages"] == [2]
    assert err.detail["extracted_pages"] == 2
    assert err.detail["page_count"] == 3
    assert "2 of 3" in err.message
    assert len(engine.released) == 1
    assert engine.released[0].released == 1
    assert len(notes.messages) == 1 and notes.messages[0][1] is True


def test_first_page_failure_cancels_remaining_fetches():
    engine = MockPdfEngine(
        [["one"], ["slow"], ["slow"]],
        page_errors={1: RuntimeError("broken page")},
        page_delays={2: 5.0, 3: 5.0},
    )
    service, _ = _service(engine)
    started = time.monotonic()
    err = _rejected(service, _upload())
    assert time.monotonic() - started < 2.0
    assert err.kind is ErrorKind.PAGE_EXTRACTION_ERROR
    assert err.detail["failed_pages"] == [1]
    assert err.detail["cancelled_pages"] == [2, 3]
    assert err.detail["extracted_pages"] == 0
    assert engine.completed_pages == []
    assert len(engine.released) == 1


def test_text_content_failure_is_page_error():
    engine = MockPdfEngine([["one"], ["two"]], text_errors={1: ValueError("no text layer")})
    service, _ = _service(engine)
    err = _rejected(service, _upload())
    assert err.kind is ErrorKind.PAGE_EXTRACTION_ERROR
    assert err.detail["failed_pages"] == [1]
    assert len(engine.released) == 1


def test_release_failure_does_not_fail_success():
    before = metrics.snapshot()["release_failures_total"]
    engine = MockPdfEngine([["ok"]], release_error=RuntimeError("destroy failed"))
    service, notes = _service(engine)
    assert asyncio.run(service.extract_text(_upload())) == "ok"
    assert len(engine.released) == 1
    assert metrics.snapshot()["release_failures_total"] == before + 1
    assert notes.messages == []


def test_release_failure_does_not_mask_page_error():
    engine = MockPdfEngine(
        [["one"], ["two"]],
        page_errors={1: RuntimeError("broken page")},
        release_error=RuntimeError("destroy failed"),
    )
    service, notes = _service(engine)
    err = _rejected(service, _upload())
    assert err.kind is ErrorKind.PAGE_EXTRACTION_ERROR
    assert len(engine.released) == 1
    assert len(notes.messages) == 1


def test_page_timeout_is_page_error():
    before = metrics.snapshot()["extraction_timeouts_total"]
    engine = MockPdfEngine([["fast"], ["slow"]], page_delays={2: 5.0})
    service, _ = _service(engine, page_timeout=0.05)
    err = _rejected(service, _upload())
    assert err.kind is ErrorKind.PAGE_EXTRACTION_ERROR
    assert err.detail["timed_out_pages"] == [2]
    assert len(engine.released) == 1
    assert metrics.snapshot()["extraction_timeouts_total"] == before + 1


def test_open_timeout_is_unknown_error_without_release():
    engine = MockPdfEngine([["x"]], open_delay=5.0)
    service, _ = _service(engine, open_timeout=0.05)
    err = _rejected(service, _upload())
    assert err.kind is ErrorKind.UNKNOWN_ERROR
    assert err.detail["stage"] == "open"
    assert engine.released == []


def test_cancellation_during_page_fetch_releases_once():
    engine = MockPdfEngine([["a"], ["b"]], page_delays={2: 10.0})
    service, notes = _service(engine)

    async def scenario():
        task = asyncio.create_task(service.extract_text(_upload()))
        for _ in range(1000):
            if 2 in engine.page_calls:
                break
            await asyncio.sleep(0.001)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert len(engine.released) == 1
    assert engine.released[0].released == 1
    assert notes.messages == []


def test_concurrent_calls_each_release_their_own_handle():
    engine = MockPdfEngine([["p1"], ["p2"]], page_delays={1: 0.01})
    service, _ = _service(engine)

    async def scenario():
        return await asyncio.gather(
            service.extract_text(_upload(b"%PDF-a")),
            service.extract_text(_upload(b"%PDF-b")),
        )

    texts = asyncio.run(scenario())
    assert texts == ["p1\n\np2", "p1\n\np2"]
    assert len(engine.released) == 2
    assert engine.released[0] is not engine.released[1]
    assert all(h.released == 1 for h in engine.released)


def test_success_notification_when_enabled():
    service, notes = _service(MockPdfEngine([["a"], ["b"]]), notify_success=True)
    asyncio.run(service.extract_text(_upload()))
    assert notes.messages == [("Extracted text from 2 page(s).", False)]


def test_failing_notifier_does_not_hide_error():
    def broken_notify(message, is_error):
        raise RuntimeError("display gone")

    service = TextExtractionService(MockPdfEngine(), notify=broken_notify)
    err = _rejected(service, None)
    assert err.kind is ErrorKind.INVALID_INPUT


def test_failure_counted_per_kind():
    before = metrics.snapshot()["extraction_failures_total"].get("invalid_document", 0)
    engine = MockPdfEngine(open_error=EngineError(EngineErrorCode.INVALID_PDF, "bad xref"))
    service, _ = _service(engine)
    _rejected(service, _upload())
    assert metrics.snapshot()["extraction_failures_total"]["invalid_document"] == before + 1


def test_max_concurrent_pages_must_be_positive():
    with pytest.raises(ValueError):
        TextExtractionService(MockPdfEngine(), max_concurrent_pages=0)
