#!/usr/bin/env python3
"""
Extract text from a local PDF with the same pipeline the API uses.
Run from backend: python scripts/extract_pdf_text.py path/to/file.pdf [--engine pypdf2] [--out text.txt]
Exit code 1 on a classified extraction error (kind and message printed to stderr).
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure backend is on path and pdftext can load
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Extract text from a PDF, pages joined by blank lines.")
    p.add_argument("pdf", type=Path, help="PDF file to read.")
    p.add_argument("--engine", choices=["pymupdf", "pypdf2", "mock"], default=None, help="Override PDF_ENGINE.")
    p.add_argument("--out", type=Path, default=None, help="Write text here instead of stdout.")
    p.add_argument("--verbose", action="store_true", help="Debug logging.")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    from pdftext.config import settings
    from pdftext.engines import get_pdf_engine
    from pdftext.services.extraction_errors import ExtractionError
    from pdftext.services.text_extraction_service import TextExtractionService

    def notify(message: str, is_error: bool) -> None:
        print(message, file=sys.stderr if is_error else sys.stdout)

    service = TextExtractionService(
        get_pdf_engine(args.engine or settings.pdf_engine),
        worker_src=settings.pdf_worker_src,
        notify=notify,
        read_timeout=settings.read_timeout_seconds,
        open_timeout=settings.open_timeout_seconds,
        page_timeout=settings.page_timeout_seconds,
        max_concurrent_pages=settings.max_concurrent_pages,
    )
    try:
        f = args.pdf.open("rb")
    except OSError as e:
        print(f"Cannot open {args.pdf}: {e}", file=sys.stderr)
        return 1
    with f:
        try:
            result = asyncio.run(service.extract(f))
        except ExtractionError as e:
            print(f"[{e.kind.value}]", file=sys.stderr)
            return 1
    if args.out:
        args.out.write_text(result.text, encoding="utf-8")
        print(f"Wrote {len(result.text)} chars from {result.page_count} page(s) to {args.out}")
    else:
        print(result.text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
