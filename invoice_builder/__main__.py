"""Command line entrypoint: compute totals or export an invoice document as PDF."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import config
from .document import InvoiceDocument, load_invoice_document
from .layout import page_dimensions
from .totals import compute_invoice_totals

logger = logging.getLogger("invoice_builder")


class DependencyError(RuntimeError):
    """Raised when a required runtime dependency is missing."""


def load_renderer():
    try:
        from .rendering import PdfOptions, render_invoice
    except ModuleNotFoundError as exc:
        if exc.name in ("fpdf", "PIL"):
            raise DependencyError(
                f"Missing dependency '{exc.name}'. Install project dependencies with 'pip install -e .'."
            ) from exc
        raise
    return PdfOptions, render_invoice


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="invoice_builder", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    totals = commands.add_parser("totals", help="print invoice totals as JSON")
    totals.add_argument("document", help="invoice JSON document ('-' for stdin)")

    render = commands.add_parser("render", help="render the invoice to a PDF file")
    render.add_argument("document", help="invoice JSON document ('-' for stdin)")
    render.add_argument("-o", "--output", help="output path (default: invoice-<number>.pdf)")
    render.add_argument("--template", choices=("standard", "professional", "minimal"), default="standard")
    render.add_argument("--page-size", choices=("a4", "letter", "legal"), default="a4")
    render.add_argument("--orientation", choices=("portrait", "landscape"), default="portrait")
    render.add_argument("--no-footer", action="store_true", help="omit the page footer")
    render.add_argument("--date-format", default="", help="date pattern such as dd/MM/yyyy (default: Mon DD, YYYY)")
    return parser


def read_document(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read(config.MAX_INPUT_BYTES + 1)
    with open(path, "rb") as handle:
        return handle.read(config.MAX_INPUT_BYTES + 1)


def load(path: str, page_height: float) -> Optional[InvoiceDocument]:
    body = read_document(path)
    if len(body) > config.MAX_INPUT_BYTES:
        print(json.dumps({"error": "payload_too_large", "detail": f"Document exceeds {config.MAX_INPUT_BYTES} bytes."}), file=sys.stderr)
        return None
    document, error = load_invoice_document(body, config.MAX_PAGES, page_height)
    if error is not None:
        print(json.dumps(error), file=sys.stderr)
        return None
    return document


def run_totals(document: InvoiceDocument) -> int:
    totals = compute_invoice_totals(document.invoice.items, document.taxes)
    print(json.dumps(totals.to_dict(), indent=2))
    return 0


def run_render(document: InvoiceDocument, args: argparse.Namespace) -> int:
    PdfOptions, render_invoice = load_renderer()
    options = PdfOptions(
        template=args.template,
        page_size=args.page_size,
        orientation=args.orientation,
        file_name=args.output or "",
        include_footer=not args.no_footer,
        date_format=args.date_format,
    )
    try:
        pdf_bytes = render_invoice(document.invoice, document.taxes, options, document.brand_color)
    except ValueError as exc:
        print(json.dumps({"error": "render_failed", "detail": str(exc)}), file=sys.stderr)
        return 2

    path = options.resolved_file_name(document.invoice)
    with open(path, "wb") as handle:
        handle.write(pdf_bytes)
    logger.info("Wrote %d bytes to %s", len(pdf_bytes), path)
    print(path)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL.upper(), format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)

    page_size = getattr(args, "page_size", "a4")
    orientation = getattr(args, "orientation", "portrait")
    _, page_height = page_dimensions(page_size, orientation)
    try:
        document = load(args.document, page_height)
    except OSError as exc:
        print(json.dumps({"error": "unreadable_document", "detail": str(exc)}), file=sys.stderr)
        return 2
    if document is None:
        return 2

    if args.command == "totals":
        return run_totals(document)
    try:
        return run_render(document, args)
    except DependencyError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
