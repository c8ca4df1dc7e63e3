"""PDF output for the invoice layout.

reportlab's canvas keeps every finished page until ``save()``, so pages are
written here as they are closed: each page becomes a content stream and a
page object handed straight to the sink. Only object offsets and page ids
stay in memory until the cross-reference table goes out at the end.
"""
from __future__ import annotations

import os
import zlib
from pathlib import Path
from typing import BinaryIO, Callable

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.pdfbase.pdfmetrics import stringWidth

from ..config import InvoiceConfig
from ..domain import InvoiceView
from .layout import BLACK, InvoiceLayoutEngine, LayoutResult

PAGE_SIZES = {"A4": A4, "LETTER": LETTER}

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
# baseline sits this fraction of the font size below the top of the text
ASCENT = 0.8

CATALOG_ID = 1
PAGES_ID = 2
FONT_ID = 3
FONT_BOLD_ID = 4
INFO_ID = 5


def _num(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def _pdf_string(value: str) -> bytes:
    raw = value.encode("cp1252", errors="replace")
    return b"(" + raw.replace(b"\\", b"\\\\").replace(b"(", b"\\(").replace(b")", b"\\)") + b")"


def _rgb(color: str) -> str:
    c = HexColor(color)
    return f"{_num(c.red)} {_num(c.green)} {_num(c.blue)}"


class PdfWriter:
    """Incremental PDF 1.4 file writer.

    The header goes out with the first page, so a failure while the first
    page is being laid out leaves the sink untouched.
    """

    def __init__(self, sink: BinaryIO, *, compress: bool = True) -> None:
        self.sink = sink
        self.compress = compress
        self.position = 0
        self.offsets: dict[int, int] = {}
        self.page_ids: list[int] = []
        self._next_id = INFO_ID + 1
        self._started = False

    def _write(self, data: bytes) -> None:
        self.sink.write(data)
        self.position += len(data)

    def _alloc(self) -> int:
        obj_id = self._next_id
        self._next_id += 1
        return obj_id

    def _object(self, obj_id: int, body: bytes) -> None:
        self.offsets[obj_id] = self.position
        self._write(b"%d 0 obj\n" % obj_id + body + b"\nendobj\n")

    def _start(self) -> None:
        if not self._started:
            self._started = True
            self._write(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n")

    def add_page(self, content: bytes, width: float, height: float) -> None:
        self._start()
        data = zlib.compress(content) if self.compress else content
        flate = b" /Filter /FlateDecode" if self.compress else b""
        content_id, page_id = self._alloc(), self._alloc()

        self._object(content_id, b"<< /Length %d%s >>\nstream\n" % (len(data), flate) + data + b"\nendstream")
        self._object(
            page_id,
            (
                f"<< /Type /Page /Parent {PAGES_ID} 0 R /MediaBox [0 0 {_num(width)} {_num(height)}] "
                f"/Resources << /Font << /F1 {FONT_ID} 0 R /F2 {FONT_BOLD_ID} 0 R >> >> "
                f"/Contents {content_id} 0 R >>"
            ).encode("ascii"),
        )
        self.page_ids.append(page_id)
        self.sink.flush()

    def close(self, title: str | None = None) -> None:
        self._start()
        for obj_id, name in ((FONT_ID, FONT), (FONT_BOLD_ID, FONT_BOLD)):
            self._object(
                obj_id,
                f"<< /Type /Font /Subtype /Type1 /BaseFont /{name} /Encoding /WinAnsiEncoding >>".encode("ascii"),
            )
        kids = " ".join(f"{pid} 0 R" for pid in self.page_ids)
        self._object(PAGES_ID, f"<< /Type /Pages /Kids [{kids}] /Count {len(self.page_ids)} >>".encode("ascii"))
        self._object(CATALOG_ID, f"<< /Type /Catalog /Pages {PAGES_ID} 0 R >>".encode("ascii"))
        info = b"<< /Producer " + _pdf_string("rentaldesk")
        if title:
            info += b" /Title " + _pdf_string(title)
        self._object(INFO_ID, info + b" >>")

        xref_at = self.position
        size = self._next_id
        lines = [b"xref\n0 %d\n" % size, b"0000000000 65535 f \n"]
        lines += [b"%010d 00000 n \n" % self.offsets[i] for i in range(1, size)]
        self._write(b"".join(lines))
        self._write(
            b"trailer\n<< /Size %d /Root %d 0 R /Info %d 0 R >>\nstartxref\n%d\n%%%%EOF\n"
            % (size, CATALOG_ID, INFO_ID, xref_at)
        )
        self.sink.flush()


class PdfSurface:
    """Draws layout operations as PDF page content, one page in memory at a time.

    The layout speaks top-left coordinates; PDF's origin is bottom-left.
    """

    def __init__(self, sink: BinaryIO, *, page_size: str = "A4", title: str | None = None) -> None:
        self.page_width, self.page_height = PAGE_SIZES[page_size.upper()]
        self.writer = PdfWriter(sink)
        self.title = title
        self._ops: list[str] = []

    def _y(self, y: float) -> float:
        return self.page_height - y

    def _flush_page(self) -> None:
        content = "\n".join(self._ops).encode("latin-1")
        self._ops = []
        self.writer.add_page(content, self.page_width, self.page_height)

    def new_page(self) -> None:
        self._flush_page()

    def text(
        self,
        x: float,
        y: float,
        value: str,
        *,
        size: float,
        color: str = BLACK,
        bold: bool = False,
        center: bool = False,
    ) -> None:
        font = FONT_BOLD if bold else FONT
        if center:
            x = (self.page_width - stringWidth(value, font, size)) / 2
        baseline = self._y(y) - size * ASCENT
        text = _pdf_string(value).decode("latin-1")
        self._ops.append(
            f"BT /{'F2' if bold else 'F1'} {_num(size)} Tf {_rgb(color)} rg "
            f"{_num(x)} {_num(baseline)} Td {text} Tj ET"
        )

    def rule(self, x1: float, x2: float, y: float, *, color: str, width: float = 1.0) -> None:
        y = _num(self._y(y))
        self._ops.append(f"{_rgb(color)} RG {_num(width)} w {_num(x1)} {y} m {_num(x2)} {y} l S")

    def box(self, x: float, y: float, width: float, height: float, *, color: str) -> None:
        self._ops.append(
            f"{_rgb(color)} RG 1 w {_num(x)} {_num(self._y(y + height))} {_num(width)} {_num(height)} re S"
        )

    def finish(self) -> None:
        self._flush_page()
        self.writer.close(self.title)


def invoice_filename(view: InvoiceView) -> str:
    return f"invoice-{view.order.invoice_no or view.order.id}.pdf"


def write_invoice_pdf(view: InvoiceView, sink: BinaryIO, settings: InvoiceConfig | None = None) -> LayoutResult:
    settings = settings or InvoiceConfig()
    surface = PdfSurface(sink, page_size=settings.page_size, title=invoice_filename(view))
    return InvoiceLayoutEngine(surface, settings).render(view)


def save_invoice_pdf(
    view: InvoiceView,
    path: Path,
    settings: InvoiceConfig | None = None,
    *,
    renderer: Callable[[InvoiceView, BinaryIO, InvoiceConfig | None], LayoutResult] = write_invoice_pdf,
) -> LayoutResult:
    """Render to ``path`` through a temporary sibling; nothing is left behind on failure."""
    tmp = path.with_name(path.name + ".part")
    try:
        with tmp.open("wb") as f:
            result = renderer(view, f, settings)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return result
