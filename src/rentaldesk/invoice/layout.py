"""Invoice page layout.

Coordinates are in points measured from the top-left corner of the page;
the surface implementation converts to whatever its backend uses.
``PageFrame`` owns the cursor and decides page breaks, ``InvoiceLayoutEngine``
decides what goes where and pushes it to a ``Surface``.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from ..config import InvoiceConfig, SummaryMode
from ..domain import InvoiceView, OrderItem
from ..pricing import (
    ZERO,
    days_label,
    format_date,
    format_money,
    format_plain,
    line_amount,
    rendered_line_amount,
    rental_days,
)

TEAL = "#006666"
BLACK = "#000000"
GREY = "#555555"
LIGHT = "#dddddd"

LEFT = 40.0
RIGHT = 550.0
TOP_MARGIN = 40.0
BOTTOM_MARGIN = 60.0

COL_DESCRIPTION = 40.0
COL_PRICE = 260.0
COL_QTY = 350.0
COL_AMOUNT = 450.0

HEADER_LINE_STEP = 25.0
HEADER_LINE_HEIGHT = 14.0
TABLE_GAP = 30.0
COLUMN_HEADER_HEIGHT = 25.0
# space that must be free before a row (field line + breakdown line) is drawn
ROW_THRESHOLD = 50.0
ROW_HEIGHT = 22.0
ROW_GAP = 8.0
SUMMARY_HEIGHT = 100.0
TOTAL_GAP = 30.0
TOTAL_BOX_WIDTH = 200.0
TOTAL_BOX_HEIGHT = 50.0
FOOTER_HEIGHT = 80.0


class Surface(Protocol):
    page_width: float
    page_height: float

    def new_page(self) -> None: ...

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
    ) -> None: ...

    def rule(self, x1: float, x2: float, y: float, *, color: str, width: float = 1.0) -> None: ...

    def box(self, x: float, y: float, width: float, height: float, *, color: str) -> None: ...

    def finish(self) -> None: ...


@dataclass
class PageFrame:
    """Cursor and page-break bookkeeping, independent of any drawing backend."""

    page_height: float
    top_margin: float = TOP_MARGIN
    bottom_margin: float = BOTTOM_MARGIN
    page: int = 1
    cursor_y: float = TOP_MARGIN

    @property
    def limit(self) -> float:
        return self.page_height - self.bottom_margin

    def fits(self, height: float) -> bool:
        return self.cursor_y + height <= self.limit

    def place_block(self, height: float) -> tuple[int, float]:
        """Where a block of ``height`` starts; breaks the page if it would not fit.

        A block taller than a whole page still gets a fresh page rather than
        breaking forever.
        """
        if not self.fits(height) and self.cursor_y > self.top_margin:
            self.page += 1
            self.cursor_y = self.top_margin
        return self.page, self.cursor_y

    def advance(self, dy: float) -> float:
        self.cursor_y += dy
        return self.cursor_y

    def move_to(self, y: float) -> None:
        self.cursor_y = y


@dataclass(frozen=True)
class LayoutResult:
    pages: int
    rows: int
    days: int
    grand_total: Decimal


def rendered_amount(item: OrderItem, days: int) -> Decimal:
    stored = item.line_total or line_amount(item.price, item.quantity)
    return rendered_line_amount(stored, days)


class InvoiceLayoutEngine:
    def __init__(self, surface: Surface, settings: InvoiceConfig | None = None) -> None:
        self.surface = surface
        self.settings = settings or InvoiceConfig()
        self.frame = PageFrame(page_height=surface.page_height)
        self._page = 1
        self._header_page = 0

    def render(self, view: InvoiceView) -> LayoutResult:
        order = view.order
        days = rental_days(order.rent_start, order.rent_end)

        self._draw_document_header(view, days)
        self._draw_column_header()

        grand = ZERO
        per_day = ZERO
        for item in view.items:
            amount = rendered_amount(item, days)
            self._draw_row(item, amount, days)
            grand += amount
            per_day += item.line_total or line_amount(item.price, item.quantity)
            if self.settings.summary_mode is SummaryMode.PER_ITEM:
                self._draw_summary(line_amount(item.price, item.quantity), days, amount)

        if self.settings.summary_mode is SummaryMode.ONCE and view.items:
            self._draw_summary(per_day, days, grand)

        self._draw_total_box(grand)
        self._draw_footer()
        self.surface.finish()
        return LayoutResult(pages=self._page, rows=len(view.items), days=days, grand_total=grand)

    def _reserve(self, height: float) -> float:
        page, y = self.frame.place_block(height)
        if page != self._page:
            self.surface.new_page()
            self._page = page
        return y

    def _draw_document_header(self, view: InvoiceView, days: int) -> None:
        s = self.surface
        order = view.order
        s.text(LEFT, 30, self.settings.contact_line, size=12, color=TEAL)
        s.text(0, 60, self.settings.business_name, size=26, color=TEAL, center=True)
        s.rule(LEFT, RIGHT, 95, color=TEAL, width=2)

        lines = [
            f"DATE: {format_date(order.order_date)}",
            f"CUSTOMER NAME: {view.customer_name}",
            f"PHONE: {view.customer_phone}",
            f"ADDRESS: {view.customer_address}",
            f"RENT: {format_date(order.rent_start)} - {format_date(order.rent_end)} ({days_label(days)})",
        ]
        y = 130.0
        for i, line in enumerate(lines):
            if i:
                y += HEADER_LINE_STEP
            s.text(0, y, line, size=12, center=True)
        self.frame.move_to(y + HEADER_LINE_HEIGHT + TABLE_GAP)

    def _draw_column_header(self) -> None:
        s = self.surface
        y = self.frame.cursor_y
        for x, label in (
            (COL_DESCRIPTION, "DESCRIPTION"),
            (COL_PRICE, "PRICE"),
            (COL_QTY, "QTY"),
            (COL_AMOUNT, "AMOUNT"),
        ):
            s.text(x, y, label, size=11, color=TEAL, bold=True)
        s.rule(LEFT, RIGHT, y + 15, color=TEAL)
        self.frame.advance(COLUMN_HEADER_HEIGHT)
        self._header_page = self._page

    def _draw_row(self, item: OrderItem, amount: Decimal, days: int) -> None:
        s = self.surface
        self._reserve(ROW_THRESHOLD)
        while self._header_page != self._page:
            self._draw_column_header()
            self._reserve(ROW_THRESHOLD)
        y = self.frame.cursor_y

        s.text(COL_DESCRIPTION, y, item.product, size=10)
        s.text(COL_PRICE, y, format_money(item.price), size=10)
        s.text(COL_QTY, y, format_plain(item.quantity), size=10)
        s.text(COL_AMOUNT, y, format_money(amount), size=10)
        s.text(
            COL_AMOUNT,
            y + 10,
            f"({format_plain(item.price)} × {format_plain(item.quantity)} × {days})",
            size=8,
            color=GREY,
        )

        y = self.frame.advance(ROW_HEIGHT)
        s.rule(LEFT, RIGHT, y, color=LIGHT)
        self.frame.advance(ROW_GAP)

    def _draw_summary(self, per_day_total: Decimal, days: int, final_total: Decimal) -> None:
        s = self.surface
        cur = self.settings.currency
        y = self._reserve(SUMMARY_HEIGHT) + 20
        s.text(LEFT, y, "PRICE CALCULATION SUMMARY", size=11, color=TEAL, bold=True)
        y += 18
        s.text(LEFT, y, f"Products Total (Per-day): {cur} {format_money(per_day_total)}", size=10)
        y += 16
        s.text(LEFT, y, f"Number of days: {days}", size=10)
        y += 16
        s.text(LEFT, y, f"Final Total: {cur} {format_money(final_total)}", size=10)
        y += 30
        s.rule(LEFT, RIGHT, y, color=LIGHT)
        self.frame.move_to(y)

    def _draw_total_box(self, grand: Decimal) -> None:
        s = self.surface
        y = self._reserve(TOTAL_GAP + TOTAL_BOX_HEIGHT) + TOTAL_GAP
        x = RIGHT - TOTAL_BOX_WIDTH
        s.box(x, y, TOTAL_BOX_WIDTH, TOTAL_BOX_HEIGHT, color=TEAL)
        s.text(x + 10, y + 8, "TOTAL", size=13, color=TEAL, bold=True)
        s.text(x + 10, y + 28, f"{self.settings.currency} {format_money(grand)}", size=16, color=TEAL, bold=True)
        self.frame.move_to(y + TOTAL_BOX_HEIGHT)

    def _draw_footer(self) -> None:
        s = self.surface
        y = self._reserve(FOOTER_HEIGHT) + 40
        s.text(0, y, self.settings.footer_address, size=10, color=TEAL, center=True)
        y += 24
        s.text(0, y, self.settings.thank_you, size=11, color=TEAL, bold=True, center=True)
        self.frame.move_to(y + HEADER_LINE_HEIGHT)
