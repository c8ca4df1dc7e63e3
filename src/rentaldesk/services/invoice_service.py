from __future__ import annotations

import logging

from ..db import Db
from ..domain import InvoiceView, OrderItem, RentalOrder
from ..errors import NotFoundError, Outcome, ValidationError
from ..pricing import parse_date, to_amount
from ..repositories.order_item_repo import OrderItemRepository
from ..repositories.order_repo import OrderRepository

log = logging.getLogger(__name__)


def _order_from_row(row: dict) -> RentalOrder:
    return RentalOrder(
        id=int(row["id"]),
        invoice_no=str(row.get("invoice_no") or ""),
        customer_id=int(row["customer_id"]),
        order_date=parse_date(row.get("order_date")),
        rent_start=parse_date(row.get("rent_start")),
        rent_end=parse_date(row.get("rent_end")),
        total=to_amount(row.get("total")),
    )


def _item_from_row(row: dict) -> OrderItem:
    return OrderItem(
        id=int(row["id"]),
        order_id=int(row["order_id"]),
        product=str(row.get("product") or ""),
        price=to_amount(row.get("price")),
        quantity=to_amount(row.get("quantity")),
        line_total=to_amount(row.get("line_total")),
    )


class InvoiceService:
    """Collects everything the invoice layout needs for one order."""

    def __init__(self, db: Db, *, order_repo: OrderRepository, item_repo: OrderItemRepository) -> None:
        self.db = db
        self.order_repo = order_repo
        self.item_repo = item_repo

    def assemble(self, order_id: int | None) -> Outcome[InvoiceView]:
        try:
            if not order_id:
                raise ValidationError("Missing orderId")
            with self.db.session() as conn:
                row = self.order_repo.get_with_customer(conn, order_id)
                if row is None:
                    raise NotFoundError("Order not found")
                item_rows = self.item_repo.list_for_order(conn, order_id)
        except (ValidationError, NotFoundError) as e:
            log.info("assemble invoice for order #%s rejected: %s", order_id, e)
            return Outcome.failure(e)
        except Exception as e:
            log.exception("assemble invoice for order #%s failed", order_id)
            return Outcome.failure(e)

        return Outcome.success(
            InvoiceView(
                order=_order_from_row(row),
                customer_name=str(row.get("cname") or ""),
                customer_phone=str(row.get("cphone") or ""),
                customer_address=str(row.get("caddress") or ""),
                items=tuple(_item_from_row(r) for r in item_rows),
            )
        )
