from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Sequence, TypeVar
from uuid import uuid4

from psycopg import Connection

from ..db import Db
from ..domain import CreatedOrder, CustomerPolicy, ReplacedItems
from ..errors import NotFoundError, Outcome, TransactionError, ValidationError
from ..pricing import ZERO, line_amount, parse_date, to_amount
from ..repositories.customer_repo import CustomerRepository
from ..repositories.order_item_repo import OrderItemRepository
from ..repositories.order_repo import OrderRepository

log = logging.getLogger(__name__)

T = TypeVar("T")


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def _optional_date(data: Mapping[str, Any], key: str) -> Optional[date]:
    raw = data.get(key)
    if raw is None or raw == "":
        return None
    d = parse_date(raw)
    if d is None:
        raise ValidationError(f"Invalid date for {key}: {raw!r}")
    return d


@dataclass(frozen=True)
class CustomerInput:
    name: str
    phone: str
    address: str
    alt_phone: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CustomerInput":
        return cls(
            name=_text(data.get("name")),
            phone=_text(data.get("phone")),
            address=_text(data.get("address")),
            alt_phone=_text(data.get("alt_phone")) or None,
        )


@dataclass(frozen=True)
class OrderDates:
    order_date: Optional[date] = None
    rent_start: Optional[date] = None
    rent_end: Optional[date] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OrderDates":
        return cls(
            order_date=_optional_date(data, "order_date"),
            rent_start=_optional_date(data, "rent_start"),
            rent_end=_optional_date(data, "rent_end"),
        )


@dataclass(frozen=True)
class ItemInput:
    product: str
    price: Decimal
    quantity: Decimal

    @property
    def line_total(self) -> Decimal:
        return line_amount(self.price, self.quantity)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ItemInput":
        return cls(
            product=_text(data.get("product")),
            price=to_amount(data.get("price")),
            quantity=to_amount(data.get("quantity")),
        )


def items_from_payload(raw: Any) -> list[ItemInput]:
    if not isinstance(raw, (list, tuple)):
        return []
    items = []
    for i, it in enumerate(raw, start=1):
        if not isinstance(it, Mapping):
            raise ValidationError(f"Item {i} must be an object")
        items.append(ItemInput.from_mapping(it))
    return items


def _validate_items(items: Sequence[ItemInput]) -> None:
    if not items:
        raise ValidationError("No product items found")
    for i, it in enumerate(items, start=1):
        if not it.product.strip():
            raise ValidationError(f"Item {i} has no product")


class OrderService:
    """Atomic order writes: create with items, and full replacement of items.

    Every public operation runs inside one ``Db.transaction()`` and returns an
    ``Outcome`` instead of raising.
    """

    def __init__(
        self,
        db: Db,
        *,
        customer_repo: CustomerRepository,
        order_repo: OrderRepository,
        item_repo: OrderItemRepository,
        today: Callable[[], date] = date.today,
        new_invoice_no: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self.db = db
        self.customer_repo = customer_repo
        self.order_repo = order_repo
        self.item_repo = item_repo
        self.today = today
        self.new_invoice_no = new_invoice_no

    def _run(self, operation: str, fn: Callable[[], T]) -> Outcome[T]:
        try:
            return Outcome.success(fn())
        except (ValidationError, NotFoundError) as e:
            log.info("%s rejected: %s", operation, e)
            return Outcome.failure(e)
        except Exception as e:
            log.exception("%s failed", operation)
            return Outcome.failure(TransactionError(str(e) or "Server error"))

    def create_order(
        self,
        customer: CustomerInput,
        dates: OrderDates,
        items: Sequence[ItemInput],
        *,
        policy: CustomerPolicy = CustomerPolicy.ALWAYS_INSERT,
    ) -> Outcome[CreatedOrder]:
        return self._run(
            f"create_order[{policy.value}]",
            lambda: self._create_order(customer, dates, items, policy),
        )

    def _create_order(
        self,
        customer: CustomerInput,
        dates: OrderDates,
        items: Sequence[ItemInput],
        policy: CustomerPolicy,
    ) -> CreatedOrder:
        if not (customer.name and customer.phone and customer.address):
            raise ValidationError("Missing required fields (name, phone, address)")
        _validate_items(items)

        with self.db.transaction() as conn:
            customer_id = self._resolve_customer(conn, customer, policy)
            invoice_no = self.new_invoice_no()
            order_id = self.order_repo.create(
                conn,
                invoice_no=invoice_no,
                customer_id=customer_id,
                order_date=dates.order_date or self.today(),
                rent_start=dates.rent_start,
                rent_end=dates.rent_end,
                total=ZERO,
            )
            total = self._insert_items(conn, order_id, items)
            self.order_repo.set_total(conn, order_id=order_id, total=total)

        log.info("created order #%s (%s) for customer #%s total=%s", order_id, invoice_no, customer_id, total)
        return CreatedOrder(customer_id=customer_id, order_id=order_id, invoice_no=invoice_no, total=total)

    def _resolve_customer(self, conn: Connection, customer: CustomerInput, policy: CustomerPolicy) -> int:
        if policy is CustomerPolicy.FIND_OR_CREATE_BY_PHONE:
            existing = self.customer_repo.find_id_by_phone(conn, customer.phone)
            if existing is not None:
                self.customer_repo.update_contact(
                    conn,
                    customer_id=existing,
                    name=customer.name,
                    alt_phone=customer.alt_phone,
                    address=customer.address,
                )
                return existing

        return self.customer_repo.create(
            conn,
            name=customer.name,
            phone=customer.phone,
            alt_phone=customer.alt_phone,
            address=customer.address,
            rent_status="ACTIVE",
        )

    def _insert_items(self, conn: Connection, order_id: int, items: Sequence[ItemInput]) -> Decimal:
        total = ZERO
        for it in items:
            line = it.line_total
            self.item_repo.add(
                conn,
                order_id=order_id,
                product=it.product.strip(),
                price=it.price,
                quantity=it.quantity,
                line_total=line,
            )
            total += line
        return total

    def replace_order_items(
        self,
        order_id: Optional[int],
        items: Sequence[ItemInput],
        dates: Optional[OrderDates] = None,
    ) -> Outcome[ReplacedItems]:
        return self._run("replace_order_items", lambda: self._replace_order_items(order_id, items, dates))

    def _replace_order_items(
        self,
        order_id: Optional[int],
        items: Sequence[ItemInput],
        dates: Optional[OrderDates],
    ) -> ReplacedItems:
        if not order_id:
            raise ValidationError("Missing orderId")
        if not items:
            raise ValidationError("No items provided")
        _validate_items(items)
        dates = dates or OrderDates()

        with self.db.transaction() as conn:
            if not self.order_repo.exists(conn, order_id):
                raise NotFoundError("Order not found")

            removed = self.item_repo.delete_for_order(conn, order_id)
            total = self._insert_items(conn, order_id, items)
            self.order_repo.set_total_and_dates(
                conn,
                order_id=order_id,
                total=total,
                order_date=dates.order_date,
                rent_start=dates.rent_start,
                rent_end=dates.rent_end,
            )

        log.info("replaced %d item(s) of order #%s with %d, total=%s", removed, order_id, len(items), total)
        return ReplacedItems(order_id=order_id, total=total)
