from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional


class CustomerPolicy(str, Enum):
    """How create_order resolves the customer row."""

    ALWAYS_INSERT = "always_insert"
    FIND_OR_CREATE_BY_PHONE = "find_or_create_by_phone"


@dataclass(frozen=True)
class RentalOrder:
    id: int
    invoice_no: str
    customer_id: int
    order_date: Optional[date]
    rent_start: Optional[date]
    rent_end: Optional[date]
    total: Decimal


@dataclass(frozen=True)
class OrderItem:
    id: int
    order_id: int
    product: str
    price: Decimal
    quantity: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class CreatedOrder:
    customer_id: int
    order_id: int
    invoice_no: str
    total: Decimal


@dataclass(frozen=True)
class ReplacedItems:
    order_id: int
    total: Decimal


@dataclass(frozen=True)
class InvoiceView:
    order: RentalOrder
    customer_name: str
    customer_phone: str
    customer_address: str
    items: tuple[OrderItem, ...]
