from __future__ import annotations

import logging

from ..db import Db
from ..errors import NotFoundError, ValidationError
from ..repositories.customer_repo import CustomerRepository
from ..repositories.order_item_repo import OrderItemRepository
from ..repositories.order_repo import OrderRepository

log = logging.getLogger(__name__)


class CustomerService:
    """Lookups, status changes and cascading delete for customers."""

    def __init__(
        self,
        db: Db,
        *,
        customer_repo: CustomerRepository,
        order_repo: OrderRepository,
        item_repo: OrderItemRepository,
    ) -> None:
        self.db = db
        self.customer_repo = customer_repo
        self.order_repo = order_repo
        self.item_repo = item_repo

    def search(self, q: str | None = None, limit: int = 200) -> list[dict]:
        with self.db.session() as conn:
            return self.customer_repo.search(conn, (q or "").strip() or None, limit=limit)

    def details(self, customer_id: int | None) -> dict:
        if not customer_id:
            raise ValidationError("Missing id")
        with self.db.session() as conn:
            customer = self.customer_repo.get(conn, customer_id)
            if customer is None:
                raise NotFoundError("Customer not found")
            order_details = [
                {"order": o, "items": self.item_repo.list_for_order(conn, int(o["id"]))}
                for o in self.order_repo.list_for_customer(conn, customer_id)
            ]
        return {"customer": customer, "orderDetails": order_details}

    def orders(self, customer_id: int | None) -> list[dict]:
        if not customer_id:
            raise ValidationError("Missing id")
        with self.db.session() as conn:
            return self.order_repo.list_for_customer(conn, customer_id)

    def order_details(self, order_id: int | None) -> dict:
        if not order_id:
            raise ValidationError("Missing orderId")
        with self.db.session() as conn:
            order = self.order_repo.get_with_customer(conn, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            items = self.item_repo.list_for_order(conn, order_id)
        return {"order": order, "items": items}

    def set_status(self, customer_id: int | None, status: str | None) -> None:
        status = (status or "").strip()
        if not customer_id or not status:
            raise ValidationError("Missing fields")
        with self.db.transaction() as conn:
            if not self.customer_repo.set_status(conn, customer_id=customer_id, status=status):
                raise NotFoundError("Customer not found")
        log.info("customer #%s status -> %s", customer_id, status)

    def delete_customer(self, customer_id: int | None) -> None:
        if not customer_id:
            raise ValidationError("Missing customerId")
        with self.db.transaction() as conn:
            items = self.item_repo.delete_for_customer(conn, customer_id)
            orders = self.order_repo.delete_for_customer(conn, customer_id)
            if not self.customer_repo.delete(conn, customer_id):
                raise NotFoundError("Customer not found")
        log.info("deleted customer #%s with %d order(s), %d item(s)", customer_id, orders, items)
