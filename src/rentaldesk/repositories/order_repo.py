from __future__ import annotations

from datetime import date
from decimal import Decimal

from psycopg import Connection


class OrderRepository:
    def create(
        self,
        conn: Connection,
        *,
        invoice_no: str,
        customer_id: int,
        order_date: date,
        rent_start: date | None,
        rent_end: date | None,
        total: Decimal = Decimal("0"),
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO orders(invoice_no, customer_id, order_date, rent_start, rent_end, total)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (invoice_no, customer_id, order_date, rent_start, rent_end, total),
        )
        return int(cur.fetchone()[0])

    def exists(self, conn: Connection, order_id: int) -> bool:
        cur = conn.execute("SELECT 1 FROM orders WHERE id = %s LIMIT 1;", (order_id,))
        return cur.fetchone() is not None

    def set_total(self, conn: Connection, *, order_id: int, total: Decimal) -> None:
        conn.execute("UPDATE orders SET total = %s WHERE id = %s;", (total, order_id))

    def set_total_and_dates(
        self,
        conn: Connection,
        *,
        order_id: int,
        total: Decimal,
        order_date: date | None,
        rent_start: date | None,
        rent_end: date | None,
    ) -> None:
        # a NULL parameter keeps the stored date
        conn.execute(
            """
            UPDATE orders
            SET total = %s,
                order_date = COALESCE(%s, order_date),
                rent_start = COALESCE(%s, rent_start),
                rent_end = COALESCE(%s, rent_end)
            WHERE id = %s;
            """,
            (total, order_date, rent_start, rent_end, order_id),
        )

    def get_with_customer(self, conn: Connection, order_id: int) -> dict | None:
        cur = conn.execute(
            """
            SELECT o.id, o.invoice_no, o.customer_id, o.order_date, o.rent_start, o.rent_end, o.total,
                   c.name AS cname, c.phone AS cphone, c.alt_phone AS caltphone, c.address AS caddress
            FROM orders o
            JOIN customers c ON c.id = o.customer_id
            WHERE o.id = %s
            LIMIT 1;
            """,
            (order_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def list_for_customer(self, conn: Connection, customer_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT id, invoice_no, customer_id, order_date, rent_start, rent_end, total
            FROM orders
            WHERE customer_id = %s
            ORDER BY id DESC;
            """,
            (customer_id,),
        )
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def delete_for_customer(self, conn: Connection, customer_id: int) -> int:
        cur = conn.execute("DELETE FROM orders WHERE customer_id = %s;", (customer_id,))
        return cur.rowcount
