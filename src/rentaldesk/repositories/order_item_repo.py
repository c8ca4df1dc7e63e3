from __future__ import annotations

from decimal import Decimal

from psycopg import Connection


class OrderItemRepository:
    def add(
        self,
        conn: Connection,
        *,
        order_id: int,
        product: str,
        price: Decimal,
        quantity: Decimal,
        line_total: Decimal,
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO order_items(order_id, product, price, quantity, line_total)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (order_id, product, price, quantity, line_total),
        )
        return int(cur.fetchone()[0])

    def delete_for_order(self, conn: Connection, order_id: int) -> int:
        cur = conn.execute("DELETE FROM order_items WHERE order_id = %s;", (order_id,))
        return cur.rowcount

    def delete_for_customer(self, conn: Connection, customer_id: int) -> int:
        cur = conn.execute(
            """
            DELETE FROM order_items
            WHERE order_id IN (SELECT id FROM orders WHERE customer_id = %s);
            """,
            (customer_id,),
        )
        return cur.rowcount

    def list_for_order(self, conn: Connection, order_id: int) -> list[dict]:
        cur = conn.execute(
            """
            SELECT id, order_id, product, price, quantity, line_total
            FROM order_items
            WHERE order_id = %s
            ORDER BY id ASC;
            """,
            (order_id,),
        )
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]
