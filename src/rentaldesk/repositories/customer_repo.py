from __future__ import annotations

from psycopg import Connection


class CustomerRepository:
    def create(
        self,
        conn: Connection,
        *,
        name: str,
        phone: str,
        alt_phone: str | None,
        address: str,
        rent_status: str = "ACTIVE",
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO customers(name, phone, alt_phone, address, rent_status)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id;
            """,
            (name, phone, alt_phone, address, rent_status),
        )
        return int(cur.fetchone()[0])

    def find_id_by_phone(self, conn: Connection, phone: str) -> int | None:
        cur = conn.execute(
            "SELECT id FROM customers WHERE phone = %s ORDER BY id LIMIT 1;",
            (phone,),
        )
        row = cur.fetchone()
        return int(row[0]) if row else None

    def update_contact(
        self, conn: Connection, *, customer_id: int, name: str, alt_phone: str | None, address: str
    ) -> None:
        conn.execute(
            "UPDATE customers SET name = %s, alt_phone = %s, address = %s WHERE id = %s;",
            (name, alt_phone, address, customer_id),
        )

    def get(self, conn: Connection, customer_id: int) -> dict | None:
        cur = conn.execute(
            """
            SELECT id, name, phone, alt_phone, address, rent_status
            FROM customers
            WHERE id = %s;
            """,
            (customer_id,),
        )
        row = cur.fetchone()
        if not row:
            return None
        cols = [d.name for d in cur.description]
        return dict(zip(cols, row))

    def search(self, conn: Connection, q: str | None = None, limit: int = 200) -> list[dict]:
        sql = "SELECT id, name, phone, alt_phone, address, rent_status FROM customers"
        params: list = []
        if q:
            sql += " WHERE name ILIKE %s OR phone ILIKE %s OR alt_phone ILIKE %s"
            pattern = f"%{q}%"
            params += [pattern, pattern, pattern]
        sql += " ORDER BY id DESC LIMIT %s;"
        params.append(limit)
        cur = conn.execute(sql, params)
        cols = [d.name for d in cur.description]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def set_status(self, conn: Connection, *, customer_id: int, status: str) -> bool:
        cur = conn.execute(
            "UPDATE customers SET rent_status = %s WHERE id = %s;",
            (status, customer_id),
        )
        return cur.rowcount > 0

    def delete(self, conn: Connection, customer_id: int) -> bool:
        cur = conn.execute("DELETE FROM customers WHERE id = %s;", (customer_id,))
        return cur.rowcount > 0
