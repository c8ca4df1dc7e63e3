"""Order creation and item replacement against the in-memory store."""

from datetime import date
from decimal import Decimal

import pytest

from rentaldesk.domain import CustomerPolicy
from rentaldesk.errors import ErrorKind, ValidationError
from rentaldesk.services.order_service import (
    CustomerInput,
    ItemInput,
    OrderDates,
    OrderService,
    items_from_payload,
)
from tests.fakes import (
    FakeCustomerRepository,
    FakeDb,
    FakeOrderItemRepository,
    FakeOrderRepository,
    FlakyOrderItemRepository,
)

TODAY = date(2024, 6, 15)

ALICE = CustomerInput(name="Alice", phone="9000000001", address="1 Main St")
RENT = OrderDates(rent_start=date(2024, 1, 1), rent_end=date(2024, 1, 3))
CHAIR_AND_TABLE = [
    ItemInput(product="Chair", price=Decimal("50"), quantity=4),
    ItemInput(product="Table", price=Decimal("200"), quantity=1),
]


def _setup(item_repo=None) -> tuple[OrderService, FakeDb]:
    db = FakeDb()
    counter = iter(range(1, 1000))
    service = OrderService(
        db,
        customer_repo=FakeCustomerRepository(),
        order_repo=FakeOrderRepository(),
        item_repo=item_repo or FakeOrderItemRepository(),
        today=lambda: TODAY,
        new_invoice_no=lambda: f"inv-{next(counter)}",
    )
    return service, db


def _stored_sum(db: FakeDb, order_id: int) -> Decimal:
    return sum((it["line_total"] for it in db.store.items_for(order_id)), Decimal("0"))


def _items(*rows) -> list[ItemInput]:
    return [ItemInput(product=p, price=Decimal(str(pr)), quantity=q) for p, pr, q in rows]


class TestCreateOrder:

    def test_end_to_end_total(self):
        service, db = _setup()
        outcome = service.create_order(ALICE, RENT, CHAIR_AND_TABLE)

        assert outcome.ok
        created = outcome.value
        assert created.total == Decimal("400")
        assert db.store.orders[created.order_id]["total"] == Decimal("400")
        assert _stored_sum(db, created.order_id) == Decimal("400")

    def test_line_total_ignores_rental_days(self):
        service, db = _setup()
        created = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value

        lines = [it["line_total"] for it in db.store.items_for(created.order_id)]
        assert lines == [Decimal("200"), Decimal("200")]

    def test_items_keep_insertion_order(self):
        service, db = _setup()
        created = service.create_order(ALICE, RENT, _items(("C", 1, 1), ("A", 1, 1), ("B", 1, 1))).value
        assert [it["product"] for it in db.store.items_for(created.order_id)] == ["C", "A", "B"]

    def test_order_date_defaults_to_today(self):
        service, db = _setup()
        created = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value
        assert db.store.orders[created.order_id]["order_date"] == TODAY

    def test_explicit_order_date_is_kept(self):
        service, db = _setup()
        dates = OrderDates(order_date=date(2024, 1, 1))
        created = service.create_order(ALICE, dates, CHAIR_AND_TABLE).value
        assert db.store.orders[created.order_id]["order_date"] == date(2024, 1, 1)

    def test_new_customer_is_active(self):
        service, db = _setup()
        created = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value
        assert db.store.customers[created.customer_id]["rent_status"] == "ACTIVE"

    def test_each_order_gets_its_own_invoice_no(self):
        service, _ = _setup()
        a = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value
        b = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value
        assert a.invoice_no != b.invoice_no

    def test_garbage_prices_count_as_zero(self):
        service, db = _setup()
        items = items_from_payload([{"product": "Lamp", "price": "n/a", "quantity": 2}])
        created = service.create_order(ALICE, RENT, items).value
        assert created.total == Decimal("0")

    def test_sub_cent_prices_keep_total_equal_to_stored_lines(self):
        service, db = _setup()
        items = items_from_payload(
            [{"product": "Pin", "price": "0.005", "quantity": 1}, {"product": "Clip", "price": "0.005", "quantity": 1}]
        )

        created = service.create_order(ALICE, RENT, items).value

        lines = [it["line_total"] for it in db.store.items_for(created.order_id)]
        assert lines == [Decimal("0.01"), Decimal("0.01")]
        assert created.total == Decimal("0.02")
        assert db.store.orders[created.order_id]["total"] == _stored_sum(db, created.order_id)
        assert all(line == line.quantize(Decimal("0.01")) for line in lines)

    def test_fractional_quantity_is_stored(self):
        service, db = _setup()
        items = items_from_payload([{"product": "Rope (m)", "price": "10", "quantity": "2.5"}])

        created = service.create_order(ALICE, RENT, items).value

        (row,) = db.store.items_for(created.order_id)
        assert row["quantity"] == Decimal("2.5")
        assert row["line_total"] == Decimal("25")
        assert created.total == Decimal("25")

    def test_connection_returned_to_pool(self):
        service, db = _setup()
        service.create_order(ALICE, RENT, CHAIR_AND_TABLE)
        assert db.acquired == 1
        assert db.open_connections == 0


class TestCustomerPolicy:

    def test_always_insert_duplicates_phone(self):
        service, db = _setup()
        a = service.create_order(ALICE, RENT, CHAIR_AND_TABLE, policy=CustomerPolicy.ALWAYS_INSERT).value
        b = service.create_order(ALICE, RENT, CHAIR_AND_TABLE, policy=CustomerPolicy.ALWAYS_INSERT).value
        assert a.customer_id != b.customer_id
        assert len(db.store.customers) == 2

    def test_find_or_create_reuses_by_phone(self):
        service, db = _setup()
        first = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value

        moved = CustomerInput(name="Alice B", phone=ALICE.phone, address="9 New Rd", alt_phone="9111")
        second = service.create_order(
            moved, RENT, CHAIR_AND_TABLE, policy=CustomerPolicy.FIND_OR_CREATE_BY_PHONE
        ).value

        assert second.customer_id == first.customer_id
        assert len(db.store.customers) == 1
        row = db.store.customers[first.customer_id]
        assert (row["name"], row["address"], row["alt_phone"]) == ("Alice B", "9 New Rd", "9111")

    def test_find_or_create_inserts_unknown_phone(self):
        service, db = _setup()
        created = service.create_order(
            ALICE, RENT, CHAIR_AND_TABLE, policy=CustomerPolicy.FIND_OR_CREATE_BY_PHONE
        ).value
        assert db.store.customers[created.customer_id]["phone"] == ALICE.phone

    def test_find_or_create_picks_oldest_duplicate(self):
        service, db = _setup()
        first = service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value
        service.create_order(ALICE, RENT, CHAIR_AND_TABLE)
        third = service.create_order(
            ALICE, RENT, CHAIR_AND_TABLE, policy=CustomerPolicy.FIND_OR_CREATE_BY_PHONE
        ).value
        assert third.customer_id == first.customer_id


class TestCreateOrderValidation:

    @pytest.mark.parametrize(
        "customer",
        [
            CustomerInput(name="", phone="1", address="x"),
            CustomerInput(name="A", phone="", address="x"),
            CustomerInput(name="A", phone="1", address=""),
        ],
    )
    def test_missing_required_field(self, customer):
        service, db = _setup()
        outcome = service.create_order(customer, RENT, CHAIR_AND_TABLE)

        assert not outcome.ok
        assert outcome.kind is ErrorKind.VALIDATION
        assert "name, phone, address" in outcome.error
        assert db.acquired == 0

    def test_empty_items(self):
        service, db = _setup()
        outcome = service.create_order(ALICE, RENT, [])
        assert outcome.kind is ErrorKind.VALIDATION
        assert outcome.error == "No product items found"
        assert db.store.orders == {}

    def test_blank_product(self):
        service, _ = _setup()
        outcome = service.create_order(ALICE, RENT, _items(("  ", 1, 1)))
        assert outcome.kind is ErrorKind.VALIDATION

    def test_non_object_item_rejected_by_parser(self):
        with pytest.raises(ValidationError):
            items_from_payload(["Chair"])

    def test_invalid_date_rejected_by_parser(self):
        with pytest.raises(ValidationError):
            OrderDates.from_mapping({"rent_start": "31/12/2024"})


class TestCreateOrderRollback:

    def test_failure_leaves_nothing_behind(self):
        service, db = _setup(item_repo=FlakyOrderItemRepository(fail_on=3))
        items = _items(("A", 1, 1), ("B", 1, 1), ("C", 1, 1), ("D", 1, 1), ("E", 1, 1))

        outcome = service.create_order(ALICE, RENT, items)

        assert not outcome.ok
        assert outcome.kind is ErrorKind.TRANSACTION
        assert "connection lost" in outcome.error
        assert db.store.customers == {}
        assert db.store.orders == {}
        assert db.store.items == {}
        assert db.rollbacks == 1
        assert db.open_connections == 0


class TestReplaceOrderItems:

    def _order(self, service):
        return service.create_order(ALICE, RENT, CHAIR_AND_TABLE).value

    def test_replaces_items_and_total(self):
        service, db = _setup()
        created = self._order(service)

        outcome = service.replace_order_items(created.order_id, _items(("Tent", 300, 2)))

        assert outcome.ok
        assert outcome.value.total == Decimal("600")
        assert [it["product"] for it in db.store.items_for(created.order_id)] == ["Tent"]
        assert db.store.orders[created.order_id]["total"] == Decimal("600")
        assert _stored_sum(db, created.order_id) == Decimal("600")

    def test_other_orders_untouched(self):
        service, db = _setup()
        a = self._order(service)
        b = self._order(service)

        service.replace_order_items(a.order_id, _items(("Tent", 1, 1)))

        assert len(db.store.items_for(b.order_id)) == 2
        assert db.store.orders[b.order_id]["total"] == Decimal("400")

    def test_missing_order_is_not_found(self):
        service, db = _setup()
        self._order(service)
        before = (dict(db.store.orders), dict(db.store.items))

        outcome = service.replace_order_items(999, _items(("Tent", 1, 1)))

        assert outcome.kind is ErrorKind.NOT_FOUND
        assert outcome.error == "Order not found"
        assert (db.store.orders, db.store.items) == before
        assert db.open_connections == 0

    def test_missing_order_id(self):
        service, _ = _setup()
        outcome = service.replace_order_items(None, _items(("Tent", 1, 1)))
        assert outcome.kind is ErrorKind.VALIDATION
        assert outcome.error == "Missing orderId"

    def test_empty_items(self):
        service, db = _setup()
        created = self._order(service)
        outcome = service.replace_order_items(created.order_id, [])
        assert outcome.error == "No items provided"
        assert len(db.store.items_for(created.order_id)) == 2

    def test_omitted_dates_are_kept(self):
        service, db = _setup()
        created = self._order(service)

        service.replace_order_items(created.order_id, _items(("Tent", 1, 1)))

        o = db.store.orders[created.order_id]
        assert (o["order_date"], o["rent_start"], o["rent_end"]) == (TODAY, date(2024, 1, 1), date(2024, 1, 3))

    def test_only_rent_end_changes(self):
        service, db = _setup()
        created = self._order(service)

        service.replace_order_items(
            created.order_id, _items(("Tent", 1, 1)), OrderDates(rent_end=date(2024, 1, 10))
        )

        o = db.store.orders[created.order_id]
        assert o["rent_end"] == date(2024, 1, 10)
        assert o["rent_start"] == date(2024, 1, 1)
        assert o["order_date"] == TODAY

    def test_mid_write_failure_keeps_previous_state(self):
        # creation uses inserts 1-2, the replace fails on its third insert (call 5)
        service, db = _setup(item_repo=FlakyOrderItemRepository(fail_on=5))
        created = self._order(service)
        before = [dict(it) for it in db.store.items_for(created.order_id)]

        outcome = service.replace_order_items(
            created.order_id, _items(("A", 1, 1), ("B", 1, 1), ("C", 1, 1), ("D", 1, 1), ("E", 1, 1))
        )

        assert outcome.kind is ErrorKind.TRANSACTION
        assert db.store.items_for(created.order_id) == before
        assert db.store.orders[created.order_id]["total"] == Decimal("400")
        assert db.open_connections == 0

    def test_last_write_wins(self):
        service, db = _setup()
        created = self._order(service)

        service.replace_order_items(created.order_id, _items(("A", 10, 1)))
        service.replace_order_items(created.order_id, _items(("B", 20, 1), ("C", 5, 2)))

        assert [it["product"] for it in db.store.items_for(created.order_id)] == ["B", "C"]
        assert db.store.orders[created.order_id]["total"] == Decimal("30")
