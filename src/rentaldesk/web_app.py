from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterator

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from flask.json.provider import DefaultJSONProvider

from .config import AppConfig, InvoiceConfig
from .db import Db
from .domain import CustomerPolicy
from .errors import ErrorKind, NotFoundError, Outcome, RenderError, ValidationError
from .invoice.pdf import invoice_filename
from .invoice.stream import stream_invoice
from .repositories.customer_repo import CustomerRepository
from .repositories.order_item_repo import OrderItemRepository
from .repositories.order_repo import OrderRepository
from .services.customer_service import CustomerService
from .services.invoice_service import InvoiceService
from .services.order_service import CustomerInput, OrderDates, OrderService, items_from_payload

log = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")


class JSONProvider(DefaultJSONProvider):
    """Numbers for money, ISO strings for dates."""

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, date):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


@dataclass
class Services:
    orders: OrderService
    invoices: InvoiceService
    customers: CustomerService
    invoice_settings: InvoiceConfig


def build_services(
    db: Db,
    invoice_settings: InvoiceConfig,
    *,
    customer_repo: CustomerRepository | None = None,
    order_repo: OrderRepository | None = None,
    item_repo: OrderItemRepository | None = None,
) -> Services:
    customer_repo = customer_repo or CustomerRepository()
    order_repo = order_repo or OrderRepository()
    item_repo = item_repo or OrderItemRepository()
    return Services(
        orders=OrderService(db, customer_repo=customer_repo, order_repo=order_repo, item_repo=item_repo),
        invoices=InvoiceService(db, order_repo=order_repo, item_repo=item_repo),
        customers=CustomerService(db, customer_repo=customer_repo, order_repo=order_repo, item_repo=item_repo),
        invoice_settings=invoice_settings,
    )


def create_app(cfg: AppConfig | None = None, db: Db | None = None, *, services: Services | None = None) -> Flask:
    if services is None:
        if cfg is None:
            raise ValueError("create_app needs either cfg or services")
        services = build_services(db or Db(cfg.db), cfg.invoice)

    app = Flask(__name__)
    app.json = JSONProvider(app)
    app.extensions["rentaldesk"] = services
    app.register_blueprint(api)
    return app


def _services() -> Services:
    return current_app.extensions["rentaldesk"]


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid id: {value!r}") from None


def _fail(error: str) -> Response:
    return jsonify({"success": False, "error": error})


def _rejected(operation: str, e: Exception) -> Response:
    log.info("%s rejected: %s", operation, e)
    return _fail(str(e))


def _fail_outcome(outcome: Outcome) -> Response:
    return _fail(outcome.error or "Server error")


def _create(policy: CustomerPolicy, *, honour_order_date: bool) -> Outcome:
    body = _payload()
    customer = CustomerInput.from_mapping(body)
    items = items_from_payload(body.get("items"))
    dates = OrderDates.from_mapping(body)
    if not honour_order_date:
        dates = OrderDates(order_date=None, rent_start=dates.rent_start, rent_end=dates.rent_end)
    return _services().orders.create_order(customer, dates, items, policy=policy)


@api.post("/new-customer")
def new_customer():
    try:
        outcome = _create(CustomerPolicy.ALWAYS_INSERT, honour_order_date=True)
    except ValidationError as e:
        return _rejected("new-customer", e)
    if not outcome.ok:
        return _fail_outcome(outcome)
    created = outcome.value
    return jsonify({"success": True, "customerId": created.customer_id, "orderId": created.order_id})


@api.post("/generate-bill")
def generate_bill():
    try:
        outcome = _create(CustomerPolicy.FIND_OR_CREATE_BY_PHONE, honour_order_date=False)
    except ValidationError as e:
        return _rejected("generate-bill", e)
    if not outcome.ok:
        return _fail_outcome(outcome)
    created = outcome.value
    return jsonify({"success": True, "orderId": created.order_id, "invoiceNo": created.invoice_no})


@api.post("/update-order")
def update_order():
    body = _payload()
    try:
        order_id = _int_or_none(body.get("orderId"))
        items = items_from_payload(body.get("items"))
        dates = OrderDates.from_mapping(body)
    except ValidationError as e:
        return _rejected("update-order", e)

    outcome = _services().orders.replace_order_items(order_id, items, dates)
    if not outcome.ok:
        return _fail_outcome(outcome)
    return jsonify({"success": True, "total": float(outcome.value.total)})


@api.get("/invoice/<int:order_id>")
def invoice(order_id: int):
    services = _services()
    outcome = services.invoices.assemble(order_id)
    if not outcome.ok:
        if outcome.kind is ErrorKind.NOT_FOUND:
            return Response("Order not found", status=404, mimetype="text/plain")
        return Response("PDF Error", status=500, mimetype="text/plain")

    view = outcome.value
    chunks = stream_invoice(view, services.invoice_settings)
    try:
        first = next(chunks)
    except (RenderError, StopIteration) as e:
        log.error("invoice for order #%s failed before output: %s", order_id, e)
        chunks.close()
        return Response("PDF Error", status=500, mimetype="text/plain")

    def body() -> Iterator[bytes]:
        yield first
        try:
            yield from chunks
        except RenderError:
            # headers are gone already; all we can do is cut the stream
            log.error("invoice for order #%s aborted mid-stream", order_id)
        finally:
            chunks.close()

    resp = Response(body(), mimetype="application/pdf", direct_passthrough=True)
    resp.headers["Content-Disposition"] = f'inline; filename="{invoice_filename(view)}"'
    return resp


@api.get("/customers")
def customers_search():
    try:
        rows = _services().customers.search(request.args.get("q"))
        return jsonify({"success": True, "rows": rows})
    except Exception:
        log.exception("search customers failed")
        return jsonify({"success": False})


@api.get("/customer-details")
def customer_details():
    try:
        data = _services().customers.details(_int_or_none(request.args.get("id")))
    except (ValidationError, NotFoundError) as e:
        return _rejected("customer-details", e)
    except Exception:
        log.exception("customer details failed")
        return jsonify({"success": False})
    return jsonify({"success": True, **data})


@api.get("/customer-orders")
def customer_orders():
    try:
        rows = _services().customers.orders(_int_or_none(request.args.get("id")))
    except ValidationError as e:
        return _rejected("customer-orders", e)
    except Exception:
        log.exception("customer orders failed")
        return jsonify({"success": False})
    return jsonify({"success": True, "rows": rows})


@api.get("/order-full-details")
def order_full_details():
    try:
        data = _services().customers.order_details(_int_or_none(request.args.get("orderId")))
    except (ValidationError, NotFoundError) as e:
        return _rejected("order-full-details", e)
    except Exception:
        log.exception("order full details failed")
        return jsonify({"success": False})
    return jsonify({"success": True, **data})


@api.post("/update-status")
def update_status():
    body = _payload()
    try:
        _services().customers.set_status(_int_or_none(body.get("customerId")), body.get("status"))
    except (ValidationError, NotFoundError) as e:
        return _rejected("update-status", e)
    except Exception:
        log.exception("update status failed")
        return jsonify({"success": False})
    return jsonify({"success": True})


@api.delete("/delete-customer")
def delete_customer():
    body = _payload()
    try:
        _services().customers.delete_customer(_int_or_none(body.get("customerId")))
    except (ValidationError, NotFoundError) as e:
        return _rejected("delete-customer", e)
    except Exception as e:
        log.exception("delete customer failed")
        return _fail(str(e))
    return jsonify({"success": True})

