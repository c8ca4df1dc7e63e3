from __future__ import annotations

from pathlib import Path

from .config import InvoiceConfig
from .domain import CustomerPolicy
from .errors import NotFoundError, ValidationError
from .invoice.pdf import invoice_filename, save_invoice_pdf
from .pricing import format_money, format_plain, rental_days
from .services.order_service import CustomerInput, ItemInput, OrderDates, items_from_payload
from .web_app import Services


def _prompt(msg: str) -> str:
    return input(msg).strip()


def _prompt_dates(*, with_order_date: bool) -> OrderDates:
    raw = {
        "rent_start": _prompt("rent_start YYYY-MM-DD (optional): "),
        "rent_end": _prompt("rent_end YYYY-MM-DD (optional): "),
    }
    if with_order_date:
        raw["order_date"] = _prompt("order_date YYYY-MM-DD (optional): ")
    return OrderDates.from_mapping(raw)


def _prompt_items() -> list[ItemInput]:
    raw = []
    while True:
        add = _prompt("Add item? (y/n): ").lower()
        if add != "y":
            break
        raw.append(
            {
                "product": _prompt("  product: "),
                "price": _prompt("  price per day: "),
                "quantity": _prompt("  quantity: "),
            }
        )
    return items_from_payload(raw)


def _print_outcome_error(outcome) -> None:
    print(f"[{outcome.kind.value.upper()}] {outcome.error}")


def run_cli(services: Services, invoice_settings: InvoiceConfig) -> None:
    while True:
        print("\n=== RentalDesk CLI ===")
        print("1) Search customers")
        print("2) Create order (always new customer)")
        print("3) Create order (find customer by phone)")
        print("4) Replace order items")
        print("5) Show order")
        print("6) Render invoice PDF to file")
        print("7) Update customer rent status")
        print("0) Exit")

        choice = _prompt("> ")
        try:
            if choice == "0":
                return

            elif choice == "1":
                q = _prompt("search (empty = all): ")
                for r in services.customers.search(q, limit=50):
                    print(f'#{r["id"]} {r["name"]} phone={r["phone"]} status={r["rent_status"]}')

            elif choice in {"2", "3"}:
                policy = CustomerPolicy.ALWAYS_INSERT if choice == "2" else CustomerPolicy.FIND_OR_CREATE_BY_PHONE
                customer = CustomerInput.from_mapping(
                    {
                        "name": _prompt("name: "),
                        "phone": _prompt("phone: "),
                        "alt_phone": _prompt("alt_phone (optional): "),
                        "address": _prompt("address: "),
                    }
                )
                dates = _prompt_dates(with_order_date=choice == "2")
                items = _prompt_items()

                outcome = services.orders.create_order(customer, dates, items, policy=policy)
                if not outcome.ok:
                    _print_outcome_error(outcome)
                    continue
                created = outcome.value
                print(
                    f"Created order_id={created.order_id} invoice={created.invoice_no} "
                    f"customer_id={created.customer_id} total={format_money(created.total)}"
                )

            elif choice == "4":
                order_id = int(_prompt("order_id: "))
                dates = _prompt_dates(with_order_date=True)
                items = _prompt_items()
                outcome = services.orders.replace_order_items(order_id, items, dates)
                if not outcome.ok:
                    _print_outcome_error(outcome)
                    continue
                print(f"Order #{order_id} updated. total={format_money(outcome.value.total)}")

            elif choice == "5":
                data = services.customers.order_details(int(_prompt("order_id: ")))
                o = data["order"]
                days = rental_days(o["rent_start"], o["rent_end"])
                print(
                    f'order#{o["id"]} {o["invoice_no"]} customer={o["cname"]} '
                    f'rent={o["rent_start"]}..{o["rent_end"]} days={days} total={format_money(o["total"])}'
                )
                for it in data["items"]:
                    print(f'  {it["product"]} {format_money(it["price"])} x {format_plain(it["quantity"])} = {format_money(it["line_total"])}')

            elif choice == "6":
                order_id = int(_prompt("order_id: "))
                outcome = services.invoices.assemble(order_id)
                if not outcome.ok:
                    _print_outcome_error(outcome)
                    continue
                view = outcome.value
                out_dir = Path(_prompt("output folder (default .): ") or ".")
                path = out_dir / invoice_filename(view)
                result = save_invoice_pdf(view, path, invoice_settings)
                print(f"Wrote {path} pages={result.pages} total={format_money(result.grand_total)}")

            elif choice == "7":
                customer_id = int(_prompt("customer_id: "))
                status = _prompt("status: ")
                services.customers.set_status(customer_id, status)
                print("Status updated.")

            else:
                print("Unknown choice.")

        except (ValidationError, NotFoundError) as e:
            print(f"[INPUT ERROR] {e}")
        except ValueError as e:
            print(f"[VALUE ERROR] {e}")
        except Exception as e:
            print(f"[ERROR] {type(e).__name__}: {e}")
