from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None


LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class ConfigError(Exception):
    pass


class SummaryMode(str, Enum):
    PER_ITEM = "per_item"
    ONCE = "once"


@dataclass(frozen=True)
class DbConfig:
    host: str
    port: int
    name: str
    user: str
    password: str
    sslmode: str = "disable"
    pool_min_size: int = 1
    pool_max_size: int = 10
    pool_timeout: float = 30.0


@dataclass(frozen=True)
class WebConfig:
    host: str = "127.0.0.1"
    port: int = 3000
    debug: bool = False


@dataclass(frozen=True)
class InvoiceConfig:
    business_name: str = "SUBRAMANI ENTERPRISES"
    contact_line: str = "9916067960, 8073024022"
    footer_address: str = (
        "5TH CROSS, CANNEL RIGHT SIDE, VENKATESHA NAGAR, SHIMOGA | 577202 | PHONE: 6363499137"
    )
    thank_you: str = "THANK YOU FOR YOUR BUSINESS!"
    currency: str = "Rs."
    summary_mode: SummaryMode = SummaryMode.PER_ITEM
    page_size: str = "A4"


@dataclass(frozen=True)
class AppConfig:
    name: str
    log_level: str
    db: DbConfig
    web: WebConfig
    invoice: InvoiceConfig


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_config(data: dict) -> AppConfig:
    try:
        app = data.get("app", {})
        db = data["db"]
        web = data.get("web", {})
        invoice = data.get("invoice", {})
        defaults = InvoiceConfig()

        page_size = str(invoice.get("page_size", defaults.page_size)).upper()
        if page_size not in {"A4", "LETTER"}:
            raise ConfigError(f"Unsupported invoice page_size: {page_size}")

        return AppConfig(
            name=str(app.get("name", "RentalDesk")),
            log_level=str(app.get("log_level", "INFO")).upper(),
            db=DbConfig(
                host=str(db["host"]),
                port=int(db.get("port", 5432)),
                name=str(db["name"]),
                user=str(db["user"]),
                password=str(db["password"]),
                sslmode=str(db.get("sslmode", "disable")),
                pool_min_size=int(db.get("pool_min_size", 1)),
                pool_max_size=int(db.get("pool_max_size", 10)),
                pool_timeout=float(db.get("pool_timeout", 30.0)),
            ),
            web=WebConfig(
                host=str(web.get("host", "127.0.0.1")),
                port=int(web.get("port", 3000)),
                debug=_parse_bool(web.get("debug", False)),
            ),
            invoice=InvoiceConfig(
                business_name=str(invoice.get("business_name", defaults.business_name)),
                contact_line=str(invoice.get("contact_line", defaults.contact_line)),
                footer_address=str(invoice.get("footer_address", defaults.footer_address)),
                thank_you=str(invoice.get("thank_you", defaults.thank_you)),
                currency=str(invoice.get("currency", defaults.currency)),
                summary_mode=SummaryMode(str(invoice.get("summary_mode", defaults.summary_mode.value))),
                page_size=page_size,
            ),
        )
    except ConfigError:
        raise
    except KeyError as e:
        raise ConfigError(f"Missing config key: {e}") from e
    except Exception as e:
        raise ConfigError(f"Invalid config values: {e}") from e


def load_config(path: str | Path) -> AppConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {p.resolve()}")

    if tomllib is None:
        raise ConfigError("tomllib not available. Use Python 3.11+.")

    try:
        data = tomllib.loads(p.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigError(f"Failed to read config TOML: {e}") from e

    return parse_config(data)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
