from __future__ import annotations

import argparse
import logging
import os
import sys

from .cli import run_cli
from .config import ConfigError, configure_logging, load_config
from .db import Db, DbError
from .web_app import build_services, create_app

log = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="rentaldesk", description="Rental orders and invoices")
    parser.add_argument(
        "--config",
        default=os.environ.get("RENTALDESK_CONFIG", "config.toml"),
        help="path to config.toml (default: $RENTALDESK_CONFIG or ./config.toml)",
    )
    parser.add_argument("mode", nargs="?", choices=("cli", "web"), default="cli")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    db = None
    try:
        cfg = load_config(args.config)
        configure_logging(cfg.log_level)
        db = Db(cfg.db)
        if args.mode == "web":
            app = create_app(cfg, db)
            log.info("%s listening on %s:%s", cfg.name, cfg.web.host, cfg.web.port)
            app.run(debug=cfg.web.debug, host=cfg.web.host, port=cfg.web.port)
        else:
            run_cli(build_services(db, cfg.invoice), cfg.invoice)
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}", file=sys.stderr)
        return 2
    except DbError as e:
        print(f"[DB ERROR] {e}", file=sys.stderr)
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    finally:
        if db is not None:
            db.close()


if __name__ == "__main__":
    raise SystemExit(main())
