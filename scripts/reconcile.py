#!/usr/bin/env python3
"""
Operate the payment reconciliation engine from the command line.

Usage:
    python3 scripts/reconcile.py [--db-url URL] [--config PATH] <command> ...

Commands:
    init-db                               Create tables and immutability triggers
    create-buffer AMOUNT ORDER_ID         Register an order awaiting payment
    process [TEXT]                        Process one notification (stdin if omitted)
    pending                               List buffers awaiting payment
    unresolved                            List unmatched / ambiguous notifications
    link LOG_ENTRY_ID BUFFER_ID --by WHO  Manually link a notification to a buffer
    expire BUFFER_ID                      Mark a buffer ineligible (order expired)

Examples:
    python3 scripts/reconcile.py init-db
    python3 scripts/reconcile.py create-buffer 500000 ORD-1001 --sender-name "KO AUNG"
    python3 scripts/reconcile.py process "You received MMK 500,000 from KO AUNG. Ref: TXN882"
    python3 scripts/reconcile.py unresolved
    python3 scripts/reconcile.py link <log-entry-id> <buffer-id> --by support:mya

Every command prints a JSON document on stdout.  The database URL defaults to
the DATABASE_URL environment variable, then to a local SQLite file.
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from payment_config import get_active_config
from payment_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from payment_kernel.domain.clock import SystemClock
from payment_kernel.exceptions import PaymentKernelError
from payment_kernel.logging_config import configure_logging
from payment_kernel.selectors import NotificationLogSelector, PaymentBufferSelector
from payment_kernel.services import PaymentBufferStore
from payment_services import ManualReconciliationService, ReconciliationCoordinator

DEFAULT_DB_URL = "sqlite:///payments.db"


# =============================================================================
# Output
# =============================================================================


def _jsonable(value):
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def emit(payload) -> None:
    print(json.dumps(_jsonable(payload), indent=2, sort_keys=True))


# =============================================================================
# Commands
# =============================================================================


def cmd_init_db(args, config, clock) -> dict:
    create_tables(install_triggers=True)
    return {"initialized": True}


def cmd_create_buffer(args, config, clock) -> dict:
    with session_scope() as session:
        store = PaymentBufferStore(
            session,
            clock,
            currency=config.currency.code,
            decimal_places=config.currency.decimal_places,
        )
        buffer = store.create(
            Decimal(args.amount),
            order_id=args.order_id,
            transaction_id=args.transaction_id,
            sender_name=args.sender_name,
        )
    return {"buffer": buffer}


def cmd_process(args, config, clock) -> dict:
    text = args.text if args.text is not None else sys.stdin.read()
    received_at = datetime.fromisoformat(args.received_at) if args.received_at else None
    coordinator = ReconciliationCoordinator(get_session_factory(), clock, config)
    outcome = coordinator.process_notification(text, received_at=received_at, sender=args.sender)
    return {"outcome": outcome}


def cmd_pending(args, config, clock) -> dict:
    with session_scope() as session:
        buffers = PaymentBufferSelector(session).list_pending(limit=args.limit)
    return {"pending": buffers}


def cmd_unresolved(args, config, clock) -> dict:
    with session_scope() as session:
        entries = NotificationLogSelector(session).list_unresolved(limit=args.limit)
    return {"unresolved": entries}


def cmd_link(args, config, clock) -> dict:
    service = ManualReconciliationService(get_session_factory(), clock, config)
    resolution = service.link(
        UUID(args.log_entry_id),
        UUID(args.buffer_id),
        resolved_by=args.by,
        note=args.note,
    )
    return {"resolution": resolution}


def cmd_expire(args, config, clock) -> dict:
    with session_scope() as session:
        buffer = PaymentBufferStore(session, clock).mark_ineligible(
            UUID(args.buffer_id), args.reason
        )
    return {"buffer": buffer}


# =============================================================================
# Entry point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Payment notification reconciliation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url",
        default=os.environ.get("DATABASE_URL", DEFAULT_DB_URL),
        help="Database URL (default: $DATABASE_URL or sqlite:///payments.db)",
    )
    parser.add_argument("--config", type=Path, default=None, help="Configuration YAML")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create tables and triggers")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("create-buffer", help="Register an expected payment")
    p.add_argument("amount")
    p.add_argument("order_id")
    p.add_argument("--transaction-id")
    p.add_argument("--sender-name")
    p.set_defaults(func=cmd_create_buffer)

    p = sub.add_parser("process", help="Process one notification")
    p.add_argument("text", nargs="?", help="Notification text (stdin if omitted)")
    p.add_argument("--received-at", help="ISO-8601 arrival time with offset")
    p.add_argument("--sender", help="Channel sender (short code, phone number)")
    p.set_defaults(func=cmd_process)

    p = sub.add_parser("pending", help="List buffers awaiting payment")
    p.add_argument("--limit", type=int, default=None)
    p.set_defaults(func=cmd_pending)

    p = sub.add_parser("unresolved", help="List notifications awaiting manual linking")
    p.add_argument("--limit", type=int, default=None)
    p.set_defaults(func=cmd_unresolved)

    p = sub.add_parser("link", help="Link a notification to a buffer")
    p.add_argument("log_entry_id")
    p.add_argument("buffer_id")
    p.add_argument("--by", required=True, help="Operator identity")
    p.add_argument("--note")
    p.set_defaults(func=cmd_link)

    p = sub.add_parser("expire", help="Mark a buffer ineligible")
    p.add_argument("buffer_id")
    p.add_argument("--reason", default="expired")
    p.set_defaults(func=cmd_expire)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = get_active_config(args.config)
    clock = SystemClock()
    init_engine_from_url(args.db_url)
    try:
        emit(args.func(args, config, clock))
        return 0
    except PaymentKernelError as e:
        emit({"error": e.code, "message": str(e)})
        return 1
    finally:
        reset_engine()


if __name__ == "__main__":
    sys.exit(main())
