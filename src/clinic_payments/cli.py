#!/usr/bin/env python3
"""Command-line tools for operating the payment store.

Usage:
    python -m clinic_payments.cli init-db
    python -m clinic_payments.cli pending --limit 20
    python -m clinic_payments.cli stats --days 7
    python -m clinic_payments.cli sign --secret whsec_xxx captured_body.json
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, List

from .config import get_database_url
from .database import init_db, close_db, get_db_context
from .services import PaymentService
from .signatures import compute_signature

logger = logging.getLogger(__name__)


async def run_init_db(database_url: str) -> int:
    await init_db(database_url)
    await close_db()
    print(f"Tables created in {database_url}")
    return 0


async def run_pending(database_url: str, limit: int) -> int:
    await init_db(database_url, create_tables_on_start=False)
    try:
        async with get_db_context() as session:
            records = await PaymentService(session).list_pending(limit=limit)
            for record in records:
                print(
                    f"{record.id}\t{record.gateway_order_id}\t{record.amount}\t"
                    f"{record.currency}\t{record.created_at.isoformat()}"
                )
            print(f"{len(records)} pending payment(s)")
    finally:
        await close_db()
    return 0


async def run_stats(database_url: str, days: int) -> int:
    await init_db(database_url, create_tables_on_start=False)
    try:
        async with get_db_context() as session:
            stats = await PaymentService(session).get_stats(days=days)
    finally:
        await close_db()
    print(json.dumps(stats, indent=2, sort_keys=True))
    return 0


def run_sign(path: str, secret: str) -> int:
    """Print the webhook signature of a body file, byte for byte."""
    with open(path, "rb") as f:
        body = f.read()
    print(compute_signature(body, secret))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinic-payments",
        description="Clinic payment lifecycle tools",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (defaults to DATABASE_URL or local SQLite)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the payment tables")

    pending = subparsers.add_parser("pending", help="List pending payments")
    pending.add_argument("--limit", type=int, default=100)

    stats = subparsers.add_parser("stats", help="Print payment statistics as JSON")
    stats.add_argument("--days", type=int, default=30)

    sign = subparsers.add_parser("sign", help="Compute the webhook signature of a body file")
    sign.add_argument("file", help="Path to the raw webhook body")
    sign.add_argument("--secret", required=True, help="Webhook secret")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "sign":
        return run_sign(args.file, args.secret)

    database_url = args.database_url or get_database_url()
    try:
        if args.command == "init-db":
            return asyncio.run(run_init_db(database_url))
        if args.command == "pending":
            return asyncio.run(run_pending(database_url, args.limit))
        if args.command == "stats":
            return asyncio.run(run_stats(database_url, args.days))
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
