import argparse
import logging
import sys
from typing import List, Optional

from toy_payments import config
from toy_payments.csv_io import write_accounts
from toy_payments.payments_engine import PaymentsEngine
from toy_payments.sharded_engine import ShardedPaymentsEngine

logger = logging.getLogger(__name__)

MODES = ("stream", "batch", "sharded")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-engine",
        description="Apply a CSV of transactions and print the resulting client balances.",
    )
    parser.add_argument("input", help="CSV file with columns type, client, tx, amount")
    parser.add_argument("-o", "--output", help="write balances to this file instead of stdout")
    parser.add_argument(
        "--mode",
        choices=MODES,
        default="stream",
        help="stream: skip malformed rows (default); batch: reject the whole file on a malformed row; "
        "sharded: process clients on parallel workers",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=config.DEFAULT_NUM_WORKERS,
        help="worker threads for --mode sharded",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log progress and rejections")
    return parser


def run(filepath: str, mode: str, workers: int):
    if mode == "sharded":
        engine = ShardedPaymentsEngine(num_workers=workers)
        accounts = engine.process_file(filepath)
    else:
        engine = PaymentsEngine()
        if mode == "batch":
            accounts = engine.process_batch(filepath)
        else:
            accounts = engine.process_file(filepath)
    logger.info(f"Report: {engine.stats}")
    return accounts


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.INFO if args.verbose else logging.getLevelName(config.LOG_LEVEL)
    if not isinstance(level, int):
        print(f"Error: unknown log level {config.LOG_LEVEL!r}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=level,
        format=config.LOG_FORMAT,
        stream=sys.stderr,
    )

    try:
        accounts = run(args.input, args.mode, args.workers)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output:
        with open(args.output, "w", newline="") as f:
            write_accounts(accounts.values(), f)
    else:
        write_accounts(accounts.values(), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
