"""
CSV ingestion and output for the payments engine.

Input rows look like ``type, client, tx, amount``; whitespace around headers
and values is ignored. Rows that cannot be turned into a Transaction are either
skipped with a warning (lenient, the default for streaming) or abort the read
(strict, used for batch mode).

Output is one row per client: ``client,available,held,total,locked`` with
amounts printed to PRECISION fractional digits.
"""
import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, Iterator, List, Optional, TextIO

from toy_payments import config
from toy_payments.errors import MalformedRecord
from toy_payments.models import ClientAccount, Transaction, TransactionType

logger = logging.getLogger(__name__)


def parse_row(row: Dict[Optional[str], Optional[str]], line_number: Optional[int] = None) -> Transaction:
    """Parse CSV row into Transaction, raising MalformedRecord if it is unusable."""
    normalized = {
        k.strip().lower(): (v or "").strip()
        for k, v in row.items()
        if isinstance(k, str)
    }

    try:
        transaction_type = TransactionType(normalized["type"].lower())
    except KeyError:
        raise MalformedRecord("missing 'type' column", line_number)
    except ValueError:
        raise MalformedRecord(f"unknown transaction type {normalized['type']!r}", line_number)

    client_id = _parse_id(normalized, "client", config.MAX_CLIENT_ID, line_number)
    transaction_id = _parse_id(normalized, "tx", config.MAX_TRANSACTION_ID, line_number)

    amount = None
    amount_str = normalized.get("amount", "")
    if amount_str:
        amount = _parse_amount(amount_str, line_number)

    if transaction_type.carries_amount and amount is None:
        raise MalformedRecord(f"{transaction_type.value} without an amount", line_number)
    if not transaction_type.carries_amount and amount is not None:
        raise MalformedRecord(f"{transaction_type.value} must not carry an amount", line_number)

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def read_transactions(
    filepath: str,
    strict: bool = False,
    on_malformed: Optional[Callable[[MalformedRecord], None]] = None,
) -> Iterator[Transaction]:
    """
    Lazily yield transactions from a CSV file in file order.

    In strict mode the first malformed row raises MalformedRecord. Otherwise
    the row is logged, reported to ``on_malformed`` and skipped.
    Undecodable bytes become U+FFFD, so such a row fails validation instead of
    ending the read. A leading UTF-8 BOM is dropped.
    Opening the file is deferred until the first item is requested, and an
    unreadable file raises OSError to the caller.
    """
    with open(filepath, "r", newline="", encoding="utf-8-sig", errors="replace") as f:
        reader = csv.DictReader(f)
        while True:
            try:
                row = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                error = MalformedRecord(str(e), reader.line_num)
                if strict:
                    raise error from e
                _skip(error, on_malformed)
                continue

            try:
                yield parse_row(row, reader.line_num)
            except MalformedRecord as e:
                if strict:
                    raise
                _skip(e, on_malformed)


def _skip(error: MalformedRecord, on_malformed: Optional[Callable[[MalformedRecord], None]]) -> None:
    logger.warning(f"Skipping malformed row: {error}")
    if on_malformed is not None:
        on_malformed(error)


def load_transactions(filepath: str) -> List[Transaction]:
    """Read a whole file up front; any malformed row aborts the load."""
    return list(read_transactions(filepath, strict=True))


def format_amount(value: Decimal) -> str:
    """Format an amount with exactly PRECISION fractional digits."""
    quantized = value.quantize(config.AMOUNT_QUANTUM, rounding=config.AMOUNT_ROUNDING)
    return f"{quantized:f}"


def account_row(account: ClientAccount) -> List[str]:
    return [
        str(account.client_id),
        format_amount(account.available),
        format_amount(account.held),
        format_amount(account.total),
        str(account.locked).lower(),
    ]


def write_accounts(accounts: Iterable[ClientAccount], stream: TextIO) -> None:
    """Write the final snapshot, one row per account, ordered by client id."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(config.OUTPUT_HEADER)
    for account in sorted(accounts, key=lambda a: a.client_id):
        writer.writerow(account_row(account))


def _parse_id(normalized: Dict[str, str], field: str, upper_bound: int, line_number: Optional[int]) -> int:
    raw = normalized.get(field, "")
    try:
        value = int(raw)
    except ValueError:
        raise MalformedRecord(f"{field} {raw!r} is not an integer", line_number)
    if not 0 <= value <= upper_bound:
        raise MalformedRecord(f"{field} {value} is out of range", line_number)
    return value


def _parse_amount(raw: str, line_number: Optional[int]) -> Decimal:
    try:
        amount = Decimal(raw)
        if not amount.is_finite():
            raise MalformedRecord(f"amount {raw!r} is not a finite number", line_number)
        return amount.quantize(config.AMOUNT_QUANTUM, rounding=config.AMOUNT_ROUNDING)
    except InvalidOperation:
        raise MalformedRecord(f"amount {raw!r} is not a decimal", line_number)
