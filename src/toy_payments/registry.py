from typing import Dict, Iterator, Optional

from toy_payments.errors import DuplicateTransactionId, UnknownTransactionReference
from toy_payments.models import DisputeState, TransactionRecord


class TransactionRegistry:
    """
    Append-only store of accepted deposits and withdrawals, keyed by transaction id.
    Entries are never removed or overwritten; only their dispute state changes.
    Not thread-safe: each registry is owned by a single processor.
    """

    def __init__(self):
        self._records: Dict[int, TransactionRecord] = {}

    def insert(self, record: TransactionRecord) -> None:
        """Store a new record in the NORMAL state."""
        if record.transaction_id in self._records:
            raise DuplicateTransactionId(f"tx {record.transaction_id} already exists")
        record.dispute_state = DisputeState.NORMAL
        self._records[record.transaction_id] = record

    def lookup(self, transaction_id: int) -> Optional[TransactionRecord]:
        """Retrieve stored record by id."""
        return self._records.get(transaction_id)

    def set_state(self, transaction_id: int, new_state: DisputeState) -> None:
        """
        Move a record to a new dispute state.
        The caller validates that the transition is allowed.
        """
        record = self._records.get(transaction_id)
        if record is None:
            raise UnknownTransactionReference(f"tx {transaction_id} not found")
        record.dispute_state = new_state

    def records(self) -> Iterator[TransactionRecord]:
        return iter(self._records.values())

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._records

    def __len__(self) -> int:
        return len(self._records)
