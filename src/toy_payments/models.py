import threading
from collections import Counter
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        """Deposits and withdrawals move money; the other kinds reference one of them."""
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DisputeState(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"

    @property
    def is_terminal(self) -> bool:
        return self in (DisputeState.RESOLVED, DisputeState.CHARGED_BACK)


class RejectionReason(Enum):
    DUPLICATE_TRANSACTION_ID = "duplicate_transaction_id"
    UNKNOWN_TRANSACTION_REFERENCE = "unknown_transaction_reference"
    CLIENT_MISMATCH = "client_mismatch"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_LOCKED = "account_locked"
    INVALID_AMOUNT = "invalid_amount"


@dataclass
class Transaction:
    """One input event, as delivered by the ingestion shim."""

    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class TransactionRecord:
    """An accepted deposit or withdrawal, kept for later dispute lookups."""

    transaction_id: int
    client_id: int
    transaction_type: TransactionType
    amount: Decimal
    dispute_state: DisputeState = DisputeState.NORMAL

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionRecord":
        return cls(
            transaction_id=transaction.transaction_id,
            client_id=transaction.client_id,
            transaction_type=transaction.transaction_type,
            amount=transaction.amount,
        )


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held


@dataclass(frozen=True)
class ProcessingResult:
    """
    Outcome of processing one transaction.
    A rejection carries its reason and a short detail; it is never raised.
    """

    transaction: Transaction
    reason: Optional[RejectionReason] = None
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, transaction: Transaction) -> "ProcessingResult":
        return cls(transaction)

    @classmethod
    def rejected(cls, transaction: Transaction, reason: RejectionReason, detail: str = "") -> "ProcessingResult":
        return cls(transaction, reason, detail)


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.rejected = 0
        self.malformed = 0
        self._rejections: Counter = Counter()

    def record(self, result: ProcessingResult) -> None:
        with self._lock:
            if result.accepted:
                self.processed += 1
            else:
                self.rejected += 1
                self._rejections[result.reason] += 1

    def record_malformed(self, count: int = 1) -> None:
        with self._lock:
            self.malformed += count

    def rejections_by_reason(self) -> Dict[RejectionReason, int]:
        with self._lock:
            return dict(self._rejections)

    def __repr__(self) -> str:
        return f"Processed: {self.processed}, Rejected: {self.rejected}, Malformed: {self.malformed}"
