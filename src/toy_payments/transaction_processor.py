import logging
from typing import List, Optional, Tuple

from toy_payments.errors import (
    AccountLocked,
    ClientMismatch,
    DuplicateTransactionId,
    InvalidAmount,
    InvalidStateTransition,
    TransactionError,
    UnknownTransactionReference,
)
from toy_payments.ledger import AccountLedger
from toy_payments.models import (
    DisputeState,
    ProcessingResult,
    RejectionReason,
    Transaction,
    TransactionRecord,
    TransactionType,
)
from toy_payments.registry import TransactionRegistry

logger = logging.getLogger(__name__)

# Rejection reasons not listed here log at WARNING.
_REJECTION_LOG_LEVELS = {
    RejectionReason.DUPLICATE_TRANSACTION_ID: logging.INFO,
    RejectionReason.UNKNOWN_TRANSACTION_REFERENCE: logging.INFO,
    RejectionReason.CLIENT_MISMATCH: logging.ERROR,
}


class TransactionProcessor:
    """
    Applies transactions to a registry and a ledger, one at a time, in the order given.
    The processor is the only component that mutates either store.

    Every rejection is returned as a ProcessingResult carrying its RejectionReason;
    rejected transactions leave no trace in the registry or the ledger.
    Caller is responsible for serialising calls (one processor per thread).
    """

    def __init__(self, registry: Optional[TransactionRegistry] = None, ledger: Optional[AccountLedger] = None):
        self._registry = registry if registry is not None else TransactionRegistry()
        self._ledger = ledger if ledger is not None else AccountLedger()
        self._journal: List[Transaction] = []

    @property
    def registry(self) -> TransactionRegistry:
        return self._registry

    @property
    def ledger(self) -> AccountLedger:
        return self._ledger

    @property
    def journal(self) -> Tuple[Transaction, ...]:
        """Accepted transactions, in the order they were applied."""
        return tuple(self._journal)

    def process(self, transaction: Transaction) -> ProcessingResult:
        """Process a single transaction and report whether it was accepted."""
        account = self._ledger.get_or_create(transaction.client_id)

        try:
            if account.locked:
                raise AccountLocked(f"client {account.client_id} is locked")

            match transaction.transaction_type:
                case TransactionType.DEPOSIT:
                    self._handle_deposit(transaction)
                case TransactionType.WITHDRAWAL:
                    self._handle_withdrawal(transaction)
                case TransactionType.DISPUTE:
                    self._handle_dispute(transaction)
                case TransactionType.RESOLVE:
                    self._handle_resolve(transaction)
                case TransactionType.CHARGEBACK:
                    self._handle_chargeback(transaction)
        except TransactionError as e:
            return self.reject(transaction, e.reason, str(e))

        self._journal.append(transaction)
        return ProcessingResult.success(transaction)

    def reject(self, transaction: Transaction, reason: RejectionReason, detail: str = "") -> ProcessingResult:
        """
        Record a rejection decided by the caller or by one of the handlers.
        The client's account is still created, as it would be for any referenced client.
        """
        self._ledger.get_or_create(transaction.client_id)
        level = _REJECTION_LOG_LEVELS.get(reason, logging.WARNING)
        logger.log(level, f"Rejected {transaction}: {reason.value} ({detail})")
        return ProcessingResult.rejected(transaction, reason, detail)

    def _handle_deposit(self, transaction: Transaction) -> None:
        self._validate_new_money(transaction)
        self._ledger.apply_deposit(transaction.client_id, transaction.amount)
        self._registry.insert(TransactionRecord.from_transaction(transaction))

    def _handle_withdrawal(self, transaction: Transaction) -> None:
        self._validate_new_money(transaction)
        self._ledger.apply_withdrawal(transaction.client_id, transaction.amount)
        self._registry.insert(TransactionRecord.from_transaction(transaction))

    def _handle_dispute(self, transaction: Transaction) -> None:
        original = self._referenced_record(transaction, DisputeState.NORMAL)
        self._ledger.hold(original.client_id, original.amount)
        self._registry.set_state(original.transaction_id, DisputeState.DISPUTED)

    def _handle_resolve(self, transaction: Transaction) -> None:
        original = self._referenced_record(transaction, DisputeState.DISPUTED)
        self._ledger.release(original.client_id, original.amount)
        self._registry.set_state(original.transaction_id, DisputeState.RESOLVED)

    def _handle_chargeback(self, transaction: Transaction) -> None:
        original = self._referenced_record(transaction, DisputeState.DISPUTED)
        self._ledger.forfeit(original.client_id, original.amount)
        self._registry.set_state(original.transaction_id, DisputeState.CHARGED_BACK)

    def _validate_new_money(self, transaction: Transaction) -> None:
        """Checks shared by deposits and withdrawals, run before any mutation."""
        if transaction.amount is None or transaction.amount < 0:
            raise InvalidAmount(f"tx {transaction.transaction_id}: invalid amount {transaction.amount}")
        if transaction.transaction_id in self._registry:
            raise DuplicateTransactionId(f"tx {transaction.transaction_id} already processed")

    def _referenced_record(self, transaction: Transaction, required_state: DisputeState) -> TransactionRecord:
        original = self._registry.lookup(transaction.transaction_id)

        if original is None:
            raise UnknownTransactionReference(f"tx {transaction.transaction_id} not found")

        if original.client_id != transaction.client_id:
            raise ClientMismatch(
                f"tx {transaction.transaction_id} belongs to client {original.client_id}, not {transaction.client_id}"
            )

        if original.dispute_state != required_state:
            raise InvalidStateTransition(
                f"tx {transaction.transaction_id} is {original.dispute_state.value}, "
                f"{transaction.transaction_type.value} requires {required_state.value}"
            )

        return original


def replay(journal: List[Transaction]) -> TransactionProcessor:
    """Rebuild registry and ledger from a journal of accepted transactions."""
    processor = TransactionProcessor()
    for transaction in journal:
        result = processor.process(transaction)
        if not result.accepted:
            raise ValueError(f"Journal entry {transaction} was rejected on replay: {result.reason.value}")
    return processor
