"""
Domain errors for the payments engine.

Registry and ledger operations raise a TransactionError subclass when a record
cannot be applied. The processor turns each one into a rejected
ProcessingResult so a single bad record never stops the stream.
"""
from typing import Optional

from toy_payments.models import RejectionReason


class TransactionError(Exception):
    """Base class for record-level failures. Never fatal to a run."""

    reason: RejectionReason


class DuplicateTransactionId(TransactionError):
    """A deposit or withdrawal reused an id that is already in the registry."""

    reason = RejectionReason.DUPLICATE_TRANSACTION_ID


class UnknownTransactionReference(TransactionError):
    """A dispute, resolve or chargeback referenced an id that was never accepted."""

    reason = RejectionReason.UNKNOWN_TRANSACTION_REFERENCE


class ClientMismatch(TransactionError):
    """The referenced transaction belongs to a different client."""

    reason = RejectionReason.CLIENT_MISMATCH


class InvalidStateTransition(TransactionError):
    """The referenced transaction is not in the state the operation requires."""

    reason = RejectionReason.INVALID_STATE_TRANSITION


class InsufficientFunds(TransactionError):
    """Available funds do not cover the requested amount."""

    reason = RejectionReason.INSUFFICIENT_FUNDS


class AccountLocked(TransactionError):
    """The client's account was locked by a chargeback."""

    reason = RejectionReason.ACCOUNT_LOCKED


class InvalidAmount(TransactionError):
    """A deposit or withdrawal arrived without an amount, or with a negative one."""

    reason = RejectionReason.INVALID_AMOUNT


class MalformedRecord(ValueError):
    """An input row could not be turned into a Transaction."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
