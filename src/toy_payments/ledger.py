from decimal import Decimal
from typing import Dict, Iterator, Optional

from toy_payments.errors import InsufficientFunds
from toy_payments.models import ClientAccount


class AccountLedger:
    """
    Per-client balances keyed by client id.
    Accounts are created lazily and live for the rest of the run.
    Amount and lock checks are the processor's job; the ledger only
    refuses operations that would drive available funds below zero.
    """

    def __init__(self):
        self._accounts: Dict[int, ClientAccount] = {}

    def get_or_create(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        account = self._accounts.get(client_id)
        if account is None:
            account = ClientAccount(client_id=client_id)
            self._accounts[client_id] = account
        return account

    def get(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def apply_deposit(self, client_id: int, amount: Decimal) -> None:
        account = self.get_or_create(client_id)
        account.available += amount

    def apply_withdrawal(self, client_id: int, amount: Decimal) -> None:
        account = self.get_or_create(client_id)
        self._ensure_available(account, amount)
        account.available -= amount

    def hold(self, client_id: int, amount: Decimal) -> None:
        """Move funds from available to held while a dispute is open."""
        account = self.get_or_create(client_id)
        self._ensure_available(account, amount)
        account.available -= amount
        account.held += amount

    def release(self, client_id: int, amount: Decimal) -> None:
        """Return held funds to available after a dispute is resolved."""
        account = self.get_or_create(client_id)
        account.held -= amount
        account.available += amount

    def forfeit(self, client_id: int, amount: Decimal) -> None:
        """Remove held funds for good and lock the account."""
        account = self.get_or_create(client_id)
        account.held -= amount
        account.locked = True

    def accounts(self) -> Dict[int, ClientAccount]:
        """Return all accounts (for final output)."""
        return dict(self._accounts)

    def __iter__(self) -> Iterator[ClientAccount]:
        return iter(self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

    @staticmethod
    def _ensure_available(account: ClientAccount, amount: Decimal) -> None:
        if account.available < amount:
            raise InsufficientFunds(
                f"client {account.client_id} has {account.available} available, needs {amount}"
            )
