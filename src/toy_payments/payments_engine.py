import logging
from typing import Callable, Dict, Iterable, Optional

from toy_payments.csv_io import load_transactions, read_transactions
from toy_payments.models import ClientAccount, ProcessingResult, ProcessingStats, Transaction
from toy_payments.transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ProcessingResult], None]


class PaymentsEngine:
    """
    Feeds transactions to a single processor, strictly in input order.
    Rejected transactions are counted and skipped; they never stop the run.
    """

    def __init__(self, processor: Optional[TransactionProcessor] = None):
        self._processor = processor if processor is not None else TransactionProcessor()
        self._stats = ProcessingStats()

    @property
    def processor(self) -> TransactionProcessor:
        return self._processor

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str, on_result: Optional[ResultCallback] = None) -> Dict[int, ClientAccount]:
        """
        Stream a CSV file through the processor and return final account states.
        Malformed rows are skipped; an unreadable file raises OSError.
        """
        logger.info(f"Streaming transactions from {filepath}")
        transactions = read_transactions(filepath, on_malformed=lambda e: self._stats.record_malformed())
        return self.process_transactions(transactions, on_result)

    def process_batch(self, filepath: str, on_result: Optional[ResultCallback] = None) -> Dict[int, ClientAccount]:
        """
        Load the whole file before applying anything.
        A single malformed row raises MalformedRecord and leaves every account untouched.
        """
        logger.info(f"Loading transactions from {filepath}")
        transactions = load_transactions(filepath)
        logger.info(f"Loaded {len(transactions)} transactions")
        return self.process_transactions(transactions, on_result)

    def process_transactions(
        self,
        transactions: Iterable[Transaction],
        on_result: Optional[ResultCallback] = None,
    ) -> Dict[int, ClientAccount]:
        for transaction in transactions:
            result = self._processor.process(transaction)
            self._stats.record(result)
            if on_result is not None:
                on_result(result)

        logger.info(f"Processing complete. {self._stats}")
        return self._processor.ledger.accounts()
