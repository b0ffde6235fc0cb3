import logging
import threading
from typing import Dict, Iterable, List, Set

from toy_payments import config
from toy_payments.csv_io import read_transactions
from toy_payments.message_queue import InMemoryQueue, ShardMessage
from toy_payments.models import ClientAccount, ProcessingStats, RejectionReason, Transaction
from toy_payments.transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)


class Shard:
    """A processor with private registry and ledger, drained by one worker thread."""

    def __init__(self, index: int):
        self.index = index
        self.queue = InMemoryQueue()
        self.processor = TransactionProcessor()


class ShardedPaymentsEngine:
    """
    Orchestrates transaction processing with one publisher and one consumer per shard.

    Every rule touches exactly one client, so clients are partitioned across
    shards by ``client_id % num_workers``. Each shard is consumed by a single
    thread, which keeps a client's transactions in their original relative order.

    Transaction ids must be unique across the whole run, so the publisher claims
    each deposit/withdrawal id in file order before dispatch. A later record with
    a claimed id reaches its shard already rejected as a duplicate, even if the
    first claimant is itself rejected by its shard.
    """

    def __init__(self, num_workers: int = config.DEFAULT_NUM_WORKERS):
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self._shards: List[Shard] = [Shard(i) for i in range(num_workers)]
        self._claimed_ids: Set[int] = set()
        self._stats = ProcessingStats()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Stream a CSV file through the shards and return final account states."""
        transactions = read_transactions(filepath, on_malformed=lambda e: self._stats.record_malformed())
        return self.process_transactions(transactions)

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        logger.info(f"Starting sharded processing with {len(self._shards)} workers")

        consumer_threads = []
        for shard in self._shards:
            consumer_thread = threading.Thread(target=self._consume_transactions, args=(shard,), daemon=True)
            consumer_thread.start()
            consumer_threads.append(consumer_thread)

        # Publishing runs on the caller's thread; ingestion errors propagate from here.
        try:
            self._publish_transactions(transactions)
        finally:
            for shard in self._shards:
                shard.queue.shutdown()
            for consumer_thread in consumer_threads:
                consumer_thread.join()

        logger.info(f"Sharded processing complete. {self._stats}")
        return self.get_all_accounts()

    def get_all_accounts(self) -> Dict[int, ClientAccount]:
        accounts: Dict[int, ClientAccount] = {}
        for shard in self._shards:
            accounts.update(shard.processor.ledger.accounts())
        return accounts

    def shard_for(self, client_id: int) -> Shard:
        return self._shards[client_id % len(self._shards)]

    def _publish_transactions(self, transactions: Iterable[Transaction]) -> None:
        for transaction in transactions:
            self.shard_for(transaction.client_id).queue.publish_message(self._claim(transaction))

    def _claim(self, transaction: Transaction) -> ShardMessage:
        if not transaction.transaction_type.carries_amount:
            return ShardMessage(transaction)
        if transaction.transaction_id in self._claimed_ids:
            return ShardMessage(
                transaction,
                RejectionReason.DUPLICATE_TRANSACTION_ID,
                f"tx {transaction.transaction_id} already claimed",
            )
        self._claimed_ids.add(transaction.transaction_id)
        return ShardMessage(transaction)

    def _consume_transactions(self, shard: Shard) -> None:
        """Consumer loop: pull from the shard queue and process until drained."""
        while True:
            message = shard.queue.consume_message()
            if message is None:
                if shard.queue.is_drained():
                    break
                continue

            if message.rejection is not None:
                result = shard.processor.reject(message.transaction, message.rejection, message.detail)
            else:
                result = shard.processor.process(message.transaction)
            self._stats.record(result)
