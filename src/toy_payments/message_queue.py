import threading
from dataclasses import dataclass
from queue import Queue, Empty
from typing import Optional

from toy_payments import config
from toy_payments.models import RejectionReason, Transaction


@dataclass(frozen=True)
class ShardMessage:
    """
    A transaction routed to a shard.
    ``rejection`` is set when the dispatcher has already decided the outcome.
    """

    transaction: Transaction
    rejection: Optional[RejectionReason] = None
    detail: str = ""


class InMemoryQueue:
    """
    Thread-safe FIFO feeding a single shard worker.
    All synchronization is internal - callers never need to lock.
    """

    def __init__(self, poll_timeout: float = config.QUEUE_POLL_TIMEOUT):
        self._poll_timeout = poll_timeout
        self._queue: Queue[ShardMessage] = Queue()
        self._shutdown_event = threading.Event()

    def publish_message(self, message: ShardMessage) -> None:
        """Add message to the queue. Thread-safe."""
        self._queue.put(message)

    def consume_message(self) -> Optional[ShardMessage]:
        """
        Get next message from the queue.
        Returns None if queue is empty after the poll timeout.
        Thread-safe.
        """
        try:
            return self._queue.get(timeout=self._poll_timeout)
        except Empty:
            return None

    def is_empty(self) -> bool:
        return self._queue.empty()

    def size(self) -> int:
        """Return approximate queue size."""
        return self._queue.qsize()

    def shutdown(self) -> None:
        """Signal no more messages will be published."""
        self._shutdown_event.set()

    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()

    def is_drained(self) -> bool:
        """True once shutdown was signalled and every message has been taken."""
        return self.is_shutdown() and self.is_empty()
