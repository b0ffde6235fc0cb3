"""
Central configuration for the payments engine.
Values that operators may want to change can be overridden from the environment.
"""
import os
from decimal import Decimal, ROUND_DOWN

# --- Amounts ---
PRECISION = 4
AMOUNT_QUANTUM = Decimal(1).scaleb(-PRECISION)  # 0.0001
AMOUNT_ROUNDING = ROUND_DOWN

# --- Identifier ranges ---
MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

# --- CSV layout ---
INPUT_FIELDS = ("type", "client", "tx", "amount")
OUTPUT_HEADER = ("client", "available", "held", "total", "locked")

# --- Sharded processing ---
DEFAULT_NUM_WORKERS = int(os.getenv("PAYMENTS_ENGINE_WORKERS", "4"))
QUEUE_POLL_TIMEOUT = 0.1

# --- Logging ---
LOG_LEVEL = os.getenv("PAYMENTS_ENGINE_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = "%(levelname)s: %(message)s"
