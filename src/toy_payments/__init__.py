"""Payments engine: deposits, withdrawals, disputes, resolves and chargebacks per client."""
