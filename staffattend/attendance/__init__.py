"""Per-day check-in/check-out decisions and the record ledger."""

__all__ = ["decision", "ledger", "service"]
