"""Pure domain values and functions for the ledger kernel (no I/O)."""
