"""
Ledger Kernel

Multi-tenant double-entry ledger core:
- Tenant-scoped journal aggregation with exact integer arithmetic
- Void/reversal of posted entries without editing history
- Structured errors and JSON logging shared by every module
"""

__version__ = "0.1.0"
