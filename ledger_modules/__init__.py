"""
Ledger Modules.

Business modules layered over the ledger kernel:
- Invoicing: invoice and bill lifecycle, aging
- Payments: payments and their allocation to invoices and bills
- Reporting: trial balance, P&L, balance sheet, cash flow, GL drill-down

Modules import from the kernel; the kernel never imports from modules
(except the ORM registry used when creating tables).
"""
