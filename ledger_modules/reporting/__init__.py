"""
Reporting Module.

Read-only statement generation over posted journal lines: trial balance,
profit & loss, balance sheet, cash flow, GL drill-down, spending by
category and revenue by client.  Results are frozen value objects, cached
per tenant and rendered to camelCase dicts by ``render_report``.
"""

from ledger_modules.reporting.config import CashFlowClassification, CodeRange, ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheet,
    CashFlow,
    GLLedger,
    ProfitAndLoss,
    ReportType,
    RevenueByClient,
    Severity,
    SpendingByCategory,
    TrialBalance,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_report

__all__ = [
    "BalanceSheet",
    "CashFlow",
    "CashFlowClassification",
    "CodeRange",
    "GLLedger",
    "ProfitAndLoss",
    "ReportType",
    "ReportingConfig",
    "ReportingService",
    "RevenueByClient",
    "Severity",
    "SpendingByCategory",
    "TrialBalance",
    "render_report",
]
