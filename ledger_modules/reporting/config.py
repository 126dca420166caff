"""
Reporting Configuration Schema.

Defines account classification by code range and report options.
Account codes follow the chart-of-accounts numbering (1xxx=assets,
2xxx=liabilities, 3xxx=equity, ...); the cash flow statement buckets
balance-sheet accounts by the numeric value of their code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Self

import yaml

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


def code_number(code: str) -> int | None:
    """Numeric value of the leading digits of an account code, if any."""
    digits = ""
    for char in code.strip():
        if not char.isdigit():
            break
        digits += char
    return int(digits) if digits else None


@dataclass(frozen=True)
class CodeRange:
    """Inclusive numeric range of account codes."""

    low: int
    high: int

    def __post_init__(self):
        if self.low > self.high:
            raise ValueError(f"code range {self.low}-{self.high} is inverted")

    def contains(self, code: str) -> bool:
        number = code_number(code)
        return number is not None and self.low <= number <= self.high

    @classmethod
    def parse(cls, value) -> CodeRange:
        """Accept a CodeRange, a [low, high] pair or a "low-high" string."""
        if isinstance(value, CodeRange):
            return value
        if isinstance(value, str):
            low, _, high = value.partition("-")
            return cls(int(low), int(high or low))
        low, high = value
        return cls(int(low), int(high))


def _ranges(values) -> tuple[CodeRange, ...]:
    return tuple(CodeRange.parse(v) for v in values)


@dataclass
class CashFlowClassification:
    """
    Code ranges for the indirect-method cash flow statement.

    Cash accounts are the result, not an input: they are excluded from
    every activity section.  Operating and investing ranges only apply to
    ASSET accounts; operating and financing liability ranges only to
    LIABILITY accounts; equity ranges only to EQUITY accounts.
    """

    cash: tuple[CodeRange, ...] = (CodeRange(1000, 1099),)
    operating_assets: tuple[CodeRange, ...] = (CodeRange(1100, 1499),)
    operating_liabilities: tuple[CodeRange, ...] = (CodeRange(2000, 2499),)
    investing_assets: tuple[CodeRange, ...] = (CodeRange(1500, 1999),)
    financing_liabilities: tuple[CodeRange, ...] = (CodeRange(2500, 2999),)
    financing_equity: tuple[CodeRange, ...] = (CodeRange(3000, 3999),)

    def __post_init__(self):
        for name in (
            "cash",
            "operating_assets",
            "operating_liabilities",
            "investing_assets",
            "financing_liabilities",
            "financing_equity",
        ):
            setattr(self, name, _ranges(getattr(self, name)))

    @staticmethod
    def matches(code: str, ranges: tuple[CodeRange, ...]) -> bool:
        """Check if an account code falls in any of the given ranges."""
        return any(r.contains(code) for r in ranges)

    def is_cash(self, code: str) -> bool:
        return self.matches(code, self.cash)


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Controls cash flow classification, the reserved retained-earnings
    account, labels, and GL drill-down paging.
    """

    classification: CashFlowClassification = field(default_factory=CashFlowClassification)

    # Equity account holding prior-years retained earnings
    retained_earnings_code: str = "3100"

    # Entity name shown on consolidated reports
    consolidated_label: str = "All Entities"

    # GL drill-down paging
    default_page_size: int = 50
    max_page_size: int = 200

    # Whether to include accounts with zero balance in statement sections
    show_zero_balances: bool = False

    def __post_init__(self):
        if self.max_page_size < 1:
            raise ValueError("max_page_size must be at least 1")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")
        if not self.retained_earnings_code:
            raise ValueError("retained_earnings_code cannot be empty")

    def clamp_page_size(self, limit: int | None) -> int:
        if limit is None:
            return self.default_page_size
        return max(1, min(limit, self.max_page_size))

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "classification" in data and isinstance(data["classification"], dict):
            data["classification"] = CashFlowClassification(**data["classification"])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load config from a YAML file with a top-level ``reporting`` mapping."""
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        data = raw.get("reporting", raw)
        logger.info("reporting_config_loading_from_yaml", extra={"path": str(path)})
        return cls.from_dict(data)
