"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases shared by every model, so that
    amounts, currencies, and codes use identical column definitions
    system-wide.  Base.type_annotation_map resolves each alias to its
    SQL type.
Architecture position: Kernel > DB.  May be imported by models/ and modules'
    orm.py files.  MUST NOT import from any higher layer.

Invariants enforced:
    MinorUnits -- every monetary column is a BigInteger of whole minor units.
    Currency   -- ISO 4217 codes are exactly three characters.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Monetary amount in integer minor currency units (cents)
MinorUnits = Annotated[int, "minor_units"]

# Exchange rate (functional currency per transaction currency unit)
Rate = Annotated[Decimal, "rate"]

# ISO 4217 currency code (e.g., "USD", "CAD")
Currency = Annotated[str, "currency"]

# Account codes, document numbers, entry numbers
ShortCode = Annotated[str, "short_code"]

# Free-text memo / notes
LongText = Annotated[str, "long_text"]

COLUMN_TYPES = {
    MinorUnits: BigInteger,
    Rate: Numeric(38, 18),
    Currency: String(3),
    ShortCode: String(50),
    LongText: String(4000),
}
