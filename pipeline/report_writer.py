"""
Report Writer
=============
Serializes extracted records into the downloadable CSV report.

Numbers are written the way JavaScript prints them: ``100``, ``0.5``,
``1e+21``, ``1e-7``.
"""

import math
from decimal import Decimal
from typing import Any, Iterable

from schemas.records import REPORT_FIELDS, ExtractedRecord

REPORT_CONTENT_TYPE = "text/csv"


def format_number(value: float) -> str:
    """Shortest round-trip digits, laid out like ``Number.prototype.toString``."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr() gives the shortest digits that round-trip; normalize() drops trailing zeros.
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k  # position of the decimal point

    if k <= n <= 21:
        return sign + digits + "0" * (n - k)
    if 0 < n <= 21:
        return sign + digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return sign + "0." + "0" * -n + digits

    e = n - 1
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"


def format_value(value: Any) -> str:
    """Render one cell: strings quoted, numbers in their shortest form."""
    if value is None:
        return '""'
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    text = str(value).replace('"', '""')
    return f'"{text}"'


def build_csv(records: Iterable[ExtractedRecord]) -> bytes:
    """
    Build the CSV report for ``records``.

    The header is the record field order; every row carries every column.
    Raises ValueError when there is nothing to report.
    """
    records = list(records)
    if not records:
        raise ValueError("Cannot build a report without records.")

    lines = [",".join(REPORT_FIELDS)]
    for record in records:
        row = record.model_dump()
        lines.append(",".join(format_value(row[name]) for name in REPORT_FIELDS))
    return "\n".join(lines).encode("utf-8")
