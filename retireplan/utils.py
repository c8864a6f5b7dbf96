"""General utilities for RetirePlan

Contents
--------
- Coercion helpers (lenient float/int/date parsing for planning input)
- Time-value-of-money helpers (future value, SIP value, required SIP,
  inflation, growing annuity)
- Tabular helpers (dataclass rows -> pandas DataFrame)
- Formatting helpers (rupee amounts in lakh/crore)
"""

from __future__ import annotations

import dataclasses
import logging
import math
from datetime import date, datetime
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd

from .constants import MONTHS_PER_YEAR

__all__ = [
    # Coercion
    "safe_float",
    "safe_int",
    "safe_date",
    "whole_years_between",
    # Finance
    "future_value",
    "sip_future_value",
    "required_monthly_sip",
    "inflate",
    "growing_annuity_due_pv",
    # Tables
    "rows_to_frame",
    # Formatting
    "format_currency",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def safe_float(value: Any, default: float = 0.0) -> float:
    """Coerce *value* to a finite float, falling back to *default*.

    None, blank strings, unparsable text, NaN and infinities all map to
    *default*. Planning input is frequently half-edited, so this never raises.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        logger.debug("Could not coerce %r to float, using %s", value, default)
        return default
    if not math.isfinite(result):
        return default
    return result


def safe_int(value: Any, default: int = 0) -> int:
    """Coerce *value* to an int (truncating floats), falling back to *default*."""
    result = safe_float(value, default=float("nan"))
    if math.isnan(result):
        return default
    return int(result)


def safe_date(value: Any) -> Optional[date]:
    """Parse an ISO date, datetime or date; return None when absent or invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            logger.debug("Could not parse date %r", value)
    return None


def whole_years_between(start: date, end: date) -> int:
    """Completed years from *start* to *end* (negative when *end* precedes)."""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


# ---------------------------------------------------------------------------
# Time value of money (rates in percent)
# ---------------------------------------------------------------------------

def future_value(principal: float, annual_rate: float, years: int) -> float:
    """Compound *principal* annually at *annual_rate* percent for *years*."""
    if years <= 0:
        return principal
    return principal * (1.0 + annual_rate / 100.0) ** years


def sip_future_value(monthly_amount: float, annual_rate: float, years: int) -> float:
    """Future value of a monthly SIP paid at the start of each month.

    Uses the annuity-due formula with monthly compounding at
    ``annual_rate / 12``. A zero rate reduces to the plain sum.
    """
    if years <= 0 or monthly_amount <= 0:
        return 0.0
    months = years * MONTHS_PER_YEAR
    i = annual_rate / 100.0 / MONTHS_PER_YEAR
    if i == 0:
        return monthly_amount * months
    return monthly_amount * (((1.0 + i) ** months - 1.0) / i) * (1.0 + i)


def required_monthly_sip(target: float, annual_rate: float, years: int) -> float:
    """Monthly SIP (ordinary annuity) that accumulates to *target*.

    SIP = FV * i / ((1 + i)^n - 1). Returns 0 for a non-positive target or
    horizon.
    """
    if target <= 0 or years <= 0:
        return 0.0
    months = years * MONTHS_PER_YEAR
    i = annual_rate / 100.0 / MONTHS_PER_YEAR
    if i == 0:
        return target / months
    return target * i / ((1.0 + i) ** months - 1.0)


def inflate(amount: float, inflation_rate: float, years: int) -> float:
    """Today's *amount* expressed in money of *years* from now."""
    return future_value(amount, inflation_rate, years)


def growing_annuity_due_pv(
    first_payment: float,
    discount_rate: float,
    growth_rate: float,
    periods: int,
) -> float:
    """Present value of *periods* payments growing at *growth_rate*.

    The first payment is made immediately (annuity due), then each
    subsequent payment grows by ``growth_rate`` percent and is discounted at
    ``discount_rate`` percent:

        PV = P * sum_{t=0}^{n-1} ((1 + g) / (1 + r))^t
    """
    if periods <= 0 or first_payment == 0:
        return 0.0
    r = discount_rate / 100.0
    g = growth_rate / 100.0
    if r <= -1.0:
        return first_payment * periods
    ratio = (1.0 + g) / (1.0 + r)
    if math.isclose(ratio, 1.0, rel_tol=1e-12, abs_tol=1e-12):
        return first_payment * periods
    return first_payment * (1.0 - ratio ** periods) / (1.0 - ratio)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

def rows_to_frame(rows: Sequence[Any], index: Optional[str] = None) -> pd.DataFrame:
    """Convert a sequence of dataclass instances into a DataFrame.

    Nested dict fields (e.g. per-strategy values) are flattened into
    ``field.key`` columns.
    """
    records = []
    for row in rows:
        flat = {}
        for key, value in dataclasses.asdict(row).items():
            if isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    flat[f"{key}.{sub_key}"] = sub_value
            else:
                flat[key] = value
        records.append(flat)
    frame = pd.DataFrame.from_records(records)
    if index is not None and not frame.empty:
        frame = frame.set_index(index)
    return frame


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_currency(value: float, compact: bool = False) -> str:
    """Format a rupee amount, optionally in lakh (L) / crore (Cr) units.

    Examples
    --------
    >>> format_currency(12_500_000, compact=True)
    '₹1.25 Cr'
    >>> format_currency(250_000, compact=True)
    '₹2.50 L'
    >>> format_currency(1234.4)
    '₹1,234'
    """
    if value is None or not np.isfinite(value):
        return "₹0"
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    if compact:
        if magnitude >= 1e7:
            return f"{sign}₹{magnitude / 1e7:.2f} Cr"
        if magnitude >= 1e5:
            return f"{sign}₹{magnitude / 1e5:.2f} L"
    return f"{sign}₹{magnitude:,.0f}"
