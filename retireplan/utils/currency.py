# utils/currency.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from retireplan.errors import ConfigurationError

ZERO = Decimal("0")
ONE = Decimal("1")
CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.00000001")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number | None, default: Decimal | None = None) -> Decimal:
    """
    Converts a money or rate value to Decimal without binary float noise.

    Floats go through their shortest repr (0.1 -> Decimal("0.1")), not the
    exact binary expansion.
    """
    if value is None:
        if default is None:
            raise ConfigurationError("A numeric value is required, got None")
        return default
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ConfigurationError(f"Expected a number, got boolean {value!r}")
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ConfigurationError(f"Cannot interpret {value!r} as a number") from exc


def rate_from_float(value: float) -> Decimal:
    """Converts a sampled float rate into a Decimal quantized to 1e-8."""
    return Decimal(repr(float(value))).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ----------------------------------------------------------------------
# Helper Function
# ----------------------------------------------------------------------

def clean_currency(val) -> Decimal:
    """
    Cleans a currency string (e.g., "$140,000.00") into a Decimal (140000.00).
    Empty values are zero.
    """
    if val is None or val == "":
        return ZERO
    if isinstance(val, (Decimal, int, float)):
        return to_decimal(val)

    cleaned_val = str(val).replace('$', '').replace(',', '').strip()
    if not cleaned_val:
        return ZERO
    return to_decimal(cleaned_val)


def clean_percent(raw_input: Union[str, float, int, Decimal, None]) -> Decimal | None:
    """
    Cleans raw input (e.g., '0.23', '23%', '23') and converts it to a Decimal
    where 1 represents 100%. Whole numbers from 1 to 100 are read as percents.
    """
    if raw_input is None:
        return None

    if isinstance(raw_input, str):
        s = raw_input.replace('%', '').replace(',', '').replace(' ', '').strip()
        if not s:
            return None
        numeric_val = to_decimal(s)
    else:
        numeric_val = to_decimal(raw_input)

    if Decimal("1") <= numeric_val <= Decimal("100"):
        return numeric_val / Decimal("100")
    return numeric_val


def format_percent_output(value: Decimal | float | None, decimal_places: int = 1) -> str:
    """Formats a rate (0.23) to a display string ('23.0%')."""
    if value is None:
        return ""
    return f"{float(value) * 100:.{decimal_places}f}%"


def format_currency_output(val, decimals=0):
    """
    Formats a Decimal/float/int into a clean currency string ($1,234,567).

    Args:
        val: The numerical value to format.
        decimals (int): Number of decimal places.
    """
    if val is None:
        val = ZERO
    return f"${to_decimal(val):,.{decimals}f}"
