# engine/rmd_tables.py

"""
RMD factor lookup supporting:
- 2022+ Uniform Lifetime Table
- SECURE Act 1.0/2.0 start ages (72 → 73 → 75)
"""

from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from retireplan.utils.currency import ZERO

# =============================================================================
# FULL 2022+ IRS UNIFORM LIFETIME TABLE (AGES 72–120)
# =============================================================================
UNIFORM_LIFETIME_TABLE_2022: Mapping[int, Decimal] = MappingProxyType({
    age: Decimal(divisor) for age, divisor in {
        72: "27.4", 73: "26.5", 74: "25.5", 75: "24.6", 76: "23.7", 77: "22.9",
        78: "22.0", 79: "21.1", 80: "20.2", 81: "19.4", 82: "18.5", 83: "17.7",
        84: "16.8", 85: "16.0", 86: "15.2", 87: "14.4", 88: "13.7", 89: "12.9",
        90: "12.2", 91: "11.5", 92: "10.8", 93: "10.1", 94: "9.5", 95: "8.9",
        96: "8.4", 97: "7.8", 98: "7.3", 99: "6.8", 100: "6.4", 101: "6.0",
        102: "5.6", 103: "5.2", 104: "4.9", 105: "4.6", 106: "4.3", 107: "4.1",
        108: "3.9", 109: "3.7", 110: "3.5", 111: "3.4", 112: "3.3", 113: "3.1",
        114: "3.0", 115: "2.9", 116: "2.8", 117: "2.7", 118: "2.5", 119: "2.3",
        120: "2.0",
    }.items()
})

# IRS default divisor beyond the end of the table
DIVISOR_BEYOND_TABLE = Decimal("2.0")


def rmd_start_age(birth_year: int) -> int:
    """SECURE 2.0 required beginning age for a birth cohort."""
    if birth_year >= 1960:
        return 75
    if birth_year >= 1951:
        return 73
    return 72


def get_rmd_factor(age: int, birth_year: int | None = None) -> Decimal:
    """
    Returns the IRS divisor for RMD calculations.

    Parameters
    ----------
    age : int
        Age in the distribution calendar year.
    birth_year : int | None
        Used to determine the SECURE Act starting age. Without it the
        earliest (72) start age is assumed.

    Returns
    -------
    Decimal
        RMD divisor for the given age, or 0 before RMDs begin.
    """
    start_age = rmd_start_age(birth_year) if birth_year is not None else 72
    if age < start_age:
        return ZERO

    if age in UNIFORM_LIFETIME_TABLE_2022:
        return UNIFORM_LIFETIME_TABLE_2022[age]
    if age > max(UNIFORM_LIFETIME_TABLE_2022):
        return DIVISOR_BEYOND_TABLE
    # Start ages below the table's first entry use its first divisor
    return UNIFORM_LIFETIME_TABLE_2022[min(UNIFORM_LIFETIME_TABLE_2022)]


def required_minimum_distribution(balance: Decimal, age: int, birth_year: int) -> Decimal:
    """Prior-year-end balance divided by the Uniform Lifetime divisor."""
    factor = get_rmd_factor(age, birth_year)
    if factor == ZERO or balance <= ZERO:
        return ZERO
    return balance / factor


__all__ = [
    "UNIFORM_LIFETIME_TABLE_2022",
    "get_rmd_factor",
    "required_minimum_distribution",
    "rmd_start_age",
]
