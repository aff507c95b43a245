# utils/dates.py

import calendar
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from retireplan.utils.currency import ZERO, ONE

DAYS_PER_SERVICE_YEAR = Decimal("365.25")
PAY_PERIODS_PER_YEAR = 26


def age_on(birth_date: date, at: date) -> int:
    """Whole years of age on `at` (birthday not yet reached counts one less)."""
    age = at.year - birth_date.year
    if (at.month, at.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def age_in_year(birth_date: date, year: int) -> int:
    """Age attained during calendar `year` (the age on the birthday)."""
    return year - birth_date.year


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def years_of_service(hire_date: date | None, at: date) -> Decimal:
    """Creditable service in years (days / 365.25), rounded to four places."""
    if hire_date is None or at <= hire_date:
        return ZERO
    days = Decimal((at - hire_date).days)
    return (days / DAYS_PER_SERVICE_YEAR).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def work_fraction(retirement_date: date | None, year: int) -> Decimal:
    """
    Fraction of calendar `year` worked before `retirement_date`.

    1 for years before the retirement year, 0 for years after it, and
    days-worked / days-in-year during it. No retirement date means the
    participant is not working during the projection.
    """
    if retirement_date is None:
        return ZERO
    if retirement_date.year < year:
        return ZERO
    if retirement_date.year > year:
        return ONE

    days_worked = (retirement_date - date(year, 1, 1)).days
    fraction = Decimal(days_worked) / Decimal(days_in_year(year))
    return min(max(fraction, ZERO), ONE)


def pay_periods_worked(retirement_date: date, year: int) -> int:
    """Biweekly pay periods completed in the retirement year."""
    if retirement_date.year > year:
        return PAY_PERIODS_PER_YEAR
    if retirement_date.year < year:
        return 0
    day_of_year = retirement_date.timetuple().tm_yday
    periods = int(PAY_PERIODS_PER_YEAR * day_of_year / 365)
    return min(max(periods, 0), PAY_PERIODS_PER_YEAR)


def months_paid_in_year(birth_date: date, claim_age: int, year: int) -> int:
    """
    Number of monthly benefit payments received in `year` when claiming at
    `claim_age`. The first payment arrives the month after the claim month.
    """
    claim_year = birth_date.year + claim_age
    first_paid_year, first_paid_month = claim_year, birth_date.month + 1
    if first_paid_month > 12:
        first_paid_year, first_paid_month = claim_year + 1, 1

    if first_paid_year > year:
        return 0
    if first_paid_year < year:
        return 12
    return 12 - first_paid_month + 1


def first_payment_year(birth_date: date, claim_age: int) -> int:
    claim_year = birth_date.year + claim_age
    return claim_year + 1 if birth_date.month == 12 else claim_year


def add_months(d: date, months: int) -> date:
    """Shifts a date by whole months, clamping the day to the target month's length."""
    month_index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def death_year(birth_date: date, death_date: date | None, death_age: int | None) -> int | None:
    """Calendar year of death from an explicit date or an age, None when alive throughout."""
    if death_date is not None:
        return death_date.year
    if death_age is not None:
        return birth_date.year + death_age
    return None
