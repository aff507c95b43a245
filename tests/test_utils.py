from datetime import date
from decimal import Decimal

import pytest

from retireplan.errors import ConfigurationError, DataError
from retireplan.utils.currency import (
    clean_currency,
    clean_percent,
    format_currency_output,
    format_percent_output,
    quantize_cents,
    rate_from_float,
    to_decimal,
)
from retireplan.utils.dates import (
    add_months,
    age_in_year,
    age_on,
    days_in_year,
    death_year,
    months_paid_in_year,
    pay_periods_worked,
    work_fraction,
    years_of_service,
)
from retireplan.utils.ss_utils import (
    claiming_factor,
    get_full_retirement_age,
    interpolate_monthly_benefit,
    monthly_benefit_at,
)
from retireplan.utils.tax_utils import (
    TAX_TABLES_2025,
    TAX_TABLES_2026,
    get_tax_tables,
    normalize_filing_status,
)


# --- currency ---

def test_to_decimal_uses_float_repr():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal("95000") == Decimal("95000")
    assert to_decimal(None, default=Decimal("0")) == Decimal("0")


def test_to_decimal_rejects_garbage():
    with pytest.raises(ConfigurationError):
        to_decimal("abc")
    with pytest.raises(ConfigurationError):
        to_decimal(True)
    with pytest.raises(ConfigurationError):
        to_decimal(None)


def test_rate_from_float_quantizes():
    assert rate_from_float(0.123456789) == Decimal("0.12345679")
    assert rate_from_float(-0.37) == Decimal("-0.37")


def test_quantize_cents_rounds_half_up():
    assert quantize_cents(Decimal("10.005")) == Decimal("10.01")
    assert quantize_cents(Decimal("10.004")) == Decimal("10.00")


def test_clean_currency_and_percent():
    assert clean_currency("$140,000.00") == Decimal("140000.00")
    assert clean_currency("") == Decimal("0")
    assert clean_percent("23%") == Decimal("0.23")
    assert clean_percent(4) == Decimal("0.04")
    assert clean_percent("0.04") == Decimal("0.04")
    assert clean_percent(None) is None


def test_output_formatting():
    assert format_currency_output(Decimal("1234567.4")) == "$1,234,567"
    assert format_percent_output(Decimal("0.25")) == "25.0%"
    assert format_percent_output(None) == ""


# --- dates ---

def test_age_on_counts_birthday():
    assert age_on(date(1965, 3, 15), date(2025, 3, 14)) == 59
    assert age_on(date(1965, 3, 15), date(2025, 3, 15)) == 60
    assert age_in_year(date(1965, 3, 15), 2025) == 60


def test_days_in_year_and_service():
    assert days_in_year(2024) == 366
    assert days_in_year(2025) == 365
    assert years_of_service(None, date(2025, 1, 1)) == Decimal("0")
    assert years_of_service(date(2000, 1, 1), date(1999, 1, 1)) == Decimal("0")
    assert years_of_service(date(1990, 1, 1), date(2026, 1, 1)) == Decimal("36.0000")


def test_work_fraction_bounds():
    assert work_fraction(None, 2025) == Decimal("0")
    assert work_fraction(date(2030, 6, 30), 2025) == Decimal("1")
    assert work_fraction(date(2024, 6, 30), 2025) == Decimal("0")
    assert work_fraction(date(2027, 7, 2), 2027) == Decimal(182) / Decimal(365)
    assert work_fraction(date(2027, 1, 1), 2027) == Decimal("0")


def test_pay_periods_worked():
    assert pay_periods_worked(date(2027, 6, 30), 2027) == 12
    assert pay_periods_worked(date(2028, 6, 30), 2027) == 26
    assert pay_periods_worked(date(2026, 6, 30), 2027) == 0


def test_months_paid_in_year_starts_month_after_claim():
    assert months_paid_in_year(date(1960, 3, 10), 62, 2022) == 9
    assert months_paid_in_year(date(1960, 3, 10), 62, 2021) == 0
    assert months_paid_in_year(date(1960, 3, 10), 62, 2023) == 12


def test_months_paid_december_birthday_rolls_into_next_year():
    assert months_paid_in_year(date(1960, 12, 5), 62, 2022) == 0
    assert months_paid_in_year(date(1960, 12, 5), 62, 2023) == 12


def test_add_months_clamps_day():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2027, 6, 30), -24) == date(2025, 6, 30)
    assert add_months(date(2027, 11, 15), 3) == date(2028, 2, 15)


def test_death_year_prefers_explicit_date():
    assert death_year(date(1960, 1, 1), date(2040, 5, 1), 90) == 2040
    assert death_year(date(1960, 1, 1), None, 85) == 2045
    assert death_year(date(1960, 1, 1), None, None) is None


# --- Social Security ---

def test_full_retirement_age():
    assert get_full_retirement_age(1960) == 67.0
    assert get_full_retirement_age(1950) == 66.0
    assert get_full_retirement_age(1955) == pytest.approx(66 + 2 / 12)
    # January 1st births use the previous year's rule
    assert get_full_retirement_age(1960, birth_month=1) == pytest.approx(66 + 10 / 12)


def test_claiming_factor():
    assert claiming_factor(67, 67.0) == Decimal("1")
    assert claiming_factor(62, 67.0) == Decimal("0.70")
    assert claiming_factor(70, 67.0) == Decimal("1.24012")


def test_interpolate_between_statement_ages():
    b62, fra, b70 = Decimal("1800"), Decimal("2600"), Decimal("3300")
    assert interpolate_monthly_benefit(62, b62, fra, b70) == b62
    assert interpolate_monthly_benefit(67, b62, fra, b70) == fra
    assert interpolate_monthly_benefit(70, b62, fra, b70) == b70
    assert interpolate_monthly_benefit(64, b62, fra, b70) == Decimal("2120")
    assert interpolate_monthly_benefit(68, b62, fra, b70) == Decimal(2600) + Decimal(700) / Decimal(3)


def test_monthly_benefit_falls_back_to_claiming_factor():
    assert monthly_benefit_at(70, 1963, Decimal("0"), Decimal("2000"), Decimal("0")) == Decimal("2480.24000")
    assert monthly_benefit_at(67, 1963, Decimal("0"), Decimal("0"), Decimal("0")) == Decimal("0")


# --- tax tables ---

def test_tax_table_lookup_uses_newest_version_not_after_year():
    assert get_tax_tables(2025) is TAX_TABLES_2025
    assert get_tax_tables(2026) is TAX_TABLES_2026
    assert get_tax_tables(2040) is TAX_TABLES_2026


def test_tax_table_lookup_before_first_version():
    with pytest.raises(DataError):
        get_tax_tables(2024)


def test_single_brackets_are_half_of_joint_in_2025():
    joint = TAX_TABLES_2025.ordinary_brackets["married_filing_jointly"]
    single = TAX_TABLES_2025.ordinary_brackets["single"]
    assert single[0][1] == joint[0][1] / 2
    assert single[-1][2] == joint[-1][2]


def test_tables_are_read_only():
    with pytest.raises(TypeError):
        TAX_TABLES_2025.standard_deduction["single"] = Decimal("0")


def test_normalize_filing_status():
    assert normalize_filing_status("MFJ") == "married_filing_jointly"
    assert normalize_filing_status(" single ") == "single"
    with pytest.raises(ConfigurationError):
        normalize_filing_status("head_of_household")
