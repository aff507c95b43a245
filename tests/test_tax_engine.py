import logging
from decimal import Decimal

import pytest

from retireplan.engine.tax_engine import TaxCalculator, TaxInputs, compute_taxable_ss
from retireplan.results import IRMAAStatus
from retireplan.utils.tax_utils import TAX_TABLES_2025

MFJ = "married_filing_jointly"


@pytest.fixture
def calc() -> TaxCalculator:
    return TaxCalculator(TAX_TABLES_2025, "PA")


def test_wage_earner_taxes(calc):
    result = calc.calculate_taxes(TaxInputs(MFJ, wages_by_person=(Decimal("100000"),)))

    # 70,000 taxable: 10% of 23,200 plus 12% of 46,800
    assert result.federal_tax == Decimal("7936")
    assert result.state_tax == Decimal("3070")
    assert result.local_tax == Decimal("1000")
    assert result.fica_tax == Decimal("7650")
    assert result.agi == Decimal("100000")
    assert result.total == Decimal("19656")


def test_capital_gains_stack_on_ordinary_income(calc):
    inputs = TaxInputs(MFJ, pension_income=Decimal("80000"), capital_gains=Decimal("50000"))
    result = calc.calculate_taxes(inputs)

    # Ordinary 50,000 -> 5,536; gains fill 50,000..100,000, 3,300 of it above the 0% band
    assert result.federal_tax == Decimal("6031")
    # Pension is exempt in PA, gains are not
    assert result.state_tax == Decimal("1535")
    assert result.local_tax == Decimal("0")
    assert result.fica_tax == Decimal("0")


def test_senior_deduction(calc):
    inputs = TaxInputs(MFJ, pension_income=Decimal("60000"), seniors=2)
    federal, _, _ = calc.federal_tax(inputs)
    assert federal == Decimal("2764")


def test_taxable_social_security_layers():
    tables = TAX_TABLES_2025
    assert compute_taxable_ss(Decimal("20000"), Decimal("10000"), MFJ, tables) == Decimal("0")
    assert compute_taxable_ss(Decimal("40000"), Decimal("30000"), MFJ, tables) == Decimal("11100")
    # Capped at 85% of benefits
    assert compute_taxable_ss(Decimal("30000"), Decimal("200000"), MFJ, tables) == Decimal("25500")


def test_social_security_enters_agi(calc):
    inputs = TaxInputs(MFJ, pension_income=Decimal("30000"), social_security=Decimal("40000"))
    result = calc.calculate_taxes(inputs)
    assert result.taxable_ss == Decimal("11100")
    assert result.agi == Decimal("41100")
    assert result.state_tax == Decimal("0")


def test_fica_wage_base_is_per_person(calc):
    inputs = TaxInputs(MFJ, wages_by_person=(Decimal("200000"), Decimal("100000")))
    # 176,100 x 6.2% + 100,000 x 6.2% + 300,000 x 1.45% + 50,000 x 0.9%
    assert calc.fica_tax(inputs) == Decimal("21918.2")


def test_additional_medicare_single_threshold(calc):
    inputs = TaxInputs("single", wages_by_person=(Decimal("210000"),))
    expected = Decimal("176100") * Decimal("0.062") + Decimal("210000") * Decimal("0.0145") + Decimal("90")
    assert calc.fica_tax(inputs) == expected


def test_filing_status_aliases_are_normalized(calc):
    result = calc.calculate_taxes(TaxInputs("mfj", wages_by_person=(Decimal("100000"),)))
    assert result.federal_tax == Decimal("7936")


def test_unknown_state_pays_no_state_or_local_tax(caplog):
    with caplog.at_level(logging.WARNING):
        calc = TaxCalculator(TAX_TABLES_2025, "TX")
    assert "State Tax Calculations Not Available" in caplog.text

    result = calc.calculate_taxes(TaxInputs(MFJ, wages_by_person=(Decimal("100000"),)))
    assert result.state_tax == Decimal("0")
    assert result.local_tax == Decimal("0")
    assert result.federal_tax == Decimal("7936")


# --- IRMAA ---

def test_irmaa_safe_below_buffer(calc):
    outcome = calc.irmaa(Decimal("150000"), MFJ, 2)
    assert outcome.status is IRMAAStatus.SAFE
    assert outcome.tier == "None"
    assert outcome.annual_surcharge == Decimal("0")
    assert outcome.annual_base_premium == Decimal("4440")
    assert outcome.distance_to_next == Decimal("56000")


def test_irmaa_warning_within_buffer(calc):
    outcome = calc.irmaa(Decimal("200000"), MFJ, 2)
    assert outcome.status is IRMAAStatus.WARNING
    assert outcome.distance_to_next == Decimal("6000")


def test_irmaa_threshold_itself_is_not_a_breach(calc):
    outcome = calc.irmaa(Decimal("206000"), MFJ, 1)
    assert outcome.status is IRMAAStatus.WARNING
    assert outcome.annual_surcharge == Decimal("0")


def test_irmaa_uses_highest_tier_crossed(calc):
    outcome = calc.irmaa(Decimal("300000"), MFJ, 2)
    assert outcome.status is IRMAAStatus.BREACH
    assert outcome.tier == "Tier2"
    assert outcome.monthly_surcharge == Decimal("174.70")
    assert outcome.annual_surcharge == Decimal("4192.80")
    assert outcome.distance_to_next == Decimal("22000")


def test_irmaa_top_tier_with_premium_inflation(calc):
    outcome = calc.irmaa(Decimal("800000"), "single", 1, premium_factor=Decimal("1.1"))
    assert outcome.tier == "Tier5"
    assert outcome.distance_to_next == Decimal("0")
    assert outcome.annual_surcharge == Decimal("6456.12")
    assert outcome.annual_base_premium == Decimal("2442.0")
