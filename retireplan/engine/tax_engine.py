# engine/tax_engine.py

"""
Federal, state, local and payroll tax plus the Medicare means-tested
surcharge (IRMAA). It contains the tax formulas only, relying entirely on
the versioned read-only tables provided by utils.tax_utils.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence, Tuple

from retireplan.results import IRMAAStatus
from retireplan.utils.currency import ONE, ZERO
from retireplan.utils.tax_utils import (
    INF,
    Bracket,
    TaxFilingStatus,
    TaxTables,
    normalize_filing_status,
)

logger = logging.getLogger(__name__)

TWELVE = Decimal(12)
HALF = Decimal("0.5")
SS_MAX_TAXABLE_SHARE = Decimal("0.85")


@dataclass(frozen=True)
class TaxInputs:
    """One household year of income, split by the categories the taxes care about."""
    filing_status: TaxFilingStatus
    wages_by_person: Tuple[Decimal, ...] = ()
    pension_income: Decimal = ZERO          # FERS, survivor and external annuities plus the SRS
    tsp_ordinary_income: Decimal = ZERO     # traditional withdrawals and Roth conversions
    social_security: Decimal = ZERO
    capital_gains: Decimal = ZERO           # realized gains on taxable-account sales
    seniors: int = 0

    @property
    def wages(self) -> Decimal:
        return sum(self.wages_by_person, ZERO)


@dataclass(frozen=True)
class IRMAAOutcome:
    status: IRMAAStatus
    tier: str
    monthly_surcharge: Decimal      # per covered person, before premium inflation
    annual_surcharge: Decimal       # household, inflated
    annual_base_premium: Decimal    # household Part B base premium, inflated
    distance_to_next: Decimal


@dataclass(frozen=True)
class TaxResult:
    federal_tax: Decimal
    state_tax: Decimal
    local_tax: Decimal
    fica_tax: Decimal
    taxable_ss: Decimal
    agi: Decimal

    @property
    def total(self) -> Decimal:
        return self.federal_tax + self.state_tax + self.local_tax + self.fica_tax


# --- 1. Internal Helper Functions ---

def _tax_from_brackets(taxable: Decimal, brackets: Sequence[Bracket]) -> Decimal:
    tax = ZERO
    remaining = taxable
    for low, high, rate in brackets:
        if remaining <= ZERO:
            break
        bracket_income = min(remaining, high - low) if high != INF else remaining
        tax += bracket_income * rate
        remaining -= bracket_income
    return tax


def _federal_income_tax(
    taxable_ordinary_base: Decimal,
    lt_cap_gains: Decimal,
    ordinary_brackets: Sequence[Bracket],
    capgains_brackets: Sequence[Bracket],
) -> Decimal:
    """Calculates the Federal Income Tax (Ordinary + LTCG stacked on top)."""

    # 1. Tax on Ordinary Income
    ord_tax = _tax_from_brackets(taxable_ordinary_base, ordinary_brackets)

    # 2. Tax on Preferential Income, stacked above ordinary income
    ltcg_tax = ZERO
    taxable_income = taxable_ordinary_base + lt_cap_gains
    for low, high, rate in capgains_brackets:
        bracket_start = max(low, taxable_ordinary_base)
        bracket_end = min(high, taxable_income)
        ltcg_tax += max(ZERO, bracket_end - bracket_start) * rate

    return ord_tax + ltcg_tax


def compute_taxable_ss(
    total_ss_benefit: Decimal,
    other_income: Decimal,
    filing_status: TaxFilingStatus,
    tables: TaxTables,
) -> Decimal:
    """
    IRS Worksheet 1 logic using statutory (non-indexed) thresholds:
    provisional income = other income + half of benefits, taxed in 0/50/85%
    layers and capped at 85% of benefits.
    """
    if total_ss_benefit <= ZERO:
        return ZERO

    brackets = tables.ss_tax_thresholds[filing_status]
    provisional_income = other_income + HALF * total_ss_benefit

    taxable = ZERO
    for low, high, rate in brackets:
        if provisional_income <= low:
            break
        segment = min(provisional_income, high) - low
        taxable += segment * rate
        if provisional_income <= high:
            break

    return min(taxable, SS_MAX_TAXABLE_SHARE * total_ss_benefit)


# --- 2. Calculator ---

class TaxCalculator:
    """
    Computes a household's annual taxes from one table version.

    Parameters
    ----------
    tables : TaxTables
        Read-only tables for the tax year.
    state_code : str
        Two-letter state of residence; unknown states pay no state or local tax.
    """

    def __init__(self, tables: TaxTables, state_code: str = "PA"):
        self.tables = tables
        self.state_code = state_code.strip().upper()
        self.state_rule = tables.state_rules.get(self.state_code)
        if self.state_rule is None:
            logger.warning(
                f"State Tax Calculations Not Available for '{self.state_code}'. "
                "Defaulting to $0 state and local income taxes for this projection."
            )

    # --- Federal ---

    def federal_tax(self, inputs: TaxInputs) -> Tuple[Decimal, Decimal, Decimal]:
        """Returns (federal_tax, taxable_ss, agi)."""
        status = inputs.filing_status
        ordinary = inputs.wages + inputs.pension_income + inputs.tsp_ordinary_income
        taxable_ss = compute_taxable_ss(
            inputs.social_security, ordinary + inputs.capital_gains, status, self.tables
        )
        agi = ordinary + taxable_ss + inputs.capital_gains

        deduction = (
            self.tables.standard_deduction[status]
            + self.tables.senior_extra_deduction[status] * inputs.seniors
        )
        taxable_income = max(ZERO, agi - deduction)
        taxable_ordinary_base = max(ZERO, taxable_income - inputs.capital_gains)
        gains_in_taxable = taxable_income - taxable_ordinary_base

        tax = _federal_income_tax(
            taxable_ordinary_base,
            gains_in_taxable,
            self.tables.ordinary_brackets[status],
            self.tables.capgains_brackets[status],
        )
        return tax, taxable_ss, agi

    # --- State & Local ---

    def state_tax(self, inputs: TaxInputs) -> Decimal:
        rule = self.state_rule
        if rule is None:
            return ZERO
        categories = {
            "wages": inputs.wages,
            "pension": inputs.pension_income,
            "tsp": inputs.tsp_ordinary_income,
            "social_security": inputs.social_security,
            "capital_gains": inputs.capital_gains,
        }
        taxable = sum(
            (amount for name, amount in categories.items() if name not in rule.exempt_categories),
            ZERO,
        )
        return max(ZERO, taxable) * rule.rate

    def local_tax(self, inputs: TaxInputs) -> Decimal:
        """Earned income tax on wages only; retirement income is exempt."""
        if self.state_rule is None:
            return ZERO
        return inputs.wages * self.state_rule.local_wage_rate

    # --- Payroll ---

    def fica_tax(self, inputs: TaxInputs) -> Decimal:
        """Social Security (per-person wage base), Medicare and Additional Medicare."""
        t = self.tables
        total = ZERO
        for wages in inputs.wages_by_person:
            if wages <= ZERO:
                continue
            total += min(wages, t.ss_wage_base) * t.ss_payroll_rate
            total += wages * t.medicare_payroll_rate

        threshold = t.additional_medicare_threshold[inputs.filing_status]
        excess = inputs.wages - threshold
        if excess > ZERO:
            total += excess * t.additional_medicare_rate
        return total

    # --- Medicare IRMAA ---

    def irmaa(
        self,
        lagged_magi: Decimal,
        filing_status: TaxFilingStatus,
        covered_persons: int,
        premium_factor: Decimal = ONE,
        warning_buffer: Decimal = Decimal(10_000),
    ) -> IRMAAOutcome:
        """
        Classifies MAGI from two years earlier against the surcharge tiers.
        The surcharge is the highest tier crossed, charged per covered person.
        """
        thresholds = self.tables.irmaa_thresholds[filing_status]
        surcharges = self.tables.part_b_surcharges_monthly
        base_annual = self.tables.base_part_b_monthly * TWELVE * covered_persons * premium_factor

        tier_index = -1
        for i, threshold in enumerate(thresholds):
            if lagged_magi > threshold:
                tier_index = i
            else:
                break

        if tier_index < 0:
            distance = thresholds[0] - lagged_magi
            status = IRMAAStatus.WARNING if distance <= warning_buffer else IRMAAStatus.SAFE
            return IRMAAOutcome(status, "None", ZERO, ZERO, base_annual, distance)

        monthly = surcharges[tier_index]
        if tier_index + 1 < len(thresholds):
            distance = thresholds[tier_index + 1] - lagged_magi
        else:
            distance = ZERO

        return IRMAAOutcome(
            status=IRMAAStatus.BREACH,
            tier=f"Tier{tier_index + 1}",
            monthly_surcharge=monthly,
            annual_surcharge=monthly * TWELVE * covered_persons * premium_factor,
            annual_base_premium=base_annual,
            distance_to_next=distance,
        )

    # --- Main Orchestrator ---

    def calculate_taxes(self, inputs: TaxInputs) -> TaxResult:
        """Calculates all annual taxes (federal, state, local, payroll)."""
        status = normalize_filing_status(inputs.filing_status)
        if status != inputs.filing_status:
            inputs = TaxInputs(
                filing_status=status,
                wages_by_person=inputs.wages_by_person,
                pension_income=inputs.pension_income,
                tsp_ordinary_income=inputs.tsp_ordinary_income,
                social_security=inputs.social_security,
                capital_gains=inputs.capital_gains,
                seniors=inputs.seniors,
            )

        federal, taxable_ss, agi = self.federal_tax(inputs)
        return TaxResult(
            federal_tax=federal,
            state_tax=self.state_tax(inputs),
            local_tax=self.local_tax(inputs),
            fica_tax=self.fica_tax(inputs),
            taxable_ss=taxable_ss,
            agi=agi,
        )
