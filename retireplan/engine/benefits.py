# engine/benefits.py

"""
Defined-benefit and entitlement income: FERS annuity, special retirement
supplement, external pensions, Social Security, TSP agency contributions
and FEHB premiums. All amounts are annual Decimals.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Tuple

from retireplan.config import expense_assumptions as health
from retireplan.models import Participant
from retireplan.utils.currency import ONE, ZERO
from retireplan.utils.dates import months_paid_in_year, pay_periods_worked, PAY_PERIODS_PER_YEAR
from retireplan.utils.ss_utils import monthly_benefit_at

logger = logging.getLogger(__name__)

TWELVE = Decimal(12)

# FERS annuity multipliers
STANDARD_MULTIPLIER = Decimal("0.01")
ENHANCED_MULTIPLIER = Decimal("0.011")
EARLY_REDUCTION_PER_YEAR = Decimal("0.05")

# Survivor election -> (annuity factor, survivor share of the unreduced annuity)
SURVIVOR_ELECTIONS = {
    Decimal("0.5"): (Decimal("0.90"), Decimal("0.50")),
    Decimal("0.25"): (Decimal("0.95"), Decimal("0.25")),
    Decimal("0"): (ONE, ZERO),
}

COLA_FULL_LIMIT = Decimal("0.02")
COLA_CAPPED_LIMIT = Decimal("0.03")
COLA_REDUCTION = Decimal("0.01")
FERS_COLA_MIN_AGE = 62

SRS_FULL_CAREER_YEARS = Decimal(40)


@dataclass(frozen=True)
class PensionTerms:
    """Annuity fixed at retirement, before any COLA or first-year proration."""
    annual_annuity: Decimal
    survivor_annuity: Decimal
    multiplier: Decimal
    service_years: Decimal
    early_reduction: Decimal
    retirement_age: int


# ----------------------------------------------------------------------
# FERS rules
# ----------------------------------------------------------------------

def determine_multiplier(retirement_age: int, service_years: Decimal) -> Decimal:
    if retirement_age >= 62 and service_years >= 20:
        return ENHANCED_MULTIPLIER
    return STANDARD_MULTIPLIER


def minimum_retirement_age(birth_year: int) -> Decimal:
    """FERS Minimum Retirement Age in years (months expressed as twelfths)."""
    if birth_year <= 1947:
        return Decimal(55)
    if birth_year <= 1952:
        return Decimal(55) + Decimal((birth_year - 1947) * 2) / TWELVE
    if birth_year <= 1964:
        return Decimal(56)
    if birth_year <= 1969:
        return Decimal(56) + Decimal((birth_year - 1964) * 2) / TWELVE
    return Decimal(57)


def early_retirement_reduction(birth_year: int, retirement_age: int, service_years: Decimal) -> Decimal:
    """
    MRA+10 reduction: 5% per year under 62, waived for 30 years at MRA
    and 20 years at 60.
    """
    if retirement_age >= 62:
        return ZERO
    if service_years >= 30 and retirement_age >= minimum_retirement_age(birth_year):
        return ZERO
    if service_years >= 20 and retirement_age >= 60:
        return ZERO
    if service_years < 10:
        return ZERO
    return min(EARLY_REDUCTION_PER_YEAR * (62 - retirement_age), ONE)


def validate_fers_eligibility(participant: Participant, retirement_date: date) -> Tuple[bool, str]:
    age = participant.age(retirement_date)
    service = participant.years_of_service(retirement_date)
    mra = minimum_retirement_age(participant.birth_date.year)

    if age >= 62 and service >= 5:
        return True, "Eligible for immediate annuity at age 62+"
    if age >= 60 and service >= 20:
        return True, "Eligible for immediate annuity at age 60 with 20+ years"
    if age < mra:
        return False, "Employee has not reached Minimum Retirement Age"
    if service >= 30:
        return True, "Eligible for immediate annuity at MRA with 30+ years"
    if service >= 10:
        return True, "Eligible for reduced annuity at MRA with 10+ years"
    return False, "Employee has less than 10 years of service"


def apply_fers_cola(amount: Decimal, cpi: Decimal, annuitant_age: int) -> Decimal:
    """FERS diet COLA: none before 62; full to 2%, capped at 2% to 3%, CPI - 1% above."""
    return amount * (ONE + fers_cola_rate(cpi, annuitant_age))


def fers_cola_rate(cpi: Decimal, annuitant_age: int) -> Decimal:
    if annuitant_age < FERS_COLA_MIN_AGE:
        return ZERO
    if cpi <= COLA_FULL_LIMIT:
        return cpi
    if cpi <= COLA_CAPPED_LIMIT:
        return COLA_FULL_LIMIT
    return cpi - COLA_REDUCTION


def special_retirement_supplement(ss_benefit_62: Decimal, service_years: Decimal, current_age: int) -> Decimal:
    """Annual SRS: age-62 SS estimate x 12 x service / 40, paid only while under 62."""
    if current_age >= 62 or ss_benefit_62 <= ZERO:
        return ZERO
    return ss_benefit_62 * TWELVE * (service_years / SRS_FULL_CAREER_YEARS)


# ----------------------------------------------------------------------
# Calculator
# ----------------------------------------------------------------------

class BenefitCalculator:
    """
    Stateless helpers the projection calls once per participant per year.
    The projection owns the running (COLA-adjusted) amounts.
    """

    def __init__(self, contribution_policy: str = "continue_until_retirement"):
        self.contribution_policy = contribution_policy

    # --- Pension ---

    def pension_terms(self, participant: Participant, retirement_date: date) -> PensionTerms:
        retirement_age = participant.age(retirement_date)

        if participant.is_federal and participant.high3_salary and participant.hire_date:
            service = participant.years_of_service(retirement_date)
            multiplier = determine_multiplier(retirement_age, service)
            unreduced = participant.high3_salary * service * multiplier
            reduction = early_retirement_reduction(participant.birth_date.year, retirement_age, service)
            after_age_reduction = unreduced * (ONE - reduction)

            annuity_factor, survivor_share = SURVIVOR_ELECTIONS.get(
                participant.survivor_election_percent, (ONE, ZERO)
            )
            ok, reason = validate_fers_eligibility(participant, retirement_date)
            if not ok:
                logger.warning(f"{participant.name}: {reason}; annuity is still projected")

            return PensionTerms(
                annual_annuity=after_age_reduction * annuity_factor,
                survivor_annuity=after_age_reduction * survivor_share,
                multiplier=multiplier,
                service_years=service,
                early_reduction=reduction,
                retirement_age=retirement_age,
            )

        if participant.external_pension is not None:
            return PensionTerms(
                annual_annuity=participant.external_pension.monthly_benefit * TWELVE,
                survivor_annuity=ZERO,
                multiplier=ZERO,
                service_years=ZERO,
                early_reduction=ZERO,
                retirement_age=retirement_age,
            )

        return PensionTerms(ZERO, ZERO, ZERO, ZERO, ZERO, retirement_age)

    def pension_cola(self, participant: Participant, amount: Decimal, cpi: Decimal, age: int) -> Decimal:
        """One year of COLA on a running pension amount."""
        if participant.is_federal and participant.high3_salary and participant.hire_date:
            return apply_fers_cola(amount, cpi, age)
        if participant.external_pension is not None:
            return amount * (ONE + participant.external_pension.cola_adjustment)
        return amount * (ONE + cpi)

    def survivor_cola(self, source: Participant, amount: Decimal, cpi: Decimal) -> Decimal:
        """COLA on an inherited survivor annuity; the FERS age-62 gate does not apply to survivors."""
        return self.pension_cola(source, amount, cpi, FERS_COLA_MIN_AGE)

    def supplement_at_retirement(self, participant: Participant, retirement_date: date) -> Decimal:
        if not (participant.is_federal and participant.high3_salary and participant.hire_date):
            return ZERO
        retirement_age = participant.age(retirement_date)
        if retirement_age >= 62:
            return ZERO
        service = participant.years_of_service(retirement_date)
        return special_retirement_supplement(participant.ss_benefit_62, service, retirement_age)

    # --- Social Security ---

    def ss_annual_benefit(self, participant: Participant, claim_age: int) -> Decimal:
        monthly = monthly_benefit_at(
            claim_age,
            participant.birth_date.year,
            participant.ss_benefit_62,
            participant.ss_benefit_fra,
            participant.ss_benefit_70,
        )
        return monthly * TWELVE

    def ss_for_year(self, participant: Participant, claim_age: int, year: int, cola_factor: Decimal) -> Decimal:
        """
        Benefit received in `year`: monthly amount x payments made that year,
        scaled by the cumulative COLA since the first payment year.
        """
        months = months_paid_in_year(participant.birth_date, claim_age, year)
        if months == 0:
            return ZERO
        annual = self.ss_annual_benefit(participant, claim_age)
        return annual / TWELVE * Decimal(months) * cola_factor

    # --- TSP contributions ---

    def employee_contribution(
        self,
        participant: Participant,
        full_year_salary: Decimal,
        retirement_date: date | None,
        year: int,
    ) -> Decimal:
        pct = participant.tsp_contribution_percent
        if full_year_salary <= ZERO or pct <= ZERO or not participant.is_federal:
            return ZERO
        if retirement_date is None or retirement_date.year > year:
            return full_year_salary * pct
        if retirement_date.year < year or self.contribution_policy == "zero_in_retirement_view":
            return ZERO

        # continue_until_retirement: pay periods completed before the retirement date
        periods = pay_periods_worked(retirement_date, year)
        return full_year_salary * pct * Decimal(periods) / Decimal(PAY_PERIODS_PER_YEAR)

    def agency_contribution(self, participant: Participant, wages: Decimal) -> Decimal:
        """Automatic 1% plus dollar-for-dollar on the first 3% and half on the next 2%."""
        if wages <= ZERO or not participant.is_federal:
            return ZERO
        pct = max(participant.tsp_contribution_percent, ZERO)
        first_tier = min(pct, health.tsp_full_match_limit)
        second_tier = min(max(pct - health.tsp_full_match_limit, ZERO), health.tsp_half_match_limit)
        match = min(first_tier + second_tier / 2, health.tsp_max_match)
        return wages * (health.tsp_automatic_contribution + match)

    # --- FEHB ---

    def fehb_annual_premium(self, participant: Participant) -> Decimal:
        if not participant.is_primary_fehb_holder:
            return ZERO
        return participant.fehb_premium_per_pay_period * Decimal(health.fehb_pay_periods_per_year)
