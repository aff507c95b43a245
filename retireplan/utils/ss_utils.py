# utils/ss_utils.py

from decimal import Decimal

from retireplan.utils.currency import ZERO, ONE

EARLIEST_CLAIM_AGE = 62
LATEST_CLAIM_AGE = 70

# Delayed credits and early reductions per month (SSA 2/3%, 5/9%, 5/12%)
DELAYED_CREDIT_PER_MONTH = Decimal("0.00667")
EARLY_REDUCTION_FIRST_36 = Decimal("0.00556")
EARLY_REDUCTION_BEYOND_36 = Decimal("0.00417")
MAX_DELAY_FACTOR = Decimal("1.32")
MIN_EARLY_FACTOR = Decimal("0.70")


def get_full_retirement_age(birth_year: int, birth_month: int = 2) -> float:
    """
    Full Retirement Age (FRA) in years for a birth year, per SSA rules.
    People born on January 1st use the previous year's FRA; callers pass
    birth_month=1 only for that case.
    """
    year_for_fra_calc = birth_year - 1 if birth_month == 1 else birth_year

    if year_for_fra_calc <= 1937:
        return 65.0
    if year_for_fra_calc <= 1942:
        return 65.0 + (year_for_fra_calc - 1937) * 2 / 12.0
    if year_for_fra_calc <= 1954:
        return 66.0
    if year_for_fra_calc <= 1959:
        return 66.0 + (year_for_fra_calc - 1954) * 2 / 12.0
    return 67.0


def claiming_factor(claim_age_years: float, fra_age_years: float) -> Decimal:
    """Benefit as a fraction of the FRA amount when claiming at `claim_age_years`."""
    months_diff = int(round((claim_age_years - fra_age_years) * 12))

    if months_diff == 0:
        return ONE
    if months_diff > 0:
        return min(ONE + DELAYED_CREDIT_PER_MONTH * months_diff, MAX_DELAY_FACTOR)

    months_early = -months_diff
    if months_early <= 36:
        reduction = EARLY_REDUCTION_FIRST_36 * months_early
    else:
        reduction = EARLY_REDUCTION_FIRST_36 * 36 + EARLY_REDUCTION_BEYOND_36 * (months_early - 36)
    return max(ONE - reduction, MIN_EARLY_FACTOR)


def interpolate_monthly_benefit(
    claim_age: int,
    benefit_62: Decimal,
    benefit_fra: Decimal,
    benefit_70: Decimal,
    fra_age: int = 67,
) -> Decimal:
    """
    Monthly benefit at `claim_age` interpolated linearly between the
    statement amounts at 62, FRA and 70. Ages outside 62..70 clamp to the ends.
    """
    if claim_age <= EARLIEST_CLAIM_AGE:
        return benefit_62
    if claim_age >= LATEST_CLAIM_AGE:
        return benefit_70
    if claim_age == fra_age:
        return benefit_fra
    if claim_age < fra_age:
        span = Decimal(fra_age - EARLIEST_CLAIM_AGE)
        step = Decimal(claim_age - EARLIEST_CLAIM_AGE)
        return benefit_62 + (benefit_fra - benefit_62) * step / span
    span = Decimal(LATEST_CLAIM_AGE - fra_age)
    step = Decimal(claim_age - fra_age)
    return benefit_fra + (benefit_70 - benefit_fra) * step / span


def monthly_benefit_at(
    claim_age: int,
    birth_year: int,
    benefit_62: Decimal,
    benefit_fra: Decimal,
    benefit_70: Decimal,
) -> Decimal:
    """
    Monthly benefit for a claim age. Uses the statement amounts when all three
    are known, otherwise scales the FRA amount by the claiming factor.
    """
    if benefit_fra <= ZERO:
        return ZERO
    if benefit_62 > ZERO and benefit_70 > ZERO:
        return interpolate_monthly_benefit(claim_age, benefit_62, benefit_fra, benefit_70)
    fra = get_full_retirement_age(birth_year)
    return benefit_fra * claiming_factor(float(claim_age), fra)
