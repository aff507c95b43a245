# engine/irmaa.py

"""
Medicare IRMAA risk analysis over a finished projection.

The per-year classification happens in TaxCalculator.irmaa while the
projection runs; this module aggregates those years and turns the pattern
into plain-language recommendations.
"""

from decimal import Decimal
from typing import List, Optional, Sequence

from retireplan.config import simulation_defaults as defaults
from retireplan.results import AnnualCashFlow, IRMAAAnalysis, IRMAAStatus, IRMAAYearRisk
from retireplan.utils.currency import ZERO, format_currency_output


def calculate_magi(agi: Decimal, tax_exempt_interest: Decimal = ZERO) -> Decimal:
    """MAGI for IRMAA: AGI plus tax-exempt interest."""
    return agi + tax_exempt_interest


def count_consecutive_breaches(breach_years: Sequence[int]) -> int:
    """Longest run of consecutive calendar years in `breach_years`."""
    longest = current = 0
    previous = None
    for year in sorted(breach_years):
        current = current + 1 if previous is not None and year == previous + 1 else 1
        longest = max(longest, current)
        previous = year
    return longest


def analyze_irmaa_risk(projection: Sequence[AnnualCashFlow]) -> IRMAAAnalysis:
    """Summarizes breach and warning years and builds recommendations."""
    risks: List[IRMAAYearRisk] = []
    breaches = warnings = 0
    total_cost = ZERO
    first_breach: Optional[int] = None

    for cf in projection:
        if cf.irmaa_status is IRMAAStatus.SAFE:
            continue
        if cf.irmaa_status is IRMAAStatus.BREACH:
            breaches += 1
            total_cost += cf.irmaa_surcharge
            if first_breach is None:
                first_breach = cf.year
        else:
            warnings += 1
        risks.append(IRMAAYearRisk(
            year=cf.year,
            magi=cf.lagged_magi,
            status=cf.irmaa_status,
            tier=cf.irmaa_tier,
            annual_cost=cf.irmaa_surcharge,
            distance_to_next_tier=cf.irmaa_distance_to_next,
        ))

    start_year = projection[0].year if projection else None
    recommendations = generate_recommendations(risks, total_cost, first_breach, start_year)

    return IRMAAAnalysis(
        years_with_breaches=breaches,
        years_with_warnings=warnings,
        total_cost=total_cost,
        first_breach_year=first_breach,
        high_risk_years=tuple(risks),
        recommendations=tuple(recommendations),
    )


def generate_recommendations(
    risks: Sequence[IRMAAYearRisk],
    total_cost: Decimal,
    first_breach: Optional[int],
    start_year: Optional[int],
) -> List[str]:
    breach_years = [r.year for r in risks if r.status is IRMAAStatus.BREACH]
    warning_risks = [r for r in risks if r.status is IRMAAStatus.WARNING]
    recs: List[str] = []

    if breach_years:
        recs.append("IRMAA breaches detected - consider strategies to reduce MAGI")

        if total_cost > defaults.irmaa_high_cost_threshold:
            recs.append(
                f"High IRMAA cost ({format_currency_output(total_cost)} over {len(breach_years)} years) "
                "- significant savings possible through optimization"
            )

        if first_breach is not None and start_year is not None:
            if first_breach - start_year < defaults.irmaa_early_breach_years:
                recs.append("Breaches occur early - consider Roth conversions BEFORE retirement to reduce future MAGI")
            else:
                recs.append("Breaches occur mid-retirement - review Social Security timing and TSP withdrawal strategy")

        run = count_consecutive_breaches(breach_years)
        if run >= defaults.irmaa_consecutive_breach_years:
            recs.append(f"{run} consecutive breach years detected - systematic withdrawal strategy change recommended")

        recs.append("Withdraw from Roth TSP instead of Traditional TSP in breach years (Roth doesn't count toward MAGI)")
        recs.append("Time large Traditional TSP withdrawals for low-income years (before SS starts or after RMDs begin)")

        peak = max(r.annual_cost for r in risks if r.status is IRMAAStatus.BREACH)
        if peak > defaults.irmaa_peak_cost_threshold:
            recs.append(
                "Peak IRMAA cost exceeds $5,000/year - consider delaying Social Security or reducing TSP withdrawal rate"
            )
        return recs

    if warning_risks:
        recs.append("Close to IRMAA thresholds - monitor MAGI carefully")
        closest = min(r.distance_to_next_tier for r in warning_risks)
        if closest < defaults.irmaa_close_call_distance:
            recs.append(
                f"Only {format_currency_output(closest)} away from breach "
                "- small TSP withdrawal adjustments could prevent surcharges"
            )
        else:
            recs.append("Moderate buffer to thresholds - maintain current withdrawal strategy but monitor annually")
        recs.append("Consider maintaining emergency Roth TSP reserve for years approaching thresholds")
        return recs

    recs.append("No IRMAA concerns - MAGI remains comfortably below thresholds")
    recs.append("Current income strategy avoids Medicare premium surcharges - no changes needed for IRMAA")
    recs.append("You have flexibility to increase withdrawals if needed without triggering IRMAA")
    return recs
