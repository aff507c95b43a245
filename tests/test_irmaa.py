from decimal import Decimal

from retireplan.engine.irmaa import (
    analyze_irmaa_risk,
    calculate_magi,
    count_consecutive_breaches,
)
from retireplan.engine.projection import ProjectionEngine
from retireplan.results import AnnualCashFlow, IRMAAStatus


def _year(year, status=IRMAAStatus.SAFE, surcharge="0", distance="50000", tier="None"):
    return AnnualCashFlow(
        year=year,
        year_index=year - 2025,
        participants=(),
        filing_status="married_filing_jointly",
        lagged_magi=Decimal("250000"),
        irmaa_status=status,
        irmaa_tier=tier,
        irmaa_surcharge=Decimal(surcharge),
        irmaa_distance_to_next=Decimal(distance),
    )


def test_calculate_magi_adds_tax_exempt_interest():
    assert calculate_magi(Decimal("100000")) == Decimal("100000")
    assert calculate_magi(Decimal("100000"), Decimal("2500")) == Decimal("102500")


def test_count_consecutive_breaches():
    assert count_consecutive_breaches([]) == 0
    assert count_consecutive_breaches([2030]) == 1
    assert count_consecutive_breaches([2025, 2026, 2028, 2029, 2030]) == 3


def test_no_concerns():
    analysis = analyze_irmaa_risk([_year(2025), _year(2026)])

    assert analysis.years_with_breaches == 0
    assert analysis.years_with_warnings == 0
    assert analysis.total_cost == Decimal("0")
    assert analysis.first_breach_year is None
    assert analysis.high_risk_years == ()
    assert analysis.recommendations[0] == "No IRMAA concerns - MAGI remains comfortably below thresholds"


def test_early_consecutive_breaches():
    breach = dict(status=IRMAAStatus.BREACH, surcharge="4192.80", distance="22000", tier="Tier2")
    projection = [_year(2025, **breach), _year(2026, **breach), _year(2027, **breach), _year(2028)]
    analysis = analyze_irmaa_risk(projection)

    assert analysis.years_with_breaches == 3
    assert analysis.total_cost == Decimal("12578.40")
    assert analysis.first_breach_year == 2025
    assert [r.year for r in analysis.high_risk_years] == [2025, 2026, 2027]
    assert analysis.high_risk_years[0].tier == "Tier2"

    recs = analysis.recommendations
    assert recs[0] == "IRMAA breaches detected - consider strategies to reduce MAGI"
    assert "High IRMAA cost ($12,578 over 3 years) - significant savings possible through optimization" in recs
    assert "Breaches occur early - consider Roth conversions BEFORE retirement to reduce future MAGI" in recs
    assert "3 consecutive breach years detected - systematic withdrawal strategy change recommended" in recs
    assert not any(r.startswith("Peak IRMAA cost") for r in recs)


def test_late_expensive_breach():
    projection = [_year(y) for y in range(2025, 2035)]
    projection.append(_year(2035, status=IRMAAStatus.BREACH, surcharge="6000", distance="0", tier="Tier5"))
    recs = analyze_irmaa_risk(projection).recommendations

    assert "Breaches occur mid-retirement - review Social Security timing and TSP withdrawal strategy" in recs
    assert any(r.startswith("Peak IRMAA cost exceeds $5,000/year") for r in recs)
    assert not any("consecutive" in r for r in recs)


def test_close_call_warning():
    analysis = analyze_irmaa_risk([_year(2025, status=IRMAAStatus.WARNING, distance="3000")])

    assert analysis.years_with_warnings == 1
    assert analysis.recommendations[0] == "Close to IRMAA thresholds - monitor MAGI carefully"
    assert "Only $3,000 away from breach - small TSP withdrawal adjustments could prevent surcharges" in analysis.recommendations


def test_comfortable_warning_buffer():
    analysis = analyze_irmaa_risk([_year(2025, status=IRMAAStatus.WARNING, distance="8000")])
    assert (
        "Moderate buffer to thresholds - maintain current withdrawal strategy but monitor annually"
        in analysis.recommendations
    )


def test_projection_feeds_analysis(household, scenario, assumptions):
    summary = ProjectionEngine(household, scenario, assumptions).run()
    analysis = summary.irmaa_analysis
    flagged = [cf.year for cf in summary.projection if cf.irmaa_status is not IRMAAStatus.SAFE]
    assert [r.year for r in analysis.high_risk_years] == flagged
    assert analysis.recommendations
