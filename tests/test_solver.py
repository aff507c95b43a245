from datetime import date
from decimal import Decimal

import pytest

from retireplan.engine.projection import ProjectionEngine
from retireplan.engine.solver import BreakEvenSolver, SolverTarget
from retireplan.errors import ConfigurationError, ConvergenceError
from retireplan.models import Assumptions


def _income_at(household, scenario, assumptions, rate):
    changed = scenario.with_participant("carol", withdrawal_rate=rate)
    return ProjectionEngine(household, changed, assumptions).run().first_retirement_year_income


def test_rate_solver_inverts_the_projection(retiree_household, retiree_scenario, short_assumptions):
    goal = _income_at(retiree_household, retiree_scenario, short_assumptions, Decimal("0.047"))
    target = SolverTarget(
        target="tsp_rate",
        goal="match_income",
        participant="carol",
        target_income=goal,
        tolerance=Decimal("5"),
        rate_tolerance=Decimal("0.0000001"),
    )
    result = BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target).solve()

    assert result.kind == "solver"
    assert result.success
    assert abs(result.parameter - Decimal("0.047")) < Decimal("0.0001")
    assert abs(result.residual) < Decimal("5")
    assert result.outcome == result.summary.first_retirement_year_income
    assert result.iterations == len(result.evaluated)
    assert result.lifetime_taxes == result.summary.lifetime_taxes


def test_rate_solver_returns_a_bound_within_tolerance(retiree_household, retiree_scenario, short_assumptions):
    goal = _income_at(retiree_household, retiree_scenario, short_assumptions, Decimal("0.02"))
    target = SolverTarget(participant="carol", target_income=goal, tolerance=Decimal("1"))
    result = BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target).solve()

    assert result.parameter == Decimal("0.02")
    assert result.iterations == 2


def test_unreachable_income_raises_convergence_error(retiree_household, retiree_scenario, short_assumptions):
    target = SolverTarget(participant="carol", target_income=Decimal("10000000"))
    solver = BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target)

    with pytest.raises(ConvergenceError) as excinfo:
        solver.solve()
    err = excinfo.value
    assert err.iterations >= 1
    assert err.last_estimate > Decimal("0.09")
    assert err.residual < 0


def test_iteration_cap_raises_convergence_error(retiree_household, retiree_scenario, short_assumptions):
    goal = _income_at(retiree_household, retiree_scenario, short_assumptions, Decimal("0.047"))
    target = SolverTarget(
        participant="carol",
        target_income=goal,
        tolerance=Decimal("0.01"),
        rate_tolerance=Decimal("0.0000000001"),
        max_iterations=3,
    )
    with pytest.raises(ConvergenceError) as excinfo:
        BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target).solve()
    assert excinfo.value.iterations == 3


def test_ss_age_grid(retiree_household, retiree_scenario, short_assumptions):
    target = SolverTarget(target="ss_age", goal="maximize_income", participant="carol")
    result = BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target).solve()

    assert 62 <= result.parameter <= 70
    assert [p for p, _ in result.evaluated] == list(range(62, 71))
    assert result.iterations == 9
    assert result.outcome == result.summary.total_lifetime_income
    assert result.outcome == max(
        ProjectionEngine(
            retiree_household, retiree_scenario.with_participant("carol", ss_start_age=age), short_assumptions
        ).run().total_lifetime_income
        for age in range(62, 71)
    )


def test_rate_grid_for_longevity(retiree_household, retiree_scenario, short_assumptions):
    target = SolverTarget(target="tsp_rate", goal="maximize_longevity", grid_resolution=5)
    result = BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target).solve()

    assert [p for p, _ in result.evaluated] == [
        Decimal("0.02"), Decimal("0.04"), Decimal("0.06"), Decimal("0.08"), Decimal("0.10"),
    ]
    # Every rate lasts the full projection, so the first grid point wins
    assert result.parameter == Decimal("0.02")
    assert result.outcome == Decimal(20)


def test_retirement_date_grid(household, scenario):
    target = SolverTarget(
        target="retirement_date",
        goal="minimize_taxes",
        participant="alice",
        min_retirement_date=date(2027, 1, 31),
        max_retirement_date=date(2027, 4, 30),
    )
    assumptions = Assumptions(start_year=2025, projection_years=10)
    result = BreakEvenSolver(household, scenario, assumptions, target).solve()

    dates = [p for p, _ in result.evaluated]
    assert dates == [date(2027, 1, 31), date(2027, 2, 28), date(2027, 3, 31), date(2027, 4, 30)]
    assert result.parameter in dates
    assert result.outcome == result.summary.lifetime_taxes
    assert result.outcome == min(
        ProjectionEngine(household, scenario.with_participant("alice", retirement_date=d), assumptions)
        .run().lifetime_taxes
        for d in dates
    )


def test_retirement_date_grid_skips_invalid_dates(household, scenario):
    target = SolverTarget(
        target="retirement_date",
        goal="maximize_income",
        participant="alice",
        min_retirement_date=date(1995, 4, 1),
        max_retirement_date=date(1995, 7, 1),
    )
    result = BreakEvenSolver(household, scenario, Assumptions(start_year=2025, projection_years=5), target).solve()
    assert [p for p, _ in result.evaluated] == [date(1995, 6, 1), date(1995, 7, 1)]


def test_base_comparison(retiree_household, retiree_scenario, short_assumptions):
    target = SolverTarget(target="tsp_rate", goal="maximize_income", participant="carol", grid_resolution=3)
    result = BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, target).solve()
    base = ProjectionEngine(retiree_household, retiree_scenario, short_assumptions).run()

    assert result.income_diff_from_base == result.summary.total_lifetime_income - base.total_lifetime_income
    assert result.tax_diff_from_base == result.summary.lifetime_taxes - base.lifetime_taxes


@pytest.mark.parametrize(
    "kwargs",
    [
        {"target": "pension_age", "participant": "carol", "target_income": 1},
        {"goal": "be_happy", "participant": "carol"},
        {"participant": "carol"},
        {"participant": "carol", "target_income": 1, "min_rate": Decimal("0.08"), "max_rate": Decimal("0.02")},
        {"participant": "carol", "target_income": 1, "max_rate": Decimal("1.5")},
        {"target": "ss_age", "goal": "maximize_income", "participant": "carol", "min_ss_age": 61},
        {"target": "ss_age", "goal": "maximize_income", "participant": "carol", "min_ss_age": 68, "max_ss_age": 64},
        {"target": "ss_age", "goal": "maximize_income"},
        {"participant": "zed", "target_income": 1},
        {"target": "retirement_date", "goal": "maximize_income", "participant": "carol",
         "min_retirement_date": date(2030, 1, 1), "max_retirement_date": date(2029, 1, 1)},
        {"participant": "carol", "target_income": 1, "max_iterations": 0},
    ],
)
def test_invalid_targets(retiree_household, retiree_scenario, short_assumptions, kwargs):
    with pytest.raises(ConfigurationError):
        BreakEvenSolver(retiree_household, retiree_scenario, short_assumptions, SolverTarget(**kwargs))


def test_retirement_date_target_needs_a_date(household, scenario):
    target = SolverTarget(target="retirement_date", goal="maximize_income", participant="bob")
    with pytest.raises(ConfigurationError):
        BreakEvenSolver(household, scenario, Assumptions(), target)
