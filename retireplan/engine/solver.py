# engine/solver.py

"""
Break-even solver: finds the value of one scenario parameter that meets a
goal by repeatedly running the ProjectionEngine.

Targets
-------
tsp_rate         withdrawal rate under the fixed_percentage strategy
retirement_date  monthly grid around the scenario's retirement date
ss_age           yearly grid of Social Security claiming ages

Goals
-----
match_income        outcome within `tolerance` dollars of `target_income`
maximize_income     largest cumulative net income
maximize_longevity  longest TSP longevity
minimize_taxes      smallest lifetime taxes
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional, Tuple, Union

from retireplan.config import simulation_defaults as defaults
from retireplan.errors import ConfigurationError, ConvergenceError
from retireplan.models import Assumptions, Household, Scenario
from retireplan.results import ScenarioSummary, SolverResult
from retireplan.utils.currency import ONE, ZERO, to_decimal
from retireplan.utils.dates import add_months

from retireplan.engine.projection import ProjectionEngine

logger = logging.getLogger(__name__)

TARGETS = ("tsp_rate", "retirement_date", "ss_age")
GOALS = ("match_income", "maximize_income", "maximize_longevity", "minimize_taxes")
TWO = Decimal(2)

Parameter = Union[Decimal, date, int]


def first_retirement_year_income(summary: ScenarioSummary) -> Decimal:
    return summary.first_retirement_year_income


@dataclass
class SolverTarget:
    """What to solve for, the goal, and the bounds of the search."""
    target: str = "tsp_rate"
    goal: str = "match_income"
    participant: Optional[str] = None  # tsp_rate applies to every participant when None
    target_income: Optional[Decimal] = None
    min_rate: Decimal = defaults.solver_rate_min
    max_rate: Decimal = defaults.solver_rate_max
    min_retirement_date: Optional[date] = None
    max_retirement_date: Optional[date] = None
    min_ss_age: int = defaults.solver_ss_ages[0]
    max_ss_age: int = defaults.solver_ss_ages[1]
    tolerance: Decimal = defaults.solver_tolerance
    max_iterations: int = defaults.solver_max_iterations
    rate_tolerance: Decimal = defaults.solver_rate_tolerance
    grid_resolution: int = defaults.solver_grid_resolution
    outcome: Callable[[ScenarioSummary], Decimal] = first_retirement_year_income

    def __post_init__(self):
        for name in ("min_rate", "max_rate", "tolerance", "rate_tolerance"):
            setattr(self, name, to_decimal(getattr(self, name)))
        if self.target_income is not None:
            self.target_income = to_decimal(self.target_income)

    def validate(self, household: Household, scenario: Scenario) -> None:
        if self.target not in TARGETS:
            raise ConfigurationError(f"Unsupported optimization target: {self.target}")
        if self.goal not in GOALS:
            raise ConfigurationError(f"Unsupported optimization goal: {self.goal}")
        if self.goal == "match_income" and self.target_income is None:
            raise ConfigurationError("match_income needs target_income")
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be at least 1")
        if self.tolerance <= ZERO:
            raise ConfigurationError("tolerance must be positive")

        if self.participant is not None:
            household.participant(self.participant)
            if self.participant not in scenario.participants:
                raise ConfigurationError(f"participant {self.participant} not found in scenario")
        elif self.target != "tsp_rate":
            raise ConfigurationError("participant name is required")

        if self.min_rate > self.max_rate:
            raise ConfigurationError("min_tsp_rate cannot be greater than max_tsp_rate")
        if self.min_rate < ZERO or self.max_rate > ONE:
            raise ConfigurationError("TSP rate bounds must lie within [0, 1]")
        if self.min_ss_age > self.max_ss_age:
            raise ConfigurationError("min_ss_age cannot be greater than max_ss_age")
        if self.min_ss_age < 62 or self.max_ss_age > 70:
            raise ConfigurationError("ss_age must be between 62 and 70")
        if (self.min_retirement_date is not None and self.max_retirement_date is not None
                and self.min_retirement_date > self.max_retirement_date):
            raise ConfigurationError("min_retirement_date cannot be after max_retirement_date")
        if self.target == "retirement_date" and scenario.participants[self.participant].retirement_date is None:
            raise ConfigurationError("participant has no retirement date set")
        if self.grid_resolution < 2:
            raise ConfigurationError("grid_resolution must be at least 2")


@dataclass
class _Evaluation:
    parameter: Parameter
    summary: ScenarioSummary
    outcome: Decimal


class BreakEvenSolver:
    """
    Inverts the projection for one parameter.

    The solver is synchronous; every evaluation builds a fresh
    ProjectionEngine from a modified copy of the scenario.
    """

    def __init__(self, household: Household, scenario: Scenario, assumptions: Assumptions, target: SolverTarget):
        target.validate(household, scenario)
        self.household = household
        self.scenario = scenario
        self.assumptions = assumptions
        self.target = target
        self.iterations = 0

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _scenario_for(self, value: Parameter) -> Scenario:
        t = self.target
        if t.target == "tsp_rate":
            changes = dict(withdrawal_strategy="fixed_percentage", withdrawal_rate=value)
            if t.participant is None:
                return self.scenario.with_all_participants(**changes)
            return self.scenario.with_participant(t.participant, **changes)
        if t.target == "retirement_date":
            return self.scenario.with_participant(t.participant, retirement_date=value)
        return self.scenario.with_participant(t.participant, ss_start_age=value)

    def _evaluate(self, value: Parameter) -> _Evaluation:
        summary = ProjectionEngine(self.household, self._scenario_for(value), self.assumptions).run()
        self.iterations += 1
        outcome = self.target.outcome(summary)
        logger.debug(f"solver iteration {self.iterations}: {self.target.target}={value} outcome={outcome:.2f}")
        return _Evaluation(value, summary, outcome)

    def _metric(self, ev: _Evaluation) -> Decimal:
        """Goal value where larger is better."""
        goal = self.target.goal
        if goal == "maximize_income":
            return ev.summary.total_lifetime_income
        if goal == "maximize_longevity":
            return Decimal(ev.summary.tsp_longevity)
        if goal == "minimize_taxes":
            return -ev.summary.lifetime_taxes
        return -abs(ev.outcome - self.target.target_income)

    # ------------------------------------------------------------------
    # Search strategies
    # ------------------------------------------------------------------

    def _bisect_rate(self) -> Tuple[_Evaluation, str, List[_Evaluation]]:
        t = self.target
        goal_income = t.target_income
        lo, hi = t.min_rate, t.max_rate
        f_lo, f_hi = self._evaluate(lo), self._evaluate(hi)
        evaluated = [f_lo, f_hi]

        for ev in (f_lo, f_hi):
            if abs(ev.outcome - goal_income) < t.tolerance:
                return ev, f"Converged to target income within ${t.tolerance:,.0f} at a bound", evaluated

        increasing = f_hi.outcome >= f_lo.outcome
        last = f_lo
        for i in range(1, t.max_iterations + 1):
            mid = (lo + hi) / TWO
            last = self._evaluate(mid)
            evaluated.append(last)
            residual = last.outcome - goal_income
            if abs(residual) < t.tolerance:
                return last, f"Converged to target income within ${t.tolerance:,.0f}", evaluated

            if (residual < ZERO) == increasing:
                lo = mid
            else:
                hi = mid

            if hi - lo < t.rate_tolerance:
                raise ConvergenceError(
                    "Rate bracket collapsed before reaching the target income",
                    last_estimate=mid,
                    residual=residual,
                    iterations=i,
                )

        raise ConvergenceError(
            f"Optimization did not converge after {t.max_iterations} iterations",
            last_estimate=last.parameter,
            residual=last.outcome - goal_income,
            iterations=t.max_iterations,
        )

    def _grid(self) -> List[Parameter]:
        t = self.target
        if t.target == "tsp_rate":
            steps = t.grid_resolution - 1
            return [t.min_rate + (t.max_rate - t.min_rate) * Decimal(k) / Decimal(steps) for k in range(steps + 1)]

        if t.target == "ss_age":
            return list(range(t.min_ss_age, t.max_ss_age + 1))

        base = self.scenario.participants[t.participant].retirement_date
        before, after = defaults.solver_date_window_months
        start = t.min_retirement_date or add_months(base, before)
        end = t.max_retirement_date or add_months(base, after)
        dates, current, k = [], start, 0
        while current <= end:
            dates.append(current)
            k += 1
            current = add_months(start, k)
        return dates

    def _grid_search(self) -> Tuple[_Evaluation, str, List[_Evaluation]]:
        evaluated = []
        for value in self._grid():
            try:
                evaluated.append(self._evaluate(value))
            except ConfigurationError as exc:
                logger.warning(f"Skipping {self.target.target}={value}: {exc}")

        if not evaluated:
            raise ConvergenceError(
                f"No valid {self.target.target} values found",
                last_estimate=None,
                residual=ZERO,
                iterations=self.iterations,
            )

        best = evaluated[0]
        for ev in evaluated[1:]:
            if self._metric(ev) > self._metric(best):
                best = ev

        label = {"tsp_rate": "TSP rates", "retirement_date": "retirement dates", "ss_age": "Social Security ages"}
        return best, f"Evaluated {len(evaluated)} {label[self.target.target]}", evaluated

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def solve(self) -> SolverResult:
        t = self.target
        self.iterations = 0

        if t.target == "tsp_rate" and t.goal == "match_income":
            best, info, evaluated = self._bisect_rate()
        else:
            best, info, evaluated = self._grid_search()

        base = ProjectionEngine(self.household, self.scenario, self.assumptions).run()

        if t.goal == "match_income":
            outcome, residual = best.outcome, best.outcome - t.target_income
        else:
            outcome, residual = self._goal_value(best), ZERO

        logger.info(f"Solver {t.target}/{t.goal}: {info}; best {t.target}={best.parameter}")

        return SolverResult(
            target=t.target,
            goal=t.goal,
            success=True,
            iterations=self.iterations,
            parameter=best.parameter,
            outcome=outcome,
            residual=residual,
            summary=best.summary,
            lifetime_taxes=best.summary.lifetime_taxes,
            convergence_info=info,
            income_diff_from_base=best.summary.total_lifetime_income - base.total_lifetime_income,
            tax_diff_from_base=best.summary.lifetime_taxes - base.lifetime_taxes,
            evaluated=tuple((ev.parameter, ev.outcome) for ev in evaluated),
        )

    def _goal_value(self, ev: _Evaluation) -> Decimal:
        goal = self.target.goal
        if goal == "maximize_income":
            return ev.summary.total_lifetime_income
        if goal == "maximize_longevity":
            return Decimal(ev.summary.tsp_longevity)
        return ev.summary.lifetime_taxes
