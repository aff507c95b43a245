# api.py

"""
Entry points. Each takes explicit inputs and returns a fresh result; no
state is kept between calls.
"""

import threading
from dataclasses import dataclass, field
from typing import Optional, Union

from retireplan.engine.monte_carlo import MonteCarloSimulator, SimulationParams
from retireplan.engine.projection import ProjectionEngine
from retireplan.engine.solver import BreakEvenSolver, SolverTarget
from retireplan.models import Assumptions, Household, Scenario
from retireplan.results import CoreResult, ProjectionResult, SimulationResult, SolverResult
from retireplan.utils.currency import format_currency_output, format_percent_output


@dataclass
class ProjectionRequest:
    household: Household
    scenario: Scenario
    assumptions: Assumptions = field(default_factory=Assumptions)


@dataclass
class SolveRequest:
    household: Household
    scenario: Scenario
    target: SolverTarget
    assumptions: Assumptions = field(default_factory=Assumptions)


Request = Union[ProjectionRequest, SimulationParams, SolveRequest]


def project(household: Household, scenario: Scenario, assumptions: Optional[Assumptions] = None) -> ProjectionResult:
    summary = ProjectionEngine(household, scenario, assumptions or Assumptions()).run()
    return ProjectionResult(summary)


def simulate(params: SimulationParams, cancel: Optional[threading.Event] = None) -> SimulationResult:
    return MonteCarloSimulator(params).run(cancel)


def solve(
    household: Household,
    scenario: Scenario,
    assumptions: Optional[Assumptions],
    target: SolverTarget,
) -> SolverResult:
    return BreakEvenSolver(household, scenario, assumptions or Assumptions(), target).solve()


def run(request: Request) -> CoreResult:
    """Dispatches any request type to its engine."""
    if isinstance(request, ProjectionRequest):
        return project(request.household, request.scenario, request.assumptions)
    if isinstance(request, SimulationParams):
        return simulate(request)
    if isinstance(request, SolveRequest):
        return solve(request.household, request.scenario, request.assumptions, request.target)
    raise TypeError(f"Unsupported request type: {type(request).__name__}")


def describe_result(result: CoreResult) -> str:
    """One-line description; covers every CoreResult variant."""
    if isinstance(result, ProjectionResult):
        s = result.summary
        return (
            f"Projection '{s.name}': first-year net {format_currency_output(s.first_year_net_income)}, "
            f"lifetime net {format_currency_output(s.total_lifetime_income)}, "
            f"TSP longevity {s.tsp_longevity} years"
        )
    if isinstance(result, SimulationResult):
        return (
            f"Monte Carlo ({result.mode}): success {format_percent_output(result.success_rate)} "
            f"over {result.completed_trials}/{result.requested_trials} trials, "
            f"median ending {format_currency_output(result.median_ending_balance)}"
            + (" [cancelled]" if result.cancelled else "")
        )
    if isinstance(result, SolverResult):
        return (
            f"Solver {result.target}/{result.goal}: {result.parameter} "
            f"-> {format_currency_output(result.outcome)} after {result.iterations} evaluations"
        )
    raise TypeError(f"Unknown result type: {type(result).__name__}")
