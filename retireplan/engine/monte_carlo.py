# engine/monte_carlo.py

"""
Monte Carlo stress test of a withdrawal plan.

Each trial draws its own return path from numpy.random.default_rng([seed, i])
so results do not depend on worker count or completion order. Trials run in
a multiprocessing.Pool (or in-process for workers=1); the parent collects
results from the pool's queue and reduces them in trial-index order.
"""

import logging
import math
import multiprocessing as mp
import threading
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal
from functools import partial
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from retireplan.config import market_assumptions as market
from retireplan.config import simulation_defaults as defaults
from retireplan.errors import ConfigurationError
from retireplan.models import Assumptions, GuardrailBands, Household, Scenario, canonical_strategy
from retireplan.results import PercentileBands, ReturnPath, SimulationResult, SimulationTrial
from retireplan.utils.currency import ZERO, to_decimal

from retireplan.engine.market_generator import HistoricalData, ReturnGenerator
from retireplan.engine.projection import ProjectionEngine
from retireplan.engine.withdrawal_engine import AccountBalances, StrategyState, WithdrawalEngine

logger = logging.getLogger(__name__)

PERCENTILES = (Decimal("0.10"), Decimal("0.25"), Decimal("0.50"), Decimal("0.75"), Decimal("0.90"))
MODES = ("portfolio", "scenario")


@dataclass
class SimulationParams:
    """
    Inputs for one Monte Carlo run.

    Portfolio mode replays the withdrawal strategy against a single balance.
    Scenario mode runs the full projection for `household` / `scenario` with
    each trial's returns, inflation and COLA.
    """
    num_trials: int = defaults.mc_num_trials
    horizon_years: int = defaults.mc_horizon_years
    initial_balance: Decimal = defaults.mc_initial_balance
    annual_withdrawal: Decimal = defaults.mc_annual_withdrawal
    withdrawal_strategy: str = defaults.mc_withdrawal_strategy
    withdrawal_rate: Optional[Decimal] = None
    withdrawal_target_monthly: Optional[Decimal] = None
    guardrails: GuardrailBands = field(default_factory=GuardrailBands)
    seed: int = defaults.mc_seed
    use_historical: bool = defaults.mc_use_historical
    history: Optional[HistoricalData] = None
    block_size: int = market.default_block_size
    tail_df: Optional[float] = None
    allocation: Mapping[str, float] = field(default_factory=lambda: dict(market.default_allocation))
    workers: int = 1
    deadline_seconds: Optional[float] = None
    mode: str = "portfolio"
    household: Optional[Household] = None
    scenario: Optional[Scenario] = None
    assumptions: Optional[Assumptions] = None

    def __post_init__(self):
        self.initial_balance = to_decimal(self.initial_balance)
        self.annual_withdrawal = to_decimal(self.annual_withdrawal)
        if self.withdrawal_rate is not None:
            self.withdrawal_rate = to_decimal(self.withdrawal_rate)
        if self.withdrawal_target_monthly is not None:
            self.withdrawal_target_monthly = to_decimal(self.withdrawal_target_monthly)

    def validate(self) -> None:
        if self.num_trials < 1:
            raise ConfigurationError("num_trials must be at least 1")
        if self.horizon_years < 1:
            raise ConfigurationError("horizon_years must be at least 1")
        if self.workers < 1:
            raise ConfigurationError("workers must be at least 1")
        if self.mode not in MODES:
            raise ConfigurationError(f"Unknown simulation mode '{self.mode}'")
        if self.initial_balance < ZERO or self.annual_withdrawal < ZERO:
            raise ConfigurationError("initial_balance and annual_withdrawal cannot be negative")
        canonical_strategy(self.withdrawal_strategy)

        unknown = set(self.allocation) - set(market.FUNDS)
        if unknown:
            raise ConfigurationError(f"Unknown funds in allocation: {sorted(unknown)}")
        if not math.isclose(float(sum(self.allocation.values())), 1.0, abs_tol=1e-6):
            raise ConfigurationError("Allocation weights must sum to 1")

        if self.mode == "scenario" and (self.household is None or self.scenario is None):
            raise ConfigurationError("Scenario mode needs a household and a scenario")


@dataclass(frozen=True)
class _TrialContext:
    """Everything a worker needs to run one trial; pickled once per task chunk."""
    mode: str
    seed: int
    horizon: int
    generator: ReturnGenerator
    allocation: Dict[str, Decimal]
    initial_balance: Decimal
    annual_withdrawal: Decimal
    strategy: str
    withdrawal_rate: Optional[Decimal]
    target_monthly: Optional[Decimal]
    guardrails: GuardrailBands
    household: Optional[Household] = None
    scenario: Optional[Scenario] = None
    assumptions: Optional[Assumptions] = None


# ----------------------------------------------------------------------
# Trial functions (module level so the pool can pickle them)
# ----------------------------------------------------------------------

def _portfolio_trial(ctx: _TrialContext, index: int, path: ReturnPath) -> SimulationTrial:
    engine = WithdrawalEngine(guardrails=ctx.guardrails)
    state = StrategyState()
    balances = AccountBalances(traditional=ctx.initial_balance)
    returns = path.portfolio_returns(ctx.allocation)
    history: List[Decimal] = []
    withdrawals: List[Decimal] = []
    depletion_year = None

    for year in range(ctx.horizon):
        amount = engine.strategy_amount(
            ctx.strategy,
            state,
            year,
            balances.total,
            inflation=path.years[year].inflation,
            rate=ctx.withdrawal_rate,
            amount=ctx.annual_withdrawal,
            target_monthly=ctx.target_monthly,
        )
        taken = engine.withdraw(amount, balances)
        balances.grow(returns[year])
        balances.check(f"trial {index}")
        withdrawals.append(taken.total)
        history.append(balances.total)
        if depletion_year is None and balances.total <= ZERO:
            depletion_year = year + 1

    ending = balances.total
    return SimulationTrial(
        index=index,
        success=ending > ZERO,
        ending_balance=ending,
        depletion_year=depletion_year,
        balances=tuple(history),
        withdrawals=tuple(withdrawals),
    )


def _scenario_trial(ctx: _TrialContext, index: int, path: ReturnPath) -> SimulationTrial:
    base = ctx.assumptions or Assumptions()
    assumptions = replace(
        base,
        projection_years=ctx.horizon,
        return_path=path.portfolio_returns(ctx.allocation),
        inflation_path=path.inflation,
        cola_path=path.cola,
        fehb_inflation_path=path.fehb_inflation,
    )
    summary = ProjectionEngine(ctx.household, ctx.scenario, assumptions).run()
    return SimulationTrial(
        index=index,
        success=summary.final_balance > ZERO,
        ending_balance=summary.final_balance,
        depletion_year=summary.depletion_year,
        balances=tuple(cf.total_balance for cf in summary.projection),
        withdrawals=tuple(cf.total_withdrawal for cf in summary.projection),
        lifetime_income=summary.total_lifetime_income,
        tsp_longevity=summary.tsp_longevity,
    )


def _run_trial(ctx: _TrialContext, index: int) -> SimulationTrial:
    """Worker wrapper: a failing trial is reported, never raised."""
    try:
        rng = np.random.default_rng([ctx.seed, index])
        path = ctx.generator.generate(rng, ctx.horizon)
        if ctx.mode == "scenario":
            return _scenario_trial(ctx, index, path)
        return _portfolio_trial(ctx, index, path)
    except Exception as exc:
        logger.warning(f"Trial {index} failed: {exc!r}")
        return SimulationTrial(index=index, success=False, ending_balance=ZERO, error=repr(exc))


# ----------------------------------------------------------------------
# Aggregation
# ----------------------------------------------------------------------

def percentile(sorted_values: Sequence[Decimal], q: Decimal) -> Decimal:
    """Linear-interpolation percentile (numpy's default method) on Decimals."""
    if not sorted_values:
        return ZERO
    pos = (len(sorted_values) - 1) * q
    lo = int(pos)
    hi = min(lo + 1, len(sorted_values) - 1)
    frac = pos - lo
    return sorted_values[lo] + (sorted_values[hi] - sorted_values[lo]) * frac


def _bands(values: Sequence[Decimal]) -> Optional[PercentileBands]:
    if not values:
        return None
    ordered = sorted(values)
    return PercentileBands(*(percentile(ordered, q) for q in PERCENTILES))


def _summarize_results(
    trials: List[SimulationTrial],
    requested: int,
    cancelled: bool,
    mode: str,
) -> SimulationResult:
    trials = sorted(trials, key=lambda t: t.index)
    completed = [t for t in trials if not t.failed]
    failed = len(trials) - len(completed)
    n = len(completed)

    endings = [t.ending_balance for t in completed]
    successes = sum(1 for t in completed if t.success)
    success_rate = Decimal(successes) / Decimal(n) if n else ZERO
    ordered = sorted(endings)

    lifetime_bands = None
    median_longevity = None
    if mode == "scenario" and completed:
        lifetime_bands = _bands([t.lifetime_income for t in completed])
        median_longevity = int(np.median([t.tsp_longevity for t in completed]))

    return SimulationResult(
        success_rate=success_rate,
        requested_trials=requested,
        completed_trials=n,
        failed_trials=failed,
        cancelled=cancelled,
        percentiles=_bands(endings),
        mean_ending_balance=sum(endings, ZERO) / n if n else ZERO,
        median_ending_balance=percentile(ordered, Decimal("0.5")),
        trials=tuple(trials),
        mode=mode,
        lifetime_income_percentiles=lifetime_bands,
        median_tsp_longevity=median_longevity,
    )


# ----------------------------------------------------------------------
# Simulator
# ----------------------------------------------------------------------

class MonteCarloSimulator:
    """
    Runs `params.num_trials` independent trials and aggregates them.

    Parameters
    ----------
    params : SimulationParams
        Validated on construction.
    """

    def __init__(self, params: SimulationParams):
        params.validate()
        self.params = params
        self.generator = ReturnGenerator(
            mode="historical" if params.use_historical else "statistical",
            history=params.history,
            block_size=params.block_size,
            tail_df=params.tail_df,
        )

    def _context(self) -> _TrialContext:
        p = self.params
        return _TrialContext(
            mode=p.mode,
            seed=p.seed,
            horizon=p.horizon_years,
            generator=self.generator,
            allocation={f: to_decimal(w) for f, w in p.allocation.items()},
            initial_balance=p.initial_balance,
            annual_withdrawal=p.annual_withdrawal,
            strategy=p.withdrawal_strategy,
            withdrawal_rate=p.withdrawal_rate,
            target_monthly=p.withdrawal_target_monthly,
            guardrails=p.guardrails,
            household=p.household,
            scenario=p.scenario,
            assumptions=p.assumptions,
        )

    def run(self, cancel: Optional[threading.Event] = None) -> SimulationResult:
        """
        Runs every trial unless `cancel` is set or the deadline passes, in
        which case the completed trials are summarized with cancelled=True.
        """
        p = self.params
        cancel = cancel or threading.Event()
        deadline = time.monotonic() + p.deadline_seconds if p.deadline_seconds is not None else None
        task = partial(_run_trial, self._context())

        logger.info(
            f"Starting {p.num_trials} {p.mode} trials over {p.horizon_years} years "
            f"({'historical' if p.use_historical else 'statistical'}, workers={p.workers}, seed={p.seed})"
        )

        if p.workers == 1:
            trials, cancelled = self._run_in_process(task, cancel, deadline)
        else:
            trials, cancelled = self._run_pool(task, cancel, deadline)

        if cancelled:
            logger.warning(f"Simulation stopped early after {len(trials)} of {p.num_trials} trials")

        result = _summarize_results(trials, p.num_trials, cancelled, p.mode)
        if result.failed_trials:
            logger.warning(f"{result.failed_trials} trial(s) failed and were excluded")
        logger.info(
            f"Simulation finished: success rate {float(result.success_rate):.1%} "
            f"over {result.completed_trials} completed trials"
        )
        return result

    def _run_in_process(self, task, cancel: threading.Event, deadline: Optional[float]):
        trials = []
        for index in range(self.params.num_trials):
            if cancel.is_set() or (deadline is not None and time.monotonic() >= deadline):
                return trials, True
            trials.append(task(index))
        return trials, False

    def _run_pool(self, task, cancel: threading.Event, deadline: Optional[float]):
        p = self.params
        trials: List[SimulationTrial] = []
        chunksize = max(1, p.num_trials // (p.workers * 8))

        with mp.Pool(p.workers) as pool:
            results = pool.imap_unordered(task, range(p.num_trials), chunksize=chunksize)
            while len(trials) < p.num_trials:
                if cancel.is_set():
                    pool.terminate()
                    return trials, True
                timeout = 0.1
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        pool.terminate()
                        return trials, True
                    timeout = min(timeout, remaining)
                try:
                    trials.append(results.next(timeout=timeout))
                except mp.TimeoutError:
                    continue
        return trials, False


def run_simulation(params: SimulationParams, cancel: Optional[threading.Event] = None) -> SimulationResult:
    return MonteCarloSimulator(params).run(cancel)
