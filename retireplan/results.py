# results.py

"""
Immutable value objects returned by the projection, simulation and solver
engines, plus the closed CoreResult union over the three top-level results.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Literal, Mapping, Optional, Tuple, Union

from retireplan.utils.currency import ZERO


# =============================================================================
# Per-participant year state
# =============================================================================

class WorkStatus(Enum):
    WORKING = "working"
    PARTIAL_YEAR_RETIRED = "partial_year_retired"
    RETIRED = "retired"


class BenefitStatus(Enum):
    NOT_CLAIMED = "not_claimed"
    CLAIMED = "claimed"


class RMDStatus(Enum):
    PRE_RMD = "pre_rmd"
    RMD_ACTIVE = "rmd_active"


class LifeStatus(Enum):
    ALIVE = "alive"
    DECEASED = "deceased"


class IRMAAStatus(Enum):
    SAFE = "Safe"
    WARNING = "Warning"
    BREACH = "Breach"


@dataclass(frozen=True)
class ParticipantYearState:
    work: WorkStatus
    benefit: BenefitStatus
    rmd: RMDStatus
    life: LifeStatus

    @property
    def is_alive(self) -> bool:
        return self.life is LifeStatus.ALIVE


@dataclass(frozen=True)
class ParticipantYear:
    """One participant's flows and end-of-year balances for one calendar year."""
    name: str
    age: int
    state: ParticipantYearState
    salary: Decimal = ZERO
    pension: Decimal = ZERO
    survivor_pension: Decimal = ZERO
    fers_supplement: Decimal = ZERO
    social_security: Decimal = ZERO
    withdrawal: Decimal = ZERO
    rmd: Decimal = ZERO
    roth_conversion: Decimal = ZERO
    employee_contribution: Decimal = ZERO
    employer_contribution: Decimal = ZERO
    balance_traditional: Decimal = ZERO
    balance_roth: Decimal = ZERO
    balance_taxable: Decimal = ZERO

    @property
    def total_balance(self) -> Decimal:
        return self.balance_traditional + self.balance_roth + self.balance_taxable


# =============================================================================
# Annual cash flow
# =============================================================================

@dataclass(frozen=True)
class AnnualCashFlow:
    year: int
    year_index: int
    participants: Tuple[ParticipantYear, ...]
    filing_status: str
    withdrawal_taxable: Decimal = ZERO
    withdrawal_tax_deferred: Decimal = ZERO
    withdrawal_tax_free: Decimal = ZERO
    unmet_withdrawal: Decimal = ZERO
    realized_gains: Decimal = ZERO
    roth_conversions: Decimal = ZERO
    employee_contributions: Decimal = ZERO
    employer_contributions: Decimal = ZERO
    federal_tax: Decimal = ZERO
    state_tax: Decimal = ZERO
    local_tax: Decimal = ZERO
    fica_tax: Decimal = ZERO
    taxable_ss: Decimal = ZERO
    magi: Decimal = ZERO
    lagged_magi: Decimal = ZERO
    irmaa_status: IRMAAStatus = IRMAAStatus.SAFE
    irmaa_tier: str = "None"
    irmaa_surcharge: Decimal = ZERO
    irmaa_distance_to_next: Decimal = ZERO
    fehb_premium: Decimal = ZERO
    medicare_premium: Decimal = ZERO
    gross_income: Decimal = ZERO
    net_income: Decimal = ZERO
    balance_traditional: Decimal = ZERO
    balance_roth: Decimal = ZERO
    balance_taxable: Decimal = ZERO
    is_retired: bool = False
    is_rmd_year: bool = False

    def participant(self, name: str) -> ParticipantYear:
        for p in self.participants:
            if p.name == name:
                return p
        raise KeyError(name)

    def _sum(self, attr: str) -> Decimal:
        return sum((getattr(p, attr) for p in self.participants), ZERO)

    @property
    def total_salary(self) -> Decimal:
        return self._sum("salary")

    @property
    def total_pension(self) -> Decimal:
        return self._sum("pension")

    @property
    def total_survivor_pension(self) -> Decimal:
        return self._sum("survivor_pension")

    @property
    def total_fers_supplement(self) -> Decimal:
        return self._sum("fers_supplement")

    @property
    def total_social_security(self) -> Decimal:
        return self._sum("social_security")

    @property
    def total_rmd(self) -> Decimal:
        return self._sum("rmd")

    @property
    def total_withdrawal(self) -> Decimal:
        return self.withdrawal_taxable + self.withdrawal_tax_deferred + self.withdrawal_tax_free

    @property
    def total_taxes(self) -> Decimal:
        return self.federal_tax + self.state_tax + self.local_tax + self.fica_tax

    @property
    def total_premiums(self) -> Decimal:
        return self.fehb_premium + self.medicare_premium

    @property
    def total_balance(self) -> Decimal:
        return self.balance_traditional + self.balance_roth + self.balance_taxable


# =============================================================================
# Summaries
# =============================================================================

@dataclass(frozen=True)
class IRMAAYearRisk:
    year: int
    magi: Decimal
    status: IRMAAStatus
    tier: str
    annual_cost: Decimal
    distance_to_next_tier: Decimal


@dataclass(frozen=True)
class IRMAAAnalysis:
    years_with_breaches: int
    years_with_warnings: int
    total_cost: Decimal
    first_breach_year: Optional[int]
    high_risk_years: Tuple[IRMAAYearRisk, ...]
    recommendations: Tuple[str, ...]


@dataclass(frozen=True)
class ScenarioSummary:
    name: str
    first_year_net_income: Decimal
    year5_net_income: Optional[Decimal]
    year10_net_income: Optional[Decimal]
    total_lifetime_income: Decimal
    lifetime_income_present_value: Decimal
    tsp_longevity: int
    depletion_year: Optional[int]
    initial_balance: Decimal
    final_balance: Decimal
    lifetime_taxes: Decimal
    projection: Tuple[AnnualCashFlow, ...]
    irmaa_analysis: IRMAAAnalysis

    def net_income_in(self, year: int) -> Decimal:
        for cf in self.projection:
            if cf.year == year:
                return cf.net_income
        raise KeyError(year)

    @property
    def first_retirement_year_income(self) -> Decimal:
        """Net income in the first year with no wages, else the last year."""
        for cf in self.projection:
            if cf.is_retired and cf.total_salary == ZERO:
                return cf.net_income
        return self.projection[-1].net_income


# =============================================================================
# Monte Carlo
# =============================================================================

@dataclass(frozen=True)
class YearReturns:
    fund_returns: Mapping[str, Decimal]
    inflation: Decimal
    cola: Decimal
    fehb_inflation: Decimal
    source_year: Optional[int] = None

    def portfolio_return(self, allocation: Mapping[str, Decimal]) -> Decimal:
        return sum((self.fund_returns[f] * w for f, w in allocation.items() if w), ZERO)


@dataclass(frozen=True)
class ReturnPath:
    years: Tuple[YearReturns, ...]

    def __len__(self) -> int:
        return len(self.years)

    def portfolio_returns(self, allocation: Mapping[str, Decimal]) -> Tuple[Decimal, ...]:
        return tuple(y.portfolio_return(allocation) for y in self.years)

    @property
    def inflation(self) -> Tuple[Decimal, ...]:
        return tuple(y.inflation for y in self.years)

    @property
    def cola(self) -> Tuple[Decimal, ...]:
        return tuple(y.cola for y in self.years)

    @property
    def fehb_inflation(self) -> Tuple[Decimal, ...]:
        return tuple(y.fehb_inflation for y in self.years)


@dataclass(frozen=True)
class PercentileBands:
    p10: Decimal
    p25: Decimal
    p50: Decimal
    p75: Decimal
    p90: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return {"P10": self.p10, "P25": self.p25, "P50": self.p50, "P75": self.p75, "P90": self.p90}


@dataclass(frozen=True)
class SimulationTrial:
    index: int
    success: bool
    ending_balance: Decimal
    depletion_year: Optional[int] = None
    balances: Tuple[Decimal, ...] = ()
    withdrawals: Tuple[Decimal, ...] = ()
    lifetime_income: Optional[Decimal] = None
    tsp_longevity: Optional[int] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True when the trial raised instead of completing."""
        return self.error is not None


@dataclass(frozen=True)
class SimulationResult:
    success_rate: Decimal
    requested_trials: int
    completed_trials: int
    failed_trials: int
    cancelled: bool
    percentiles: Optional[PercentileBands]
    mean_ending_balance: Decimal
    median_ending_balance: Decimal
    trials: Tuple[SimulationTrial, ...]
    mode: str = "portfolio"
    lifetime_income_percentiles: Optional[PercentileBands] = None
    median_tsp_longevity: Optional[int] = None
    kind: Literal["simulation"] = field(default="simulation", init=False)


# =============================================================================
# Solver
# =============================================================================

@dataclass(frozen=True)
class SolverResult:
    target: str
    goal: str
    success: bool
    iterations: int
    parameter: Union[Decimal, date, int]
    outcome: Decimal
    residual: Decimal
    summary: ScenarioSummary
    lifetime_taxes: Decimal
    convergence_info: str = ""
    income_diff_from_base: Decimal = ZERO
    tax_diff_from_base: Decimal = ZERO
    evaluated: Tuple[Tuple[Union[Decimal, date, int], Decimal], ...] = ()
    kind: Literal["solver"] = field(default="solver", init=False)


@dataclass(frozen=True)
class ProjectionResult:
    summary: ScenarioSummary
    kind: Literal["projection"] = field(default="projection", init=False)

    @property
    def projection(self) -> Tuple[AnnualCashFlow, ...]:
        return self.summary.projection


CoreResult = Union[ProjectionResult, SimulationResult, SolverResult]
