# models.py

"""
Input dataclasses for the household, the scenario being evaluated and the
global economic assumptions.

Money and rates are Decimal. Numbers passed as int, float or str are
coerced in __post_init__ so callers can write Participant(current_salary=95000).
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date
from decimal import Decimal
from typing import Dict, Optional, Tuple

from retireplan.config import expense_assumptions
from retireplan.config import simulation_defaults as defaults
from retireplan.errors import ConfigurationError, InvariantViolation
from retireplan.utils.currency import ONE, ZERO, to_decimal
from retireplan.utils.dates import age_on, years_of_service
from retireplan.utils.tax_utils import normalize_filing_status

WITHDRAWAL_STRATEGIES = (
    "fixed_amount",
    "inflation_adjusted",
    "fixed_percentage",
    "need_based",
    "guardrails",
)

# Names used by older configuration files
STRATEGY_ALIASES = {
    "4_percent_rule": "inflation_adjusted",
    "variable_percentage": "fixed_percentage",
}

WITHDRAWAL_ORDERS = ("tax_free_first", "tax_deferred_first", "proportional")
CONTRIBUTION_POLICIES = ("continue_until_retirement", "zero_in_retirement_view")
TSP_TRANSFER_MODES = ("merge", "none")
SURVIVOR_ELECTIONS = (Decimal("0"), Decimal("0.25"), Decimal("0.5"))


def _coerce_decimals(obj, names, optional=()):
    for name in names:
        value = getattr(obj, name)
        if value is None and name in optional:
            continue
        object.__setattr__(obj, name, to_decimal(value, default=ZERO))


def canonical_strategy(name: str) -> str:
    key = name.strip().lower()
    key = STRATEGY_ALIASES.get(key, key)
    if key not in WITHDRAWAL_STRATEGIES:
        raise ConfigurationError(
            f"Unknown withdrawal strategy '{name}'. Expected one of "
            f"{', '.join(WITHDRAWAL_STRATEGIES + tuple(STRATEGY_ALIASES))}"
        )
    return key


# =============================================================================
# Household
# =============================================================================

@dataclass(frozen=True)
class ExternalPension:
    """A non-FERS defined-benefit pension with its own COLA."""
    monthly_benefit: Decimal
    cola_adjustment: Decimal = ZERO
    start_age: Optional[int] = None

    def __post_init__(self):
        _coerce_decimals(self, ("monthly_benefit", "cola_adjustment"))


@dataclass(frozen=True)
class Participant:
    name: str
    birth_date: date
    hire_date: Optional[date] = None
    is_federal: bool = True
    current_salary: Decimal = ZERO
    high3_salary: Optional[Decimal] = None
    tsp_balance_traditional: Decimal = ZERO
    tsp_balance_roth: Decimal = ZERO
    taxable_balance: Decimal = ZERO
    taxable_basis: Decimal = ZERO
    tsp_contribution_percent: Decimal = ZERO
    ss_benefit_62: Decimal = ZERO
    ss_benefit_fra: Decimal = ZERO
    ss_benefit_70: Decimal = ZERO
    survivor_election_percent: Decimal = ZERO
    fehb_premium_per_pay_period: Decimal = ZERO
    is_primary_fehb_holder: bool = False
    external_pension: Optional[ExternalPension] = None

    def __post_init__(self):
        _coerce_decimals(
            self,
            (
                "current_salary", "high3_salary", "tsp_balance_traditional",
                "tsp_balance_roth", "taxable_balance", "taxable_basis",
                "tsp_contribution_percent", "ss_benefit_62", "ss_benefit_fra",
                "ss_benefit_70", "survivor_election_percent",
                "fehb_premium_per_pay_period",
            ),
            optional=("high3_salary",),
        )

    def age(self, at: date) -> int:
        return age_on(self.birth_date, at)

    def years_of_service(self, at: date) -> Decimal:
        return years_of_service(self.hire_date, at)

    @property
    def total_balance(self) -> Decimal:
        return self.tsp_balance_traditional + self.tsp_balance_roth + self.taxable_balance

    def validate(self) -> None:
        for name in ("tsp_balance_traditional", "tsp_balance_roth", "taxable_balance", "taxable_basis"):
            if getattr(self, name) < ZERO:
                raise InvariantViolation(f"{self.name}: {name} is negative ({getattr(self, name)})")
        for name in ("current_salary", "ss_benefit_62", "ss_benefit_fra", "ss_benefit_70",
                     "fehb_premium_per_pay_period"):
            if getattr(self, name) < ZERO:
                raise ConfigurationError(f"{self.name}: {name} cannot be negative")
        if not ZERO <= self.tsp_contribution_percent <= ONE:
            raise ConfigurationError(f"{self.name}: tsp_contribution_percent must be between 0 and 1")
        if self.survivor_election_percent not in SURVIVOR_ELECTIONS:
            raise ConfigurationError(
                f"{self.name}: survivor_election_percent must be 0, 0.25 or 0.5"
            )
        if self.hire_date is not None and self.hire_date < self.birth_date:
            raise ConfigurationError(f"{self.name}: hire date precedes birth date")


@dataclass
class Household:
    participants: Tuple[Participant, ...]
    filing_status: str = "married_filing_jointly"
    prior_magi: Tuple[Decimal, Decimal] = (ZERO, ZERO)  # two years before start, oldest first
    state_code: str = "PA"

    def __post_init__(self):
        self.participants = tuple(self.participants)
        self.prior_magi = tuple(to_decimal(m, default=ZERO) for m in self.prior_magi)

    def participant(self, name: str) -> Participant:
        for p in self.participants:
            if p.name == name:
                return p
        raise ConfigurationError(f"No participant named '{name}' in household")

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.participants)

    def validate(self) -> None:
        if not self.participants:
            raise ConfigurationError("Household has no participants")
        if len(set(self.names)) != len(self.names):
            raise ConfigurationError("Participant names must be unique")
        if len(self.prior_magi) != 2:
            raise ConfigurationError("prior_magi must hold exactly two years")
        normalize_filing_status(self.filing_status)
        for p in self.participants:
            p.validate()


# =============================================================================
# Scenario
# =============================================================================

@dataclass(frozen=True)
class RothConversion:
    year: int
    amount: Decimal

    def __post_init__(self):
        _coerce_decimals(self, ("amount",))


@dataclass(frozen=True)
class GuardrailBands:
    upper: Decimal = defaults.guardrail_upper_band
    lower: Decimal = defaults.guardrail_lower_band
    adjustment: Decimal = defaults.guardrail_adjustment

    def __post_init__(self):
        _coerce_decimals(self, ("upper", "lower", "adjustment"))
        if self.upper < ZERO or self.lower < ZERO or not ZERO <= self.adjustment <= ONE:
            raise ConfigurationError("Guardrail bands must be non-negative, adjustment in [0, 1]")


@dataclass
class ParticipantScenario:
    retirement_date: Optional[date] = None
    ss_start_age: int = 67
    withdrawal_strategy: str = "inflation_adjusted"
    withdrawal_rate: Optional[Decimal] = None
    withdrawal_amount: Optional[Decimal] = None
    withdrawal_target_monthly: Optional[Decimal] = None
    roth_conversions: Tuple[RothConversion, ...] = ()
    death_date: Optional[date] = None
    death_age: Optional[int] = None

    def __post_init__(self):
        _coerce_decimals(
            self,
            ("withdrawal_rate", "withdrawal_amount", "withdrawal_target_monthly"),
            optional=("withdrawal_rate", "withdrawal_amount", "withdrawal_target_monthly"),
        )
        self.roth_conversions = tuple(self.roth_conversions)

    @property
    def strategy(self) -> str:
        return canonical_strategy(self.withdrawal_strategy)

    def conversion_for(self, year: int) -> Decimal:
        return sum((c.amount for c in self.roth_conversions if c.year == year), ZERO)


@dataclass
class Scenario:
    name: str
    participants: Dict[str, ParticipantScenario]
    withdrawal_order: str = "tax_free_first"
    guardrails: GuardrailBands = field(default_factory=GuardrailBands)
    survivor_spending_factor: Decimal = ONE
    tsp_spousal_transfer: str = "merge"

    def __post_init__(self):
        self.survivor_spending_factor = to_decimal(self.survivor_spending_factor, default=ONE)

    def validate(self, household: Household) -> None:
        if not self.participants:
            raise ConfigurationError(f"Scenario '{self.name}' has no participant scenarios")
        if self.withdrawal_order not in WITHDRAWAL_ORDERS:
            raise ConfigurationError(f"Unknown withdrawal order '{self.withdrawal_order}'")
        if self.tsp_spousal_transfer not in TSP_TRANSFER_MODES:
            raise ConfigurationError(f"Unknown TSP transfer mode '{self.tsp_spousal_transfer}'")
        if not ZERO <= self.survivor_spending_factor <= ONE:
            raise ConfigurationError("survivor_spending_factor must be between 0 and 1")

        for name, ps in self.participants.items():
            participant = household.participant(name)
            strategy = ps.strategy
            if not 62 <= ps.ss_start_age <= 70:
                raise ConfigurationError(
                    f"{name}: Social Security start age {ps.ss_start_age} outside 62-70"
                )
            if (ps.retirement_date is not None and participant.hire_date is not None
                    and ps.retirement_date < participant.hire_date):
                raise ConfigurationError(f"{name}: retirement date precedes hire date")
            if ps.withdrawal_rate is not None and not ZERO <= ps.withdrawal_rate <= ONE:
                raise ConfigurationError(f"{name}: withdrawal_rate must be between 0 and 1")
            if strategy == "fixed_amount" and ps.withdrawal_amount is None:
                raise ConfigurationError(f"{name}: fixed_amount strategy needs withdrawal_amount")
            if strategy == "need_based" and ps.withdrawal_target_monthly is None:
                raise ConfigurationError(
                    f"{name}: need_based strategy needs withdrawal_target_monthly"
                )
            if ps.death_date is not None and ps.death_date < participant.birth_date:
                raise ConfigurationError(f"{name}: death date precedes birth date")
            if ps.death_age is not None and ps.death_age < 0:
                raise ConfigurationError(f"{name}: death age cannot be negative")
            for conversion in ps.roth_conversions:
                if conversion.amount < ZERO:
                    raise ConfigurationError(f"{name}: Roth conversion amounts must be positive")

    def with_participant(self, name: str, **changes) -> "Scenario":
        """Copy of this scenario with one participant's fields replaced."""
        updated = dict(self.participants)
        updated[name] = replace(self.participants[name], **changes)
        return replace(self, participants=updated)

    def with_all_participants(self, **changes) -> "Scenario":
        updated = {n: replace(ps, **changes) for n, ps in self.participants.items()}
        return replace(self, participants=updated)


# =============================================================================
# Assumptions
# =============================================================================

@dataclass
class Assumptions:
    start_year: int = defaults.projection_base_year
    projection_years: int = defaults.projection_years
    inflation_rate: Decimal = defaults.default_inflation_rate
    cola_rate: Decimal = defaults.default_cola_rate
    fehb_premium_inflation: Decimal = defaults.default_fehb_inflation
    medicare_premium_inflation: Decimal = expense_assumptions.medicare_premium_inflation
    tsp_return_pre_retirement: Decimal = defaults.default_return_pre_retirement
    tsp_return_post_retirement: Decimal = defaults.default_return_post_retirement
    tsp_contribution_policy: str = "continue_until_retirement"
    discount_rate: Decimal = defaults.discount_rate
    tax_year: Optional[int] = None
    # Per-year overrides, one entry per projection year (used by Monte Carlo)
    return_path: Optional[Tuple[Decimal, ...]] = None
    inflation_path: Optional[Tuple[Decimal, ...]] = None
    cola_path: Optional[Tuple[Decimal, ...]] = None
    fehb_inflation_path: Optional[Tuple[Decimal, ...]] = None

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name.endswith("_path"):
                if value is not None:
                    setattr(self, f.name, tuple(to_decimal(v) for v in value))
            elif f.type in (Decimal, "Decimal"):
                setattr(self, f.name, to_decimal(value))

    @property
    def tables_year(self) -> int:
        return self.tax_year if self.tax_year is not None else self.start_year

    def _path_value(self, path, index: int, fallback: Decimal) -> Decimal:
        if path is None:
            return fallback
        return path[index]

    def return_for(self, index: int, retired: bool) -> Decimal:
        fallback = self.tsp_return_post_retirement if retired else self.tsp_return_pre_retirement
        return self._path_value(self.return_path, index, fallback)

    def inflation_for(self, index: int) -> Decimal:
        return self._path_value(self.inflation_path, index, self.inflation_rate)

    def cola_for(self, index: int) -> Decimal:
        return self._path_value(self.cola_path, index, self.cola_rate)

    def fehb_inflation_for(self, index: int) -> Decimal:
        return self._path_value(self.fehb_inflation_path, index, self.fehb_premium_inflation)

    def validate(self) -> None:
        if not 1 <= self.projection_years <= defaults.max_projection_years:
            raise ConfigurationError(
                f"projection_years must be between 1 and {defaults.max_projection_years}"
            )
        for name in ("inflation_rate", "cola_rate"):
            rate = getattr(self, name)
            if not defaults.min_inflation_rate <= rate <= defaults.max_inflation_rate:
                raise ConfigurationError(f"{name} {rate} outside [-0.10, 0.20]")
        if self.tsp_contribution_policy not in CONTRIBUTION_POLICIES:
            raise ConfigurationError(
                f"Unknown TSP contribution policy '{self.tsp_contribution_policy}'"
            )
        for name in ("return_path", "inflation_path", "cola_path", "fehb_inflation_path"):
            path = getattr(self, name)
            if path is not None and len(path) < self.projection_years:
                raise ConfigurationError(
                    f"{name} has {len(path)} entries, projection needs {self.projection_years}"
                )
