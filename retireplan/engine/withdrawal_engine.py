# engine/withdrawal_engine.py

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional

from retireplan.config import simulation_defaults as defaults
from retireplan.errors import ConfigurationError, InvariantViolation
from retireplan.models import GuardrailBands, canonical_strategy
from retireplan.utils.currency import ONE, ZERO

# Account kinds and their tax character
TAXABLE = "taxable"
TAX_FREE = "roth"
TAX_DEFERRED = "traditional"

TWELVE = Decimal(12)


@dataclass
class AccountBalances:
    """One participant's balances. `taxable_basis` tracks cost basis for gains."""
    traditional: Decimal = ZERO
    roth: Decimal = ZERO
    taxable: Decimal = ZERO
    taxable_basis: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.traditional + self.roth + self.taxable

    def get(self, kind: str) -> Decimal:
        return getattr(self, kind)

    def check(self, who: str = "") -> None:
        for kind in (TAX_DEFERRED, TAX_FREE, TAXABLE):
            if self.get(kind) < ZERO:
                raise InvariantViolation(f"{who} {kind} balance went negative: {self.get(kind)}".strip())

    def grow(self, rate: Decimal) -> None:
        """Applies one year of return to every account; basis is unchanged."""
        factor = ONE + rate
        self.traditional = max(ZERO, self.traditional * factor)
        self.roth = max(ZERO, self.roth * factor)
        self.taxable = max(ZERO, self.taxable * factor)

    def absorb(self, other: "AccountBalances") -> None:
        """Adds another participant's balances to these (spousal transfer)."""
        self.traditional += other.traditional
        self.roth += other.roth
        self.taxable += other.taxable
        self.taxable_basis += other.taxable_basis

    def copy(self) -> "AccountBalances":
        return replace(self)


@dataclass
class StrategyState:
    """Running state for strategies whose amount depends on earlier years."""
    initial_amount: Optional[Decimal] = None
    initial_rate: Optional[Decimal] = None
    current_amount: Decimal = ZERO
    started_year: Optional[int] = None


@dataclass(frozen=True)
class WithdrawalResult:
    requested: Decimal
    from_taxable: Decimal
    from_tax_deferred: Decimal
    from_tax_free: Decimal
    realized_gains: Decimal
    rmd: Decimal
    unmet: Decimal

    @property
    def total(self) -> Decimal:
        return self.from_taxable + self.from_tax_deferred + self.from_tax_free


@dataclass
class _Draw:
    amounts: Dict[str, Decimal] = field(default_factory=lambda: {TAXABLE: ZERO, TAX_FREE: ZERO, TAX_DEFERRED: ZERO})
    realized_gains: Decimal = ZERO


class WithdrawalEngine:
    """
    Handles the annual withdrawal: the strategy amount, its proration and
    survivor scaling, the RMD overlay and the source-account ordering.
    """

    def __init__(self, withdrawal_order: str = "tax_free_first", guardrails: GuardrailBands | None = None):
        self.withdrawal_order = withdrawal_order
        self.guardrails = guardrails or GuardrailBands()
        self._order = self._get_withdrawal_order()

    def _get_withdrawal_order(self) -> List[str]:
        """Account hierarchy for the configured withdrawal order."""
        if self.withdrawal_order == "tax_free_first":
            return [TAXABLE, TAX_FREE, TAX_DEFERRED]
        elif self.withdrawal_order == "tax_deferred_first":
            return [TAX_DEFERRED, TAXABLE, TAX_FREE]
        elif self.withdrawal_order == "proportional":
            return [TAXABLE, TAX_DEFERRED, TAX_FREE]
        raise ConfigurationError(f"Unknown withdrawal order '{self.withdrawal_order}'")

    # ------------------------------------------------------------------
    # Strategy amounts
    # ------------------------------------------------------------------

    def strategy_amount(
        self,
        strategy: str,
        state: StrategyState,
        year: int,
        balance: Decimal,
        inflation: Decimal = ZERO,
        rate: Decimal | None = None,
        amount: Decimal | None = None,
        target_monthly: Decimal | None = None,
        other_income: Decimal = ZERO,
    ) -> Decimal:
        """
        Unprorated withdrawal the strategy asks for in `year`.

        Args:
            strategy: Strategy name or alias.
            state: Mutable per-participant state, updated in place.
            year: Calendar year being projected.
            balance: Start-of-year balance the strategy is measured against.
            inflation: Inflation for `year`, used to index running amounts.
            rate: Withdrawal rate; the default rate when None.
            amount: Fixed or initial amount in dollars.
            target_monthly: Monthly income target for need_based.
            other_income: The year's gross income from other sources.

        Returns:
            The requested amount, never negative.
        """
        strategy = canonical_strategy(strategy)
        rate = defaults.default_withdrawal_rate if rate is None else rate

        if strategy == "fixed_amount":
            return max(amount or ZERO, ZERO)

        if strategy == "fixed_percentage":
            return max(balance, ZERO) * rate

        if strategy == "need_based":
            target = (target_monthly or ZERO) * TWELVE
            return max(ZERO, target - other_income)

        # inflation_adjusted and guardrails keep a running amount
        if state.started_year is None:
            state.started_year = year
            state.initial_amount = amount if amount is not None else max(balance, ZERO) * rate
            state.initial_rate = state.initial_amount / balance if balance > ZERO else rate
            state.current_amount = state.initial_amount
            return state.current_amount

        if year > state.started_year:
            state.current_amount = state.current_amount * (ONE + inflation)

        if strategy == "guardrails" and balance > ZERO and state.initial_rate:
            current_rate = state.current_amount / balance
            upper = state.initial_rate * (ONE + self.guardrails.upper)
            lower = state.initial_rate * (ONE - self.guardrails.lower)
            if current_rate > upper:
                state.current_amount = state.current_amount * (ONE - self.guardrails.adjustment)
            elif current_rate < lower:
                state.current_amount = state.current_amount * (ONE + self.guardrails.adjustment)

        return state.current_amount

    # ------------------------------------------------------------------
    # Source ordering
    # ------------------------------------------------------------------

    def _take(self, kind: str, amount: Decimal, balances: AccountBalances, draw: _Draw) -> Decimal:
        available = balances.get(kind)
        if available <= ZERO or amount <= ZERO:
            return ZERO
        amt = min(available, amount)

        if kind == TAXABLE:
            # Gains are the share of the sale above cost basis
            basis = min(balances.taxable_basis, available)
            gain_pct = (available - basis) / available
            realized = amt * gain_pct
            draw.realized_gains += realized
            balances.taxable_basis = max(ZERO, balances.taxable_basis - (amt - realized))

        setattr(balances, kind, available - amt)
        draw.amounts[kind] += amt
        return amt

    def _withdraw_from_hierarchy(self, cash_needed: Decimal, balances: AccountBalances, draw: _Draw) -> Decimal:
        """Withdraws `cash_needed` following the ordering. Returns the amount still unmet."""
        remaining = cash_needed
        if remaining <= ZERO:
            return ZERO

        if self.withdrawal_order == "proportional":
            total = balances.total
            if total > ZERO:
                shares = {kind: remaining * balances.get(kind) / total for kind in self._order}
                for kind in self._order:
                    remaining -= self._take(kind, shares[kind], balances, draw)

        for kind in self._order:
            if remaining <= ZERO:
                break
            remaining -= self._take(kind, remaining, balances, draw)

        return max(remaining, ZERO)

    def withdraw(
        self,
        requested: Decimal,
        balances: AccountBalances,
        rmd: Decimal = ZERO,
    ) -> WithdrawalResult:
        """
        Takes max(requested, rmd) out of `balances` (mutated in place).

        The RMD portion comes from the tax-deferred account first; the rest
        follows the withdrawal order. Requests above the available balance
        are clipped and reported as unmet.
        """
        requested = max(requested, ZERO)
        rmd = max(rmd, ZERO)
        total_request = max(requested, rmd)
        draw = _Draw()

        rmd_taken = self._take(TAX_DEFERRED, rmd, balances, draw)
        unmet = self._withdraw_from_hierarchy(total_request - rmd_taken, balances, draw)
        balances.check()

        return WithdrawalResult(
            requested=total_request,
            from_taxable=draw.amounts[TAXABLE],
            from_tax_deferred=draw.amounts[TAX_DEFERRED],
            from_tax_free=draw.amounts[TAX_FREE],
            realized_gains=draw.realized_gains,
            rmd=rmd_taken,
            unmet=unmet,
        )

    @staticmethod
    def convert_to_roth(balances: AccountBalances, amount: Decimal) -> Decimal:
        """Moves up to `amount` from traditional to Roth. Returns the amount converted."""
        converted = min(max(amount, ZERO), balances.traditional)
        balances.traditional -= converted
        balances.roth += converted
        return converted
