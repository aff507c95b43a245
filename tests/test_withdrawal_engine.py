from decimal import Decimal

import pytest

from retireplan.engine.withdrawal_engine import AccountBalances, StrategyState, WithdrawalEngine
from retireplan.errors import ConfigurationError, InvariantViolation
from retireplan.models import GuardrailBands


def _balances(traditional="0", roth="0", taxable="0", basis=None) -> AccountBalances:
    return AccountBalances(
        traditional=Decimal(traditional),
        roth=Decimal(roth),
        taxable=Decimal(taxable),
        taxable_basis=Decimal(basis if basis is not None else taxable),
    )


# --- ordering ---

def test_tax_free_first_drains_taxable_then_roth():
    balances = _balances(traditional="100", roth="50", taxable="30")
    result = WithdrawalEngine("tax_free_first").withdraw(Decimal("60"), balances)

    assert result.from_taxable == Decimal("30")
    assert result.from_tax_free == Decimal("30")
    assert result.from_tax_deferred == Decimal("0")
    assert balances.roth == Decimal("20")
    assert balances.traditional == Decimal("100")


def test_tax_deferred_first():
    balances = _balances(traditional="100", roth="50", taxable="30")
    result = WithdrawalEngine("tax_deferred_first").withdraw(Decimal("120"), balances)

    assert result.from_tax_deferred == Decimal("100")
    assert result.from_taxable == Decimal("20")
    assert result.from_tax_free == Decimal("0")


def test_proportional_withdrawal():
    balances = _balances(traditional="60", roth="20", taxable="20")
    result = WithdrawalEngine("proportional").withdraw(Decimal("50"), balances)

    assert result.from_taxable == Decimal("10")
    assert result.from_tax_deferred == Decimal("30")
    assert result.from_tax_free == Decimal("10")


def test_unknown_order_is_rejected():
    with pytest.raises(ConfigurationError):
        WithdrawalEngine("biggest_first")


# --- gains, RMD, clipping ---

def test_taxable_sale_realizes_proportional_gain():
    balances = _balances(taxable="100000", basis="40000")
    result = WithdrawalEngine().withdraw(Decimal("50000"), balances)

    assert result.realized_gains == Decimal("30000")
    assert balances.taxable == Decimal("50000")
    assert balances.taxable_basis == Decimal("20000")


def test_rmd_comes_from_traditional_even_without_request():
    balances = _balances(traditional="265000", roth="10000", taxable="10000")
    result = WithdrawalEngine().withdraw(Decimal("0"), balances, rmd=Decimal("10000"))

    assert result.rmd == Decimal("10000")
    assert result.from_tax_deferred == Decimal("10000")
    assert result.total == Decimal("10000")


def test_request_above_rmd_uses_the_ordering_for_the_rest():
    balances = _balances(traditional="265000", roth="10000", taxable="10000")
    result = WithdrawalEngine().withdraw(Decimal("15000"), balances, rmd=Decimal("10000"))

    assert result.from_tax_deferred == Decimal("10000")
    assert result.from_taxable == Decimal("5000")
    assert result.total == Decimal("15000")


def test_request_clipped_to_available_balance():
    balances = _balances(traditional="100", roth="100", taxable="100")
    result = WithdrawalEngine().withdraw(Decimal("500"), balances)

    assert result.total == Decimal("300")
    assert result.unmet == Decimal("200")
    assert balances.total == Decimal("0")


def test_negative_balance_is_an_invariant_violation():
    with pytest.raises(InvariantViolation):
        _balances(traditional="-1").check("alice")


def test_convert_to_roth_is_clipped():
    balances = _balances(traditional="5000")
    converted = WithdrawalEngine.convert_to_roth(balances, Decimal("8000"))
    assert converted == Decimal("5000")
    assert balances.traditional == Decimal("0")
    assert balances.roth == Decimal("5000")


def test_growth_and_absorb():
    balances = _balances(traditional="1000", roth="500", taxable="200", basis="100")
    balances.grow(Decimal("0.10"))
    assert balances.total == Decimal("1870.0")
    assert balances.taxable_basis == Decimal("100")

    balances.absorb(_balances(traditional="130"))
    assert balances.traditional == Decimal("1230.0")


# --- strategies ---

def test_fixed_amount_and_percentage():
    engine = WithdrawalEngine()
    state = StrategyState()
    assert engine.strategy_amount("fixed_amount", state, 2025, Decimal("1000000"), amount=Decimal("30000")) == Decimal("30000")
    assert engine.strategy_amount(
        "fixed_percentage", state, 2025, Decimal("200000"), rate=Decimal("0.05")
    ) == Decimal("10000")


def test_need_based_fills_the_gap():
    engine = WithdrawalEngine()
    amount = engine.strategy_amount(
        "need_based", StrategyState(), 2025, Decimal("500000"),
        target_monthly=Decimal("5000"), other_income=Decimal("45000"),
    )
    assert amount == Decimal("15000")

    covered = engine.strategy_amount(
        "need_based", StrategyState(), 2025, Decimal("500000"),
        target_monthly=Decimal("5000"), other_income=Decimal("80000"),
    )
    assert covered == Decimal("0")


def test_inflation_adjusted_indexes_first_year_amount():
    engine = WithdrawalEngine()
    state = StrategyState()
    first = engine.strategy_amount("inflation_adjusted", state, 2025, Decimal("1000000"))
    second = engine.strategy_amount("inflation_adjusted", state, 2026, Decimal("1000000"), inflation=Decimal("0.03"))
    assert first == Decimal("40000")
    assert second == Decimal("41200")


def test_strategy_alias():
    engine = WithdrawalEngine()
    assert engine.strategy_amount("4_percent_rule", StrategyState(), 2025, Decimal("500000")) == Decimal("20000")


def test_guardrails_cut_and_raise():
    engine = WithdrawalEngine(guardrails=GuardrailBands())

    state = StrategyState()
    engine.strategy_amount("guardrails", state, 2025, Decimal("1000000"), amount=Decimal("40000"))
    cut = engine.strategy_amount("guardrails", state, 2026, Decimal("600000"))
    assert cut == Decimal("36000")

    state = StrategyState()
    engine.strategy_amount("guardrails", state, 2025, Decimal("1000000"), amount=Decimal("40000"))
    raised = engine.strategy_amount("guardrails", state, 2026, Decimal("2000000"))
    assert raised == Decimal("44000")

    state = StrategyState()
    engine.strategy_amount("guardrails", state, 2025, Decimal("1000000"), amount=Decimal("40000"))
    steady = engine.strategy_amount("guardrails", state, 2026, Decimal("1000000"))
    assert steady == Decimal("40000")


def test_guardrail_bands_validated():
    with pytest.raises(ConfigurationError):
        GuardrailBands(adjustment=Decimal("1.5"))
