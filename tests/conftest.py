from datetime import date
from decimal import Decimal

import pytest

from retireplan.models import Assumptions, Household, Participant, ParticipantScenario, Scenario


@pytest.fixture
def alice() -> Participant:
    """Federal employee, FERS with a 50% survivor election."""
    return Participant(
        name="alice",
        birth_date=date(1965, 3, 15),
        hire_date=date(1995, 6, 1),
        is_federal=True,
        current_salary=Decimal("100000"),
        high3_salary=Decimal("95000"),
        tsp_balance_traditional=Decimal("400000"),
        tsp_balance_roth=Decimal("50000"),
        tsp_contribution_percent=Decimal("0.05"),
        ss_benefit_62=Decimal("1800"),
        ss_benefit_fra=Decimal("2600"),
        ss_benefit_70=Decimal("3300"),
        survivor_election_percent=Decimal("0.5"),
        fehb_premium_per_pay_period=Decimal("250"),
        is_primary_fehb_holder=True,
    )


@pytest.fixture
def bob() -> Participant:
    """Non-federal spouse with an IRA and a brokerage account."""
    return Participant(
        name="bob",
        birth_date=date(1963, 8, 20),
        is_federal=False,
        tsp_balance_traditional=Decimal("200000"),
        taxable_balance=Decimal("50000"),
        taxable_basis=Decimal("30000"),
        ss_benefit_fra=Decimal("2000"),
    )


@pytest.fixture
def household(alice, bob) -> Household:
    return Household(
        participants=(alice, bob),
        filing_status="married_filing_jointly",
        prior_magi=(Decimal("150000"), Decimal("150000")),
        state_code="PA",
    )


@pytest.fixture
def scenario() -> Scenario:
    return Scenario(
        name="Baseline",
        participants={
            "alice": ParticipantScenario(
                retirement_date=date(2027, 6, 30),
                ss_start_age=67,
                withdrawal_strategy="inflation_adjusted",
            ),
            "bob": ParticipantScenario(
                ss_start_age=67,
                withdrawal_strategy="fixed_amount",
                withdrawal_amount=Decimal("10000"),
            ),
        },
    )


@pytest.fixture
def assumptions() -> Assumptions:
    return Assumptions(start_year=2025, projection_years=30)


@pytest.fixture
def retiree_household() -> Household:
    """Single retiree living off a one-account portfolio."""
    carol = Participant(
        name="carol",
        birth_date=date(1958, 6, 1),
        is_federal=False,
        tsp_balance_traditional=Decimal("1000000"),
        ss_benefit_fra=Decimal("2500"),
    )
    return Household(
        participants=(carol,),
        filing_status="single",
        prior_magi=(Decimal("100000"), Decimal("100000")),
    )


@pytest.fixture
def retiree_scenario() -> Scenario:
    return Scenario(
        name="Retired",
        participants={
            "carol": ParticipantScenario(
                retirement_date=date(2024, 12, 31),
                ss_start_age=67,
                withdrawal_strategy="fixed_percentage",
                withdrawal_rate=Decimal("0.05"),
            ),
        },
    )


@pytest.fixture
def short_assumptions() -> Assumptions:
    return Assumptions(start_year=2025, projection_years=20)
