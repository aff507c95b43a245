# engine/projection.py

import copy
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from retireplan.config import expense_assumptions as health
from retireplan.config import simulation_defaults as defaults
from retireplan.errors import ConfigurationError
from retireplan.models import Assumptions, Household, Participant, ParticipantScenario, Scenario
from retireplan.results import (
    AnnualCashFlow,
    BenefitStatus,
    IRMAAStatus,
    LifeStatus,
    ParticipantYear,
    ParticipantYearState,
    RMDStatus,
    ScenarioSummary,
    WorkStatus,
)
from retireplan.utils.currency import ONE, ZERO, quantize_cents
from retireplan.utils.dates import age_in_year, death_year, first_payment_year, work_fraction
from retireplan.utils.tax_utils import get_tax_tables, normalize_filing_status

from retireplan.engine.benefits import BenefitCalculator
from retireplan.engine.irmaa import analyze_irmaa_risk, calculate_magi
from retireplan.engine.rmd_tables import required_minimum_distribution, rmd_start_age
from retireplan.engine.tax_engine import TaxCalculator, TaxInputs
from retireplan.engine.withdrawal_engine import AccountBalances, StrategyState, WithdrawalEngine

logger = logging.getLogger(__name__)


@dataclass
class _Person:
    """Mutable per-participant state carried from one projection year to the next."""
    participant: Participant
    plan: ParticipantScenario
    balances: AccountBalances
    salary: Decimal
    death_year: Optional[int]
    strategy: StrategyState = field(default_factory=StrategyState)
    pension_start_year: Optional[int] = None
    pension: Decimal = ZERO            # running annual annuity, before proration
    survivor_base: Decimal = ZERO      # annuity a survivor would inherit
    supplement: Decimal = ZERO         # running annual SRS
    survivor_pension: Decimal = ZERO   # inherited annuity being received
    survivor_source: Optional[Participant] = None
    survivor_since: Optional[int] = None
    ss_cola_factor: Decimal = ONE

    @property
    def name(self) -> str:
        return self.participant.name

    def alive_in(self, year: int) -> bool:
        return self.death_year is None or year < self.death_year


@dataclass
class _YearFlows:
    wages: Decimal = ZERO
    pension: Decimal = ZERO
    survivor_pension: Decimal = ZERO
    supplement: Decimal = ZERO
    social_security: Decimal = ZERO
    withdrawal: Decimal = ZERO
    rmd: Decimal = ZERO
    roth_conversion: Decimal = ZERO
    employee_contribution: Decimal = ZERO
    employer_contribution: Decimal = ZERO
    from_taxable: Decimal = ZERO
    from_tax_deferred: Decimal = ZERO
    from_tax_free: Decimal = ZERO
    realized_gains: Decimal = ZERO
    unmet: Decimal = ZERO
    fehb: Decimal = ZERO

    @property
    def other_income(self) -> Decimal:
        return self.wages + self.pension + self.survivor_pension + self.supplement + self.social_security


class ProjectionEngine:
    """
    Deterministic year-by-year cash-flow projection for one household and
    one scenario.

    The scenario and household are deep-copied on construction; the caller's
    objects are never mutated. Each call to project() starts from the
    initial balances, so an engine can be run repeatedly.
    """

    def __init__(self, household: Household, scenario: Scenario, assumptions: Assumptions):
        self.household = copy.deepcopy(household)
        self.scenario = copy.deepcopy(scenario)
        self.assumptions = copy.deepcopy(assumptions)

        # -----------------------
        # STEP 1: Validate inputs before any arithmetic
        # -----------------------
        self.household.validate()
        self.assumptions.validate()
        self.scenario.validate(self.household)
        missing = [n for n in self.household.names if n not in self.scenario.participants]
        if missing:
            raise ConfigurationError(
                f"Scenario '{self.scenario.name}' has no settings for: {', '.join(missing)}"
            )

        # -----------------------
        # STEP 2: Collaborators
        # -----------------------
        self.tax_calc = TaxCalculator(get_tax_tables(self.assumptions.tables_year), self.household.state_code)
        self.benefits = BenefitCalculator(self.assumptions.tsp_contribution_policy)
        self.withdrawals = WithdrawalEngine(self.scenario.withdrawal_order, self.scenario.guardrails)
        self.filing_status = normalize_filing_status(self.household.filing_status)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> ScenarioSummary:
        """Projects the scenario and summarizes it."""
        projection = self.project()
        return self._summarize(projection)

    def project(self) -> Tuple[AnnualCashFlow, ...]:
        people = [self._initial_state(p) for p in self.household.participants]
        magi_history: List[Decimal] = list(self.household.prior_magi)
        fehb_factor = ONE
        records = []

        for i in range(self.assumptions.projection_years):
            year = self.assumptions.start_year + i
            if i > 0:
                fehb_factor *= ONE + self.assumptions.fehb_inflation_for(i)
            cf = self._project_year(people, i, year, magi_history, fehb_factor)
            magi_history.append(cf.magi)
            records.append(cf)

        return tuple(records)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _initial_state(self, participant: Participant) -> _Person:
        plan = self.scenario.participants[participant.name]
        return _Person(
            participant=participant,
            plan=plan,
            balances=AccountBalances(
                traditional=participant.tsp_balance_traditional,
                roth=participant.tsp_balance_roth,
                taxable=participant.taxable_balance,
                taxable_basis=min(participant.taxable_basis, participant.taxable_balance),
            ),
            salary=participant.current_salary,
            death_year=death_year(participant.birth_date, plan.death_date, plan.death_age),
        )

    def _pension_start(self, person: _Person) -> Optional[int]:
        p, ret = person.participant, person.plan.retirement_date
        is_fers = p.is_federal and p.high3_salary and p.hire_date
        if is_fers:
            if ret is None:
                return None
            return max(ret.year, self.assumptions.start_year)
        if p.external_pension is None:
            return None
        start = ret.year if ret is not None else self.assumptions.start_year
        if p.external_pension.start_age is not None:
            start = max(start, p.birth_date.year + p.external_pension.start_age)
        return max(start, self.assumptions.start_year)

    # ------------------------------------------------------------------
    # Mortality
    # ------------------------------------------------------------------

    def _survivor_annuity_before_start(self, person: _Person) -> Decimal:
        """Survivor annuity of an annuitant who retired and died before the first projection year."""
        ret = person.plan.retirement_date
        if ret is None or ret.year > person.death_year:
            return ZERO
        return self.benefits.pension_terms(person.participant, ret).survivor_annuity

    def _handle_deaths(self, people: List[_Person], year: int) -> None:
        # Deaths before the first projection year settle in that year
        first_year = year == self.assumptions.start_year
        for person in people:
            if person.death_year is None:
                continue
            if person.death_year != year and not (first_year and person.death_year < year):
                continue
            survivors = [s for s in people if s.alive_in(year)]
            logger.debug(f"{year}: {person.name} deceased, {len(survivors)} survivor(s)")
            if not survivors:
                continue

            if person.death_year < year:
                person.survivor_base = self._survivor_annuity_before_start(person)

            if person.survivor_base > ZERO:
                share = person.survivor_base / len(survivors)
                for s in survivors:
                    s.survivor_pension += share
                    s.survivor_source = person.participant
                    s.survivor_since = year

            if self.scenario.tsp_spousal_transfer == "merge":
                n = Decimal(len(survivors))
                portion = AccountBalances(
                    traditional=person.balances.traditional / n,
                    roth=person.balances.roth / n,
                    taxable=person.balances.taxable / n,
                    taxable_basis=person.balances.taxable_basis / n,
                )
                for s in survivors:
                    s.balances.absorb(portion)
            # Without a merge the deceased's accounts pass to the estate
            person.balances = AccountBalances()

    # ------------------------------------------------------------------
    # One year
    # ------------------------------------------------------------------

    def _participant_year(self, person: _Person, i: int, year: int, sole_survivor: bool) -> Tuple[ParticipantYear, _YearFlows, bool]:
        """Income, contributions and withdrawals for one participant. Returns (record, flows, rmd_active)."""
        a = self.assumptions
        p, plan = person.participant, person.plan
        age = age_in_year(p.birth_date, year)
        cola = a.cola_for(i)
        flows = _YearFlows()
        rmd_active = age >= rmd_start_age(p.birth_date.year)

        if not person.alive_in(year):
            state = ParticipantYearState(WorkStatus.RETIRED, BenefitStatus.NOT_CLAIMED,
                                         RMDStatus.RMD_ACTIVE if rmd_active else RMDStatus.PRE_RMD,
                                         LifeStatus.DECEASED)
            record = ParticipantYear(name=p.name, age=age, state=state,
                                     balance_traditional=quantize_cents(person.balances.traditional),
                                     balance_roth=quantize_cents(person.balances.roth),
                                     balance_taxable=quantize_cents(person.balances.taxable))
            return record, flows, False

        # --- 1. Wages ---
        wf = work_fraction(plan.retirement_date, year)
        if i > 0 and wf > ZERO:
            person.salary *= ONE + cola
        flows.wages = person.salary * wf
        if wf == ONE:
            work = WorkStatus.WORKING
        elif wf > ZERO:
            work = WorkStatus.PARTIAL_YEAR_RETIRED
        else:
            work = WorkStatus.RETIRED

        # --- 2. Defined benefits ---
        if person.pension_start_year is None:
            start = self._pension_start(person)
            if start is not None and start <= year:
                person.pension_start_year = year
                ret_date = plan.retirement_date or date(start, 1, 1)
                terms = self.benefits.pension_terms(p, ret_date)
                person.pension = terms.annual_annuity
                person.survivor_base = terms.survivor_annuity
                person.supplement = self.benefits.supplement_at_retirement(p, ret_date)
        elif year > person.pension_start_year:
            person.pension = self.benefits.pension_cola(p, person.pension, cola, age)
            person.survivor_base = self.benefits.pension_cola(p, person.survivor_base, cola, age)
            person.supplement = self.benefits.pension_cola(p, person.supplement, cola, age)

        if person.pension_start_year is not None:
            first_year = year == person.pension_start_year
            proration = (ONE - wf) if first_year else ONE
            flows.pension = person.pension * proration
            if age < 62:
                flows.supplement = person.supplement * proration

        if person.survivor_pension > ZERO:
            if person.survivor_source is not None and year > person.survivor_since:
                person.survivor_pension = self.benefits.survivor_cola(
                    person.survivor_source, person.survivor_pension, cola
                )
            flows.survivor_pension = person.survivor_pension

        # --- 3. Social Security ---
        claim_age = plan.ss_start_age
        if year > first_payment_year(p.birth_date, claim_age):
            person.ss_cola_factor *= ONE + cola
        flows.social_security = self.benefits.ss_for_year(p, claim_age, year, person.ss_cola_factor)
        benefit = BenefitStatus.CLAIMED if flows.social_security > ZERO else BenefitStatus.NOT_CLAIMED

        # --- 4. Withdrawals (strategy, proration, survivor factor, RMD overlay) ---
        start_balance = person.balances.total
        rmd = ZERO
        if rmd_active:
            rmd = required_minimum_distribution(person.balances.traditional, age, p.birth_date.year)

        requested = ZERO
        ret = plan.retirement_date
        if ret is None or ret.year <= year:
            requested = self.withdrawals.strategy_amount(
                plan.strategy,
                person.strategy,
                year,
                start_balance,
                inflation=a.inflation_for(i),
                rate=plan.withdrawal_rate,
                amount=plan.withdrawal_amount,
                target_monthly=plan.withdrawal_target_monthly,
                other_income=flows.other_income,
            )
            requested *= ONE - wf
            if sole_survivor:
                requested *= self.scenario.survivor_spending_factor

        result = self.withdrawals.withdraw(requested, person.balances, rmd)
        flows.withdrawal = result.total
        flows.rmd = result.rmd
        flows.from_taxable = result.from_taxable
        flows.from_tax_deferred = result.from_tax_deferred
        flows.from_tax_free = result.from_tax_free
        flows.realized_gains = result.realized_gains
        flows.unmet = result.unmet

        # --- 5. Roth conversion (after the RMD is satisfied) ---
        flows.roth_conversion = self.withdrawals.convert_to_roth(person.balances, plan.conversion_for(year))

        # --- 6. TSP contributions ---
        if flows.wages > ZERO:
            flows.employee_contribution = self.benefits.employee_contribution(p, person.salary, ret, year)
            flows.employer_contribution = self.benefits.agency_contribution(p, flows.wages)
            person.balances.traditional += flows.employee_contribution + flows.employer_contribution

        # --- 7. Growth ---
        person.balances.grow(a.return_for(i, retired=wf < ONE))
        person.balances.check(p.name)

        flows.fehb = self.benefits.fehb_annual_premium(p)

        state = ParticipantYearState(
            work, benefit, RMDStatus.RMD_ACTIVE if rmd_active else RMDStatus.PRE_RMD, LifeStatus.ALIVE
        )
        q = quantize_cents
        record = ParticipantYear(
            name=p.name,
            age=age,
            state=state,
            salary=q(flows.wages),
            pension=q(flows.pension),
            survivor_pension=q(flows.survivor_pension),
            fers_supplement=q(flows.supplement),
            social_security=q(flows.social_security),
            withdrawal=q(flows.withdrawal),
            rmd=q(flows.rmd),
            roth_conversion=q(flows.roth_conversion),
            employee_contribution=q(flows.employee_contribution),
            employer_contribution=q(flows.employer_contribution),
            balance_traditional=q(person.balances.traditional),
            balance_roth=q(person.balances.roth),
            balance_taxable=q(person.balances.taxable),
        )
        return record, flows, rmd_active

    def _project_year(
        self,
        people: List[_Person],
        i: int,
        year: int,
        magi_history: List[Decimal],
        fehb_factor: Decimal,
    ) -> AnnualCashFlow:
        self._handle_deaths(people, year)
        living = [p for p in people if p.alive_in(year)]
        sole_survivor = len(people) > 1 and len(living) == 1

        records, all_flows, rmd_flags = [], [], []
        for person in people:
            record, flows, rmd_active = self._participant_year(person, i, year, sole_survivor)
            records.append(record)
            all_flows.append(flows)
            rmd_flags.append(rmd_active)

        def total(attr: str) -> Decimal:
            return sum((getattr(f, attr) for f in all_flows), ZERO)

        filing_status = self.filing_status if len(living) > 1 else "single"
        ages = [age_in_year(p.participant.birth_date, year) for p in living]
        seniors = sum(1 for age in ages if age >= 65)
        medicare_covered = sum(1 for age in ages if age >= health.medicare_start_age)

        # --- Taxes ---
        inputs = TaxInputs(
            filing_status=filing_status,
            wages_by_person=tuple(f.wages for f in all_flows),
            pension_income=total("pension") + total("survivor_pension") + total("supplement"),
            tsp_ordinary_income=total("from_tax_deferred") + total("roth_conversion"),
            social_security=total("social_security"),
            capital_gains=total("realized_gains"),
            seniors=seniors,
        )
        taxes = self.tax_calc.calculate_taxes(inputs)
        magi = calculate_magi(taxes.agi)

        # --- Medicare & IRMAA (MAGI from two years earlier) ---
        lagged_magi = magi_history[i]
        irmaa_status, irmaa_tier = IRMAAStatus.SAFE, "None"
        surcharge = medicare_premium = distance = ZERO
        if medicare_covered:
            premium_factor = (ONE + self.assumptions.medicare_premium_inflation) ** i
            outcome = self.tax_calc.irmaa(
                lagged_magi, filing_status, medicare_covered, premium_factor, defaults.irmaa_warning_buffer
            )
            irmaa_status, irmaa_tier = outcome.status, outcome.tier
            surcharge, medicare_premium = outcome.annual_surcharge, outcome.annual_base_premium
            distance = outcome.distance_to_next

        # --- Net income (components in cents) ---
        q = quantize_cents
        from_taxable, from_deferred, from_free = q(total("from_taxable")), q(total("from_tax_deferred")), q(total("from_tax_free"))
        federal, state, local, fica = q(taxes.federal_tax), q(taxes.state_tax), q(taxes.local_tax), q(taxes.fica_tax)
        surcharge, medicare_premium = q(surcharge), q(medicare_premium)
        fehb = q(total("fehb") * fehb_factor)
        employee = q(total("employee_contribution"))

        gross = sum(
            (r.salary + r.pension + r.survivor_pension + r.fers_supplement + r.social_security for r in records),
            ZERO,
        ) + from_taxable + from_deferred + from_free
        net = gross - (federal + state + local + fica + surcharge + fehb + medicare_premium + employee)

        is_retired = all(work_fraction(p.plan.retirement_date, year) == ZERO for p in living)

        logger.debug(
            f"{year}: gross={gross:.2f} taxes={federal + state + local + fica:.2f} net={net:.2f} "
            f"balance={sum((r.total_balance for r in records), ZERO):.2f}"
        )

        return AnnualCashFlow(
            year=year,
            year_index=i,
            participants=tuple(records),
            filing_status=filing_status,
            withdrawal_taxable=from_taxable,
            withdrawal_tax_deferred=from_deferred,
            withdrawal_tax_free=from_free,
            unmet_withdrawal=q(total("unmet")),
            realized_gains=q(total("realized_gains")),
            roth_conversions=q(total("roth_conversion")),
            employee_contributions=employee,
            employer_contributions=q(total("employer_contribution")),
            federal_tax=federal,
            state_tax=state,
            local_tax=local,
            fica_tax=fica,
            taxable_ss=q(taxes.taxable_ss),
            magi=q(magi),
            lagged_magi=lagged_magi,
            irmaa_status=irmaa_status,
            irmaa_tier=irmaa_tier,
            irmaa_surcharge=surcharge,
            irmaa_distance_to_next=distance,
            fehb_premium=fehb,
            medicare_premium=medicare_premium,
            gross_income=gross,
            net_income=net,
            balance_traditional=sum((r.balance_traditional for r in records), ZERO),
            balance_roth=sum((r.balance_roth for r in records), ZERO),
            balance_taxable=sum((r.balance_taxable for r in records), ZERO),
            is_retired=is_retired,
            is_rmd_year=any(rmd_flags),
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _summarize(self, projection: Tuple[AnnualCashFlow, ...]) -> ScenarioSummary:
        initial_balance = sum((p.total_balance for p in self.household.participants), ZERO)
        discount = ONE + self.assumptions.discount_rate

        depletion_year = None
        tsp_longevity = len(projection)
        if initial_balance > ZERO:
            for cf in projection:
                if cf.total_balance <= ZERO:
                    depletion_year = cf.year
                    tsp_longevity = cf.year_index + 1
                    break

        return ScenarioSummary(
            name=self.scenario.name,
            first_year_net_income=projection[0].net_income,
            year5_net_income=projection[4].net_income if len(projection) >= 5 else None,
            year10_net_income=projection[9].net_income if len(projection) >= 10 else None,
            total_lifetime_income=sum((cf.net_income for cf in projection), ZERO),
            lifetime_income_present_value=sum(
                (cf.net_income / discount ** cf.year_index for cf in projection), ZERO
            ),
            tsp_longevity=tsp_longevity,
            depletion_year=depletion_year,
            initial_balance=initial_balance,
            final_balance=projection[-1].total_balance,
            lifetime_taxes=sum((cf.total_taxes for cf in projection), ZERO),
            projection=projection,
            irmaa_analysis=analyze_irmaa_risk(projection),
        )
