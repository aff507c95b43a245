# utils/input_adapter.py

"""
Builds the input dataclasses from normalized mappings (the shape an external
config loader produces), using reflection (dataclasses.fields) so only valid
fields are passed through.
"""

from dataclasses import MISSING, fields
from datetime import date, datetime
from typing import Any, Dict, Mapping

from retireplan.errors import ConfigurationError
from retireplan.models import (
    Assumptions,
    ExternalPension,
    GuardrailBands,
    Household,
    Participant,
    ParticipantScenario,
    RothConversion,
    Scenario,
)
from retireplan.utils.currency import clean_currency, clean_percent

# Fields entered as percents ("4%", 4 or 0.04 all mean 0.04)
PERCENT_FIELDS = {
    "tsp_contribution_percent",
    "survivor_election_percent",
    "withdrawal_rate",
    "cola_adjustment",
}
DATE_FIELDS = {"birth_date", "hire_date", "retirement_date", "death_date"}


def _parse_date(name: str, value: Any) -> date | None:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name}: cannot read '{value}' as a YYYY-MM-DD date") from exc


def _filtered(cls, data: Mapping[str, Any], context: str) -> Dict[str, Any]:
    """Keeps only keys that are fields of `cls` and checks required ones are present."""
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{context}: expected a mapping, got {type(data).__name__}")
    valid = {f.name: f for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in valid}
    missing = [
        name for name, f in valid.items()
        if f.default is MISSING and f.default_factory is MISSING and name not in kwargs
    ]
    if missing:
        raise ConfigurationError(f"{context}: missing required field(s) {', '.join(missing)}")

    for key, value in list(kwargs.items()):
        if key in DATE_FIELDS:
            kwargs[key] = _parse_date(f"{context}.{key}", value)
        elif key in PERCENT_FIELDS and value is not None:
            kwargs[key] = clean_percent(value)
        elif isinstance(value, str) and "$" in value:
            kwargs[key] = clean_currency(value)
    return kwargs


def build_participant(data: Mapping[str, Any]) -> Participant:
    context = f"participant {data.get('name', '?')}" if isinstance(data, Mapping) else "participant"
    kwargs = _filtered(Participant, data, context)
    if kwargs.get("external_pension") is not None:
        kwargs["external_pension"] = ExternalPension(**_filtered(ExternalPension, kwargs["external_pension"], context))
    return Participant(**kwargs)


def build_household(data: Mapping[str, Any]) -> Household:
    """
    Args:
        data: {"participants": [...], "filing_status": ..., "prior_magi": [y-2, y-1], "state_code": ...}

    Returns:
        A validated Household.
    """
    kwargs = _filtered(Household, data, "household")
    participants = kwargs.get("participants")
    if not participants:
        raise ConfigurationError("household: at least one participant is required")
    kwargs["participants"] = tuple(build_participant(p) for p in participants)
    if "prior_magi" in kwargs:
        kwargs["prior_magi"] = tuple(clean_currency(m) for m in kwargs["prior_magi"])
    household = Household(**kwargs)
    household.validate()
    return household


def _build_conversions(raw: Any, context: str) -> tuple:
    if raw is None:
        return ()
    if isinstance(raw, Mapping):
        return tuple(RothConversion(int(year), clean_currency(amount)) for year, amount in raw.items())
    conversions = []
    for item in raw:
        conversions.append(RothConversion(**_filtered(RothConversion, item, f"{context}.roth_conversions")))
    return tuple(conversions)


def build_participant_scenario(name: str, data: Mapping[str, Any]) -> ParticipantScenario:
    context = f"scenario participant {name}"
    kwargs = _filtered(ParticipantScenario, data, context)
    kwargs["roth_conversions"] = _build_conversions(kwargs.get("roth_conversions"), context)
    return ParticipantScenario(**kwargs)


def build_scenario(data: Mapping[str, Any], household: Household | None = None) -> Scenario:
    """Builds a Scenario; validates it against `household` when one is given."""
    kwargs = _filtered(Scenario, data, f"scenario {data.get('name', '?')}" if isinstance(data, Mapping) else "scenario")
    participants = kwargs.get("participants") or {}
    if not isinstance(participants, Mapping):
        raise ConfigurationError("scenario: participants must map names to settings")
    kwargs["participants"] = {
        name: build_participant_scenario(name, ps) for name, ps in participants.items()
    }
    if isinstance(kwargs.get("guardrails"), Mapping):
        kwargs["guardrails"] = GuardrailBands(**_filtered(GuardrailBands, kwargs["guardrails"], "guardrails"))
    scenario = Scenario(**kwargs)
    if household is not None:
        scenario.validate(household)
    return scenario


def build_assumptions(data: Mapping[str, Any] | None = None) -> Assumptions:
    assumptions = Assumptions(**_filtered(Assumptions, data or {}, "assumptions"))
    assumptions.validate()
    return assumptions
