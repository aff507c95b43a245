# utils/tax_utils.py

"""
Read-only tax, payroll and Medicare tables versioned by calendar year.

Each table set is a frozen TaxTables instance. get_tax_tables(year) returns
the newest version whose year is <= the requested year; asking for a year
before the first version is a DataError.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Literal, Mapping, Tuple

from retireplan.errors import ConfigurationError, DataError

# Define the acceptable set of filing statuses for type hinting
TaxFilingStatus = Literal["single", "married_filing_jointly"]
FILING_STATUSES: Tuple[str, ...] = ("single", "married_filing_jointly")

INF = Decimal("Infinity")
D = Decimal

Bracket = Tuple[Decimal, Decimal, Decimal]  # (low, high, rate)


def _halve(brackets: Tuple[Bracket, ...]) -> Tuple[Bracket, ...]:
    return tuple((low / 2, high / 2 if high != INF else INF, rate) for low, high, rate in brackets)


@dataclass(frozen=True)
class StateTaxRule:
    """Flat state income tax with exempt income categories plus a local wage tax."""
    rate: Decimal
    local_wage_rate: Decimal
    exempt_categories: frozenset = frozenset()


@dataclass(frozen=True)
class TaxTables:
    year: int
    ordinary_brackets: Mapping[str, Tuple[Bracket, ...]]
    capgains_brackets: Mapping[str, Tuple[Bracket, ...]]
    standard_deduction: Mapping[str, Decimal]
    senior_extra_deduction: Mapping[str, Decimal]
    ss_tax_thresholds: Mapping[str, Tuple[Bracket, ...]]
    ss_wage_base: Decimal
    ss_payroll_rate: Decimal
    medicare_payroll_rate: Decimal
    additional_medicare_rate: Decimal
    additional_medicare_threshold: Mapping[str, Decimal]
    irmaa_thresholds: Mapping[str, Tuple[Decimal, ...]]
    part_b_surcharges_monthly: Tuple[Decimal, ...]
    base_part_b_monthly: Decimal
    state_rules: Mapping[str, StateTaxRule] = field(default_factory=lambda: MappingProxyType({}))


# =============================================================================
# 1. Federal Ordinary Income Tax Brackets
# =============================================================================

_ORDINARY_MFJ_2025: Tuple[Bracket, ...] = (
    (D(0), D(23_200), D("0.10")), (D(23_200), D(94_300), D("0.12")),
    (D(94_300), D(201_050), D("0.22")), (D(201_050), D(383_900), D("0.24")),
    (D(383_900), D(487_450), D("0.32")), (D(487_450), D(731_200), D("0.35")),
    (D(731_200), INF, D("0.37")),
)

_ORDINARY_MFJ_2026: Tuple[Bracket, ...] = (
    (D(0), D(24_800), D("0.10")), (D(24_800), D(100_800), D("0.12")),
    (D(100_800), D(211_400), D("0.22")), (D(211_400), D(403_550), D("0.24")),
    (D(403_550), D(512_450), D("0.32")), (D(512_450), D(768_700), D("0.35")),
    (D(768_700), INF, D("0.37")),
)

_ORDINARY_SINGLE_2026: Tuple[Bracket, ...] = (
    (D(0), D(12_400), D("0.10")), (D(12_400), D(50_400), D("0.12")),
    (D(50_400), D(110_650), D("0.22")), (D(110_650), D(196_150), D("0.24")),
    (D(196_150), D(250_000), D("0.32")), (D(250_000), D(622_050), D("0.35")),
    (D(622_050), INF, D("0.37")),
)

# =============================================================================
# 2. Federal Preferential Income Tax Brackets (Capital Gains / QDivs)
# =============================================================================

_CAPGAINS_2025 = {
    "single": ((D(0), D(48_350), D("0")), (D(48_350), D(533_400), D("0.15")), (D(533_400), INF, D("0.20"))),
    "married_filing_jointly": ((D(0), D(96_700), D("0")), (D(96_700), D(600_050), D("0.15")), (D(600_050), INF, D("0.20"))),
}

_CAPGAINS_2026 = {
    "single": ((D(0), D(48_400), D("0")), (D(48_400), D(535_000), D("0.15")), (D(535_000), INF, D("0.20"))),
    "married_filing_jointly": ((D(0), D(96_900), D("0")), (D(96_900), D(601_300), D("0.15")), (D(601_300), INF, D("0.20"))),
}

# =============================================================================
# 3. Fixed / Non-Indexed Parameters
# =============================================================================

# Social Security Taxation Thresholds (Statutory and NOT indexed)
SS_TAX_THRESHOLDS: Dict[str, Tuple[Bracket, ...]] = {
    "single": ((D(0), D(25_000), D("0")), (D(25_000), D(34_000), D("0.50")), (D(34_000), INF, D("0.85"))),
    "married_filing_jointly": ((D(0), D(32_000), D("0")), (D(32_000), D(44_000), D("0.50")), (D(44_000), INF, D("0.85"))),
}

ADDITIONAL_MEDICARE_THRESHOLD = {"single": D(200_000), "married_filing_jointly": D(250_000)}

STATE_RULES = {
    "PA": StateTaxRule(
        rate=D("0.0307"),
        local_wage_rate=D("0.01"),
        exempt_categories=frozenset({"pension", "tsp", "social_security"}),
    ),
}

# =============================================================================
# 4. Versioned Table Sets
# =============================================================================

def _freeze(d: dict) -> Mapping:
    return MappingProxyType(dict(d))


TAX_TABLES_2025 = TaxTables(
    year=2025,
    ordinary_brackets=_freeze({
        "married_filing_jointly": _ORDINARY_MFJ_2025,
        "single": _halve(_ORDINARY_MFJ_2025),
    }),
    capgains_brackets=_freeze(_CAPGAINS_2025),
    standard_deduction=_freeze({"married_filing_jointly": D(30_000), "single": D(15_000)}),
    senior_extra_deduction=_freeze({"married_filing_jointly": D(1_550), "single": D(1_550)}),
    ss_tax_thresholds=_freeze(SS_TAX_THRESHOLDS),
    ss_wage_base=D(176_100),
    ss_payroll_rate=D("0.062"),
    medicare_payroll_rate=D("0.0145"),
    additional_medicare_rate=D("0.009"),
    additional_medicare_threshold=_freeze(ADDITIONAL_MEDICARE_THRESHOLD),
    irmaa_thresholds=_freeze({
        "married_filing_jointly": (D(206_000), D(258_000), D(322_000), D(386_000), D(750_000)),
        "single": (D(103_000), D(129_000), D(161_000), D(193_000), D(500_000)),
    }),
    part_b_surcharges_monthly=(D("69.90"), D("174.70"), D("279.50"), D("384.30"), D("489.10")),
    base_part_b_monthly=D("185.00"),
    state_rules=_freeze(STATE_RULES),
)

TAX_TABLES_2026 = TaxTables(
    year=2026,
    ordinary_brackets=_freeze({
        "married_filing_jointly": _ORDINARY_MFJ_2026,
        "single": _ORDINARY_SINGLE_2026,
    }),
    capgains_brackets=_freeze(_CAPGAINS_2026),
    standard_deduction=_freeze({"married_filing_jointly": D(30_100), "single": D(15_050)}),
    senior_extra_deduction=_freeze({"married_filing_jointly": D(1_600), "single": D(2_000)}),
    ss_tax_thresholds=_freeze(SS_TAX_THRESHOLDS),
    ss_wage_base=D(184_500),
    ss_payroll_rate=D("0.062"),
    medicare_payroll_rate=D("0.0145"),
    additional_medicare_rate=D("0.009"),
    additional_medicare_threshold=_freeze(ADDITIONAL_MEDICARE_THRESHOLD),
    irmaa_thresholds=_freeze({
        "married_filing_jointly": (D(218_000), D(274_000), D(342_000), D(410_000), D(750_000)),
        "single": (D(109_000), D(137_000), D(171_000), D(205_000), D(500_000)),
    }),
    part_b_surcharges_monthly=(D("72.00"), D("180.00"), D("288.00"), D("396.00"), D("432.00")),
    base_part_b_monthly=D("190.00"),
    state_rules=_freeze(STATE_RULES),
)

TAX_TABLE_VERSIONS: Mapping[int, TaxTables] = MappingProxyType({
    TAX_TABLES_2025.year: TAX_TABLES_2025,
    TAX_TABLES_2026.year: TAX_TABLES_2026,
})


# =============================================================================
# 5. Lookup
# =============================================================================

def get_tax_tables(year: int) -> TaxTables:
    """
    Returns the table set in force for `year`: the newest version not later
    than `year`. Years after the last version reuse the last version.
    """
    eligible = [y for y in TAX_TABLE_VERSIONS if y <= year]
    if not eligible:
        raise DataError(
            f"No tax tables for {year}; earliest available is {min(TAX_TABLE_VERSIONS)}"
        )
    return TAX_TABLE_VERSIONS[max(eligible)]


def normalize_filing_status(filing_status: str) -> TaxFilingStatus:
    """Accepts 'mfj', 'married_joint' and similar spellings."""
    key = filing_status.strip().lower().replace("-", "_")
    if key in ("mfj", "married_joint", "married_filing_jointly", "joint"):
        return "married_filing_jointly"
    if key in ("single", "s"):
        return "single"
    raise ConfigurationError(f"Unsupported filing status '{filing_status}'")
