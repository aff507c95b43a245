# utils/frames.py

"""
pandas views of results for an external renderer (tables, charts, CSV).
Money is converted to float here, at the edge; the core keeps Decimal.
"""

import pandas as pd

from retireplan.results import ScenarioSummary, SimulationResult

# AnnualCashFlow attributes exported by projection_frame, in column order
PROJECTION_COLUMNS = (
    "total_salary",
    "total_pension",
    "total_survivor_pension",
    "total_fers_supplement",
    "total_social_security",
    "withdrawal_taxable",
    "withdrawal_tax_deferred",
    "withdrawal_tax_free",
    "total_rmd",
    "roth_conversions",
    "gross_income",
    "federal_tax",
    "state_tax",
    "local_tax",
    "fica_tax",
    "irmaa_surcharge",
    "fehb_premium",
    "medicare_premium",
    "employee_contributions",
    "net_income",
    "magi",
    "balance_traditional",
    "balance_roth",
    "balance_taxable",
    "total_balance",
)


def projection_frame(summary: ScenarioSummary) -> pd.DataFrame:
    """One row per projection year, indexed by calendar year."""
    rows = []
    for cf in summary.projection:
        row = {"year": cf.year, "filing_status": cf.filing_status, "irmaa_tier": cf.irmaa_tier}
        row.update({col: float(getattr(cf, col)) for col in PROJECTION_COLUMNS})
        for p in cf.participants:
            row[f"{p.name}_age"] = p.age
            row[f"{p.name}_work"] = p.state.work.value
        rows.append(row)
    return pd.DataFrame(rows).set_index("year")


def trials_frame(result: SimulationResult) -> pd.DataFrame:
    """One row per trial, indexed by trial number; failed trials carry their error."""
    rows = [
        {
            "trial": t.index,
            "success": t.success,
            "ending_balance": float(t.ending_balance),
            "depletion_year": t.depletion_year,
            "lifetime_income": float(t.lifetime_income) if t.lifetime_income is not None else None,
            "tsp_longevity": t.tsp_longevity,
            "error": t.error,
        }
        for t in result.trials
    ]
    columns = ["trial", "success", "ending_balance", "depletion_year", "lifetime_income", "tsp_longevity", "error"]
    return pd.DataFrame(rows, columns=columns).set_index("trial")
