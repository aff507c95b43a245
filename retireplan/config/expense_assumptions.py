# config/expense_assumptions.py
# Healthcare cost defaults used by the projection.

from decimal import Decimal

# Medicare
medicare_start_age = 65
medicare_premium_inflation = Decimal("0.055")

# FEHB premiums are quoted per biweekly pay period
fehb_pay_periods_per_year = 26

# TSP agency contributions (percent of basic pay)
tsp_automatic_contribution = Decimal("0.01")
tsp_full_match_limit = Decimal("0.03")
tsp_half_match_limit = Decimal("0.02")
tsp_max_match = Decimal("0.04")
