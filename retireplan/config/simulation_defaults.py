# config/simulation_defaults.py
# Defaults for the projection, Monte Carlo and solver entry points.
# Callers override them per request; nothing here is mutated at runtime.

from decimal import Decimal

# Projection
projection_base_year = 2025
projection_years = 30
discount_rate = Decimal("0.03")
default_inflation_rate = Decimal("0.025")
default_cola_rate = Decimal("0.025")
default_fehb_inflation = Decimal("0.04")
default_return_pre_retirement = Decimal("0.07")
default_return_post_retirement = Decimal("0.05")
default_withdrawal_rate = Decimal("0.04")
max_projection_years = 100

# Validation bounds
min_inflation_rate = Decimal("-0.10")
max_inflation_rate = Decimal("0.20")

# Monte Carlo
mc_num_trials = 1000
mc_horizon_years = 25
mc_initial_balance = Decimal("1000000")
mc_annual_withdrawal = Decimal("40000")
mc_withdrawal_strategy = "fixed_amount"
mc_seed = 42
mc_use_historical = True

# Guardrails (Guyton-Klinger style bands around the initial withdrawal rate)
guardrail_upper_band = Decimal("0.20")
guardrail_lower_band = Decimal("0.20")
guardrail_adjustment = Decimal("0.10")

# Break-even solver
solver_tolerance = Decimal("1000")
solver_max_iterations = 50
solver_rate_min = Decimal("0.02")
solver_rate_max = Decimal("0.10")
solver_rate_tolerance = Decimal("0.0001")
solver_grid_resolution = 10
solver_date_window_months = (-24, 36)
solver_ss_ages = (62, 70)

# IRMAA analysis
irmaa_warning_buffer = Decimal("10000")
irmaa_high_cost_threshold = Decimal("10000")
irmaa_peak_cost_threshold = Decimal("5000")
irmaa_close_call_distance = Decimal("5000")
irmaa_early_breach_years = 5
irmaa_consecutive_breach_years = 3
