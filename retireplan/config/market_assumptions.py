# =============================================================================
# Market Info used in simulations
# =============================================================================
import numpy as np

# TSP funds in the order used by every return vector and by corr_matrix
FUNDS = ("C", "S", "I", "F", "G")

# Statistical model: long-term annual mean return per fund
fund_mu = {
    "C": 0.10,
    "S": 0.12,
    "I": 0.08,
    "F": 0.05,
    "G": 0.03,
}

# Per-fund annual volatility around the mean
fund_sigma = {
    "C": 0.05,
    "S": 0.05,
    "I": 0.05,
    "F": 0.05,
    "G": 0.05,
}

# Correlation matrix (C, S, I, F, G)
corr_matrix = np.array([
    [1.00, 0.85, 0.75, 0.10, 0.00],   # C
    [0.85, 1.00, 0.70, 0.05, 0.00],   # S
    [0.75, 0.70, 1.00, 0.10, 0.00],   # I
    [0.10, 0.05, 0.10, 1.00, 0.30],   # F
    [0.00, 0.00, 0.00, 0.30, 1.00],   # G
])

default_allocation = {"C": 0.6, "S": 0.2, "I": 0.1, "F": 0.1, "G": 0.0}

# Floors applied to sampled values
return_floor = -0.50
inflation_floor = -0.05
cola_floor = -0.02
fehb_inflation_floor = 0.0

# Inflation & COLA regime for statistical draws
base_inflation_mu = 0.025
inflation_sigma = 0.01
base_cola_mu = 0.025
cola_sigma = 0.005
fehb_inflation_sigma = 0.02

# Historical resampling: contiguous window length in years
default_block_size = 5
