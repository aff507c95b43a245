# engine/__init__.py

# The three engines callers use directly; the calculators behind them are
# imported from their own modules.
from .projection import ProjectionEngine
from .monte_carlo import MonteCarloSimulator
from .solver import BreakEvenSolver
