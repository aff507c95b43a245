# retireplan/errors.py

"""
Exception hierarchy for the projection, simulation and solver engines.

Malformed input fails fast with ConfigurationError, missing historical data
with DataError. A solver that cannot meet its tolerance raises
ConvergenceError carrying its best estimate.
"""

from decimal import Decimal
from typing import Any


class RetirementPlanError(Exception):
    """Base class for every error raised by retireplan."""


class ConfigurationError(RetirementPlanError, ValueError):
    """A scenario, household or assumption field is missing or malformed."""


class DataError(RetirementPlanError, LookupError):
    """A requested historical year, fund or table version is not available."""


class ConvergenceError(RetirementPlanError):
    """The solver exhausted its iterations or its bracket without converging."""

    def __init__(self, message: str, last_estimate: Any, residual: Decimal, iterations: int):
        super().__init__(message)
        self.last_estimate = last_estimate
        self.residual = residual
        self.iterations = iterations

    def __str__(self) -> str:
        base = super().__str__()
        return (
            f"{base} (last estimate={self.last_estimate}, "
            f"residual={self.residual}, iterations={self.iterations})"
        )


class InvariantViolation(RetirementPlanError, ArithmeticError):
    """An internal invariant broke, e.g. an account balance went negative."""


__all__ = [
    "RetirementPlanError",
    "ConfigurationError",
    "DataError",
    "ConvergenceError",
    "InvariantViolation",
]
