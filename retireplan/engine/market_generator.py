# engine/market_generator.py
#
# Generates yearly fund returns, inflation and COLA for one Monte Carlo trial.
# Two models are supported: block resampling of an in-memory history, and
# correlated statistical draws (normal or fat-tailed Student-t shocks).
#

import logging
import math
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.stats import t as student_t

from retireplan.config import market_assumptions as market
from retireplan.config import simulation_defaults as defaults
from retireplan.config.historical_data import SAMPLE_COLUMNS, SAMPLE_HISTORY
from retireplan.errors import ConfigurationError, DataError
from retireplan.results import ReturnPath, YearReturns
from retireplan.utils.currency import rate_from_float

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = tuple(market.FUNDS) + ("inflation", "cola")


class HistoricalData:
    """
    Annual history indexed by calendar year, one column per fund plus
    `inflation` and `cola` (fractions, 0.05 = 5%). An optional
    `fehb_inflation` column overrides the premium inflation default.
    """

    def __init__(self, frame: pd.DataFrame):
        missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            raise DataError(f"Historical data is missing columns: {', '.join(missing)}")
        if frame.empty:
            raise DataError("Historical data has no rows")

        frame = frame.sort_index()
        if frame[list(REQUIRED_COLUMNS)].isna().any().any():
            bad_years = frame.index[frame[list(REQUIRED_COLUMNS)].isna().any(axis=1)].tolist()
            raise DataError(f"Historical data has gaps in years {bad_years}")

        years = [int(y) for y in frame.index]
        if years != list(range(years[0], years[0] + len(years))):
            raise DataError("Historical years must be contiguous")

        self.frame = frame

    @classmethod
    def from_records(
        cls,
        records: Iterable[Sequence[float]],
        columns: Sequence[str] = SAMPLE_COLUMNS,
        percent: bool = True,
    ) -> "HistoricalData":
        """Builds the dataset from row tuples whose first column is the year."""
        df = pd.DataFrame(list(records), columns=list(columns))
        if "year" not in df.columns:
            raise DataError("Historical records need a 'year' column")
        df = df.set_index("year")
        if percent:
            df = df / 100.0
        return cls(df)

    @classmethod
    def sample(cls) -> "HistoricalData":
        """The bundled 1988-2024 sample history."""
        return cls.from_records(SAMPLE_HISTORY)

    @property
    def years(self) -> List[int]:
        return [int(y) for y in self.frame.index]

    def __len__(self) -> int:
        return len(self.frame)

    def year_returns(self, year: int, fehb_inflation: Decimal) -> YearReturns:
        if year not in self.frame.index:
            raise DataError(f"No historical data for year {year}")
        row = self.frame.loc[year]
        fehb = fehb_inflation
        if "fehb_inflation" in self.frame.columns and not pd.isna(row["fehb_inflation"]):
            fehb = rate_from_float(row["fehb_inflation"])
        return YearReturns(
            fund_returns={f: rate_from_float(row[f]) for f in market.FUNDS},
            inflation=rate_from_float(row["inflation"]),
            cola=rate_from_float(row["cola"]),
            fehb_inflation=fehb,
            source_year=year,
        )


class ReturnGenerator:
    """
    Produces a ReturnPath per trial from the trial's own numpy Generator.

    Parameters
    ----------
    mode : str
        "historical" for block resampling or "statistical" for correlated draws.
    history : HistoricalData | None
        Required in historical mode; the bundled sample is used when None.
    block_size : int
        Length in years of each contiguous historical window.
    tail_df : float | None
        Degrees of freedom for Student-t shocks; normal shocks when None.
    """

    def __init__(
        self,
        mode: str = "historical",
        history: Optional[HistoricalData] = None,
        block_size: int = market.default_block_size,
        fund_mu: Optional[Mapping[str, float]] = None,
        fund_sigma: Optional[Mapping[str, float]] = None,
        corr_matrix: Optional[NDArray[np.float64]] = None,
        tail_df: Optional[float] = None,
        inflation_mu: float = market.base_inflation_mu,
        inflation_sigma: float = market.inflation_sigma,
        cola_mu: float = market.base_cola_mu,
        cola_sigma: float = market.cola_sigma,
        fehb_inflation_mu: float = float(defaults.default_fehb_inflation),
        fehb_inflation_sigma: float = market.fehb_inflation_sigma,
    ):
        if mode not in ("historical", "statistical"):
            raise ConfigurationError(f"Unknown return model '{mode}'")
        if block_size < 1:
            raise ConfigurationError("block_size must be at least 1")
        if tail_df is not None and tail_df <= 2:
            raise ConfigurationError("tail_df must be greater than 2 for a finite variance")

        self.mode = mode
        self.block_size = block_size
        self.tail_df = tail_df
        self.history = history if history is not None or mode == "statistical" else HistoricalData.sample()

        mu = dict(market.fund_mu, **(fund_mu or {}))
        sigma = dict(market.fund_sigma, **(fund_sigma or {}))
        self.mu = np.array([mu[f] for f in market.FUNDS])
        self.sigma = np.array([sigma[f] for f in market.FUNDS])

        corr = market.corr_matrix if corr_matrix is None else np.asarray(corr_matrix, dtype=float)
        if corr.shape != (len(market.FUNDS), len(market.FUNDS)):
            raise ConfigurationError("Correlation matrix must be 5x5 (C, S, I, F, G)")
        try:
            self.chol = np.linalg.cholesky(corr)
        except np.linalg.LinAlgError as exc:
            raise ConfigurationError("Correlation matrix is not positive definite") from exc

        self.inflation_mu, self.inflation_sigma = inflation_mu, inflation_sigma
        self.cola_mu, self.cola_sigma = cola_mu, cola_sigma
        self.fehb_mu, self.fehb_sigma = fehb_inflation_mu, fehb_inflation_sigma

    def generate(self, rng: np.random.Generator, horizon: int) -> ReturnPath:
        if horizon < 1:
            raise ConfigurationError("horizon must be at least 1 year")
        if self.mode == "historical":
            return self._historical_path(rng, horizon)
        return self._statistical_path(rng, horizon)

    # --- 1. Historical block resampling ---

    def _historical_path(self, rng: np.random.Generator, horizon: int) -> ReturnPath:
        years = self.history.years
        block = min(self.block_size, len(years))
        starts = years[: len(years) - block + 1]
        n_blocks = math.ceil(horizon / block)
        picks = rng.integers(0, len(starts), size=n_blocks)

        sampled = []
        for idx in picks:
            first = starts[int(idx)]
            sampled.extend(range(first, first + block))
        fehb_default = rate_from_float(self.fehb_mu)
        return ReturnPath(tuple(self.history.year_returns(y, fehb_default) for y in sampled[:horizon]))

    # --- 2. Statistical draws ---

    def _shocks(self, rng: np.random.Generator, horizon: int) -> NDArray[np.float64]:
        n_funds = len(market.FUNDS)
        if self.tail_df is None:
            z = rng.standard_normal((horizon, n_funds))
        else:
            # Scale to unit variance so sigma keeps its meaning
            z = student_t.rvs(self.tail_df, size=(horizon, n_funds), random_state=rng)
            z = z * np.sqrt((self.tail_df - 2) / self.tail_df)
        return z @ self.chol.T

    def _statistical_path(self, rng: np.random.Generator, horizon: int) -> ReturnPath:
        shocks = self._shocks(rng, horizon)
        fund_r = np.maximum(self.mu + self.sigma * shocks, market.return_floor)
        infl = np.maximum(rng.normal(self.inflation_mu, self.inflation_sigma, horizon), market.inflation_floor)
        cola = np.maximum(rng.normal(self.cola_mu, self.cola_sigma, horizon), market.cola_floor)
        fehb = np.maximum(rng.normal(self.fehb_mu, self.fehb_sigma, horizon), market.fehb_inflation_floor)

        years = []
        for i in range(horizon):
            years.append(YearReturns(
                fund_returns={f: rate_from_float(fund_r[i, j]) for j, f in enumerate(market.FUNDS)},
                inflation=rate_from_float(infl[i]),
                cola=rate_from_float(cola[i]),
                fehb_inflation=rate_from_float(fehb[i]),
            ))
        return ReturnPath(tuple(years))
