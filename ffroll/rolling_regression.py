"""
Rolling multivariate OLS over date-aligned time series.

This module provides:
- Small immutable records for the inputs (`TimeSeriesPoint`,
  `DatedObservation`) and outputs (`RegressionResult`) of a rolling fit.
- `ols_fit`, a NumPy/SciPy OLS kernel (QR solve, singular-value based
  conditioning check, Student-t inference).
- `RollingRegressionEngine`, which inner-joins a dependent series with a
  fixed set of factor series and refits the OLS model on every trailing
  window of `window_size` observations.
- Pure projections (`summarize`, `coefficients_series`) and pandas adapters
  used by the workflows and plotting code.

Each window is refit from scratch, so results never depend on each other and
can be computed in any order. A (near-)singular window is logged and dropped
from the output; it never aborts the rest of the rolling sequence.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import linalg, stats

from .config import CONDITION_NUMBER_THRESHOLD

logger = logging.getLogger(__name__)

# Key used for the intercept in the per-coefficient statistics.
INTERCEPT = "const"


class RegressionError(ValueError):
    """Base class for rolling regression failures."""


class InsufficientDataError(RegressionError):
    """Raised when a window cannot support a fit with positive residual degrees of freedom."""


class SingularDesignMatrixError(RegressionError):
    """Raised when the design matrix of a single window is (near-)singular."""

    def __init__(
        self,
        message: str,
        end_date: Optional[date] = None,
        condition_number: float = math.inf,
    ) -> None:
        super().__init__(message)
        self.end_date = end_date
        self.condition_number = condition_number


def _as_date(value) -> date:
    """Normalise a date-like value (date, datetime, Timestamp, string) to `datetime.date`."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return pd.Timestamp(value).date()


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One (date, value) observation of a single series."""

    date: date
    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", _as_date(self.date))
        object.__setattr__(self, "value", float(self.value))


@dataclass(frozen=True)
class DatedObservation:
    """
    One row of the joined data set.

    `independents` is ordered like the factor names of the engine that
    produced it.
    """

    date: date
    dependent: float
    independents: Tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", _as_date(self.date))
        object.__setattr__(self, "dependent", float(self.dependent))
        object.__setattr__(self, "independents", tuple(float(v) for v in self.independents))


@dataclass(frozen=True)
class RegressionResult:
    """
    OLS fit of one rolling window, identified by its end date.

    `coefficients` holds the factor loadings only; `std_errors`, `t_values`
    and `p_values` are keyed by `"const"` plus every factor name.
    """

    date: date
    intercept: float
    coefficients: Mapping[str, float]
    std_errors: Mapping[str, float]
    t_values: Mapping[str, float]
    p_values: Mapping[str, float]
    r_squared: float
    df_resid: int
    n_obs: int

    def __post_init__(self) -> None:
        for name in ("coefficients", "std_errors", "t_values", "p_values"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @property
    def factor_names(self) -> Tuple[str, ...]:
        return tuple(self.coefficients.keys())

    def estimate(self, name: str) -> float:
        """Coefficient for a factor name, or the intercept for `"const"`."""
        if name == INTERCEPT:
            return self.intercept
        return self.coefficients[name]


@dataclass(frozen=True)
class OLSFit:
    """Raw output of `ols_fit`; parameter arrays are ordered [const, x_1, ..., x_k]."""

    params: np.ndarray
    std_errors: np.ndarray
    t_values: np.ndarray
    p_values: np.ndarray
    r_squared: float
    rss: float
    df_resid: int
    condition_number: float


def ols_fit(
    y: np.ndarray,
    x: np.ndarray,
    condition_threshold: float = CONDITION_NUMBER_THRESHOLD,
) -> OLSFit:
    """
    Ordinary least squares of `y` on `x` plus an intercept.

    Parameters
    ----------
    y : np.ndarray, shape (n,)
        Dependent variable.
    x : np.ndarray, shape (n, k)
        Regressors, without the constant column.
    condition_threshold : float
        Largest accepted 2-norm condition number of the design matrix.

    Returns
    -------
    OLSFit

    Raises
    ------
    InsufficientDataError
        If n - (k + 1) <= 0.
    SingularDesignMatrixError
        If the design matrix is rank-deficient or worse conditioned than
        `condition_threshold`.

    Notes
    -----
    With X = QR, beta solves R beta = Q'y and diag((X'X)^{-1}) is the row-wise
    sum of squares of R^{-1}. The residual variance is RSS / (n - p) and
    p-values are two-sided under Student-t with n - p degrees of freedom.
    R² is NaN when y has zero variance.
    """
    y = np.asarray(y, dtype=float).reshape(-1)
    x = np.asarray(x, dtype=float)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    n = y.shape[0]
    if x.shape[0] != n:
        raise ValueError(f"x has {x.shape[0]} rows but y has {n} observations")

    X = np.column_stack([np.ones(n), x])
    p = X.shape[1]
    df_resid = n - p
    if df_resid <= 0:
        raise InsufficientDataError(
            f"{n} observations cannot identify {p} parameters with positive residual degrees of freedom."
        )

    sv = np.linalg.svd(X, compute_uv=False)
    tol = sv[0] * max(n, p) * np.finfo(float).eps
    cond = math.inf if sv[-1] <= tol else float(sv[0] / sv[-1])
    if not cond <= condition_threshold:
        raise SingularDesignMatrixError(
            f"design matrix is singular (condition number {cond:.3g} exceeds {condition_threshold:.3g})",
            condition_number=cond,
        )

    q, r = np.linalg.qr(X)
    beta = linalg.solve_triangular(r, q.T @ y)
    resid = y - X @ beta
    rss = float(resid @ resid)
    centered = y - y.mean()
    tss = float(centered @ centered)

    r_inv = linalg.solve_triangular(r, np.eye(p))
    xtx_inv_diag = np.sum(r_inv**2, axis=1)
    sigma2 = rss / df_resid
    se = np.sqrt(sigma2 * xtx_inv_diag)

    # An exact fit gives se == 0: t is +/-inf and the p-value 0.
    with np.errstate(divide="ignore", invalid="ignore"):
        t_values = beta / se
    p_values = 2.0 * stats.t.sf(np.abs(t_values), df_resid)

    r_squared = 1.0 - rss / tss if tss > 0 else math.nan

    return OLSFit(
        params=beta,
        std_errors=se,
        t_values=t_values,
        p_values=p_values,
        r_squared=float(r_squared),
        rss=rss,
        df_resid=df_resid,
        condition_number=cond,
    )


def _points_to_dict(points: Iterable, label: str) -> Dict[date, float]:
    """Map date -> value for one series, dropping non-finite values."""
    out: Dict[date, float] = {}
    for point in points:
        if not isinstance(point, TimeSeriesPoint):
            point = TimeSeriesPoint(*point)
        if point.date in out:
            raise ValueError(f"Series {label!r} has more than one value for {point.date}")
        if math.isfinite(point.value):
            out[point.date] = point.value
    return out


class RollingRegressionEngine:
    """
    Rolling OLS of a dependent series on a fixed, ordered set of factors.

    Parameters
    ----------
    factor_names : sequence of str
        The factor schema; every observation and result uses this order.
    condition_threshold : float
        Windows whose design matrix is worse conditioned than this are
        skipped as singular.
    max_workers : int, optional
        If greater than 1, windows are fitted on a thread pool. Output order
        is always ascending end date.
    """

    def __init__(
        self,
        factor_names: Sequence[str],
        condition_threshold: float = CONDITION_NUMBER_THRESHOLD,
        max_workers: Optional[int] = None,
    ) -> None:
        if isinstance(factor_names, str):
            raise TypeError("factor_names must be a sequence of names, not a single string")
        names = tuple(factor_names)
        if not names:
            raise ValueError("At least one factor name is required.")
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate factor names in {names}")
        if INTERCEPT in names:
            raise ValueError(f"{INTERCEPT!r} is reserved for the intercept")
        if not condition_threshold > 1.0:
            raise ValueError("condition_threshold must be greater than 1")
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be a positive integer")

        self.factor_names = names
        self.condition_threshold = float(condition_threshold)
        self.max_workers = max_workers

    def __repr__(self) -> str:
        return (
            f"RollingRegressionEngine(factor_names={list(self.factor_names)!r}, "
            f"condition_threshold={self.condition_threshold:g}, max_workers={self.max_workers!r})"
        )

    @property
    def min_window_size(self) -> int:
        """Smallest window with positive residual degrees of freedom (k factors + intercept + 1)."""
        return len(self.factor_names) + 2

    def align(
        self,
        dependent: Iterable,
        independents: Mapping[str, Iterable],
    ) -> List[DatedObservation]:
        """
        Inner-join the dependent series with every factor series on date.

        Parameters
        ----------
        dependent : iterable of TimeSeriesPoint or (date, value)
        independents : mapping of factor name -> iterable of TimeSeriesPoint or (date, value)
            Keys must be exactly the engine's factor names.

        Returns
        -------
        list of DatedObservation
            One per common date, ascending. Empty if no date is shared.
        """
        missing = [name for name in self.factor_names if name not in independents]
        extra = [name for name in independents if name not in self.factor_names]
        if missing or extra:
            raise ValueError(
                f"Factor series do not match the configured factors "
                f"(missing: {missing}, unexpected: {extra})"
            )

        dep = _points_to_dict(dependent, "dependent")
        factor_maps = [_points_to_dict(independents[name], name) for name in self.factor_names]

        common = set(dep)
        for values in factor_maps:
            common &= values.keys()

        if not common:
            logger.info("No common dates between the dependent series and factors %s", list(self.factor_names))
            return []

        return [
            DatedObservation(d, dep[d], tuple(values[d] for values in factor_maps))
            for d in sorted(common)
        ]

    def fit(self, observations: Sequence[DatedObservation], window_size: int) -> List[RegressionResult]:
        """
        Fit OLS on every trailing window of `window_size` observations.

        Returns one `RegressionResult` per window in ascending end-date
        order, i.e. `len(observations) - window_size + 1` results minus any
        windows skipped as singular or containing a gap (non-finite value).
        Returns an empty list if there are fewer observations than
        `window_size`.

        Raises
        ------
        InsufficientDataError
            If `window_size` < number of factors + 2.
        """
        observations = list(observations)
        self._check_window_size(window_size)
        self._check_observations(observations)

        n = len(observations)
        if n < window_size:
            logger.debug("Only %d observations for window_size=%d; no windows to fit", n, window_size)
            return []

        ends = range(window_size - 1, n)
        if self.max_workers is None or self.max_workers == 1:
            fitted = [self._fit_or_skip(observations, end, window_size) for end in ends]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as ex:
                fitted = list(ex.map(lambda end: self._fit_or_skip(observations, end, window_size), ends))

        results = [res for res in fitted if res is not None]
        n_skipped = len(fitted) - len(results)
        if n_skipped:
            logger.warning("Skipped %d of %d rolling windows", n_skipped, len(fitted))
        return results

    def fit_window(self, window: Sequence[DatedObservation]) -> RegressionResult:
        """
        Fit a single window and return its result, dated by the last observation.

        Raises `SingularDesignMatrixError` for a (near-)singular design matrix
        and `ValueError` if the window contains a non-finite value.
        """
        window = list(window)
        if len(window) < self.min_window_size:
            raise InsufficientDataError(
                f"A window of {len(window)} observations is too short for {len(self.factor_names)} "
                f"factors; need at least {self.min_window_size}."
            )
        end_date = window[-1].date
        y = np.array([obs.dependent for obs in window], dtype=float)
        x = np.array([obs.independents for obs in window], dtype=float)
        if x.shape != (len(window), len(self.factor_names)):
            raise ValueError(f"Expected {len(self.factor_names)} independent values per observation")
        if not (np.isfinite(y).all() and np.isfinite(x).all()):
            raise ValueError(f"Window ending {end_date} contains a non-finite value")

        try:
            ols = ols_fit(y, x, condition_threshold=self.condition_threshold)
        except SingularDesignMatrixError as exc:
            raise SingularDesignMatrixError(
                f"window ending {end_date}: {exc}",
                end_date=end_date,
                condition_number=exc.condition_number,
            ) from exc

        keys = (INTERCEPT,) + self.factor_names
        return RegressionResult(
            date=end_date,
            intercept=float(ols.params[0]),
            coefficients=dict(zip(self.factor_names, ols.params[1:].tolist())),
            std_errors=dict(zip(keys, ols.std_errors.tolist())),
            t_values=dict(zip(keys, ols.t_values.tolist())),
            p_values=dict(zip(keys, ols.p_values.tolist())),
            r_squared=ols.r_squared,
            df_resid=ols.df_resid,
            n_obs=len(window),
        )

    def _fit_or_skip(
        self,
        observations: Sequence[DatedObservation],
        end: int,
        window_size: int,
    ) -> Optional[RegressionResult]:
        window = observations[end - window_size + 1 : end + 1]
        end_date = window[-1].date
        if not all(
            math.isfinite(obs.dependent) and all(math.isfinite(v) for v in obs.independents)
            for obs in window
        ):
            logger.warning("Skipping window ending %s: gap (non-finite value) in window", end_date)
            return None
        try:
            return self.fit_window(window)
        except SingularDesignMatrixError as exc:
            logger.warning("Skipping %s", exc)
            return None

    def _check_window_size(self, window_size: int) -> None:
        if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)):
            raise TypeError(f"window_size must be an integer, got {type(window_size).__name__}")
        if window_size < self.min_window_size:
            raise InsufficientDataError(
                f"window_size={window_size} is too small for {len(self.factor_names)} factors; "
                f"need at least {self.min_window_size}."
            )

    def _check_observations(self, observations: Sequence[DatedObservation]) -> None:
        k = len(self.factor_names)
        previous = None
        for obs in observations:
            if len(obs.independents) != k:
                raise ValueError(
                    f"Observation on {obs.date} has {len(obs.independents)} independent values; expected {k}"
                )
            if previous is not None and not obs.date > previous:
                raise ValueError(f"Observations must be strictly ascending by date ({previous} then {obs.date})")
            previous = obs.date

    @staticmethod
    def summarize(results: Iterable[RegressionResult]) -> List[Tuple[date, float]]:
        """(end date, R²) per window."""
        return summarize(results)

    @staticmethod
    def coefficients_series(results: Iterable[RegressionResult], variable_name: str) -> List[Tuple[date, float]]:
        """(end date, estimate) per window for one factor or `"const"`."""
        return coefficients_series(results, variable_name)


def summarize(results: Iterable[RegressionResult]) -> List[Tuple[date, float]]:
    """(end date, R²) per window."""
    return [(res.date, res.r_squared) for res in results]


def coefficients_series(results: Iterable[RegressionResult], variable_name: str) -> List[Tuple[date, float]]:
    """(end date, estimate) per window for one factor, or the intercept for `"const"`."""
    return [(res.date, res.estimate(variable_name)) for res in results]


# ---------------------------------------------------------------------------
# pandas adapters
# ---------------------------------------------------------------------------


def series_to_points(series: pd.Series) -> List[TimeSeriesPoint]:
    """Convert a date-indexed Series into TimeSeriesPoints (NaNs are kept; `align` drops them)."""
    return [TimeSeriesPoint(idx, value) for idx, value in series.items()]


def observations_from_frame(
    frame: pd.DataFrame,
    dependent: str,
    factors: Sequence[str],
) -> List[DatedObservation]:
    """Align the `dependent` column of a date-indexed frame with its `factors` columns."""
    engine = RollingRegressionEngine(factors)
    return engine.align(
        series_to_points(frame[dependent]),
        {name: series_to_points(frame[name]) for name in engine.factor_names},
    )


def results_to_frame(
    results: Sequence[RegressionResult],
    factor_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Flatten results into one row per window.

    Columns: estimates (`const` + factors), then `se_*`, `t_*`, `p_*`,
    `r_squared`, `df_resid`, `n_obs`. The index is a DatetimeIndex named
    "Date". `factor_names` fixes the columns when `results` is empty.
    """
    if factor_names is None:
        factor_names = results[0].factor_names if results else ()
    keys = [INTERCEPT] + list(factor_names)
    columns = (
        keys
        + [f"se_{k}" for k in keys]
        + [f"t_{k}" for k in keys]
        + [f"p_{k}" for k in keys]
        + ["r_squared", "df_resid", "n_obs"]
    )

    rows = []
    for res in results:
        row = {k: res.estimate(k) for k in keys}
        row.update({f"se_{k}": res.std_errors[k] for k in keys})
        row.update({f"t_{k}": res.t_values[k] for k in keys})
        row.update({f"p_{k}": res.p_values[k] for k in keys})
        row.update({"r_squared": res.r_squared, "df_resid": res.df_resid, "n_obs": res.n_obs})
        rows.append(row)

    index = pd.DatetimeIndex([pd.Timestamp(res.date) for res in results], name="Date")
    return pd.DataFrame(rows, index=index, columns=columns)


def rolling_ols(
    frame: pd.DataFrame,
    dependent: str,
    factors: Sequence[str],
    window_size: int,
    **engine_kwargs,
) -> List[RegressionResult]:
    """Convenience wrapper: align the columns of `frame` and fit every rolling window."""
    engine = RollingRegressionEngine(factors, **engine_kwargs)
    observations = engine.align(
        series_to_points(frame[dependent]),
        {name: series_to_points(frame[name]) for name in engine.factor_names},
    )
    return engine.fit(observations, window_size)
