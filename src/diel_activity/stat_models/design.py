"""
Design matrices for periodic hour-of-day effects.

- Trigonometric terms: cos(2*pi*k*h/P), sin(2*pi*k*h/P) for k = 1..K
- Cyclic cubic regression splines via patsy ``cc()``, ends joined at 0 and P
- Sparse per-site blocks for variance components
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from patsy import build_design_matrices, dmatrix
from scipy import sparse

from diel_activity import config


def hour_grid(n: int = config.GRID_POINTS, period: float = config.PERIOD_HOURS) -> np.ndarray:
    return np.linspace(0.0, period, n)


def trig_terms(hours, harmonics: int, period: float = config.PERIOD_HOURS) -> pd.DataFrame:
    if harmonics < 0:
        raise ValueError(f"harmonics must be >= 0, got {harmonics}")
    h = np.asarray(hours, dtype=float)
    cols = {}
    for k in range(1, harmonics + 1):
        w = 2.0 * np.pi * k * h / period
        cols[f"cos{k}"] = np.cos(w)
        cols[f"sin{k}"] = np.sin(w)
    return pd.DataFrame(cols, index=range(len(h)))


def trig_design(hours, harmonics: int, period: float = config.PERIOD_HOURS) -> pd.DataFrame:
    """Intercept column followed by the trigonometric terms."""
    X = trig_terms(hours, harmonics, period)
    X.insert(0, "Intercept", 1.0)
    return X


class CyclicSplineBasis:
    """
    Centered cyclic cubic spline of hour plus an intercept.

    Knot positions are learned from the hours passed at construction and
    reused for every later call, so fitted coefficients apply to any grid.
    """

    def __init__(self, hours, df: int = config.SPLINE_DF, period: float = config.PERIOD_HOURS):
        self.df = df
        self.period = period
        formula = (
            f"cc(hour, df={df}, lower_bound=0, upper_bound={period}, constraints='center')"
        )
        X = dmatrix(formula, {"hour": np.asarray(hours, dtype=float)}, return_type="dataframe")
        self.design_info = X.design_info
        self.column_names = list(X.columns)
        self._train = X.reset_index(drop=True)

    @property
    def train_design(self) -> pd.DataFrame:
        return self._train

    def design(self, hours) -> pd.DataFrame:
        (X,) = build_design_matrices(
            [self.design_info], {"hour": np.asarray(hours, dtype=float)}, return_type="dataframe"
        )
        return X.reset_index(drop=True)


def site_codes(sites) -> tuple[np.ndarray, list[str]]:
    codes, labels = pd.factorize(pd.Series(sites).astype(str), sort=True)
    return codes, list(labels)


def site_block(codes: np.ndarray, n_sites: int, values=None) -> sparse.csr_matrix:
    """
    Sparse (n_obs, n_sites) matrix with ``values`` (default 1) in each
    observation's site column. Ones give random intercepts; a covariate gives
    random slopes on that covariate.
    """
    codes = np.asarray(codes)
    data = np.ones(len(codes)) if values is None else np.asarray(values, dtype=float)
    return sparse.csr_matrix((data, (np.arange(len(codes)), codes)), shape=(len(codes), n_sites))
