"""
Pooled binomial GLMs on the aggregated occasion table.

Response: (success, failure) counts per site and hour. These models ignore
site-to-site variation; they are used for information-criterion comparison
of the hour-of-day terms (number of harmonics vs. a cyclic spline).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.genmod.generalized_linear_model import GLMResultsWrapper

from diel_activity import config
from .design import CyclicSplineBasis, trig_design

REQUIRED_COLUMNS = {"hour", "success", "failure"}


@dataclass
class GLMFit:
    name: str
    result: GLMResultsWrapper
    period: float
    harmonics: int | None = None
    basis: CyclicSplineBasis | None = None

    def design(self, hours) -> pd.DataFrame:
        if self.basis is not None:
            return self.basis.design(hours)
        return trig_design(hours, self.harmonics, self.period)


def _check_occasions(occasions: pd.DataFrame) -> None:
    missing = REQUIRED_COLUMNS - set(occasions.columns)
    if missing:
        raise ValueError(f"Occasion table is missing columns: {sorted(missing)}")
    if occasions.empty:
        raise ValueError("Occasion table is empty")


def _endog(occasions: pd.DataFrame) -> np.ndarray:
    return occasions[["success", "failure"]].to_numpy(dtype=float)


def fit_trig_glm(
    occasions: pd.DataFrame,
    harmonics: int,
    *,
    period: float = config.PERIOD_HOURS,
    name: str | None = None,
) -> GLMFit:
    _check_occasions(occasions)
    X = trig_design(occasions["hour"].to_numpy(), harmonics, period)
    model = sm.GLM(_endog(occasions), X, family=sm.families.Binomial())
    result = model.fit()
    return GLMFit(
        name=name or f"trig_k{harmonics}",
        result=result,
        period=period,
        harmonics=harmonics,
    )


def fit_spline_glm(
    occasions: pd.DataFrame,
    df: int = config.SPLINE_DF,
    *,
    period: float = config.PERIOD_HOURS,
    name: str | None = None,
) -> GLMFit:
    _check_occasions(occasions)
    basis = CyclicSplineBasis(occasions["hour"].to_numpy(), df=df, period=period)
    model = sm.GLM(_endog(occasions), basis.train_design, family=sm.families.Binomial())
    result = model.fit()
    return GLMFit(name=name or f"cyclic_spline_df{df}", result=result, period=period, basis=basis)


def fit_pooled_glms(
    occasions: pd.DataFrame,
    harmonics: Sequence[int] = config.TRIG_HARMONICS,
    spline_df: int | None = config.SPLINE_DF,
    *,
    period: float = config.PERIOD_HOURS,
) -> list[GLMFit]:
    fits = [fit_trig_glm(occasions, k, period=period) for k in harmonics]
    if spline_df:
        fits.append(fit_spline_glm(occasions, spline_df, period=period))
    return fits


def predict_glm(fit: GLMFit, hours, *, level: float = config.CI_LEVEL) -> pd.DataFrame:
    """Predicted activity probability with a confidence band on the response scale."""
    X = fit.design(hours)
    pred = fit.result.get_prediction(np.asarray(X))
    frame = pred.summary_frame(alpha=1.0 - level)
    return pd.DataFrame({
        "hour": np.asarray(hours, dtype=float),
        "mean": frame["mean"].to_numpy(),
        "lower": frame["mean_ci_lower"].to_numpy(),
        "upper": frame["mean_ci_upper"].to_numpy(),
        "model": fit.name,
    })


def compare_models(fits: Sequence[GLMFit]) -> pd.DataFrame:
    """AIC table sorted best-first, with delta AIC and Akaike weights."""
    if not fits:
        raise ValueError("No fitted models to compare")

    rows = []
    for f in fits:
        res = f.result
        rows.append({
            "model": f.name,
            "k": int(res.df_model) + 1,
            "loglik": float(res.llf),
            "aic": float(res.aic),
            "bic": float(res.bic_llf),
        })
    table = pd.DataFrame(rows).sort_values("aic", kind="stable").reset_index(drop=True)
    table["delta_aic"] = table["aic"] - table["aic"].min()
    rel = np.exp(-0.5 * table["delta_aic"])
    table["akaike_weight"] = rel / rel.sum()
    return table[["model", "k", "loglik", "aic", "delta_aic", "akaike_weight", "bic"]]
