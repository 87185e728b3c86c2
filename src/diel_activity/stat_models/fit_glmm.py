"""
Hierarchical diel-activity models on the bin-level (0/1) occasion table.

Both models are binomial mixed GLMs fitted by statsmodels'
BinomialBayesMixedGLM (variational Bayes by default, MAP optional):

    trigonometric GLMM:   logit p = b0 + sum_k (a_k cos_k(h) + c_k sin_k(h))
                                    + u_site [+ site slopes on cos_k, sin_k]
    cyclic-spline HGAM:   logit p = b0 + s(h)  (cyclic cubic, centered)
                                    + u_site [+ site-level spline deviations]

Random effects are normal with one standard deviation per variance
component. Predictions come in two flavours:

    conditional mean: random effects at zero ("typical" site)
    marginal mean:    logistic averaged over the random-effect distribution
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.special import expit
from scipy.stats import norm
from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

from diel_activity import config
from .design import CyclicSplineBasis, site_block, site_codes, trig_design

REQUIRED_COLUMNS = {"hour", "outcome", config.SITE_COL}


@dataclass
class MixedFit:
    name: str
    result: object  # BayesMixedGLMResults
    design: Callable[[np.ndarray], pd.DataFrame]
    components: list[tuple[str, list[str]]]
    sites: list[str]
    # per column of exog_vc: (design column it multiplies, site index)
    vc_layout: list[tuple[str, int]] = field(default_factory=list)

    @property
    def fe_names(self) -> list[str]:
        return list(self.result.model.fep_names)


def _check_bins(bins: pd.DataFrame) -> None:
    missing = REQUIRED_COLUMNS - set(bins.columns)
    if missing:
        raise ValueError(f"Bin table is missing columns: {sorted(missing)}")
    outcomes = set(np.unique(bins["outcome"]))
    if outcomes != {0, 1}:
        raise ValueError(
            "Mixed models need both occupied and empty bins; "
            f"observed outcomes: {sorted(outcomes)}"
        )


def _fit_mixed(
    name: str,
    bins: pd.DataFrame,
    X: pd.DataFrame,
    design: Callable[[np.ndarray], pd.DataFrame],
    components: list[tuple[str, list[str]]],
    *,
    method: str,
    vcp_p: float,
    fe_p: float,
) -> MixedFit:
    codes, sites = site_codes(bins[config.SITE_COL])
    n_sites = len(sites)

    blocks, ident, vc_names, layout = [], [], [], []
    for j, (comp_name, cols) in enumerate(components):
        for col in cols:
            blocks.append(site_block(codes, n_sites, X[col].to_numpy()))
            ident.extend([j] * n_sites)
            vc_names.extend(f"{comp_name}[{col}][{s}]" for s in sites)
            layout.extend((col, i) for i in range(n_sites))
    exog_vc = sparse.hstack(blocks).tocsr()

    model = BinomialBayesMixedGLM(
        bins["outcome"].to_numpy(dtype=float),
        X.to_numpy(),
        exog_vc,
        np.asarray(ident, dtype=int),
        vcp_p=vcp_p,
        fe_p=fe_p,
        fep_names=list(X.columns),
        vcp_names=[c for c, _ in components],
        vc_names=vc_names,
    )

    print(f"[{name}] Fitting {X.shape[1]} fixed effects, {len(components)} variance "
          f"component(s) over {n_sites} sites, {len(bins)} bins ({method})...")
    if method == "vb":
        result = model.fit_vb()
    elif method == "map":
        result = model.fit_map()
    else:
        raise ValueError(f"Unknown fitting method: {method!r} (expected 'vb' or 'map')")

    return MixedFit(
        name=name,
        result=result,
        design=design,
        components=components,
        sites=sites,
        vc_layout=layout,
    )


def fit_trig_glmm(
    bins: pd.DataFrame,
    harmonics: int = 1,
    *,
    random_slopes: bool = False,
    period: float = config.PERIOD_HOURS,
    method: str = "vb",
    vcp_p: float = config.VCP_PRIOR_SD,
    fe_p: float = config.FE_PRIOR_SD,
    name: str | None = None,
) -> MixedFit:
    """Trigonometric GLMM with a random intercept (and optionally slopes) per site."""
    _check_bins(bins)

    def design(hours):
        return trig_design(hours, harmonics, period)

    X = design(bins["hour"].to_numpy())
    components = [("site", ["Intercept"])]
    if random_slopes:
        components += [(f"site:{c}", [c]) for c in X.columns if c != "Intercept"]

    default_name = f"trig_glmm_k{harmonics}" + ("_slopes" if random_slopes else "")
    return _fit_mixed(
        name or default_name, bins, X, design, components,
        method=method, vcp_p=vcp_p, fe_p=fe_p,
    )


def fit_cyclic_hgam(
    bins: pd.DataFrame,
    df: int = config.SPLINE_DF,
    *,
    site_smooths: bool = False,
    period: float = config.PERIOD_HOURS,
    method: str = "vb",
    vcp_p: float = config.VCP_PRIOR_SD,
    fe_p: float = config.FE_PRIOR_SD,
    name: str | None = None,
) -> MixedFit:
    """
    Cyclic cubic spline of hour with a random site intercept.

    With ``site_smooths`` each site also gets its own spline deviation from
    the global curve; all sites share one deviation variance.
    """
    _check_bins(bins)
    basis = CyclicSplineBasis(bins["hour"].to_numpy(), df=df, period=period)
    X = basis.train_design

    components = [("site", ["Intercept"])]
    if site_smooths:
        components.append(("site:s(hour)", [c for c in X.columns if c != "Intercept"]))

    default_name = f"cyclic_hgam_df{df}" + ("_site_smooths" if site_smooths else "")
    return _fit_mixed(
        name or default_name, bins, X, basis.design, components,
        method=method, vcp_p=vcp_p, fe_p=fe_p,
    )

# ------------------------------------------------------------
# Predictions
# ------------------------------------------------------------

def random_effect_sd(fit: MixedFit, *, level: float = config.CI_LEVEL) -> pd.DataFrame:
    """Posterior SD of each variance component (vcp parameters are log SDs)."""
    z = norm.ppf(0.5 + level / 2.0)
    mean = np.asarray(fit.result.vcp_mean)
    sd = np.asarray(fit.result.vcp_sd)
    return pd.DataFrame({
        "component": [c for c, _ in fit.components],
        "sd": np.exp(mean),
        "lower": np.exp(mean - z * sd),
        "upper": np.exp(mean + z * sd),
    })


def integrate_logistic(eta, sd, n_points: int = config.GH_POINTS) -> np.ndarray:
    """
    E[expit(eta + sd * Z)], Z ~ N(0, 1), by Gauss-Hermite quadrature.

    ``eta`` and ``sd`` broadcast against each other.
    """
    nodes, weights = np.polynomial.hermite_e.hermegauss(n_points)
    weights = weights / np.sqrt(2.0 * np.pi)
    eta = np.asarray(eta, dtype=float)[..., None]
    sd = np.asarray(sd, dtype=float)[..., None]
    return np.sum(weights * expit(eta + sd * nodes), axis=-1)


def _linear_predictor(fit: MixedFit, X: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    Xa = X.to_numpy()
    eta = Xa @ np.asarray(fit.result.fe_mean)
    # Mean-field posterior: fixed effects independent
    se = np.sqrt((Xa ** 2) @ (np.asarray(fit.result.fe_sd) ** 2))
    return eta, se


def _random_effect_sd_at(fit: MixedFit, X: pd.DataFrame) -> np.ndarray:
    var = np.zeros(len(X))
    sds = np.exp(np.asarray(fit.result.vcp_mean))
    for sd, (_, cols) in zip(sds, fit.components):
        var += sd ** 2 * np.sum(X[cols].to_numpy() ** 2, axis=1)
    return np.sqrt(var)


def conditional_mean(fit: MixedFit, hours, *, level: float = config.CI_LEVEL) -> pd.DataFrame:
    """Activity curve for a typical site (all random effects zero)."""
    X = fit.design(hours)
    eta, se = _linear_predictor(fit, X)
    z = norm.ppf(0.5 + level / 2.0)
    return pd.DataFrame({
        "hour": np.asarray(hours, dtype=float),
        "mean": expit(eta),
        "lower": expit(eta - z * se),
        "upper": expit(eta + z * se),
        "model": fit.name,
        "type": "conditional",
    })


def marginal_mean(
    fit: MixedFit,
    hours,
    *,
    level: float = config.CI_LEVEL,
    n_points: int = config.GH_POINTS,
) -> pd.DataFrame:
    """Population-average activity curve, integrating over site effects."""
    X = fit.design(hours)
    eta, se = _linear_predictor(fit, X)
    re_sd = _random_effect_sd_at(fit, X)
    z = norm.ppf(0.5 + level / 2.0)
    return pd.DataFrame({
        "hour": np.asarray(hours, dtype=float),
        "mean": integrate_logistic(eta, re_sd, n_points),
        "lower": integrate_logistic(eta - z * se, re_sd, n_points),
        "upper": integrate_logistic(eta + z * se, re_sd, n_points),
        "model": fit.name,
        "type": "marginal",
    })


def site_curves(fit: MixedFit, hours) -> pd.DataFrame:
    """Per-site curves using the posterior means of the site effects (long format)."""
    X = fit.design(hours)
    eta, _ = _linear_predictor(fit, X)
    vc_mean = np.asarray(fit.result.vc_mean)

    eta_sites = np.repeat(eta[:, None], len(fit.sites), axis=1)
    for k, (col, site_idx) in enumerate(fit.vc_layout):
        eta_sites[:, site_idx] += X[col].to_numpy() * vc_mean[k]

    hours = np.asarray(hours, dtype=float)
    frames = [
        pd.DataFrame({"hour": hours, config.SITE_COL: site, "mean": expit(eta_sites[:, i])})
        for i, site in enumerate(fit.sites)
    ]
    return pd.concat(frames, ignore_index=True)


def print_summary(fit: MixedFit) -> None:
    print(f"\n=== {fit.name} ===")
    print(fit.result.summary())
    print("\nRandom-effect SDs:")
    print(random_effect_sd(fit).to_string(index=False))
