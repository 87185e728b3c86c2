"""Tests for design bases, pooled GLMs and hierarchical models."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from scipy import integrate
from scipy.special import expit
from scipy.stats import norm

from diel_activity.occasions.build_occasions import build_occasions
from diel_activity.stat_models.design import (
    CyclicSplineBasis,
    hour_grid,
    site_block,
    site_codes,
    trig_design,
    trig_terms,
)
from diel_activity.stat_models.fit_glm import (
    compare_models,
    fit_pooled_glms,
    fit_spline_glm,
    fit_trig_glm,
    predict_glm,
)
from diel_activity.stat_models.fit_glmm import (
    conditional_mean,
    fit_cyclic_hgam,
    fit_trig_glmm,
    integrate_logistic,
    marginal_mean,
    random_effect_sd,
    site_curves,
)


def circular_hour_diff(a: float, b: float) -> float:
    d = abs(a - b) % 24
    return min(d, 24 - d)


def peak_hour(curve: pd.DataFrame) -> float:
    return float(curve["hour"].iloc[curve["mean"].to_numpy().argmax()])


@pytest.fixture(scope="module")
def tables(make_study):
    deployments, detections = make_study(n_sites=8, days=15, seed=3)
    return build_occasions(deployments, detections, species="deer", verbose=False)

# =============================================================================
# Design bases
# =============================================================================


class TestDesign:
    def test_trig_terms(self):
        X = trig_terms([0, 6, 12], harmonics=2)
        assert list(X.columns) == ["cos1", "sin1", "cos2", "sin2"]
        assert X["cos1"].to_numpy() == pytest.approx([1.0, 0.0, -1.0], abs=1e-12)
        assert X["sin1"].to_numpy() == pytest.approx([0.0, 1.0, 0.0], abs=1e-12)
        assert X["cos2"].to_numpy() == pytest.approx([1.0, -1.0, 1.0], abs=1e-12)

    def test_trig_design_has_intercept(self):
        X = trig_design(np.arange(24), harmonics=1)
        assert list(X.columns) == ["Intercept", "cos1", "sin1"]
        assert (X["Intercept"] == 1.0).all()

    def test_trig_is_periodic(self):
        X = trig_terms([0.0, 24.0], harmonics=3)
        assert X.iloc[0].to_numpy() == pytest.approx(X.iloc[1].to_numpy(), abs=1e-12)

    def test_negative_harmonics_rejected(self):
        with pytest.raises(ValueError):
            trig_terms([1.0], harmonics=-1)

    def test_cyclic_spline_is_periodic(self):
        basis = CyclicSplineBasis(np.tile(np.arange(24), 5), df=6)
        X = basis.design([0.0, 24.0])
        assert X.iloc[0].to_numpy() == pytest.approx(X.iloc[1].to_numpy(), abs=1e-10)
        assert X.columns[0] == "Intercept"

    def test_cyclic_spline_reuses_knots(self):
        hours = np.tile(np.arange(24), 3)
        basis = CyclicSplineBasis(hours, df=6)
        again = basis.design(hours)
        assert again.to_numpy() == pytest.approx(basis.train_design.to_numpy())

    def test_site_block(self):
        codes, labels = site_codes(["B", "A", "B"])
        assert labels == ["A", "B"]
        M = site_block(codes, len(labels)).toarray()
        assert M.tolist() == [[0, 1], [1, 0], [0, 1]]

        S = site_block(codes, len(labels), values=[2.0, 3.0, 4.0]).toarray()
        assert S.tolist() == [[0, 2], [3, 0], [0, 4]]

    def test_hour_grid(self):
        grid = hour_grid(25)
        assert grid[0] == 0.0 and grid[-1] == 24.0 and len(grid) == 25

# =============================================================================
# Pooled GLMs
# =============================================================================


class TestPooledGLMs:
    def test_trig_glm_recovers_peak(self, tables):
        fit = fit_trig_glm(tables.occasions, harmonics=1)
        curve = predict_glm(fit, hour_grid())
        # simulated peak is in the bin starting at 20:00
        assert circular_hour_diff(peak_hour(curve), 20.0) < 1.5
        assert ((curve["lower"] <= curve["mean"]) & (curve["mean"] <= curve["upper"])).all()

    def test_spline_glm_is_cyclic(self, tables):
        fit = fit_spline_glm(tables.occasions, df=6)
        curve = predict_glm(fit, [0.0, 12.0, 24.0])
        assert curve["mean"].iloc[0] == pytest.approx(curve["mean"].iloc[2], abs=1e-8)
        assert ((curve["mean"] > 0) & (curve["mean"] < 1)).all()

    def test_compare_models(self, tables):
        fits = fit_pooled_glms(tables.occasions, harmonics=(1, 2), spline_df=6)
        table = compare_models(fits)

        assert list(table["model"]).count("trig_k1") == 1
        assert set(table["model"]) == {"trig_k1", "trig_k2", "cyclic_spline_df6"}
        assert table["delta_aic"].iloc[0] == 0.0
        assert table["aic"].is_monotonic_increasing
        assert table["akaike_weight"].sum() == pytest.approx(1.0)
        k = dict(zip(table["model"], table["k"]))
        assert k["trig_k1"] == 3
        assert k["trig_k2"] == 5

    def test_compare_requires_fits(self):
        with pytest.raises(ValueError):
            compare_models([])

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="missing"):
            fit_trig_glm(pd.DataFrame({"hour": [1]}), harmonics=1)

# =============================================================================
# Hierarchical models
# =============================================================================


class TestIntegrateLogistic:
    def test_zero_sd_is_logistic(self):
        eta = np.array([-2.0, 0.0, 1.5])
        assert integrate_logistic(eta, 0.0) == pytest.approx(expit(eta))

    def test_symmetric_at_zero(self):
        assert integrate_logistic(0.0, 2.0) == pytest.approx(0.5)

    def test_matches_numerical_integral(self):
        ref, _ = integrate.quad(lambda z: expit(-2.0 + 1.2 * z) * norm.pdf(z), -np.inf, np.inf)
        assert integrate_logistic(-2.0, 1.2) == pytest.approx(ref, rel=1e-6)

    def test_attenuates_toward_half(self):
        """Averaging over site effects pulls low probabilities up."""
        assert integrate_logistic(-2.0, 1.0) > expit(-2.0)
        assert integrate_logistic(2.0, 1.0) < expit(2.0)


class TestTrigGLMM:
    @pytest.fixture(scope="class")
    def fit(self, tables):
        return fit_trig_glmm(tables.bins, harmonics=1)

    def test_conditional_curve(self, fit):
        curve = conditional_mean(fit, hour_grid())
        assert ((curve["mean"] > 0) & (curve["mean"] < 1)).all()
        assert ((curve["lower"] <= curve["mean"]) & (curve["mean"] <= curve["upper"])).all()
        assert circular_hour_diff(peak_hour(curve), 20.0) < 2.0
        assert fit.fe_names == ["Intercept", "cos1", "sin1"]

    def test_marginal_above_conditional_at_trough(self, fit):
        grid = hour_grid()
        cond = conditional_mean(fit, grid)
        marg = marginal_mean(fit, grid)
        i = cond["mean"].to_numpy().argmin()
        assert marg["mean"].iloc[i] > cond["mean"].iloc[i]
        assert set(marg["type"]) == {"marginal"}

    def test_random_effect_sd(self, fit):
        sd = random_effect_sd(fit)
        assert list(sd["component"]) == ["site"]
        assert np.isfinite(sd["sd"]).all() and (sd["sd"] > 0).all()
        assert (sd["lower"] <= sd["sd"]).all() and (sd["sd"] <= sd["upper"]).all()

    def test_site_curves(self, fit, tables):
        grid = hour_grid(49)
        curves = site_curves(fit, grid)
        assert len(curves) == 8 * 49
        assert set(curves["site"]) == set(tables.bins["site"])

    def test_random_slopes(self, tables):
        fit = fit_trig_glmm(tables.bins, harmonics=1, random_slopes=True)
        assert [c for c, _ in fit.components] == ["site", "site:cos1", "site:sin1"]
        assert len(fit.vc_layout) == 3 * 8
        curve = marginal_mean(fit, hour_grid(25))
        assert np.isfinite(curve["mean"]).all()

    def test_needs_both_outcomes(self, tables):
        bins = tables.bins.assign(outcome=0)
        with pytest.raises(ValueError, match="both"):
            fit_trig_glmm(bins)

    def test_unknown_method(self, tables):
        with pytest.raises(ValueError, match="method"):
            fit_trig_glmm(tables.bins, method="mcmc")


class TestCyclicHGAM:
    def test_fit_and_predict(self, tables):
        fit = fit_cyclic_hgam(tables.bins, df=6)
        curve = conditional_mean(fit, [0.0, 12.0, 24.0])
        assert curve["mean"].iloc[0] == pytest.approx(curve["mean"].iloc[2], abs=1e-8)

        grid = hour_grid()
        assert circular_hour_diff(peak_hour(conditional_mean(fit, grid)), 20.0) < 2.5
        assert np.isfinite(marginal_mean(fit, grid)["mean"]).all()

    def test_site_smooths(self, tables):
        fit = fit_cyclic_hgam(tables.bins, df=5, site_smooths=True, name="gs")
        assert fit.name == "gs"
        assert [c for c, _ in fit.components] == ["site", "site:s(hour)"]
        assert len(random_effect_sd(fit)) == 2
