#!/usr/bin/env python3
"""
Command-line script to run the full diel-activity pipeline.

    1. Build occasions from detections + deployments
    2. Fit pooled binomial GLMs (trig harmonics, cyclic spline), compare by AIC
    3. Fit the trigonometric GLMM and the cyclic-spline HGAM
    4. Save conditional / marginal curves and plots

Configuration precedence:
    1. Command-line arguments (highest priority)
    2. Config file (YAML)
    3. Hard-coded defaults (lowest priority)
"""

import argparse
from pathlib import Path

import pandas as pd

from diel_activity import config
from diel_activity.occasions.build_occasions import build_occasions
from diel_activity.occasions.data_loading import load_deployments, load_detections
from diel_activity.run_config import print_config, resolve_config
from diel_activity.stat_models.design import hour_grid
from diel_activity.stat_models.fit_glm import compare_models, fit_pooled_glms, predict_glm
from diel_activity.stat_models.fit_glmm import (
    conditional_mean,
    fit_cyclic_hgam,
    fit_trig_glmm,
    marginal_mean,
    print_summary,
    site_curves,
)
from diel_activity.visualize.plot_diel import (
    plot_activity_curve,
    plot_conditional_vs_marginal,
    plot_model_comparison,
    plot_site_curves,
)

DEFAULTS = {
    "species": None,
    "bin_minutes": config.BIN_MINUTES,
    "whole_days": config.WHOLE_DAYS,
    "on_unknown_site": config.ON_UNKNOWN_SITE,
    "timestamp_format": config.TIMESTAMP_FORMAT,
    "harmonics": list(config.TRIG_HARMONICS),
    "spline_df": config.SPLINE_DF,
    "glmm_harmonics": None,  # None: use the best trig GLM by AIC
    "random_slopes": False,
    "site_smooths": False,
    "method": "vb",
    "grid_points": config.GRID_POINTS,
    "output_dir": config.OUTPUT_DIR,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fit hierarchical diel-activity models to camera-trap data.")

    parser.add_argument("--detections", type=Path, help="Detections CSV.")
    parser.add_argument("--deployments", type=Path, help="Deployment CSV.")
    parser.add_argument("--output-dir", type=Path, help="Directory to save results.")
    parser.add_argument("--config", type=Path, help="Optional YAML config file.")

    parser.add_argument("--species", help="Species to model.")
    parser.add_argument("--bin-minutes", type=float, help="Occasion length in minutes.")
    parser.add_argument("--harmonics", type=int, nargs="+", help="Trig harmonics to compare (pooled GLMs).")
    parser.add_argument("--spline-df", type=int, help="Cyclic spline basis size.")
    parser.add_argument("--glmm-harmonics", type=int, help="Harmonics for the GLMM (default: best by AIC).")
    parser.add_argument("--random-slopes", action="store_const", const=True,
                        help="Add per-site random slopes on the trig terms.")
    parser.add_argument("--site-smooths", action="store_const", const=True,
                        help="Add per-site spline deviations to the HGAM.")
    parser.add_argument("--method", choices=["vb", "map"], help="Mixed-model fitting method.")
    return parser


def best_harmonics(comparison: pd.DataFrame, fallback: int = 1) -> int:
    trig = comparison[comparison["model"].str.startswith("trig_k")]
    if trig.empty:
        return fallback
    return int(trig.iloc[0]["model"].removeprefix("trig_k"))


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)

    cfg = resolve_config(args, DEFAULTS)

    out = cfg["output_dir"]
    out.mkdir(parents=True, exist_ok=True)
    print_config(cfg, "Running diel-activity pipeline with configuration:")

    # Step 1: Occasions
    tables = build_occasions(
        load_deployments(cfg["deployments"], fmt=cfg["timestamp_format"]),
        load_detections(cfg["detections"], fmt=cfg["timestamp_format"]),
        species=cfg["species"],
        bin_minutes=cfg["bin_minutes"],
        whole_days=cfg["whole_days"],
        on_unknown_site=cfg["on_unknown_site"],
        timestamp_format=cfg["timestamp_format"],
    )
    if tables.n_success == 0:
        raise RuntimeError("No bins contain a detection; nothing to model.")
    tables.bins.to_csv(out / "occasions_bins.csv", index=False)
    tables.occasions.to_csv(out / "occasions_by_hour.csv", index=False)

    grid = hour_grid(cfg["grid_points"])

    # Step 2: Pooled GLMs + AIC
    glms = fit_pooled_glms(tables.occasions, cfg["harmonics"], cfg["spline_df"])
    comparison = compare_models(glms)
    comparison.to_csv(out / "model_comparison.csv", index=False)
    print("\n=== Model comparison (pooled binomial GLMs) ===")
    print(comparison.to_string(index=False))

    glm_curves = [predict_glm(f, grid) for f in glms]
    pd.concat(glm_curves, ignore_index=True).to_csv(out / "glm_curves.csv", index=False)
    plot_model_comparison(glm_curves, out / "glm_comparison.png", title="Pooled GLMs")

    # Step 3: Hierarchical models
    k = cfg["glmm_harmonics"] or best_harmonics(comparison)
    mixed = [
        fit_trig_glmm(tables.bins, k, random_slopes=cfg["random_slopes"], method=cfg["method"]),
        fit_cyclic_hgam(tables.bins, cfg["spline_df"], site_smooths=cfg["site_smooths"], method=cfg["method"]),
    ]

    # Step 4: Curves and plots
    curves = []
    for fit in mixed:
        print_summary(fit)
        cond = conditional_mean(fit, grid)
        marg = marginal_mean(fit, grid)
        curves.extend([cond, marg])

        plot_activity_curve(cond, out / f"{fit.name}_conditional.png",
                            observed=tables.occasions, title=f"{fit.name}: conditional mean")
        plot_conditional_vs_marginal(cond, marg, out / f"{fit.name}_cond_vs_marg.png",
                                     title=f"{fit.name}: conditional vs. marginal")
        plot_site_curves(site_curves(fit, grid), out / f"{fit.name}_sites.png",
                         population=marg, title=f"{fit.name}: site-level curves")

    pd.concat(curves, ignore_index=True).to_csv(out / "mixed_model_curves.csv", index=False)
    plot_model_comparison(
        [c for c in curves if c["type"].iloc[0] == "marginal"],
        out / "mixed_model_comparison.png",
        title="Hierarchical models: marginal means",
    )

    print(f"\nDone! Results in {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
