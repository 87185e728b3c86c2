"""
Plots of predicted diel activity curves.

Curves are DataFrames with columns hour, mean, lower, upper (as returned by
``predict_glm``, ``conditional_mean`` and ``marginal_mean``).
"""

from __future__ import annotations
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from diel_activity import config


def observed_proportions(occasions: pd.DataFrame) -> pd.DataFrame:
    """Pooled fraction of occupied bins per hour of day."""
    grouped = occasions.groupby("hour", as_index=False)[["success", "failure"]].sum()
    grouped["trials"] = grouped["success"] + grouped["failure"]
    grouped["proportion"] = grouped["success"] / grouped["trials"]
    return grouped


def _format_hour_axis(ax, period: float = config.PERIOD_HOURS) -> None:
    ax.set_xlim(0, period)
    ax.set_xticks(np.arange(0, period + 1, 3))
    ax.set_xlabel("Hour of Day")
    ax.set_ylabel("P(Activity)")


def plot_activity_curve(
    curve: pd.DataFrame,
    out_path: Path | None = None,
    *,
    observed: pd.DataFrame | None = None,
    title: str = "Diel Activity",
    color: str = "black",
    ax=None,
):
    """Mean curve with its confidence band; optional observed hourly proportions."""
    own_fig = ax is None
    if own_fig:
        fig, ax = plt.subplots(figsize=(10, 5))
    else:
        fig = ax.figure

    ax.fill_between(curve["hour"], curve["lower"], curve["upper"], color=color, alpha=0.2, label="95% CI")
    ax.plot(curve["hour"], curve["mean"], color=color, lw=1.5, label="Mean")

    if observed is not None:
        props = observed_proportions(observed)
        # same bin-start hour the models are fitted on
        ax.scatter(props["hour"], props["proportion"], color="red", s=12, alpha=0.7,
                   label="Observed")

    _format_hour_axis(ax)
    ax.set_title(title)
    ax.legend(loc="best")

    if own_fig and out_path is not None:
        fig.tight_layout()
        fig.savefig(out_path, dpi=config.PLOT_DPI)
        plt.close(fig)
    return fig


def plot_model_comparison(
    curves: Sequence[pd.DataFrame],
    out_path: Path | None = None,
    *,
    title: str = "Diel Activity by Model",
    bands: bool = True,
):
    """Overlay several curves; each is labelled by its ``model`` column."""
    fig, ax = plt.subplots(figsize=(10, 5))
    cmap = plt.get_cmap("viridis", max(len(curves), 1))

    for idx, curve in enumerate(curves):
        color = cmap(idx)
        label = str(curve["model"].iloc[0]) if "model" in curve.columns else f"model {idx + 1}"
        if bands:
            ax.fill_between(curve["hour"], curve["lower"], curve["upper"], color=color, alpha=0.15)
        ax.plot(curve["hour"], curve["mean"], color=color, lw=1.5, label=label)

    _format_hour_axis(ax)
    ax.set_title(title)
    ax.legend(loc="best", fontsize="small")

    if out_path is not None:
        fig.tight_layout()
        fig.savefig(out_path, dpi=config.PLOT_DPI)
        plt.close(fig)
    return fig


def plot_conditional_vs_marginal(
    conditional: pd.DataFrame,
    marginal: pd.DataFrame,
    out_path: Path | None = None,
    *,
    title: str = "Conditional vs. Marginal Mean",
):
    fig, ax = plt.subplots(figsize=(10, 5))
    ax.fill_between(conditional["hour"], conditional["lower"], conditional["upper"],
                    color="tab:blue", alpha=0.2)
    ax.plot(conditional["hour"], conditional["mean"], color="tab:blue", lw=1.5,
            label="Conditional (typical site)")
    ax.fill_between(marginal["hour"], marginal["lower"], marginal["upper"],
                    color="tab:orange", alpha=0.2)
    ax.plot(marginal["hour"], marginal["mean"], color="tab:orange", lw=1.5,
            label="Marginal (population average)")

    _format_hour_axis(ax)
    ax.set_title(title)
    ax.legend(loc="best")

    if out_path is not None:
        fig.tight_layout()
        fig.savefig(out_path, dpi=config.PLOT_DPI)
        plt.close(fig)
    return fig


def plot_site_curves(
    site_df: pd.DataFrame,
    out_path: Path | None = None,
    *,
    population: pd.DataFrame | None = None,
    title: str = "Site-level Activity",
):
    """Thin line per site, optional population curve on top."""
    fig, ax = plt.subplots(figsize=(10, 5))
    for _, g in site_df.groupby(config.SITE_COL):
        ax.plot(g["hour"], g["mean"], color="gray", lw=0.6, alpha=0.5)
    if population is not None:
        ax.plot(population["hour"], population["mean"], color="black", lw=2, label="Population")
        ax.legend(loc="best")

    _format_hour_axis(ax)
    ax.set_title(title)

    if out_path is not None:
        fig.tight_layout()
        fig.savefig(out_path, dpi=config.PLOT_DPI)
        plt.close(fig)
    return fig
