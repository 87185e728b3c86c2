#!/usr/bin/env python3
"""
Naive diel summary of raw detections, before any effort accounting.

Features:
- Reads a detections CSV (site, timestamp, species)
- Collapses bursts: detections of a species at a site within
  INDEPENDENCE_MINUTES of the previous one count once
- Counts independent events per species and hour of day
- Produces a CSV and a plot with one line per species (share of events by hour)
"""

import argparse
from pathlib import Path
import pandas as pd
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

# local config (primary defaults)
import hourly_detections_config as cfg

from diel_activity import config
from diel_activity.occasions.data_loading import load_detections


def independent_events(df: pd.DataFrame, minutes: float) -> pd.DataFrame:
    """Keep the first detection of each run separated by less than ``minutes``."""
    keys = [config.SESSION_COL, config.SITE_COL]
    if config.SPECIES_COL in df.columns:
        keys.append(config.SPECIES_COL)
    df = df.sort_values(keys + [config.TIMESTAMP_COL])
    gap = df.groupby(keys)[config.TIMESTAMP_COL].diff()
    keep = gap.isna() | (gap >= pd.Timedelta(minutes=minutes))
    return df[keep]


def count_by_hour(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df["hour"] = df[config.TIMESTAMP_COL].dt.hour.astype(int)
    if config.SPECIES_COL not in df.columns:
        df[config.SPECIES_COL] = "all"
    counts = df.groupby([config.SPECIES_COL, "hour"]).size()
    full = pd.MultiIndex.from_product(
        [counts.index.levels[0], range(24)], names=[config.SPECIES_COL, "hour"]
    )
    counts = counts.reindex(full, fill_value=0).rename("events").reset_index()
    counts["share"] = counts["events"] / counts.groupby(config.SPECIES_COL)["events"].transform("sum")
    return counts


def make_plot(counts: pd.DataFrame, out_path: str):
    plt.figure(figsize=(10, 5))
    species = sorted(counts[config.SPECIES_COL].unique())
    cmap = plt.get_cmap("viridis", len(species))

    for idx, sp in enumerate(species):
        df_sp = counts[counts[config.SPECIES_COL] == sp]
        plt.plot(df_sp["hour"], df_sp["share"], "-o", markersize=3, linewidth=1,
                 color=cmap(idx), label=sp)

    plt.xlabel("Hour of Day")
    plt.ylabel("Share of Independent Events")
    plt.title("Raw Detections by Hour (no effort correction)")
    plt.xticks(range(0, 24, 3))
    plt.legend(title="Species", ncol=2, fontsize="small")
    plt.tight_layout()
    plt.savefig(out_path, dpi=300)
    plt.close()


def main():
    parser = argparse.ArgumentParser(description="Count independent camera-trap events per hour of day.")
    parser.add_argument("--detections", help="Detections CSV")
    parser.add_argument("--out_csv", help="Output CSV")
    parser.add_argument("--plot", help="Output plot filename (PNG)")
    parser.add_argument("--minutes", type=float, help="Independence threshold in minutes")
    args = parser.parse_args()

    # fallback to config
    detections = args.detections or cfg.DETECTIONS_CSV
    out_csv = args.out_csv or cfg.OUT_CSV
    plot_file = args.plot or cfg.PLOT
    minutes = args.minutes if args.minutes is not None else cfg.INDEPENDENCE_MINUTES

    df = load_detections(Path(detections))
    events = independent_events(df, minutes)
    print(f"Independent events: {len(events)} of {len(df)} detections ({minutes} min threshold)")

    if events.empty:
        print("No detections to summarise.")
        return

    counts = count_by_hour(events)
    Path(out_csv).parent.mkdir(parents=True, exist_ok=True)
    counts.to_csv(out_csv, index=False)
    Path(plot_file).parent.mkdir(parents=True, exist_ok=True)
    make_plot(counts, plot_file)

    print(f"Saved hourly CSV: {out_csv}")
    print(f"Saved hourly plot: {plot_file}")


if __name__ == "__main__":
    main()
