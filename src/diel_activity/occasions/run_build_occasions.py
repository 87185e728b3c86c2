#!/usr/bin/env python3
"""
Command-line script: detections + deployments CSVs -> occasion tables.

Writes two CSVs into the output directory:
    occasions_bins.csv        one row per time bin (0/1 outcome)
    occasions_by_hour.csv     success/failure counts per site and hour
"""

import argparse
from pathlib import Path

from diel_activity import config
from diel_activity.occasions.build_occasions import build_occasions
from diel_activity.occasions.data_loading import load_deployments, load_detections
from diel_activity.run_config import print_config, resolve_config

DEFAULTS = {
    "bin_minutes": config.BIN_MINUTES,
    "whole_days": config.WHOLE_DAYS,
    "on_unknown_site": config.ON_UNKNOWN_SITE,
    "timestamp_format": config.TIMESTAMP_FORMAT,
    "group_keys": [],
    "species": None,
    "output_dir": config.OUTPUT_DIR,
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build per-site, per-hour occasions from camera-trap data.")
    parser.add_argument("--detections", type=Path, help="Detections CSV (site, timestamp, species, ...).")
    parser.add_argument("--deployments", type=Path, help="Deployment CSV (site, setup_date, retrieval_date, ...).")
    parser.add_argument("--output-dir", type=Path, help="Directory to save occasion tables.")
    parser.add_argument("--config", type=Path, help="Optional YAML config file.")

    parser.add_argument("--species", help="Keep only detections of this species.")
    parser.add_argument("--bin-minutes", type=float, help="Occasion length in minutes.")
    parser.add_argument("--group-keys", nargs="+", help="Deployment covariates to group by.")
    parser.add_argument("--on-unknown-site", choices=["raise", "warn"],
                        help="What to do with detections from sites missing in the deployments table.")
    parser.add_argument("--exact-windows", dest="whole_days", action="store_const", const=False,
                        help="Bin only the deployment window itself, not whole calendar days.")
    return parser


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)

    cfg = resolve_config(args, DEFAULTS)

    cfg["output_dir"].mkdir(parents=True, exist_ok=True)
    print_config(cfg, "Building occasions with configuration:")

    tables = build_occasions(
        load_deployments(cfg["deployments"], fmt=cfg["timestamp_format"]),
        load_detections(cfg["detections"], fmt=cfg["timestamp_format"]),
        species=cfg["species"],
        bin_minutes=cfg["bin_minutes"],
        group_keys=cfg["group_keys"] or (),
        whole_days=cfg["whole_days"],
        on_unknown_site=cfg["on_unknown_site"],
        timestamp_format=cfg["timestamp_format"],
    )

    if tables.bins.empty:
        raise RuntimeError("No occasions were generated. Check the deployment dates.")

    tables.bins.to_csv(cfg["output_dir"] / "occasions_bins.csv", index=False)
    tables.occasions.to_csv(cfg["output_dir"] / "occasions_by_hour.csv", index=False)
    tables.windows.to_csv(cfg["output_dir"] / "deployment_windows.csv", index=False)

    print(f"\nSaved occasion tables to {cfg['output_dir']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
