"""
Configuration for the command-line scripts.

Each script has a DEFAULTS dict, an optional YAML file and its argparse
namespace. Precedence:
    1. Command-line arguments (highest priority)
    2. Config file (YAML)
    3. Hard-coded defaults (lowest priority)

An option left unset on the command line (None) or written as ``null`` in
the YAML file falls through to the layer below.
"""

from __future__ import annotations
import argparse
import warnings
from pathlib import Path

import yaml

from diel_activity.errors import ConfigurationError, ConfigurationWarning

PATH_KEYS = ["detections", "deployments", "output_dir"]


def load_config_file(path: Path | str | None) -> dict:
    """YAML mapping at ``path``; a missing path or an empty file gives {}."""
    if path is None:
        return {}
    path = Path(path)
    if not path.exists():
        return {}
    loaded = yaml.safe_load(path.read_text())
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} must hold a mapping, got {type(loaded).__name__}")
    # YAML keys follow the Python names, so "bin-minutes" and "bin_minutes" agree
    return {str(k).replace("-", "_"): v for k, v in loaded.items()}


def merge_configs(defaults: dict, *layers: dict) -> dict:
    """Overlay ``layers`` onto ``defaults`` in order, skipping None values."""
    merged = dict(defaults)
    for layer in layers:
        merged.update({k: v for k, v in layer.items() if v is not None})
    return merged


def normalize_paths(cfg: dict, keys: list[str]) -> dict:
    for key in keys:
        if isinstance(cfg.get(key), str):
            cfg[key] = Path(cfg[key])
    return cfg


def require_keys(cfg: dict, required: list[str]) -> None:
    missing = [r for r in required if cfg.get(r) is None]
    if missing:
        raise ValueError(f"Missing required configuration values: {missing}")


def resolve_config(
    args: argparse.Namespace,
    defaults: dict,
    *,
    required: list[str] = PATH_KEYS,
) -> dict:
    """
    Full configuration for one script run.

    Reads ``args.config`` if given, warns about YAML keys the script does not
    know, turns path strings into Paths and checks the required keys.
    """
    cli = {k: v for k, v in vars(args).items() if k != "config"}
    file_cfg = load_config_file(args.config)

    unknown = sorted(set(file_cfg) - set(defaults) - set(cli))
    if unknown:
        warnings.warn(
            f"Ignoring unknown keys in {args.config}: {unknown}",
            ConfigurationWarning,
            stacklevel=2,
        )
        file_cfg = {k: v for k, v in file_cfg.items() if k not in unknown}

    cfg = normalize_paths(merge_configs(defaults, file_cfg, cli), PATH_KEYS)
    require_keys(cfg, required)
    return cfg


def print_config(cfg: dict, header: str) -> None:
    print(header)
    for k, v in cfg.items():
        print(f"  {k}: {v}")
