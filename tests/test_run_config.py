"""Tests for YAML/CLI configuration merging."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from diel_activity.errors import ConfigurationError, ConfigurationWarning
from diel_activity.run_config import (
    load_config_file,
    merge_configs,
    normalize_paths,
    require_keys,
    resolve_config,
)


def test_precedence():
    defaults = {"bin_minutes": 60, "species": None, "method": "vb"}
    file_cfg = {"bin_minutes": 30, "species": "deer"}
    cli = {"bin_minutes": 15, "species": None}
    merged = merge_configs(defaults, file_cfg, cli)
    assert merged == {"bin_minutes": 15, "species": "deer", "method": "vb"}


def test_null_in_file_keeps_default():
    merged = merge_configs({"spline_df": 8}, {"spline_df": None})
    assert merged == {"spline_df": 8}


def test_missing_config_file(tmp_path):
    assert load_config_file(tmp_path / "absent.yaml") == {}
    assert load_config_file(None) == {}


def test_load_yaml(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("harmonics: [1, 2]\nspecies: fox\nbin-minutes: 30\n")
    assert load_config_file(path) == {"harmonics": [1, 2], "species": "fox", "bin_minutes": 30}


def test_empty_yaml(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("")
    assert load_config_file(path) == {}


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        load_config_file(path)


def test_normalize_and_require():
    cfg = normalize_paths({"output_dir": "out", "detections": None}, ["output_dir", "detections"])
    assert cfg["output_dir"] == Path("out")
    with pytest.raises(ValueError, match="detections"):
        require_keys(cfg, ["output_dir", "detections"])


def test_resolve_config(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        "detections: det.csv\n"
        "deployments: dep.csv\n"
        "bin_minutes: 30\n"
        "bin_minuts: 15\n"
    )
    args = argparse.Namespace(config=path, detections=None, deployments=None, output_dir="out", bin_minutes=None)

    with pytest.warns(ConfigurationWarning, match="bin_minuts"):
        cfg = resolve_config(args, {"bin_minutes": 60, "output_dir": "diel_results"})

    assert cfg["bin_minutes"] == 30
    assert "bin_minuts" not in cfg
    assert cfg["detections"] == Path("det.csv")
    assert cfg["output_dir"] == Path("out")


def test_resolve_config_requires_inputs():
    args = argparse.Namespace(config=None, detections=None, deployments=None, output_dir=None)
    with pytest.raises(ValueError, match="Missing required"):
        resolve_config(args, {"output_dir": "diel_results"})
