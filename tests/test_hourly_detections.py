"""Tests for the raw detections-per-hour experiment script."""

from __future__ import annotations

import pandas as pd
import pytest

from diel_activity.occasions.data_loading import prepare_detections
from hourly_detections import count_by_hour, independent_events


def detections(*rows):
    return prepare_detections(pd.DataFrame(rows, columns=["site", "timestamp", "species"]))


def test_independent_events_collapse_bursts():
    df = detections(
        ("A", "2024-01-01 10:00:00", "deer"),
        ("A", "2024-01-01 10:10:00", "deer"),
        ("A", "2024-01-01 10:45:00", "deer"),
        ("A", "2024-01-01 10:05:00", "fox"),
        ("B", "2024-01-01 10:01:00", "deer"),
    )
    events = independent_events(df, minutes=30)
    assert len(events) == 4
    assert not ((events["site"] == "A") & (events["timestamp"] == pd.Timestamp("2024-01-01 10:10"))).any()


def test_count_by_hour_shares():
    df = detections(
        ("A", "2024-01-01 01:00:00", "deer"),
        ("A", "2024-01-02 01:30:00", "deer"),
        ("A", "2024-01-02 13:00:00", "deer"),
    )
    counts = count_by_hour(df)
    assert len(counts) == 24
    deer = counts.set_index("hour")
    assert deer.loc[1, "events"] == 2
    assert deer.loc[13, "share"] == pytest.approx(1 / 3)
    assert deer["share"].sum() == pytest.approx(1.0)
