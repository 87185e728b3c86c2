"""Shared fixtures: small simulated camera-trap studies."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

from diel_activity.occasions.deployments import DeploymentWindow


def simulate_study(
    n_sites: int = 6,
    days: int = 20,
    *,
    peak_hour: float = 20.0,
    baseline: float = -1.0,
    amplitude: float = 1.5,
    site_sd: float = 0.7,
    seed: int = 0,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Deployment and detection tables shaped like raw CSV input (strings).

    Each site is active from midnight of its setup day to the end of its
    retrieval day; in each hour a deer is detected with probability
    expit(baseline + u_site + amplitude * cos(2*pi*(h - peak_hour)/24)).
    """
    rng = np.random.default_rng(seed)
    start = pd.Timestamp("2024-05-01")

    deployments = []
    detections = []
    for i in range(n_sites):
        site = f"S{i + 1:02d}"
        setup = start + pd.Timedelta(days=i % 3)
        retrieval = setup + pd.Timedelta(days=days - 1)
        deployments.append({
            "site": site,
            "setup_date": setup.strftime("%Y-%m-%d"),
            "retrieval_date": retrieval.strftime("%Y-%m-%d"),
            "hm": round(float(rng.uniform(0, 1)), 2),
        })

        u = rng.normal(0.0, site_sd)
        for d in range(days):
            for h in range(24):
                p = expit(baseline + u + amplitude * np.cos(2 * np.pi * (h - peak_hour) / 24))
                if rng.random() < p:
                    ts = setup + pd.Timedelta(days=d, hours=h, minutes=int(rng.integers(0, 60)))
                    detections.append({
                        "site": site,
                        "timestamp": ts.strftime("%Y-%m-%d %H:%M:%S"),
                        "species": "deer",
                    })
                if rng.random() < 0.05:
                    ts = setup + pd.Timedelta(days=d, hours=h, minutes=int(rng.integers(0, 60)))
                    detections.append({
                        "site": site,
                        "timestamp": ts.strftime("%Y-%m-%d %H:%M:%S"),
                        "species": "fox",
                    })

    return pd.DataFrame(deployments), pd.DataFrame(detections)


@pytest.fixture
def study():
    return simulate_study()


@pytest.fixture
def two_hour_window():
    return DeploymentWindow(
        session_id="1",
        site_id="A",
        start_timestamp=pd.Timestamp("2024-01-01 00:00"),
        end_timestamp=pd.Timestamp("2024-01-01 02:00"),
    )


@pytest.fixture(scope="session")
def make_study():
    return simulate_study
