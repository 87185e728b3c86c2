"""
Camera deployment windows.

A deployment row gives the setup date, the retrieval date and optionally the
start of a malfunction. The camera counts as sampling from setup until the
earlier of retrieval and malfunction start.
"""

from __future__ import annotations
import warnings
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from diel_activity import config
from diel_activity.errors import ConfigurationError, DataWarning, ValidationError
from .data_loading import END_COLUMNS, date_only_column, prepare_deployments

# Columns consumed here; everything else in a deployment row is a site covariate
_RESERVED = {
    config.SESSION_COL,
    config.SITE_COL,
    config.SETUP_COL,
    config.RETRIEVAL_COL,
    config.MALFUNCTION_START_COL,
    config.MALFUNCTION_END_COL,
    config.ACTIVE_COL,
    *(date_only_column(c) for c in END_COLUMNS),
}


@dataclass(frozen=True)
class DeploymentWindow:
    session_id: str
    site_id: str
    start_timestamp: pd.Timestamp
    end_timestamp: pd.Timestamp
    covariates: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.start_timestamp > self.end_timestamp:
            raise ValidationError(
                f"Deployment {self.session_id}/{self.site_id} starts after it ends "
                f"({self.start_timestamp} > {self.end_timestamp})"
            )

    @property
    def key(self) -> tuple[str, str]:
        return (self.session_id, self.site_id)


def _end_of_day(ts: pd.Timestamp) -> pd.Timestamp:
    return ts.normalize() + pd.Timedelta(days=1) - pd.Timedelta(seconds=1)


def resolve_end(
    retrieval: pd.Timestamp | None,
    malfunction_start: pd.Timestamp | None,
    *,
    date_only: tuple[bool, bool] = (False, False),
    extend_date_only: bool = True,
) -> pd.Timestamp | None:
    """
    Earliest of retrieval and malfunction start, ignoring missing values.

    ``date_only`` flags (retrieval, malfunction_start) values that were given
    as a bare date. Such a date means the camera ran for that whole day, so
    it moves to 23:59:59 before the two are compared. An explicit midnight
    is kept as is.
    """
    candidates = []
    for ts, is_date in zip((retrieval, malfunction_start), date_only):
        if ts is None or pd.isna(ts):
            continue
        if extend_date_only and is_date:
            ts = _end_of_day(ts)
        candidates.append(ts)
    if not candidates:
        return None
    return min(candidates)


def build_deployment_windows(
    deployment_rows: pd.DataFrame,
    *,
    extend_date_only: bool = True,
    **prepare_kwargs,
) -> list[DeploymentWindow]:
    """
    Derive one DeploymentWindow per deployment row.

    Raises ConfigurationError when an active camera has neither a retrieval
    nor a malfunction date, and ValidationError when setup is after the
    resolved end. Inactive cameras without an end are skipped with a warning.
    """
    df = prepare_deployments(deployment_rows, **prepare_kwargs)
    covariate_cols = [c for c in df.columns if c not in _RESERVED]

    windows = []
    n_skipped = 0
    for row_idx, row in df.iterrows():
        session = row[config.SESSION_COL]
        site = row[config.SITE_COL]
        end = resolve_end(
            row[config.RETRIEVAL_COL],
            row[config.MALFUNCTION_START_COL],
            date_only=tuple(bool(row[date_only_column(c)]) for c in END_COLUMNS),
            extend_date_only=extend_date_only,
        )

        if end is None:
            if row[config.ACTIVE_COL]:
                raise ConfigurationError(
                    f"Deployment {session}/{site} (row {row_idx}) has no retrieval or "
                    f"malfunction date, so its end is undefined"
                )
            n_skipped += 1
            continue

        windows.append(
            DeploymentWindow(
                session_id=session,
                site_id=site,
                start_timestamp=pd.Timestamp(row[config.SETUP_COL]),
                end_timestamp=pd.Timestamp(end),
                covariates={c: row[c] for c in covariate_cols},
            )
        )

    if n_skipped:
        warnings.warn(
            f"Skipped {n_skipped} inactive deployment(s) with no end date",
            DataWarning,
            stacklevel=2,
        )

    return windows


def windows_to_frame(windows: list[DeploymentWindow]) -> pd.DataFrame:
    rows = []
    for w in windows:
        rows.append({
            config.SESSION_COL: w.session_id,
            config.SITE_COL: w.site_id,
            "start": w.start_timestamp,
            "end": w.end_timestamp,
            "days": (w.end_timestamp - w.start_timestamp) / pd.Timedelta(days=1),
            **w.covariates,
        })
    return pd.DataFrame(rows)
