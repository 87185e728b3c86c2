"""
Sampling occasions: fixed-length time bins over each deployment window.

Each bin is a half-open interval [bin_start, bin_end). A bin's outcome is 1
when at least one detection falls inside it and inside the deployment
window [start, end] the bin was cut from, and 0 otherwise.
"""

from __future__ import annotations
import warnings
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, Iterator

import numpy as np
import pandas as pd

from diel_activity import config
from diel_activity.errors import (
    ConfigurationError,
    ConfigurationWarning,
    DataWarning,
    ValidationError,
)
from .data_loading import prepare_detections
from .deployments import DeploymentWindow

ONE_DAY = pd.Timedelta(days=1)


@dataclass
class TimeBin:
    session_id: str
    site_id: str
    bin_start: pd.Timestamp
    bin_end: pd.Timestamp
    outcome: int = 0
    covariates: dict[str, Any] = field(default_factory=dict)
    # sampling window the bin was cut from; None means the bin edges alone
    window_start: pd.Timestamp | None = None
    window_end: pd.Timestamp | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.session_id, self.site_id)

    def contains(self, timestamp: pd.Timestamp) -> bool:
        """bin_start <= timestamp < bin_end, and inside [window_start, window_end]."""
        if not self.bin_start <= timestamp < self.bin_end:
            return False
        if self.window_start is not None and timestamp < self.window_start:
            return False
        if self.window_end is not None and timestamp > self.window_end:
            return False
        return True


@dataclass(frozen=True)
class DetectionEvent:
    session_id: str
    site_id: str
    timestamp: pd.Timestamp
    species: str | None = None
    covariate: Any = None


def as_bin_duration(bin_duration: pd.Timedelta | timedelta | int | float) -> pd.Timedelta:
    """Accept a Timedelta or a number of minutes; reject non-positive sizes."""
    if isinstance(bin_duration, (int, float, np.integer, np.floating)):
        duration = pd.Timedelta(minutes=float(bin_duration))
    else:
        duration = pd.Timedelta(bin_duration)
    if duration <= pd.Timedelta(0):
        raise ConfigurationError(f"Bin duration must be positive, got {duration}")
    return duration


def check_divides_day(duration: pd.Timedelta) -> bool:
    """Warn when bins do not tile the day; hour-of-day is then ambiguous."""
    if ONE_DAY.value % duration.value != 0:
        warnings.warn(
            f"Bin duration {duration} does not evenly divide 24 hours; "
            f"hour-of-day will be taken from each bin's start",
            ConfigurationWarning,
            stacklevel=3,
        )
        return False
    return True

# ------------------------------------------------------------
# Enumeration
# ------------------------------------------------------------

class BinSequence:
    """
    Lazy, restartable sequence of the bins covering one deployment window.

    Every iteration yields fresh TimeBin objects with outcome 0. Bins start at
    ``span_start + k * duration`` for every start before ``span_end``; the last
    bin keeps the full duration even when it runs past the span.
    """

    def __init__(self, window: DeploymentWindow, duration: pd.Timedelta, whole_days: bool):
        self.window = window
        self.duration = duration
        self.whole_days = whole_days

        if whole_days:
            self.span_start = window.start_timestamp.normalize()
            self.span_end = window.end_timestamp.normalize() + ONE_DAY
        else:
            self.span_start = window.start_timestamp
            self.span_end = window.end_timestamp

        span_ns = (self.span_end - self.span_start).value
        # ceil division on integer nanoseconds
        self._n = max(0, -(-span_ns // duration.value))

    def __len__(self) -> int:
        return self._n

    def _make(self, k: int) -> TimeBin:
        start = self.span_start + k * self.duration
        return TimeBin(
            session_id=self.window.session_id,
            site_id=self.window.site_id,
            bin_start=start,
            bin_end=start + self.duration,
            covariates=self.window.covariates,
            window_start=self.window.start_timestamp,
            window_end=self.window.end_timestamp,
        )

    def __getitem__(self, k: int) -> TimeBin:
        if k < 0:
            k += self._n
        if not 0 <= k < self._n:
            raise IndexError("bin index out of range")
        return self._make(k)

    def __iter__(self) -> Iterator[TimeBin]:
        for k in range(self._n):
            yield self._make(k)

    def __repr__(self) -> str:
        return (
            f"BinSequence({self.window.session_id}/{self.window.site_id}, "
            f"{self.span_start} -> {self.span_end}, n={self._n}, step={self.duration})"
        )


def enumerate_bins(
    window: DeploymentWindow,
    bin_duration: pd.Timedelta | int = config.BIN_MINUTES,
    *,
    whole_days: bool = config.WHOLE_DAYS,
) -> BinSequence:
    """
    Bins for one deployment window.

    With ``whole_days`` the bins span from midnight of the first day to the
    end of the last day; otherwise exactly [start, end] rounded up to whole
    bins.
    """
    duration = as_bin_duration(bin_duration)
    check_divides_day(duration)
    return BinSequence(window, duration, whole_days)


def extract_hour_of_day(time_bin: TimeBin) -> int:
    return int(time_bin.bin_start.hour)

# ------------------------------------------------------------
# Detection marking
# ------------------------------------------------------------

class BinIndex:
    """Sorted bin starts per (session, site) for binary-search lookups."""

    def __init__(self, bins: Iterable[TimeBin]):
        grouped: dict[tuple[str, str], list[TimeBin]] = {}
        for b in bins:
            grouped.setdefault(b.key, []).append(b)

        self._bins = {}
        self._starts = {}
        for key, group in grouped.items():
            group.sort(key=lambda b: b.bin_start)
            self._bins[key] = group
            self._starts[key] = [b.bin_start.value for b in group]

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._bins

    def keys(self):
        return self._bins.keys()

    def locate(self, session_id: str, site_id: str, timestamp: pd.Timestamp) -> TimeBin | None:
        """
        The bin containing ``timestamp``, or None.

        Padding bins (whole-day mode) and the overrun of a final bin lie
        outside the deployment window; timestamps there find no bin.
        """
        key = (session_id, site_id)
        starts = self._starts.get(key)
        if starts is None:
            return None
        ts = pd.Timestamp(timestamp)
        i = bisect_right(starts, ts.value) - 1
        if i < 0:
            return None
        candidate = self._bins[key][i]
        if candidate.contains(ts):
            return candidate
        return None


def detections_from_frame(df: pd.DataFrame, covariate: str | None = None) -> list[DetectionEvent]:
    """Convert a prepared detections table into DetectionEvent records."""
    has_species = config.SPECIES_COL in df.columns
    events = []
    for r in df.to_dict("records"):
        events.append(
            DetectionEvent(
                session_id=str(r[config.SESSION_COL]),
                site_id=str(r[config.SITE_COL]),
                timestamp=pd.Timestamp(r[config.TIMESTAMP_COL]),
                species=r[config.SPECIES_COL] if has_species else None,
                covariate=r[covariate] if covariate else None,
            )
        )
    return events


def mark_detections(
    bins: Iterable[TimeBin],
    detections: Iterable[DetectionEvent] | pd.DataFrame,
    *,
    on_unknown_site: str = config.ON_UNKNOWN_SITE,
) -> list[TimeBin]:
    """
    Set outcome=1 on every bin that contains at least one detection.

    Detections at a known (session, site) outside every deployment window are
    dropped with a DataWarning, including those that land in a padding or
    overrun bin. Detections at an unknown (session, site) raise ValidationError,
    or are dropped with a warning when ``on_unknown_site='warn'``.
    """
    if on_unknown_site not in ("raise", "warn"):
        raise ConfigurationError(f"on_unknown_site must be 'raise' or 'warn', got {on_unknown_site!r}")
    if isinstance(detections, pd.DataFrame):
        detections = detections_from_frame(prepare_detections(detections))

    bins = list(bins)
    index = BinIndex(bins)

    n_outside = 0
    unknown: dict[tuple[str, str], int] = {}
    for det in detections:
        key = (det.session_id, det.site_id)
        if key not in index:
            unknown[key] = unknown.get(key, 0) + 1
            continue
        hit = index.locate(det.session_id, det.site_id, det.timestamp)
        if hit is None:
            n_outside += 1
            continue
        hit.outcome = 1

    if unknown:
        shown = ", ".join(f"{s}/{t} ({n})" for (s, t), n in list(unknown.items())[:5])
        message = f"{sum(unknown.values())} detection(s) reference unknown session/site: {shown}"
        if on_unknown_site == "raise":
            raise ValidationError(message)
        warnings.warn(message, DataWarning, stacklevel=2)

    if n_outside:
        warnings.warn(
            f"{n_outside} detection(s) fall outside every deployment window and were dropped",
            DataWarning,
            stacklevel=2,
        )

    return bins
