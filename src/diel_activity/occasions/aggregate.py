from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import pandas as pd

from diel_activity import config
from diel_activity.errors import ValidationError
from .bins import TimeBin, extract_hour_of_day

SESSION_KEYS = {"session", "session_id", config.SESSION_COL}


@dataclass
class AggregatedOccasion:
    site_id: str
    hour_of_day: int
    covariates: dict[str, Any] = field(default_factory=dict)
    success_count: int = 0
    failure_count: int = 0

    @property
    def trials(self) -> int:
        return self.success_count + self.failure_count


def _key_value(b: TimeBin, key: str) -> Any:
    if key in SESSION_KEYS:
        return b.session_id
    try:
        return b.covariates[key]
    except KeyError:
        raise ValidationError(
            f"Grouping key '{key}' is not a covariate of site {b.site_id}"
        ) from None


def aggregate(bins: Iterable[TimeBin], group_keys: Sequence[str] = ()) -> list[AggregatedOccasion]:
    """
    Roll bins up into success/failure counts per (site, hour, *group_keys).

    Rows come out in the order their group is first seen.
    """
    group_keys = tuple(group_keys)
    groups: dict[tuple, AggregatedOccasion] = {}

    for b in bins:
        extra = tuple(_key_value(b, k) for k in group_keys)
        hour = extract_hour_of_day(b)
        key = (b.site_id, hour) + extra
        occ = groups.get(key)
        if occ is None:
            occ = AggregatedOccasion(
                site_id=b.site_id,
                hour_of_day=hour,
                covariates=dict(zip(group_keys, extra)),
            )
            groups[key] = occ
        if b.outcome:
            occ.success_count += 1
        else:
            occ.failure_count += 1

    return list(groups.values())


def merge_occasions(*parts: Iterable[AggregatedOccasion]) -> list[AggregatedOccasion]:
    """Sum counts of partial aggregations that share a group key."""
    merged: dict[tuple, AggregatedOccasion] = {}
    for part in parts:
        for occ in part:
            key = (occ.site_id, occ.hour_of_day) + tuple(sorted(occ.covariates.items()))
            if key not in merged:
                merged[key] = AggregatedOccasion(
                    site_id=occ.site_id,
                    hour_of_day=occ.hour_of_day,
                    covariates=dict(occ.covariates),
                )
            merged[key].success_count += occ.success_count
            merged[key].failure_count += occ.failure_count
    return list(merged.values())

# ------------------------------------------------------------
# DataFrame views
# ------------------------------------------------------------

def bins_to_frame(bins: Iterable[TimeBin], covariates: Sequence[str] | None = None) -> pd.DataFrame:
    """One row per bin: session, site, bin_start, bin_end, hour, outcome, covariates."""
    rows = []
    for b in bins:
        cov = b.covariates if covariates is None else {c: b.covariates.get(c) for c in covariates}
        rows.append({
            config.SESSION_COL: b.session_id,
            config.SITE_COL: b.site_id,
            "bin_start": b.bin_start,
            "bin_end": b.bin_end,
            "hour": extract_hour_of_day(b),
            "outcome": int(b.outcome),
            **cov,
        })
    if not rows:
        columns = [config.SESSION_COL, config.SITE_COL, "bin_start", "bin_end", "hour", "outcome"]
        return pd.DataFrame(columns=columns + list(covariates or []))
    return pd.DataFrame(rows)


def occasions_to_frame(occasions: Iterable[AggregatedOccasion]) -> pd.DataFrame:
    """One row per group: site, hour, group keys, success, failure, trials."""
    rows = []
    for occ in occasions:
        rows.append({
            config.SITE_COL: occ.site_id,
            "hour": occ.hour_of_day,
            **occ.covariates,
            "success": occ.success_count,
            "failure": occ.failure_count,
            "trials": occ.trials,
        })
    if not rows:
        return pd.DataFrame(columns=[config.SITE_COL, "hour", "success", "failure", "trials"])
    return pd.DataFrame(rows)
