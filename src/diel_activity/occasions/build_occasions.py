"""
End-to-end occasion building.

    deployments -> windows -> bins -> marked bins -> (site, hour) counts

The bin-level table feeds the mixed models (0/1 response per bin); the
aggregated table feeds the pooled binomial GLMs and the observed-proportion
overlays in the plots.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from diel_activity import config
from diel_activity.errors import ValidationError
from .aggregate import aggregate, bins_to_frame, occasions_to_frame
from .bins import as_bin_duration, check_divides_day, BinSequence, mark_detections
from .data_loading import prepare_detections
from .deployments import build_deployment_windows, windows_to_frame


@dataclass
class OccasionTables:
    windows: pd.DataFrame
    bins: pd.DataFrame
    occasions: pd.DataFrame
    n_detections: int

    @property
    def n_success(self) -> int:
        return int(self.bins["outcome"].sum()) if len(self.bins) else 0


def filter_species(detections: pd.DataFrame, species: str | Sequence[str] | None) -> pd.DataFrame:
    if species is None:
        return detections
    if config.SPECIES_COL not in detections.columns:
        raise ValidationError(
            f"Cannot filter by species: detections have no '{config.SPECIES_COL}' column"
        )
    wanted = [species] if isinstance(species, str) else list(species)
    return detections[detections[config.SPECIES_COL].isin(wanted)]


def build_occasions(
    deployments: pd.DataFrame,
    detections: pd.DataFrame,
    *,
    species: str | Sequence[str] | None = None,
    bin_minutes: float = config.BIN_MINUTES,
    group_keys: Sequence[str] = (),
    whole_days: bool = config.WHOLE_DAYS,
    on_unknown_site: str = config.ON_UNKNOWN_SITE,
    timestamp_format: str | None = config.TIMESTAMP_FORMAT,
    verbose: bool = True,
) -> OccasionTables:
    """
    Build the bin-level and aggregated occasion tables.

    Pure function of its inputs: nothing outside the returned tables is
    modified.
    """
    duration = as_bin_duration(bin_minutes)
    check_divides_day(duration)

    windows = build_deployment_windows(deployments, fmt=timestamp_format)
    dets = prepare_detections(detections, fmt=timestamp_format)
    dets = filter_species(dets, species)

    bins = []
    for w in windows:
        bins.extend(BinSequence(w, duration, whole_days))

    bins = mark_detections(bins, dets, on_unknown_site=on_unknown_site)
    occasions = aggregate(bins, group_keys)

    tables = OccasionTables(
        windows=windows_to_frame(windows),
        bins=bins_to_frame(bins),
        occasions=occasions_to_frame(occasions),
        n_detections=len(dets),
    )

    if verbose:
        label = species if species is not None else "all species"
        print(f"[build_occasions] {label}: {len(windows)} deployment windows, {len(bins)} bins of {duration}")
        print(f"  > Detections used: {tables.n_detections}")
        print(f"  > Bins with a detection: {tables.n_success}")
        print(f"  > Aggregated rows: {len(tables.occasions)}")

    return tables
