from __future__ import annotations
from pathlib import Path

import numpy as np
import pandas as pd

from diel_activity import config
from diel_activity.errors import ParseError, ValidationError

DEFAULT_SESSION = "1"
DATE_ONLY_SUFFIX = "_date_only"

# End columns whose date-only values mean "through the end of that day"
END_COLUMNS = (config.RETRIEVAL_COL, config.MALFUNCTION_START_COL)

# ------------------------------------------------------------
# Field parsing
# ------------------------------------------------------------

def parse_timestamps(
    values: pd.Series,
    column: str,
    *,
    fmt: str | None = None,
    required: bool = True,
) -> pd.Series:
    """
    Parse a column of date/time strings into datetime64 values.

    Missing values are allowed when ``required`` is False. Anything present
    that does not parse raises ParseError naming the first offending row.
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        parsed = values
    elif values.isna().all():
        parsed = pd.Series(pd.NaT, index=values.index, dtype="datetime64[ns]")
    else:
        # "mixed" lets date-only and date-time strings share a column
        parsed = pd.to_datetime(values, format=fmt or "mixed", errors="coerce")

    missing = values.isna()
    bad = parsed.isna() & ~missing
    if bad.any():
        row = bad.idxmax()
        raise ParseError(f"Malformed timestamp {values.loc[row]!r}", row=row, column=column)
    if required and missing.any():
        row = missing.idxmax()
        raise ParseError("Missing timestamp", row=row, column=column)

    return parsed


_TIME_DIRECTIVES = ("%H", "%I", "%M", "%S", "%X", "%T", "%R", "%c")


def date_only_mask(values: pd.Series, *, fmt: str | None = None) -> pd.Series:
    """
    True where a raw value is a calendar date with no time of day.

    Decided from the input text: "2024-01-02" is date-only, while
    "2024-01-02 00:00:00" is an explicit midnight. Values that are already
    datetimes count as explicit.
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        return pd.Series(False, index=values.index)
    present = values.notna()
    if fmt is not None:
        has_time = any(d in fmt for d in _TIME_DIRECTIVES)
        return present & (not has_time)
    text = values.astype("string").str.strip()
    return present & ~text.str.contains(r"\d:\d", regex=True, na=False)


def date_only_column(column: str) -> str:
    return f"{column}{DATE_ONLY_SUFFIX}"


def parse_numeric(values: pd.Series, column: str) -> pd.Series:
    """Coerce a covariate column to float; blanks become NaN."""
    parsed = pd.to_numeric(values, errors="coerce")
    bad = parsed.isna() & values.notna()
    if bad.any():
        row = bad.idxmax()
        raise ParseError(f"Malformed number {values.loc[row]!r}", row=row, column=column)
    return parsed.astype(float)


def parse_active(values: pd.Series, column: str = config.ACTIVE_COL) -> pd.Series:
    """Read an active/inactive flag column (true/false, yes/no, 1/0)."""
    truthy = {"true", "t", "yes", "y", "1", "1.0"}
    falsy = {"false", "f", "no", "n", "0", "0.0"}

    out = []
    for row, v in values.items():
        if pd.isna(v):
            out.append(True)
            continue
        key = str(v).strip().lower()
        if key in truthy:
            out.append(True)
        elif key in falsy:
            out.append(False)
        else:
            raise ParseError(f"Unrecognized active flag {v!r}", row=row, column=column)
    return pd.Series(out, index=values.index, dtype=bool)


def require_columns(df: pd.DataFrame, columns: list[str], table: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValidationError(f"{table} table is missing required columns: {missing}")


def _normalize_ids(df: pd.DataFrame) -> pd.DataFrame:
    # Site and session ids are matched as strings so that "7" and 7 agree
    if config.SESSION_COL not in df.columns:
        df[config.SESSION_COL] = DEFAULT_SESSION
    for col in (config.SESSION_COL, config.SITE_COL):
        df[col] = df[col].astype(str).str.strip()
    return df

# ------------------------------------------------------------
# Table preparation
# ------------------------------------------------------------

def prepare_detections(
    df: pd.DataFrame,
    *,
    fmt: str | None = config.TIMESTAMP_FORMAT,
    rename: dict[str, str] | None = None,
) -> pd.DataFrame:
    """
    Validate a detections table and return a tidy copy.

    Required columns: site, timestamp. Optional: session, species and any
    covariate columns, which are passed through unchanged.
    """
    df = df.rename(columns=rename or {}).copy()
    require_columns(df, [config.SITE_COL, config.TIMESTAMP_COL], "Detections")

    df = _normalize_ids(df)
    df[config.TIMESTAMP_COL] = parse_timestamps(
        df[config.TIMESTAMP_COL], config.TIMESTAMP_COL, fmt=fmt
    )
    if config.SPECIES_COL in df.columns:
        df[config.SPECIES_COL] = df[config.SPECIES_COL].astype(str).str.strip()

    return df.sort_values(config.TIMESTAMP_COL, kind="stable")


def prepare_deployments(
    df: pd.DataFrame,
    *,
    fmt: str | None = config.TIMESTAMP_FORMAT,
    rename: dict[str, str] | None = None,
    numeric_covariates: list[str] | None = None,
) -> pd.DataFrame:
    """
    Validate a deployment-metadata table and return a tidy copy.

    Required columns: site, setup_date. Retrieval and malfunction dates are
    optional per row (and as columns); the deployment end is resolved later
    by ``build_deployment_windows``. Retrieval and malfunction-start values
    given without a time of day are flagged in ``<column>_date_only``.
    """
    df = df.rename(columns=rename or {}).copy()
    require_columns(df, [config.SITE_COL, config.SETUP_COL], "Deployments")

    df = _normalize_ids(df)
    df[config.SETUP_COL] = parse_timestamps(df[config.SETUP_COL], config.SETUP_COL, fmt=fmt)

    for col in (config.RETRIEVAL_COL, config.MALFUNCTION_START_COL, config.MALFUNCTION_END_COL):
        if col in df.columns:
            # Flags survive a second pass over an already-prepared table
            flag = date_only_column(col)
            if col in END_COLUMNS and flag not in df.columns:
                df[flag] = date_only_mask(df[col], fmt=fmt)
            df[col] = parse_timestamps(df[col], col, fmt=fmt, required=False)
        else:
            df[col] = pd.Series(pd.NaT, index=df.index, dtype="datetime64[ns]")

    for col in END_COLUMNS:
        flag = date_only_column(col)
        if flag not in df.columns:
            df[flag] = False
        df[flag] = df[flag].astype(bool)

    if config.ACTIVE_COL in df.columns:
        df[config.ACTIVE_COL] = parse_active(df[config.ACTIVE_COL])
    else:
        df[config.ACTIVE_COL] = np.ones(len(df), dtype=bool)

    for col in numeric_covariates or []:
        require_columns(df, [col], "Deployments")
        df[col] = parse_numeric(df[col], col)

    return df

# ------------------------------------------------------------
# CSV loading
# ------------------------------------------------------------

def load_detections(path: Path, **kwargs) -> pd.DataFrame:
    """Read a detections CSV; keyword arguments go to ``prepare_detections``."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detections file not found: {path}")
    return prepare_detections(pd.read_csv(path), **kwargs)


def load_deployments(path: Path, **kwargs) -> pd.DataFrame:
    """Read a deployment CSV; keyword arguments go to ``prepare_deployments``."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Deployments file not found: {path}")
    return prepare_deployments(pd.read_csv(path), **kwargs)
