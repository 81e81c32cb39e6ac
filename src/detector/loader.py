"""
CSV ingestion for file replay.

Expected layout: a header row, then `timestamp,value[,is_anomaly]` rows.
Columns are taken by position; rows whose value does not parse are skipped.
"""

from collections.abc import Iterator
from pathlib import Path

import pandas as pd
import structlog

from .models import DataPoint

logger = structlog.get_logger(__name__)


def _frame_to_points(frame: pd.DataFrame, stats: dict) -> list[DataPoint]:
    if frame.shape[1] < 2:
        raise ValueError(f"Expected at least timestamp and value columns, got {list(frame.columns)}")

    timestamps = frame.iloc[:, 0].astype(str).str.strip()
    values = pd.to_numeric(frame.iloc[:, 1], errors="coerce")
    if frame.shape[1] >= 3:
        labels = frame.iloc[:, 2].fillna("").astype(str).str.strip() == "1"
    else:
        labels = None

    invalid = values.isna()
    if invalid.any():
        for row in frame[invalid].itertuples(index=False):
            logger.warning("Skipping unparsable row", row=tuple(row))
        stats["parse_errors"] += int(invalid.sum())

    points = []
    for position in frame.index[~invalid]:
        points.append(
            DataPoint(
                timestamp=timestamps[position],
                value=float(values[position]),
                is_anomaly=bool(labels[position]) if labels is not None else None,
            )
        )
    stats["rows"] += len(frame)
    return points


def iter_csv(path: str | Path, chunksize: int = 10_000) -> Iterator[DataPoint]:
    """Stream DataPoints from a CSV file, chunk by chunk"""
    stats = {"rows": 0, "parse_errors": 0}
    try:
        reader = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            chunksize=chunksize,
        )
        with reader:
            for chunk in reader:
                yield from _frame_to_points(chunk, stats)
    except pd.errors.EmptyDataError:
        logger.warning("CSV file is empty", path=str(path))
        return

    logger.info(
        "CSV file consumed",
        path=str(path),
        rows=stats["rows"],
        parse_errors=stats["parse_errors"],
    )


def load_csv(path: str | Path) -> list[DataPoint]:
    """Load every valid DataPoint of a CSV file"""
    return list(iter_csv(path))
