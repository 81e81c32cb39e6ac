"""
Per-observation result file.

Results are buffered and appended to a CSV file in batches; the header is
written with the first batch.
"""

from pathlib import Path

import pandas as pd
import structlog

from .models import DataPoint, DetectionResult

logger = structlog.get_logger(__name__)

COLUMNS = [
    "index",
    "timestamp",
    "raw_value",
    "normalized_value",
    "predicted_value",
    "predicted_normalized",
    "prediction_error",
    "threshold",
    "is_anomaly",
    "out_of_range",
    "label",
]


class ResultRecorder:
    """Batched CSV sink for DetectionResults"""

    def __init__(self, path: str | Path, batch_size: int = 100):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.path = Path(path)
        self.batch_size = batch_size
        self.batch: list[dict] = []
        self.rows_written = 0
        self._header_written = False

        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Result recorder initialized", path=str(self.path), batch_size=batch_size)

    def record(self, result: DetectionResult, point: DataPoint | None = None) -> None:
        row = result.to_dict()
        row["label"] = point.is_anomaly if point is not None else None
        self.batch.append(row)
        if len(self.batch) >= self.batch_size:
            self.flush()

    def __call__(self, result: DetectionResult) -> None:
        self.record(result)

    def flush(self) -> int:
        """Append buffered rows to the file

        Returns:
            Number of rows written
        """
        if not self.batch:
            return 0

        frame = pd.DataFrame(self.batch, columns=COLUMNS)
        frame.to_csv(
            self.path,
            mode="a" if self._header_written else "w",
            header=not self._header_written,
            index=False,
        )
        self._header_written = True

        written = len(self.batch)
        self.rows_written += written
        self.batch.clear()
        logger.debug("Results flushed", rows=written, total=self.rows_written)
        return written

    def close(self) -> None:
        self.flush()
        logger.info("Result recorder closed", path=str(self.path), rows_written=self.rows_written)

    def __enter__(self) -> "ResultRecorder":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
