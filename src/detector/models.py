"""
Data models and configuration for the adaptive anomaly detector.
"""

import json
import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from src.engine import InvalidConfigurationError

ERROR_METRICS = ("absolute", "squared")


@dataclass
class DetectorConfig:
    """Hyperparameters of the streaming detector"""

    lookback_len: int = 3
    prediction_len: int = 1  # Streaming decisions use a one-step horizon
    hidden_size: int = 10
    num_layers: int = 1

    train_size: int = 200  # Observations buffered before warm-up training
    learning_rate: float = 0.005
    epoch_train: int = 300
    epoch_update: int = 3  # Adam steps per model per observation

    minimal_threshold: float = 0.01  # Normalized units, must be > 0
    value_lower_bound: float = -math.inf  # Raw units
    value_upper_bound: float = math.inf
    threshold_lower_bound: float = 0.0
    threshold_upper_bound: float = 1.0

    error_metric: str = "absolute"
    update_on_anomaly: bool = True
    replace_anomalies: bool = True
    normalization_epsilon: float = 1e-8
    seed: Optional[int] = None

    def validate(self) -> "DetectorConfig":
        """Check the configuration, raising InvalidConfigurationError on the first problem"""
        for name in ("lookback_len", "hidden_size", "num_layers", "train_size"):
            if getattr(self, name) <= 0:
                raise InvalidConfigurationError(f"{name} must be positive, got {getattr(self, name)}")

        if self.prediction_len != 1:
            raise InvalidConfigurationError(
                f"Only a one-step horizon is supported, got prediction_len={self.prediction_len}"
            )
        if self.epoch_train < 0 or self.epoch_update < 0:
            raise InvalidConfigurationError("epoch_train and epoch_update cannot be negative")
        if self.learning_rate <= 0:
            raise InvalidConfigurationError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.minimal_threshold <= 0:
            raise InvalidConfigurationError(
                f"minimal_threshold must be strictly positive, got {self.minimal_threshold}"
            )

        # Predictor windows over the buffer, then threshold windows over their errors
        min_train_size = 2 * self.lookback_len + self.prediction_len
        if self.train_size < min_train_size:
            raise InvalidConfigurationError(
                f"train_size must be at least {min_train_size} for lookback_len="
                f"{self.lookback_len}, got {self.train_size}"
            )

        if self.value_lower_bound >= self.value_upper_bound:
            raise InvalidConfigurationError(
                f"value bounds are inverted: [{self.value_lower_bound}, {self.value_upper_bound}]"
            )
        if self.threshold_lower_bound > self.threshold_upper_bound:
            raise InvalidConfigurationError(
                f"threshold bounds are inverted: "
                f"[{self.threshold_lower_bound}, {self.threshold_upper_bound}]"
            )
        if self.error_metric not in ERROR_METRICS:
            raise InvalidConfigurationError(
                f"Unknown error_metric '{self.error_metric}'. Available: {', '.join(ERROR_METRICS)}"
            )
        if self.normalization_epsilon <= 0:
            raise InvalidConfigurationError("normalization_epsilon must be positive")
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "DetectorConfig":
        """Create from dictionary, rejecting unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)


def load_config(path: str | Path) -> DetectorConfig:
    """Load a DetectorConfig from a JSON file"""
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigurationError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"{path} must contain a JSON object")
    return DetectorConfig.from_dict(data)


@dataclass
class StreamConfig:
    """Kafka source settings for the streaming driver"""

    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_topic: str = "sensor-readings"
    kafka_group_id: str = "adaptive-detector-group"
    kafka_auto_offset_reset: str = "earliest"
    max_poll_records: int = 500

    value_field: str = "value"
    timestamp_field: str = "timestamp"
    label_field: Optional[str] = "is_anomaly"

    stats_interval_seconds: float = 30.0


@dataclass(frozen=True)
class DataPoint:
    """One observation of the univariate stream"""

    timestamp: Optional[str]
    value: float
    is_anomaly: Optional[bool] = None  # Ground truth, when known


@dataclass
class DetectionResult:
    """Outcome of one processed observation"""

    index: int
    timestamp: Optional[str]
    raw_value: float
    normalized_value: float
    predicted_value: float  # Raw units
    predicted_normalized: float
    prediction_error: float  # Normalized units
    threshold: float  # Normalized units
    is_anomaly: bool
    out_of_range: bool

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return asdict(self)
