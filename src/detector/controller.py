"""
Streaming controller: warm-up, anomaly decision and per-sample online adaptation.

Lifecycle:
- WARMUP: observations are buffered until train_size is reached
- TRAINED: every observation is normalized, predicted, compared against the
  generated threshold, then both models take epoch_update Adam steps on it
"""

import math
from collections import deque
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

import numpy as np
import structlog

from src.engine import DimensionMismatchError, OptimizerConfig
from src.engine.linalg import create_sliding_windows

from .forecasters import ThresholdGenerator, ValuePredictor, get_forecaster
from .models import DetectionResult, DetectorConfig
from .normalizer import NormalizationStats

logger = structlog.get_logger(__name__)


class DetectorState(Enum):
    """Lifecycle states of the detector"""

    WARMUP = "warmup"
    TRAINED = "trained"


class AdaptiveAnomalyDetector:
    """Online anomaly detector combining a value predictor and a threshold generator

    Args:
        config: Detector hyperparameters (validated on construction)
        optimizer_config: Adam constants shared by both models
        sink: Optional callable receiving every DetectionResult
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        optimizer_config: OptimizerConfig | None = None,
        sink: Callable[[DetectionResult], Any] | None = None,
    ):
        self.config = (config or DetectorConfig()).validate()
        cfg = self.config

        self.predictor: ValuePredictor = get_forecaster(
            "predictor",
            lookback_len=cfg.lookback_len,
            hidden_size=cfg.hidden_size,
            num_layers=cfg.num_layers,
            output_size=cfg.prediction_len,
            optimizer_config=optimizer_config,
            seed=cfg.seed,
        )
        self.generator: ThresholdGenerator = get_forecaster(
            "threshold",
            lookback_len=cfg.lookback_len,
            hidden_size=cfg.hidden_size,
            num_layers=cfg.num_layers,
            output_size=1,
            optimizer_config=optimizer_config,
            seed=None if cfg.seed is None else cfg.seed + 1,
            lower_bound=cfg.threshold_lower_bound,
            upper_bound=cfg.threshold_upper_bound,
        )

        self.sink = sink
        self.state = DetectorState.WARMUP
        self.normalization: NormalizationStats | None = None

        self._buffer: list[float] = []
        self._observations: deque[float] = deque(maxlen=cfg.lookback_len)
        self._errors: deque[float] = deque(maxlen=cfg.lookback_len)
        self._index = 0
        self._stop_requested = False

        self.stats = {
            "observations": 0,
            "processed": 0,
            "anomalies_detected": 0,
            "out_of_range": 0,
            "updates_skipped": 0,
        }

        logger.info(
            "Detector initialized",
            lookback_len=cfg.lookback_len,
            hidden_size=cfg.hidden_size,
            num_layers=cfg.num_layers,
            train_size=cfg.train_size,
            error_metric=cfg.error_metric,
            update_on_anomaly=cfg.update_on_anomaly,
        )

    @property
    def is_trained(self) -> bool:
        return self.state is DetectorState.TRAINED

    @property
    def observation_window(self) -> np.ndarray:
        """Copy of the trailing normalized observations"""
        return np.array(self._observations)

    @property
    def error_window(self) -> np.ndarray:
        """Copy of the trailing prediction errors"""
        return np.array(self._errors)

    def stop(self) -> None:
        """Ask run() to return before the next observation"""
        self._stop_requested = True

    def run(self, values: Iterable[float]) -> list[DetectionResult]:
        """Feed a stream of values, checking the stop flag before each one"""
        self._stop_requested = False
        results = []
        for value in values:
            if self._stop_requested:
                logger.info("Stop requested, leaving stream", observations=self.stats["observations"])
                break
            result = self.feed_observation(value)
            if result is not None:
                results.append(result)
        return results

    def feed_observation(self, value: float, timestamp: str | None = None) -> DetectionResult | None:
        """Process one raw observation

        Returns:
            DetectionResult once trained, None while warming up

        Raises:
            ValueError: If the value is not a finite number
        """
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Observation must be a finite number, got {value}")

        index = self._index
        self._index += 1
        self.stats["observations"] += 1

        if self.state is DetectorState.WARMUP:
            self._buffer.append(value)
            if len(self._buffer) % max(1, self.config.train_size // 10) == 0:
                logger.debug(
                    "Gathering training data",
                    collected=len(self._buffer),
                    train_size=self.config.train_size,
                )
            if len(self._buffer) >= self.config.train_size:
                self.train_initial(self._buffer)
            return None

        return self._detect(index, value, timestamp)

    def train_initial(self, buffered_values) -> None:
        """Fit normalization and both models on the warm-up buffer (fires once)

        Raises:
            RuntimeError: If the detector is already trained
            DimensionMismatchError: If the buffer is too short for the configured windows
        """
        if self.is_trained:
            raise RuntimeError("Detector is already trained")

        cfg = self.config
        values = np.asarray(buffered_values, dtype=np.float64)
        if values.ndim != 1 or len(values) < 2 * cfg.lookback_len + cfg.prediction_len:
            raise DimensionMismatchError(
                f"Warm-up needs at least {2 * cfg.lookback_len + cfg.prediction_len} values, "
                f"got shape {values.shape}"
            )

        logger.info("Starting warm-up training", samples=len(values), epochs=cfg.epoch_train)

        self.normalization = NormalizationStats.from_values(values, cfg.normalization_epsilon)
        normalized = self.normalization.normalize(values)

        windows, targets = create_sliding_windows(normalized, cfg.lookback_len, cfg.prediction_len)
        self.predictor.train_epochs((windows, targets), cfg.epoch_train, cfg.learning_rate)

        errors = np.array(
            [
                self._prediction_error(target[0], self.predictor.predict(window))
                for window, target in zip(windows, targets)
            ]
        )

        error_windows, error_targets = create_sliding_windows(errors, cfg.lookback_len)
        self.generator.train_epochs((error_windows, error_targets), cfg.epoch_train, cfg.learning_rate)

        self._observations.extend(normalized[-cfg.lookback_len :])
        self._errors.extend(errors[-cfg.lookback_len :])
        self._buffer = []
        self.state = DetectorState.TRAINED

        logger.info(
            "Warm-up training completed",
            mean=round(self.normalization.mean, 6),
            std=round(self.normalization.std, 6),
            mean_training_error=round(float(errors.mean()), 6),
        )

    def _detect(self, index: int, value: float, timestamp: str | None) -> DetectionResult:
        cfg = self.config

        normalized = float(self.normalization.normalize(value))
        window = self.observation_window
        error_window = self.error_window

        predicted_normalized = self.predictor.predict(window)
        error = self._prediction_error(normalized, predicted_normalized)
        threshold = self.generator.generate(error_window, cfg.minimal_threshold)

        out_of_range = not cfg.value_lower_bound <= value <= cfg.value_upper_bound
        is_anomaly = out_of_range or error > threshold

        # A replaced anomaly is also what the predictor learns from
        accepted = predicted_normalized if is_anomaly and cfg.replace_anomalies else normalized

        if cfg.update_on_anomaly or not is_anomaly:
            for _ in range(cfg.epoch_update):
                self.predictor.train_step(window, [accepted], cfg.learning_rate)
                self.generator.train_step(error_window, [error], cfg.learning_rate)
        else:
            self.stats["updates_skipped"] += 1

        self._observations.append(accepted)
        self._errors.append(error)

        result = DetectionResult(
            index=index,
            timestamp=timestamp,
            raw_value=value,
            normalized_value=normalized,
            predicted_value=float(self.normalization.denormalize(predicted_normalized)),
            predicted_normalized=predicted_normalized,
            prediction_error=error,
            threshold=threshold,
            is_anomaly=is_anomaly,
            out_of_range=out_of_range,
        )

        self.stats["processed"] += 1
        if out_of_range:
            self.stats["out_of_range"] += 1
        if is_anomaly:
            self.stats["anomalies_detected"] += 1
            logger.info(
                "Anomaly detected",
                index=index,
                timestamp=timestamp,
                value=round(value, 4),
                predicted=round(result.predicted_value, 4),
                error=round(error, 6),
                threshold=round(threshold, 6),
                out_of_range=out_of_range,
            )
        else:
            logger.debug(
                "Observation processed",
                index=index,
                value=value,
                predicted=result.predicted_value,
                error=error,
                threshold=threshold,
            )

        if self.sink is not None:
            self.sink(result)
        return result

    def _prediction_error(self, actual: float, predicted: float) -> float:
        diff = float(actual) - float(predicted)
        if self.config.error_metric == "squared":
            return diff * diff
        return abs(diff)

    def get_parameters(self) -> dict[str, dict[str, np.ndarray]]:
        """Copies of both models' parameters, keyed by role"""
        return {
            self.predictor.role: self.predictor.get_parameters(),
            self.generator.role: self.generator.get_parameters(),
        }
