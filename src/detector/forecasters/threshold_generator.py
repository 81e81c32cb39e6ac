"""
Threshold generator: forecasts an adaptive anomaly bound from recent prediction errors.

The network output is squashed through a sigmoid, so the loss is measured on the
squashed value and the gradient flows back through s*(1-s). The squashed value
is then clamped to the application range and floored at the minimal threshold.
"""

from typing import Any

import numpy as np
import structlog

from src.engine import DimensionMismatchError, InvalidConfigurationError
from src.engine.linalg import sigmoid, sigmoid_derivative

from .base import RecurrentForecaster

logger = structlog.get_logger(__name__)


class ThresholdGenerator(RecurrentForecaster):
    """Recurrent forecaster producing bounded thresholds

    Args:
        lower_bound: Smallest threshold the generator may emit
        upper_bound: Largest threshold the generator may emit (application ceiling)
        **kwargs: Forwarded to RecurrentForecaster
    """

    def __init__(self, *args, lower_bound: float = 0.0, upper_bound: float = 1.0, **kwargs):
        if lower_bound > upper_bound:
            raise InvalidConfigurationError(
                f"Threshold bounds are inverted: lower={lower_bound} > upper={upper_bound}"
            )
        self.lower_bound = lower_bound
        self.upper_bound = upper_bound
        super().__init__(*args, **kwargs)

    @property
    def role(self) -> str:
        return "threshold"

    def _transform(self, raw_output: np.ndarray) -> np.ndarray:
        return sigmoid(raw_output)

    def _transform_gradient(self, forecast: np.ndarray, d_forecast: np.ndarray) -> np.ndarray:
        return d_forecast * sigmoid_derivative(forecast)

    def generate(self, errors, minimal_threshold: float) -> float:
        """Threshold for the next observation

        Args:
            errors: The lookback_len most recent prediction errors
            minimal_threshold: Floor applied after clamping

        Returns:
            max(minimal_threshold, clamp(forecast, lower_bound, upper_bound))
        """
        threshold = float(np.clip(self.predict(errors), self.lower_bound, self.upper_bound))
        return max(minimal_threshold, threshold)

    def generate_thresholds(self, windows) -> np.ndarray:
        """Batch helper: one clamped threshold per error window, from the carried state"""
        windows = np.asarray(windows, dtype=np.float64)
        if windows.ndim != 2:
            raise DimensionMismatchError(
                f"Expected a 2-D array of error windows, got shape {windows.shape}"
            )

        thresholds = np.array([self.forecast(window)[0] for window in windows])
        logger.debug("Thresholds generated", count=len(thresholds))
        return np.clip(thresholds, self.lower_bound, self.upper_bound)

    def get_config(self) -> dict[str, Any]:
        config = super().get_config()
        config.update({"lower_bound": self.lower_bound, "upper_bound": self.upper_bound})
        return config
