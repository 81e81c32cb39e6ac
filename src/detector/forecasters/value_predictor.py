"""
Value predictor: forecasts the next normalized observation from a lookback window.
"""

import numpy as np

from .base import RecurrentForecaster


class ValuePredictor(RecurrentForecaster):
    """Recurrent forecaster returning the raw network output"""

    @property
    def role(self) -> str:
        return "predictor"

    def _transform(self, raw_output: np.ndarray) -> np.ndarray:
        return raw_output

    def _transform_gradient(self, forecast: np.ndarray, d_forecast: np.ndarray) -> np.ndarray:
        return d_forecast
