"""
Base interface for recurrent forecasters.

A forecaster owns one LSTMNetwork and one AdamOptimizer. Subclasses only decide
how the raw network output is post-processed (and how the loss gradient flows
back through that post-processing):
- _transform(): raw output -> forecast
- _transform_gradient(): dL/d(forecast) -> dL/d(raw output)
"""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np
import structlog

from src.engine import (
    AdamOptimizer,
    DimensionMismatchError,
    InvalidConfigurationError,
    LSTMNetwork,
    OptimizerConfig,
    RecurrentState,
    clip_gradients,
)
from src.engine.linalg import clip, mse_loss, mse_loss_gradient

logger = structlog.get_logger(__name__)


class RecurrentForecaster(ABC):
    """Abstract base class for the value predictor and the threshold generator

    The recurrent state is carried across calls: forecast() and predict() read it,
    train_step() advances it. reset_state() is the only way back to zeros.
    """

    def __init__(
        self,
        lookback_len: int,
        hidden_size: int,
        num_layers: int = 1,
        output_size: int = 1,
        optimizer_config: OptimizerConfig | None = None,
        seed: int | None = None,
    ):
        if lookback_len <= 0:
            raise InvalidConfigurationError(f"lookback_len must be positive, got {lookback_len}")

        self.lookback_len = lookback_len
        self.network = LSTMNetwork(
            input_size=1,
            hidden_size=hidden_size,
            num_layers=num_layers,
            output_size=output_size,
            seed=seed,
        )
        self.optimizer = AdamOptimizer(optimizer_config)
        self.state = self.network.zero_state()

        logger.debug(
            "Forecaster initialized",
            role=self.role,
            lookback_len=lookback_len,
            hidden_size=hidden_size,
            num_layers=num_layers,
            output_size=output_size,
        )

    @property
    @abstractmethod
    def role(self) -> str:
        """Role name used by the forecaster registry"""
        pass

    @abstractmethod
    def _transform(self, raw_output: np.ndarray) -> np.ndarray:
        """Map the raw network output to the forecast"""
        pass

    @abstractmethod
    def _transform_gradient(self, forecast: np.ndarray, d_forecast: np.ndarray) -> np.ndarray:
        """Chain dL/d(forecast) back to dL/d(raw output)"""
        pass

    @property
    def output_size(self) -> int:
        return self.network.output_size

    def reset_state(self) -> None:
        self.state = self.network.zero_state()

    def forecast(self, window, state: RecurrentState | None = None) -> np.ndarray:
        """Forecast from a window without touching the carried state

        Args:
            window: Sequence of exactly lookback_len values
            state: State to start from (defaults to the carried state)
        """
        x = self._prepare_window(window)
        network_pass = self.network.forward(x, state if state is not None else self.state)
        return self._transform(network_pass.output)

    def predict(self, window) -> float:
        """First forecast component from the carried state"""
        return float(self.forecast(window)[0])

    def train_step(self, window, target, learning_rate: float) -> float:
        """One forward + backward + Adam update on a single (window, target) pair

        Returns:
            The MSE loss before the update
        """
        x = self._prepare_window(window)
        y = self._prepare_target(target)

        network_pass = self.network.forward(x, self.state)
        forecast = self._transform(network_pass.output)
        loss = mse_loss(forecast, y)

        clip_value = self.optimizer.config.clip_value
        d_raw = self._transform_gradient(forecast, mse_loss_gradient(forecast, y))
        d_raw = clip(d_raw, clip_value)
        grads = clip_gradients(self.network.backward(network_pass, d_raw), clip_value)

        params = self.network.parameters()
        if not self.optimizer.is_initialized:
            self.optimizer.initialize(params)
        self.optimizer.update(params, grads, learning_rate)

        self.state = network_pass.state
        return loss

    def train_epochs(
        self, dataset: tuple[np.ndarray, np.ndarray], epochs: int, learning_rate: float
    ) -> list[float]:
        """Offline warm-up over (windows, targets) for a number of epochs

        Returns:
            Mean loss of every epoch
        """
        windows, targets = dataset
        if len(windows) != len(targets):
            raise DimensionMismatchError(
                f"Got {len(windows)} windows but {len(targets)} targets"
            )
        if len(windows) == 0:
            raise DimensionMismatchError("Cannot train on an empty dataset")

        history = []
        for epoch in range(epochs):
            losses = [
                self.train_step(window, target, learning_rate)
                for window, target in zip(windows, targets)
            ]
            history.append(float(np.mean(losses)))
            logger.debug("Epoch completed", role=self.role, epoch=epoch + 1, loss=history[-1])

        if history:
            logger.info(
                "Warm-up training completed",
                role=self.role,
                epochs=epochs,
                samples=len(windows),
                first_loss=round(history[0], 6),
                final_loss=round(history[-1], 6),
            )
        return history

    def get_parameters(self) -> dict[str, np.ndarray]:
        """Copies of every parameter tensor"""
        return {name: tensor.copy() for name, tensor in self.network.parameters().items()}

    def load_parameters(self, parameters: dict[str, np.ndarray]) -> None:
        """Overwrite parameters in place, validating names and shapes"""
        current = self.network.parameters()
        if set(parameters) != set(current):
            raise DimensionMismatchError(
                f"Parameter names differ: {sorted(set(parameters) ^ set(current))}"
            )
        for name, tensor in parameters.items():
            value = np.asarray(tensor, dtype=np.float64)
            if value.shape != current[name].shape:
                raise DimensionMismatchError(
                    f"{name}: expected shape {current[name].shape}, got {value.shape}"
                )
            current[name][...] = value

    def get_config(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "lookback_len": self.lookback_len,
            "hidden_size": self.network.hidden_size,
            "num_layers": self.network.num_layers,
            "output_size": self.output_size,
        }

    def _prepare_window(self, window) -> np.ndarray:
        x = np.asarray(window, dtype=np.float64)
        if x.ndim != 1 or x.shape[0] != self.lookback_len:
            raise DimensionMismatchError(
                f"{self.role}: expected a window of {self.lookback_len} values, got shape {x.shape}"
            )
        return x

    def _prepare_target(self, target) -> np.ndarray:
        y = np.atleast_1d(np.asarray(target, dtype=np.float64))
        if y.ndim != 1 or y.shape[0] != self.output_size:
            raise DimensionMismatchError(
                f"{self.role}: expected a target of {self.output_size} values, got shape {y.shape}"
            )
        return y

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(config={self.get_config()})"
