"""
Adam optimizer with gradient clipping.

The update applies the clipped raw gradient as an extra multiplicative factor
on top of the usual Adam ratio:

    θ -= α_t · m̂ / (sqrt(v̂) + ε) · clip(g)

This double damping is kept for parity with previously published detection
results. It makes the direction of each step independent of the gradient sign
once the moments agree with it, so `scale_by_clipped_gradient=False` is
available for the textbook rule.
"""

import math
from dataclasses import dataclass

import numpy as np
import structlog

from .errors import DimensionMismatchError, InvalidConfigurationError, UninitializedOptimizerError
from .linalg import clip

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OptimizerConfig:
    """Constants of the Adam update rule"""

    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8
    clip_value: float = 5.0  # Bound applied to every gradient component
    scale_by_clipped_gradient: bool = True  # Compatibility quirk, see module docstring

    def __post_init__(self):
        if not 0.0 <= self.beta1 < 1.0 or not 0.0 <= self.beta2 < 1.0:
            raise InvalidConfigurationError(
                f"Adam betas must be in [0, 1), got {self.beta1} and {self.beta2}"
            )
        if self.epsilon <= 0:
            raise InvalidConfigurationError(f"epsilon must be positive, got {self.epsilon}")
        if self.clip_value <= 0:
            raise InvalidConfigurationError(f"clip_value must be positive, got {self.clip_value}")


def clip_gradients(gradients: dict[str, np.ndarray], clip_value: float) -> dict[str, np.ndarray]:
    """Clamp every gradient component to [-clip_value, clip_value]"""
    return {name: clip(grad, clip_value) for name, grad in gradients.items()}


class AdamOptimizer:
    """Per-parameter Adam state scoped to a single model instance"""

    def __init__(self, config: OptimizerConfig | None = None):
        self.config = config or OptimizerConfig()
        self.t = 0
        self._m: dict[str, np.ndarray] | None = None
        self._v: dict[str, np.ndarray] | None = None

    @property
    def is_initialized(self) -> bool:
        return self._m is not None

    def initialize(self, parameters: dict[str, np.ndarray]) -> None:
        """Allocate zeroed moment accumulators matching the parameter shapes

        Calling it again resets the accumulators and the step counter.
        """
        self._m = {name: np.zeros_like(param) for name, param in parameters.items()}
        self._v = {name: np.zeros_like(param) for name, param in parameters.items()}
        self.t = 0

        logger.debug(
            "Adam state allocated",
            tensors=len(self._m),
            elements=sum(m.size for m in self._m.values()),
        )

    def moments(self, name: str) -> tuple[np.ndarray, np.ndarray]:
        """First and second moment accumulators of one parameter tensor"""
        if not self.is_initialized:
            raise UninitializedOptimizerError("Optimizer state has not been allocated")
        return self._m[name], self._v[name]

    def update(
        self,
        parameters: dict[str, np.ndarray],
        gradients: dict[str, np.ndarray],
        learning_rate: float,
    ) -> None:
        """Apply one Adam step in place

        Args:
            parameters: Live parameter tensors, modified in place
            gradients: Gradients keyed like parameters
            learning_rate: Base step size

        Raises:
            UninitializedOptimizerError: If initialize() was never called
            DimensionMismatchError: If names or shapes disagree with the state
        """
        if not self.is_initialized:
            raise UninitializedOptimizerError(
                "Optimizer update requested before initialize() allocated its state"
            )
        self._check_shapes(parameters, gradients)

        cfg = self.config
        self.t += 1
        bias_correction1 = 1.0 - cfg.beta1**self.t
        bias_correction2 = 1.0 - cfg.beta2**self.t
        alpha_t = learning_rate * math.sqrt(bias_correction2) / bias_correction1

        for name, param in parameters.items():
            grad = gradients[name]
            m = self._m[name]
            v = self._v[name]

            m *= cfg.beta1
            m += (1.0 - cfg.beta1) * grad
            v *= cfg.beta2
            v += (1.0 - cfg.beta2) * grad * grad

            m_hat = m / bias_correction1
            v_hat = v / bias_correction2
            step = alpha_t * m_hat / (np.sqrt(v_hat) + cfg.epsilon)
            if cfg.scale_by_clipped_gradient:
                step = step * clip(grad, cfg.clip_value)

            param -= step

    def _check_shapes(
        self, parameters: dict[str, np.ndarray], gradients: dict[str, np.ndarray]
    ) -> None:
        if set(parameters) != set(self._m) or set(gradients) != set(self._m):
            raise DimensionMismatchError(
                "Parameter/gradient names do not match the optimizer state: "
                f"{sorted(set(parameters) ^ set(self._m) | set(gradients) ^ set(self._m))}"
            )
        for name, param in parameters.items():
            expected = self._m[name].shape
            if param.shape != expected or gradients[name].shape != expected:
                raise DimensionMismatchError(
                    f"{name}: expected shape {expected}, got parameter {param.shape} "
                    f"and gradient {gradients[name].shape}"
                )
