"""
Frozen z-score normalization statistics.
"""

from dataclasses import dataclass

import numpy as np

from src.engine import DimensionMismatchError


@dataclass(frozen=True)
class NormalizationStats:
    """Mean and epsilon-floored standard deviation of the warm-up buffer"""

    mean: float
    std: float

    @classmethod
    def from_values(cls, values, epsilon: float = 1e-8) -> "NormalizationStats":
        """Compute statistics once over the training buffer

        A zero-variance buffer yields std == epsilon, so normalization never divides by zero.
        """
        arr = np.asarray(values, dtype=np.float64)
        if arr.size == 0:
            raise DimensionMismatchError("Cannot compute normalization statistics of an empty buffer")
        return cls(mean=float(arr.mean()), std=float(arr.std()) + epsilon)

    def normalize(self, value):
        return (np.asarray(value, dtype=np.float64) - self.mean) / self.std

    def denormalize(self, value):
        return np.asarray(value, dtype=np.float64) * self.std + self.mean

    def to_dict(self) -> dict:
        return {"mean": self.mean, "std": self.std}
