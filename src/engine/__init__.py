"""
Numeric learning engine: linear-algebra primitives, LSTM with manual BPTT, Adam.
"""

from .errors import (
    DimensionMismatchError,
    EngineError,
    InvalidConfigurationError,
    UninitializedOptimizerError,
)
from .lstm import GATES, LSTMCell, LSTMNetwork, RecurrentState
from .optimizer import AdamOptimizer, OptimizerConfig, clip_gradients

__all__ = [
    "GATES",
    "AdamOptimizer",
    "DimensionMismatchError",
    "EngineError",
    "InvalidConfigurationError",
    "LSTMCell",
    "LSTMNetwork",
    "OptimizerConfig",
    "RecurrentState",
    "UninitializedOptimizerError",
    "clip_gradients",
]
