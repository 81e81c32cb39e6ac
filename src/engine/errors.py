"""
Error kinds raised by the learning engine and the streaming detector.
"""


class EngineError(Exception):
    """Base class for all engine failures"""


class DimensionMismatchError(EngineError, ValueError):
    """A window, target or parameter tensor has the wrong shape"""


class UninitializedOptimizerError(EngineError, RuntimeError):
    """An optimizer update was requested before its state was allocated"""


class InvalidConfigurationError(EngineError, ValueError):
    """Hyperparameters or bounds are unusable"""
