"""
Recurrent forecasters registry and factory.
"""

from .base import RecurrentForecaster
from .threshold_generator import ThresholdGenerator
from .value_predictor import ValuePredictor

# Registry of available forecaster roles
FORECASTER_REGISTRY = {
    "predictor": ValuePredictor,
    "threshold": ThresholdGenerator,
}


def get_forecaster(role: str, **kwargs) -> RecurrentForecaster:
    """Factory to create a forecaster for a role

    Args:
        role: Name of the role ('predictor' or 'threshold')
        **kwargs: Constructor arguments of the forecaster class

    Returns:
        Instance of the forecaster

    Raises:
        ValueError: If role is not registered
    """
    if role not in FORECASTER_REGISTRY:
        available = ", ".join(FORECASTER_REGISTRY.keys())
        raise ValueError(f"Unknown forecaster role '{role}'. Available roles: {available}")

    forecaster_class = FORECASTER_REGISTRY[role]
    return forecaster_class(**kwargs)


def list_roles() -> list[str]:
    """List all available forecaster roles"""
    return list(FORECASTER_REGISTRY.keys())


__all__ = [
    "FORECASTER_REGISTRY",
    "RecurrentForecaster",
    "ThresholdGenerator",
    "ValuePredictor",
    "get_forecaster",
    "list_roles",
]
