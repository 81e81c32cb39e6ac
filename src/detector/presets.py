"""
Predefined detector configurations for different data regimes.
"""

from .models import DetectorConfig

# Sensor streams with a few hundred warm-up samples
DEFAULT_CONFIG = DetectorConfig()


# Noisy streams: longer context, more hidden units, higher floor
NOISY_CONFIG = DetectorConfig(
    lookback_len=10,
    hidden_size=20,
    train_size=500,
    minimal_threshold=0.1,
)


# Slow drift: flagged points still adapt the models and enter the window as observed
DRIFT_CONFIG = DetectorConfig(
    lookback_len=5,
    train_size=300,
    epoch_update=5,
    replace_anomalies=False,
)


# Conservative: only learn from points judged normal
CONSERVATIVE_CONFIG = DetectorConfig(
    update_on_anomaly=False,
    minimal_threshold=0.05,
)


# Development/Testing (fast and small)
DEV_CONFIG = DetectorConfig(
    lookback_len=3, hidden_size=4, train_size=30, epoch_train=20, epoch_update=1, seed=42
)


PRESETS = {
    "default": DEFAULT_CONFIG,
    "noisy": NOISY_CONFIG,
    "drift": DRIFT_CONFIG,
    "conservative": CONSERVATIVE_CONFIG,
    "dev": DEV_CONFIG,
}
