"""
Adaptive Anomaly Detection

Streaming, self-learning anomaly detection for univariate sensor series.

Architecture:
- Warm-up: buffers the first train_size observations, fits normalization and
  trains both recurrent models offline
- Detection: predicts each observation, compares the error against a learned threshold
- Online adaptation: both models take a few Adam steps on every new observation

Usage:
    # Replay a CSV file
    python -m src.detector.detect --input data.csv

    # Consume a Kafka topic
    python -m src.detector.detect --kafka
"""

from .controller import AdaptiveAnomalyDetector, DetectorState
from .models import DataPoint, DetectionResult, DetectorConfig, StreamConfig, load_config
from .normalizer import NormalizationStats
from .runner import DetectionRunner

__all__ = [
    "AdaptiveAnomalyDetector",
    "DataPoint",
    "DetectionResult",
    "DetectionRunner",
    "DetectorConfig",
    "DetectorState",
    "NormalizationStats",
    "StreamConfig",
    "load_config",
]
