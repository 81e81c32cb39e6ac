"""
Pytest configuration and shared fixtures.
"""

import numpy as np
import pytest

from src.detector.models import DetectorConfig, StreamConfig
from src.engine import OptimizerConfig


# Engine fixtures
@pytest.fixture
def rng():
    """Deterministic random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def standard_adam():
    """Textbook Adam update (no gradient scaling)."""
    return OptimizerConfig(scale_by_clipped_gradient=False)


# Detector fixtures
@pytest.fixture
def small_config():
    """Small detector configuration for fast end-to-end tests."""
    return DetectorConfig(
        lookback_len=5,
        train_size=20,
        hidden_size=4,
        learning_rate=0.005,
        epoch_train=10,
        epoch_update=1,
        minimal_threshold=0.25,
        seed=7,
    )


@pytest.fixture
def constant_stream():
    """50 samples of a constant value."""
    return [10.0] * 50


@pytest.fixture
def spike_stream():
    """Constant stream of 40 samples with one spike at index 30."""
    values = [10.0] * 40
    values[30] = 20.0
    return values


# Consumer fixtures
@pytest.fixture
def stream_config():
    """Kafka stream configuration for testing."""
    return StreamConfig(
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic="test-topic",
        kafka_group_id="test-group",
        stats_interval_seconds=1000.0,
    )
