"""
Tests for evaluation metrics and the replay driver.
"""

from unittest.mock import MagicMock

import pytest

from src.detector.controller import AdaptiveAnomalyDetector
from src.detector.evaluation import ConfusionMatrix, calculate_metrics
from src.detector.models import DataPoint
from src.detector.runner import DetectionRunner
from src.engine import DimensionMismatchError


def _points(values, spike_index=None):
    return [
        DataPoint(timestamp=f"t{i}", value=v, is_anomaly=(i == spike_index))
        for i, v in enumerate(values)
    ]


class TestEvaluation:
    """Tests for classification metrics."""

    def test_calculate_metrics(self):
        """Test accuracy, precision, recall and F1 on a known case."""
        predictions = [True, True, False, False, True]
        labels = [True, False, False, True, True]

        metrics = calculate_metrics(predictions, labels)

        assert metrics.accuracy == pytest.approx(0.6)
        assert metrics.precision == pytest.approx(2 / 3)
        assert metrics.recall == pytest.approx(2 / 3)
        assert metrics.f1_score == pytest.approx(2 / 3)
        assert metrics.support == 5

    def test_zero_division(self):
        """Test that empty denominators give 0.0 instead of raising."""
        metrics = calculate_metrics([False, False], [False, False])

        assert metrics.accuracy == 1.0
        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0

    def test_length_mismatch(self):
        """Test that unpaired sequences are rejected."""
        with pytest.raises(ValueError):
            calculate_metrics([True], [True, False])

    def test_incremental_updates(self):
        """Test that the confusion matrix counts each case."""
        matrix = ConfusionMatrix()
        for predicted, actual in [(True, True), (True, False), (False, True), (False, False)]:
            matrix.update(predicted, actual)

        assert (
            matrix.true_positives,
            matrix.false_positives,
            matrix.false_negatives,
            matrix.true_negatives,
        ) == (1, 1, 1, 1)


class TestDetectionRunner:
    """Tests for the replay driver."""

    def test_run_spike_stream(self, small_config, spike_stream):
        """Test a labelled run with one injected spike."""
        recorder = MagicMock()
        runner = DetectionRunner(AdaptiveAnomalyDetector(small_config), recorder)

        metrics = runner.run(_points(spike_stream, spike_index=30))

        assert runner.stats["warmup"] == small_config.train_size
        assert runner.stats["analyzed"] == len(spike_stream) - small_config.train_size
        assert runner.stats["anomalies_detected"] == 1
        assert metrics.recall == 1.0
        assert metrics.precision == 1.0
        assert recorder.record.call_count == runner.stats["analyzed"]
        recorder.close.assert_called_once()

    def test_rejected_observation_is_skipped(self, small_config):
        """Test that a failing observation is logged and the stream continues."""
        detector = MagicMock()
        detector.feed_observation.side_effect = [DimensionMismatchError("bad window"), None]
        runner = DetectionRunner(detector)

        runner.run(_points([1.0, 2.0]))

        assert runner.stats["skipped"] == 1
        assert runner.stats["warmup"] == 1
        assert runner.stats["total_consumed"] == 2

    def test_non_finite_value_skipped(self, small_config, constant_stream):
        """Test that NaN readings do not abort the run."""
        values = list(constant_stream)
        values[25] = float("nan")
        runner = DetectionRunner(AdaptiveAnomalyDetector(small_config))

        runner.run(_points(values))

        assert runner.stats["skipped"] == 1
        assert runner.stats["analyzed"] == len(values) - small_config.train_size - 1

    def test_unlabelled_run_returns_no_metrics(self, small_config, constant_stream):
        """Test that metrics are only computed for labelled points."""
        points = [DataPoint(timestamp=None, value=v) for v in constant_stream]
        runner = DetectionRunner(AdaptiveAnomalyDetector(small_config))

        assert runner.run(points) is None

    def test_stop(self, small_config, constant_stream):
        """Test that stop() ends the run between observations."""
        runner = DetectionRunner(AdaptiveAnomalyDetector(small_config))

        def points():
            for i, point in enumerate(_points(constant_stream)):
                if i == 5:
                    runner.stop()
                yield point

        runner.run(points())

        assert runner.stats["total_consumed"] == 5
