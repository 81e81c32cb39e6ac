"""
Tests for the value predictor and the threshold generator.
"""

import numpy as np
import pytest

from src.detector.forecasters import (
    ThresholdGenerator,
    ValuePredictor,
    get_forecaster,
    list_roles,
)
from src.engine import DimensionMismatchError, InvalidConfigurationError
from src.engine.linalg import create_sliding_windows


class TestRegistry:
    """Tests for the forecaster factory."""

    def test_roles(self):
        """Test that both roles are registered."""
        assert list_roles() == ["predictor", "threshold"]

    def test_get_forecaster(self):
        """Test that the factory builds the role's class."""
        predictor = get_forecaster("predictor", lookback_len=3, hidden_size=4, seed=0)
        generator = get_forecaster("threshold", lookback_len=3, hidden_size=4, seed=0)

        assert isinstance(predictor, ValuePredictor)
        assert isinstance(generator, ThresholdGenerator)

    def test_unknown_role(self):
        """Test that unknown roles are rejected with the available list."""
        with pytest.raises(ValueError, match="Available roles"):
            get_forecaster("autoencoder", lookback_len=3, hidden_size=4)


class TestValuePredictor:
    """Tests for the value predictor."""

    def test_untrained_predicts_zero(self):
        """Test that an untrained predictor forecasts the normalized mean."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)

        assert predictor.predict([0.5, -0.1, 0.3]) == 0.0

    @pytest.mark.parametrize("window", [[0.1, 0.2], [0.1, 0.2, 0.3, 0.4], [[0.1, 0.2, 0.3]]])
    def test_window_size_mismatch(self, window):
        """Test that windows of the wrong shape are rejected."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)

        with pytest.raises(DimensionMismatchError):
            predictor.predict(window)

    def test_target_size_mismatch(self):
        """Test that targets must match the output size."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)

        with pytest.raises(DimensionMismatchError):
            predictor.train_step([0.1, 0.2, 0.3], [1.0, 2.0], 0.01)

    def test_invalid_lookback(self):
        """Test that a non-positive lookback is a configuration error."""
        with pytest.raises(InvalidConfigurationError):
            ValuePredictor(lookback_len=0, hidden_size=4)

    def test_predict_does_not_commit_state(self):
        """Test that predict() leaves the carried state untouched."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)
        state = predictor.state

        predictor.predict([0.1, 0.2, 0.3])

        assert predictor.state is state

    def test_train_step_commits_state_and_allocates_optimizer(self):
        """Test that training advances the state and lazily initializes Adam."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)
        assert not predictor.optimizer.is_initialized

        loss = predictor.train_step([0.1, 0.2, 0.3], [0.4], 0.01)

        assert loss == pytest.approx(0.16)
        assert predictor.optimizer.is_initialized
        assert predictor.optimizer.t == 1
        assert np.any(predictor.state.hidden[0])

    def test_reset_state(self):
        """Test that reset_state returns to zeros."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)
        predictor.train_step([0.1, 0.2, 0.3], [0.4], 0.01)

        predictor.reset_state()

        assert not np.any(predictor.state.hidden[0])
        assert not np.any(predictor.state.cell[0])

    def test_train_epochs_reduces_loss(self, standard_adam):
        """Test that offline warm-up learns a sine wave."""
        series = np.sin(np.linspace(0, 6 * np.pi, 80))
        dataset = create_sliding_windows(series, 5)
        predictor = ValuePredictor(
            lookback_len=5, hidden_size=8, optimizer_config=standard_adam, seed=3
        )

        history = predictor.train_epochs(dataset, epochs=30, learning_rate=0.01)

        assert len(history) == 30
        assert history[-1] < history[0] * 0.5

    def test_train_epochs_rejects_misaligned_dataset(self):
        """Test that window and target counts must agree."""
        predictor = ValuePredictor(lookback_len=3, hidden_size=4, seed=0)

        with pytest.raises(DimensionMismatchError):
            predictor.train_epochs((np.zeros((4, 3)), np.zeros((3, 1))), epochs=1, learning_rate=0.01)

    def test_parameter_accessors(self):
        """Test that get_parameters copies and load_parameters validates."""
        source = ValuePredictor(lookback_len=3, hidden_size=4, seed=1)
        target = ValuePredictor(lookback_len=3, hidden_size=4, seed=2)

        params = source.get_parameters()
        params["head.bias_out"][0] = 0.75
        assert source.network.head["bias_out"][0] == 0.0

        target.load_parameters(params)
        assert target.predict([0.0, 0.0, 0.0]) == pytest.approx(0.75)

        params["head.bias_out"] = np.zeros(2)
        with pytest.raises(DimensionMismatchError):
            target.load_parameters(params)


class TestThresholdGenerator:
    """Tests for the threshold generator."""

    def test_untrained_generates_midpoint(self):
        """Test that the sigmoid of a zero output is 0.5."""
        generator = ThresholdGenerator(lookback_len=3, hidden_size=4, seed=0)

        assert generator.generate([0.1, 0.2, 0.3], minimal_threshold=0.01) == pytest.approx(0.5)

    def test_minimal_threshold_floor(self):
        """Test that the threshold is never below the floor."""
        generator = ThresholdGenerator(lookback_len=3, hidden_size=4, seed=0)

        assert generator.generate([0.1, 0.2, 0.3], minimal_threshold=0.8) == 0.8

    def test_upper_bound_ceiling(self):
        """Test that the application ceiling clamps the forecast."""
        generator = ThresholdGenerator(lookback_len=3, hidden_size=4, upper_bound=0.3, seed=0)

        assert generator.generate([0.1, 0.2, 0.3], minimal_threshold=0.01) == 0.3

    def test_inverted_bounds(self):
        """Test that lower > upper is a configuration error."""
        with pytest.raises(InvalidConfigurationError):
            ThresholdGenerator(lookback_len=3, hidden_size=4, lower_bound=0.8, upper_bound=0.2)

    def test_learns_error_level(self, standard_adam):
        """Test that training pulls the threshold toward the observed errors."""
        generator = ThresholdGenerator(
            lookback_len=3, hidden_size=4, optimizer_config=standard_adam, seed=0
        )
        errors = np.full(30, 0.1)
        dataset = create_sliding_windows(errors, 3)

        generator.train_epochs(dataset, epochs=40, learning_rate=0.01)

        assert generator.generate([0.1, 0.1, 0.1], minimal_threshold=0.01) < 0.4

    def test_generate_thresholds_batch(self):
        """Test one clamped threshold per window."""
        generator = ThresholdGenerator(lookback_len=3, hidden_size=4, upper_bound=0.4, seed=0)

        thresholds = generator.generate_thresholds(np.zeros((5, 3)))

        assert thresholds.shape == (5,)
        np.testing.assert_allclose(thresholds, 0.4)

    @pytest.mark.parametrize("windows", [np.zeros(6), np.zeros((2, 3, 1))])
    def test_generate_thresholds_rejects_non_matrix(self, windows):
        """Test that a batch must be a 2-D array of windows, never reshaped."""
        generator = ThresholdGenerator(lookback_len=3, hidden_size=4, seed=0)

        with pytest.raises(DimensionMismatchError):
            generator.generate_thresholds(windows)

    def test_generate_thresholds_rejects_wrong_window_length(self):
        """Test that each window must hold lookback_len errors."""
        generator = ThresholdGenerator(lookback_len=3, hidden_size=4, seed=0)

        with pytest.raises(DimensionMismatchError):
            generator.generate_thresholds(np.zeros((2, 4)))
