"""
Tests for linear-algebra primitives.
"""

import numpy as np
import pytest

from src.engine import DimensionMismatchError
from src.engine.linalg import (
    clip,
    create_sliding_windows,
    dot,
    elementwise_add,
    elementwise_mul,
    elementwise_subtract,
    iter_sliding_windows,
    matrix_vector_mul,
    matrix_vector_mul_transpose,
    mse_loss,
    mse_loss_gradient,
    outer_product,
    sigmoid,
    sigmoid_derivative,
    tanh_derivative,
    transpose,
)


class TestMatrixOps:
    """Tests for vector and matrix arithmetic."""

    def test_matrix_vector_mul(self):
        """Test M·v against a hand-computed result."""
        m = [[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]
        result = matrix_vector_mul(m, [1.0, -1.0])

        np.testing.assert_allclose(result, [-1.0, -1.0, -1.0])

    def test_matrix_vector_mul_rejects_mismatch(self):
        """Test that column count must equal vector length."""
        with pytest.raises(DimensionMismatchError):
            matrix_vector_mul(np.ones((3, 2)), np.ones(3))

    def test_adjoint_identity(self, rng):
        """Test (M v)·w == v·(Mᵀ w) for random operands."""
        for _ in range(20):
            m = rng.normal(size=(4, 6))
            v = rng.normal(size=6)
            w = rng.normal(size=4)

            left = dot(matrix_vector_mul(m, v), w)
            right = dot(v, matrix_vector_mul(transpose(m), w))

            assert left == pytest.approx(right, rel=1e-10, abs=1e-12)
            assert right == pytest.approx(dot(v, matrix_vector_mul_transpose(m, w)), abs=1e-12)

    def test_outer_product_shape(self):
        """Test that outer product is len(a) × len(b)."""
        result = outer_product([1.0, 2.0, 3.0], [4.0, 5.0])

        assert result.shape == (3, 2)
        assert result[2, 1] == 15.0

    def test_elementwise_subtract(self):
        """Test componentwise difference."""
        result = elementwise_subtract([3.0, 1.0, -2.0], [1.0, 1.0, 1.0])

        np.testing.assert_allclose(result, [2.0, 0.0, -3.0])

    def test_clip_is_symmetric(self):
        """Test that clip bounds every component to [-bound, bound]."""
        result = clip(np.array([-7.5, -1.0, 0.0, 2.5, 9.0]), 5.0)

        np.testing.assert_allclose(result, [-5.0, -1.0, 0.0, 2.5, 5.0])

    @pytest.mark.parametrize("op", [elementwise_add, elementwise_subtract, elementwise_mul, dot])
    def test_elementwise_rejects_mismatch(self, op):
        """Test that elementwise operations never broadcast."""
        with pytest.raises(DimensionMismatchError):
            op(np.ones(3), np.ones(4))

    def test_dimension_error_is_value_error(self):
        """Test that callers catching ValueError also catch shape errors."""
        with pytest.raises(ValueError):
            matrix_vector_mul(np.ones(3), np.ones(3))


class TestLoss:
    """Tests for MSE loss and its gradient."""

    def test_mse_is_mean(self):
        """Test that the loss divides by the element count."""
        assert mse_loss([1.0, 3.0], [0.0, 0.0]) == pytest.approx(5.0)

    def test_gradient_formula(self):
        """Test gradient 2*(output-target)/n."""
        np.testing.assert_allclose(mse_loss_gradient([1.0, 3.0], [0.0, 1.0]), [1.0, 2.0])

    def test_finite_difference(self, rng):
        """Test loss(θ+δ) - loss(θ) ≈ grad·δ for a small δ."""
        output = rng.normal(size=5)
        target = rng.normal(size=5)
        delta = rng.normal(size=5) * 1e-6

        actual = mse_loss(output + delta, target) - mse_loss(output, target)
        expected = dot(mse_loss_gradient(output, target), delta)

        assert actual == pytest.approx(expected, rel=1e-4, abs=1e-10)


class TestActivations:
    """Tests for activation helpers."""

    def test_sigmoid_saturates_without_overflow(self):
        """Test that extreme inputs map to exactly 0 and 1."""
        with np.errstate(all="raise"):
            result = sigmoid(np.array([-1e6, 0.0, 1e6]))

        np.testing.assert_allclose(result, [0.0, 0.5, 1.0])

    def test_derivatives_from_activations(self):
        """Test derivative helpers take the activation, not the pre-activation."""
        assert sigmoid_derivative(0.5) == pytest.approx(0.25)
        assert tanh_derivative(0.5) == pytest.approx(0.75)


class TestSlidingWindows:
    """Tests for sliding-window construction."""

    @pytest.mark.parametrize("length,window", [(10, 3), (50, 5), (6, 5)])
    def test_window_count_and_overlap(self, length, window):
        """Test L-w windows of length w, overlapping by w-1."""
        data = np.arange(length, dtype=float)
        windows, targets = create_sliding_windows(data, window)

        assert windows.shape == (length - window, window)
        assert targets.shape == (length - window, 1)
        for first, second in zip(windows, windows[1:]):
            np.testing.assert_array_equal(first[1:], second[:-1])

    def test_targets_follow_windows(self):
        """Test that each target is the value right after its window."""
        windows, targets = create_sliding_windows([1.0, 2.0, 3.0, 4.0, 5.0], 2)

        np.testing.assert_array_equal(windows[0], [1.0, 2.0])
        np.testing.assert_array_equal(targets[:, 0], [3.0, 4.0, 5.0])

    def test_multi_step_horizon(self):
        """Test window count L-w-h+1 for a longer horizon."""
        windows, targets = create_sliding_windows(np.arange(10.0), 3, prediction_len=2)

        assert windows.shape == (6, 3)
        np.testing.assert_array_equal(targets[-1], [8.0, 9.0])

    def test_too_short_sequence(self):
        """Test that a sequence shorter than one window yields no pairs."""
        windows, targets = create_sliding_windows([1.0, 2.0], 3)

        assert windows.shape == (0, 3)
        assert targets.shape == (0, 1)

    def test_windows_are_detached_from_input(self):
        """Test that mutating the input does not change built windows."""
        data = np.arange(6, dtype=float)
        windows, _ = create_sliding_windows(data, 3)
        data[0] = 100.0

        assert windows[0, 0] == 0.0
        assert not windows.flags.writeable

    def test_lazy_equivalent(self):
        """Test that the generator yields the same pairs."""
        data = np.arange(8, dtype=float)
        windows, targets = create_sliding_windows(data, 3)
        pairs = list(iter_sliding_windows(data, 3))

        assert len(pairs) == len(windows)
        np.testing.assert_array_equal(pairs[2][0], windows[2])
        np.testing.assert_array_equal(pairs[2][1], targets[2])
