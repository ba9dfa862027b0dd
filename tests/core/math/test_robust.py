"""Tests for robust loss functions."""

import numpy as np
import pytest

from mapgraph.core.math.robust import apply_robust_loss, cauchy_loss, huber_loss


class TestRobustLosses:
    """Test robust loss functions."""

    def test_huber_inlier_is_quadratic(self):
        rho, w = huber_loss(np.array([0.5]), delta=1.0)
        np.testing.assert_allclose(rho, [0.125])
        np.testing.assert_allclose(w, [1.0])

    def test_huber_outlier_is_linear(self):
        rho, w = huber_loss(np.array([3.0]), delta=1.0)
        np.testing.assert_allclose(rho, [2.5])
        np.testing.assert_allclose(w, [1.0 / 3.0])

    def test_cauchy_downweights(self):
        _, w_small = cauchy_loss(np.array([0.1]))
        _, w_large = cauchy_loss(np.array([10.0]))
        assert w_large[0] < w_small[0] <= 1.0

    def test_none_loss(self):
        rho, w = apply_robust_loss(np.array([2.0]), "none")
        np.testing.assert_allclose(rho, [2.0])
        np.testing.assert_allclose(w, [1.0])

    def test_unknown_loss(self):
        with pytest.raises(ValueError):
            apply_robust_loss(np.array([1.0]), "tukey")
