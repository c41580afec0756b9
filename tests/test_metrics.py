"""Unit tests for the metrics engine."""

import math
import unittest

import numpy as np

from cellhealth.errors import EmptyInputError, LengthMismatchError
from cellhealth.ml.metrics import compute_metrics, r_squared, threshold_accuracy


class TestComputeMetrics(unittest.TestCase):
    """Tests for compute_metrics."""

    def test_perfect_prediction(self) -> None:
        metrics = compute_metrics([1.8, 1.7, 1.6], [1.8, 1.7, 1.6])
        self.assertEqual(metrics.rmse, 0.0)
        self.assertEqual(metrics.mae, 0.0)
        self.assertEqual(metrics.r2, 1.0)
        self.assertEqual(metrics.accuracy, 100.0)

    def test_known_values(self) -> None:
        metrics = compute_metrics([1.0, 2.0, 3.0], [1.0, 2.0, 4.0])
        self.assertAlmostEqual(metrics.mae, 1 / 3)
        self.assertAlmostEqual(metrics.rmse, math.sqrt(1 / 3))
        self.assertAlmostEqual(metrics.r2, 0.5)
        self.assertAlmostEqual(metrics.accuracy, 200 / 3)

    def test_length_mismatch(self) -> None:
        with self.assertRaises(LengthMismatchError):
            compute_metrics([1.0, 2.0], [1.0])

    def test_empty_input(self) -> None:
        with self.assertRaises(EmptyInputError):
            compute_metrics([], [])

    def test_bounds_on_random_data(self) -> None:
        """rmse and mae are non-negative and accuracy lies in [0, 100]."""
        rng = np.random.default_rng(0)
        for _ in range(20):
            actual = rng.uniform(-1, 2, size=15)
            predicted = rng.uniform(-1, 2, size=15)
            metrics = compute_metrics(actual, predicted)
            self.assertGreaterEqual(metrics.rmse, 0.0)
            self.assertGreaterEqual(metrics.mae, 0.0)
            self.assertGreaterEqual(metrics.accuracy, 0.0)
            self.assertLessEqual(metrics.accuracy, 100.0)

    def test_predicting_mean_gives_zero_r2(self) -> None:
        actual = [1.0, 3.0, 1.0, 3.0]
        metrics = compute_metrics(actual, [2.0] * 4)
        self.assertEqual(metrics.r2, 0.0)

    def test_to_dict(self) -> None:
        self.assertEqual(
            set(compute_metrics([1.0], [1.0]).to_dict()), {"rmse", "mae", "r2", "accuracy"}
        )


class TestEdgeCases(unittest.TestCase):
    """Tests for undefined ratios."""

    def test_r2_constant_actual(self) -> None:
        """Identical actual values should not divide by zero."""
        self.assertEqual(r_squared(np.array([2.0, 2.0]), np.array([2.0, 2.0])), 1.0)
        self.assertEqual(r_squared(np.array([2.0, 2.0]), np.array([1.0, 3.0])), 0.0)

    def test_accuracy_excludes_zero_actual(self) -> None:
        """Points with actual == 0 are left out of the accuracy count."""
        self.assertEqual(threshold_accuracy(np.array([0.0, 1.0]), np.array([0.5, 1.0])), 100.0)
        self.assertEqual(threshold_accuracy(np.array([0.0, 0.0]), np.array([0.0, 1.0])), 0.0)
        metrics = compute_metrics([0.0, 1.0, 2.0], [0.0, 1.5, 2.0])
        self.assertTrue(math.isfinite(metrics.accuracy))
        self.assertEqual(metrics.accuracy, 50.0)

    def test_accuracy_threshold_is_strict(self) -> None:
        self.assertEqual(threshold_accuracy(np.array([1.0]), np.array([1.25]), threshold=0.25), 0.0)

    def test_accuracy_negative_actual(self) -> None:
        """A far-off prediction for a negative actual is not counted as accurate."""
        self.assertEqual(threshold_accuracy(np.array([-1.0, 1.0]), np.array([5.0, 1.0])), 50.0)
        self.assertEqual(threshold_accuracy(np.array([-2.0]), np.array([-2.05])), 100.0)


if __name__ == "__main__":
    unittest.main()
