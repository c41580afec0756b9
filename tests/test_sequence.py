"""Unit tests for the sequence path and the PyTorch networks."""

import unittest

import numpy as np
import torch

from cellhealth.data.sources import ExampleSource, split_dataset
from cellhealth.errors import ExternalModelError, InsufficientSequenceLengthError, ParseError
from cellhealth.ml.networks import (
    DenseCapacityNet,
    LSTMCapacityNet,
    LSTMSequenceRegressor,
    pretrained_dense_model,
    tensor_scope,
)
from cellhealth.ml.sequence import build_windows, train_sequence


class LastStepRegressor:
    """Predicts the first feature of the last step in each window."""

    def __init__(self):
        self.fit_shape = None

    def fit(self, X, y):
        self.fit_shape = X.shape

        class _Model:
            def predict(self, X):
                return X[:, -1, 0]

        return _Model()


class FailingRegressor:
    def fit(self, X, y):
        raise RuntimeError("out of memory")


class TestBuildWindows(unittest.TestCase):
    """Tests for sliding window construction."""

    def test_windows_and_labels(self) -> None:
        features = np.arange(24, dtype=float).reshape(12, 2)
        targets = np.arange(12, dtype=float) * 10
        X, y = build_windows(features, targets, sequence_length=10)
        self.assertEqual(X.shape, (2, 10, 2))
        np.testing.assert_array_equal(X[0], features[0:10])
        np.testing.assert_array_equal(X[1], features[1:11])
        np.testing.assert_array_equal(y, [100.0, 110.0])

    def test_too_short_gives_zero_windows(self) -> None:
        X, y = build_windows(np.zeros((10, 3)), np.zeros(10), sequence_length=10)
        self.assertEqual(X.shape, (0, 10, 3))
        self.assertEqual(y.shape, (0,))


class TestTrainSequence(unittest.TestCase):
    """Tests for train_sequence with injected and real regressors."""

    def setUp(self) -> None:
        self.df = ExampleSource(n_cycles=20, samples_per_cycle=4).load()
        self.split = split_dataset(self.df, 0.5)

    def test_prediction_length(self) -> None:
        """Predictions cover len(test) - sequence_length rows."""
        regressor = LastStepRegressor()
        result = train_sequence(self.split.train, self.split.test, regressor=regressor)
        self.assertEqual(regressor.fit_shape, (30, 10, 3))
        self.assertEqual(len(result.predicted), len(self.split.test) - 10)
        self.assertEqual(len(result.actual), len(result.predicted))
        np.testing.assert_array_equal(
            result.actual, self.split.test["capacity"].to_numpy()[10:]
        )
        self.assertEqual(len(result.rows), 30)
        self.assertEqual(result.model_type, "lstm")

    def test_short_test_partition(self) -> None:
        with self.assertRaises(InsufficientSequenceLengthError):
            train_sequence(self.split.train, self.split.test.iloc[:10], regressor=LastStepRegressor())

    def test_short_training_partition(self) -> None:
        with self.assertRaises(InsufficientSequenceLengthError):
            train_sequence(self.split.train.iloc[:5], self.split.test, regressor=LastStepRegressor())

    def test_external_failure_wrapped(self) -> None:
        with self.assertRaises(ExternalModelError):
            train_sequence(self.split.train, self.split.test, regressor=FailingRegressor())

    def test_blank_sensor_value_rejected(self) -> None:
        train = self.split.train.copy()
        train.loc[3, "temperature_measured"] = np.nan
        regressor = LastStepRegressor()
        with self.assertRaises(ParseError) as ctx:
            train_sequence(train, self.split.test, regressor=regressor)
        self.assertIn("temperature_measured", str(ctx.exception))
        self.assertIsNone(regressor.fit_shape)

    def test_lstm_regressor(self) -> None:
        """A short LSTM training run yields one finite prediction per window."""
        regressor = LSTMSequenceRegressor(epochs=2, batch_size=8)
        result = train_sequence(self.split.train, self.split.test, regressor=regressor)
        self.assertEqual(len(result.predicted), 30)
        self.assertTrue(np.isfinite(result.predicted).all())


class TestNetworks(unittest.TestCase):
    """Tests for network shapes and tensor release."""

    def test_lstm_output_shape(self) -> None:
        net = LSTMCapacityNet(input_size=3, units=8)
        out = net(torch.zeros(4, 10, 3))
        self.assertEqual(tuple(out.shape), (4,))

    def test_dense_output_shape(self) -> None:
        net = DenseCapacityNet()
        out = net(torch.zeros(2, 5))
        self.assertEqual(tuple(out.shape), (2,))

    def test_pretrained_dense_model_is_deterministic(self) -> None:
        X = np.zeros((1, 5))
        np.testing.assert_allclose(pretrained_dense_model().predict(X), pretrained_dense_model().predict(X))

    def test_tensor_scope_releases_on_error(self) -> None:
        held_ref = None
        with self.assertRaises(RuntimeError):
            with tensor_scope() as held:
                held.append(torch.zeros(3))
                held_ref = held
                raise RuntimeError("boom")
        self.assertEqual(held_ref, [])


if __name__ == "__main__":
    unittest.main()
