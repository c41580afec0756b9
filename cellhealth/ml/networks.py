"""
PyTorch networks and the regressor wrapper used to train them.

* `LSTMCapacityNet`: two stacked LSTMs reading a window of sensor vectors
  and emitting the capacity that follows the window.
* `DenseCapacityNet`: feed-forward network mapping one normalized sample to
  a normalized capacity, used by the interactive predictor.

`TorchRegressor` adapts either network to the ``fit(X, y) -> model`` /
``model.predict(X)`` interface the pipeline expects.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Sequence

import numpy as np
import torch
import torch.nn as nn
from torch.optim import Adam
from torch.utils.data import DataLoader, TensorDataset

from .. import config

logger = logging.getLogger(__name__)


@contextmanager
def tensor_scope() -> Iterator[List[torch.Tensor]]:
    """
    Hold tensors created for one training or inference call.

    Tensors appended to the yielded list are dropped when the block exits,
    whether it returns or raises.
    """
    held: List[torch.Tensor] = []
    try:
        yield held
    finally:
        held.clear()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()


class LSTMCapacityNet(nn.Module):
    """
    Input  → (batch, seq_len, input_size)
    LSTM-1 → units, full sequence, dropout
    LSTM-2 → units, last step, dropout
    Dense  → 1
    """

    def __init__(
        self,
        input_size: int,
        units: int = config.LSTM_UNITS,
        dropout: float = config.LSTM_DROPOUT,
    ) -> None:
        super().__init__()
        self.lstm_1 = nn.LSTM(input_size=input_size, hidden_size=units, batch_first=True)
        self.dropout_1 = nn.Dropout(dropout)
        self.lstm_2 = nn.LSTM(input_size=units, hidden_size=units, batch_first=True)
        self.dropout_2 = nn.Dropout(dropout)
        self.fc = nn.Linear(units, 1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        out, _ = self.lstm_1(x)
        out = self.dropout_1(out)
        out, _ = self.lstm_2(out)
        out = self.dropout_2(out[:, -1, :])
        return self.fc(out).squeeze(-1)


class DenseCapacityNet(nn.Module):
    def __init__(
        self,
        input_size: int = len(config.INPUT_FIELDS),
        hidden: Sequence[int] = tuple(config.DENSE_HIDDEN_UNITS),
        dropout: float = config.DENSE_DROPOUT,
    ) -> None:
        super().__init__()
        layers: List[nn.Module] = []
        in_features = input_size
        for i, units in enumerate(hidden):
            layers.append(nn.Linear(in_features, units))
            layers.append(nn.ReLU())
            # no dropout after the last hidden layer
            if i < len(hidden) - 1:
                layers.append(nn.Dropout(dropout))
            in_features = units
        layers.append(nn.Linear(in_features, 1))
        self.network = nn.Sequential(*layers)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.network(x).squeeze(-1)


class TorchModel:
    """A trained network exposing ``predict(X) -> ndarray``."""

    def __init__(self, module: nn.Module) -> None:
        self.module = module

    def predict(self, X: np.ndarray) -> np.ndarray:
        self.module.eval()
        with tensor_scope() as held, torch.no_grad():
            inputs = torch.as_tensor(np.asarray(X, dtype=np.float32))
            held.append(inputs)
            outputs = self.module(inputs)
            held.append(outputs)
            return outputs.reshape(-1).cpu().numpy().astype(float)


class TorchRegressor:
    """
    Train a network with Adam on mean squared error.

    The last `validation_split` fraction of samples is held out (not
    shuffled) and its loss is logged each epoch.
    """

    def __init__(
        self,
        build_module: Callable[[int], nn.Module],
        epochs: int = config.LSTM_EPOCHS,
        batch_size: int = config.LSTM_BATCH_SIZE,
        learning_rate: float = config.LSTM_LEARNING_RATE,
        validation_split: float = config.LSTM_VALIDATION_SPLIT,
        random_state: int = config.RANDOM_SEED,
    ) -> None:
        self.build_module = build_module
        self.epochs = epochs
        self.batch_size = batch_size
        self.learning_rate = learning_rate
        self.validation_split = validation_split
        self.random_state = random_state

    def fit(self, X: np.ndarray, y: np.ndarray) -> TorchModel:
        torch.manual_seed(self.random_state)
        X = np.asarray(X, dtype=np.float32)
        y = np.asarray(y, dtype=np.float32).reshape(-1)
        module = self.build_module(X.shape[-1])

        n_val = int(len(X) * self.validation_split)
        n_train = len(X) - n_val
        if n_train == 0:
            n_train, n_val = len(X), 0

        criterion = nn.MSELoss()
        optimizer = Adam(module.parameters(), lr=self.learning_rate)

        with tensor_scope() as held:
            X_t = torch.from_numpy(X)
            y_t = torch.from_numpy(y)
            held.extend([X_t, y_t])
            train_loader = DataLoader(
                TensorDataset(X_t[:n_train], y_t[:n_train]),
                batch_size=self.batch_size,
                shuffle=True,
            )

            for epoch in range(1, self.epochs + 1):
                module.train()
                train_loss = 0.0
                for xb, yb in train_loader:
                    optimizer.zero_grad()
                    loss = criterion(module(xb), yb)
                    loss.backward()
                    optimizer.step()
                    train_loss += loss.item() * xb.size(0)
                train_loss /= max(n_train, 1)

                val_loss = float("nan")
                if n_val:
                    module.eval()
                    with torch.no_grad():
                        val_loss = criterion(module(X_t[n_train:]), y_t[n_train:]).item()

                logger.debug("Epoch %d: loss=%.4f val_loss=%.4f", epoch, train_loss, val_loss)

        logger.info("Trained %s for %d epochs on %d samples", type(module).__name__, self.epochs, n_train)
        return TorchModel(module)


class LSTMSequenceRegressor(TorchRegressor):
    """Regressor over windows shaped ``(n, sequence_length, n_features)``."""

    def __init__(self, **kwargs) -> None:
        super().__init__(build_module=lambda n_features: LSTMCapacityNet(n_features), **kwargs)


def pretrained_dense_model(random_state: int = config.RANDOM_SEED) -> TorchModel:
    """
    Dense network with seeded initial weights.

    Trained weights are not shipped; the physics blend keeps outputs within
    a plausible range regardless.
    """
    torch.manual_seed(random_state)
    return TorchModel(DenseCapacityNet())
