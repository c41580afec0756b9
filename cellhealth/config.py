"""
Configuration constants for CellHealth.

Values that operators may want to change without editing code are read from
environment variables; everything else is a plain module constant.
"""

import os
from pathlib import Path

# Paths
PACKAGE_ROOT = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_ROOT / "templates"

# Logging
LOG_LEVEL = os.getenv("CELLHEALTH_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Uploads
MAX_UPLOAD_BYTES = int(os.getenv("CELLHEALTH_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
SUPPORTED_SUFFIXES = (".csv", ".json")
PREVIEW_ROWS = 10

# Dataset columns
TARGET_COLUMN = "capacity"
CLASSIC_FEATURES = [
    "voltage_measured",
    "current_measured",
    "temperature_measured",
    "time",
]
SEQUENCE_FEATURES = [
    "voltage_measured",
    "current_measured",
    "temperature_measured",
]

# Train/test split (prefix/suffix, never shuffled)
DEFAULT_TRAIN_SPLIT = 0.8

# Model identifiers offered by the training form
CLASSIC_MODEL_TYPES = ("knn", "random_forest", "adaboost", "gradient_boost")
SEQUENCE_MODEL_TYPES = ("lstm",)
MODEL_TYPES = CLASSIC_MODEL_TYPES + SEQUENCE_MODEL_TYPES
DEFAULT_MODEL_TYPE = "knn"

# Similarity regressor
KNN_NEIGHBORS = 5

# Ensemble regressors
ENSEMBLE_ESTIMATORS = 100
RANDOM_SEED = int(os.getenv("CELLHEALTH_RANDOM_SEED", "42"))

# Sequence model
SEQUENCE_LENGTH = 10
LSTM_UNITS = 50
LSTM_DROPOUT = 0.2
LSTM_EPOCHS = int(os.getenv("CELLHEALTH_LSTM_EPOCHS", "50"))
LSTM_BATCH_SIZE = 32
LSTM_LEARNING_RATE = 1e-3
LSTM_VALIDATION_SPLIT = 0.2

# Dense network for interactive predictions
DENSE_HIDDEN_UNITS = [64, 32, 16]
DENSE_DROPOUT = 0.2

# Z-score calibration table (NASA discharge data); fixed, never refitted
INPUT_FIELDS = ["voltage", "current", "temperature", "time", "cycle"]
INPUT_MEAN = {
    "voltage": 3.6,
    "current": -1.5,
    "temperature": 28.0,
    "time": 1500.0,
    "cycle": 80.0,
}
INPUT_STD = {
    "voltage": 0.3,
    "current": 0.5,
    "temperature": 5.0,
    "time": 1000.0,
    "cycle": 50.0,
}
OUTPUT_MEAN = 1.65
OUTPUT_STD = 0.2

# Interactive input bounds (inclusive); None means unbounded
INPUT_BOUNDS = {
    "voltage": (2.0, 4.5),
    "current": (-3.0, 1.0),
    "temperature": (0.0, 60.0),
    "cycle": (1.0, None),
}

# Physics model
NOMINAL_CAPACITY_AH = 1.89
DEGRADATION_RATE = 1e-4
REFERENCE_TEMPERATURE_C = 25.0
TEMPERATURE_COEFFICIENT = 0.001
MODEL_WEIGHT = 0.7
PHYSICS_WEIGHT = 0.3
MIN_CAPACITY_AH = 0.5
END_OF_LIFE_FRACTION = 0.8

# Metrics
ACCURACY_THRESHOLD = 0.05

# Prediction history
HISTORY_SIZE = 10
