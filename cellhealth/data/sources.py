"""
Data ingestion for CellHealth.

Datasets are tables of battery discharge samples.  Each row is one sensor
reading with (at least) the following columns:

    voltage_measured:      float, terminal voltage in volts
    current_measured:      float, output current in amperes
    temperature_measured:  float, cell temperature in degrees Celsius
    time:                  float, seconds since the start of the discharge
    cycle:                 int, charge/discharge cycle number
    capacity:              float, measured capacity in ampere-hours (target)

Uploaded files are either comma-separated text with a header line or a
JSON list of objects.  Additional sources can be integrated by subclassing
`DataSource` and implementing `load` to return a pandas DataFrame with the
columns above.
"""

from __future__ import annotations

import io
import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from .. import config
from ..errors import MissingColumnsError, ParseError, SizeLimitError

logger = logging.getLogger(__name__)


class DataSource:
    """Abstract base class for a data source."""

    def load(self) -> pd.DataFrame:
        """
        Return a pandas DataFrame containing all records from this source.

        Rows must be in acquisition order; the train/test split relies on it.
        """
        raise NotImplementedError


def _coerce_column(series: pd.Series) -> pd.Series:
    """Convert values to numbers where they parse, leaving other text as is."""
    series = series.str.strip()
    numeric = pd.to_numeric(series, errors="coerce")
    unparsed = numeric.isna() & series.notna() & series.ne("")
    if not unparsed.any():
        return numeric
    return series.where(unparsed, numeric).astype(object)


def parse_csv(text: str) -> pd.DataFrame:
    """
    Parse delimited text into a DataFrame.

    The first line holds the column names; blank lines are skipped.  Values
    are converted to numbers when they parse and kept as text otherwise.
    """
    if not text.strip():
        raise ParseError("CSV file is empty")
    try:
        df = pd.read_csv(io.StringIO(text), dtype=object, skip_blank_lines=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ParseError(f"Error parsing CSV: {exc}") from exc
    df.columns = [str(col).strip() for col in df.columns]
    for col in df.columns:
        df[col] = _coerce_column(df[col])
    return df


def serialize_csv(df: pd.DataFrame) -> str:
    """Inverse of `parse_csv` for numeric tables."""
    return df.to_csv(index=False)


def parse_json(text: str) -> pd.DataFrame:
    """Parse a JSON list of records, or an object holding one under ``data``."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Error parsing JSON: {exc}") from exc
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        raise ParseError("JSON upload must be a list of records")
    if not all(isinstance(item, dict) for item in payload):
        raise ParseError("Every JSON record must be an object")
    return pd.DataFrame(payload)


def load_upload(filename: str, content: bytes, max_bytes: int = config.MAX_UPLOAD_BYTES) -> pd.DataFrame:
    """
    Turn an uploaded file into a DataFrame.

    The size limit is checked before any decoding; the format is chosen from
    the file suffix.
    """
    if len(content) > max_bytes:
        raise SizeLimitError(len(content), max_bytes)
    suffix = Path(filename).suffix.lower()
    if suffix not in config.SUPPORTED_SUFFIXES:
        raise ParseError(f"Unsupported file format: {filename!r}")
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ParseError(f"File is not valid UTF-8 text: {exc}") from exc
    df = parse_json(text) if suffix == ".json" else parse_csv(text)
    logger.info("Parsed %s: %d records, columns=%s", filename, len(df), list(df.columns))
    return df


def require_columns(df: pd.DataFrame, columns: Sequence[str]) -> None:
    missing = set(columns) - set(df.columns)
    if missing:
        raise MissingColumnsError(missing)


def require_numeric(df: pd.DataFrame, columns: Sequence[str], where: str = "dataset") -> None:
    """Raise ParseError for the first cell in `columns` that is not a finite number."""
    for column in columns:
        values = pd.to_numeric(df[column], errors="coerce").to_numpy(dtype=float)
        bad = ~np.isfinite(values)
        if bad.any():
            row = int(np.argmax(bad))
            raw = df[column].iloc[row]
            missing = raw is None or (isinstance(raw, float) and math.isnan(raw))
            shown = "missing" if missing else repr(raw)
            raise ParseError(f"Column '{column}' in {where} row {row + 1} is not a number: {shown}")


def dataset_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Return the rows as plain dicts, with NaN mapped to None."""
    records = df.to_dict(orient="records")
    return [
        {k: (None if isinstance(v, float) and math.isnan(v) else v) for k, v in row.items()}
        for row in records
    ]


@dataclass(frozen=True)
class DatasetSplit:
    """Ordered split: `train` is a prefix of the dataset, `test` the rest."""

    train: pd.DataFrame
    test: pd.DataFrame


def split_dataset(df: pd.DataFrame, ratio: float = config.DEFAULT_TRAIN_SPLIT) -> DatasetSplit:
    """Split without shuffling at ``floor(len(df) * ratio)``."""
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"Split ratio must be between 0 and 1, got {ratio}")
    split_index = math.floor(len(df) * ratio)
    return DatasetSplit(
        train=df.iloc[:split_index].reset_index(drop=True),
        test=df.iloc[split_index:].reset_index(drop=True),
    )


@dataclass
class ExampleSource(DataSource):
    """Synthetic discharge data generator used for demonstration purposes."""

    n_cycles: int = 60
    samples_per_cycle: int = 5
    random_state: int = 42

    def load(self) -> pd.DataFrame:
        rng = np.random.default_rng(self.random_state)
        n = self.n_cycles * self.samples_per_cycle
        cycle = np.repeat(np.arange(1, self.n_cycles + 1), self.samples_per_cycle)
        step = np.tile(np.arange(self.samples_per_cycle), self.n_cycles)

        # Exponential capacity fade plus measurement noise, constant within a cycle
        fade = config.NOMINAL_CAPACITY_AH * np.exp(-0.004 * np.arange(1, self.n_cycles + 1))
        capacity = np.repeat(fade + rng.normal(0, 0.01, size=self.n_cycles), self.samples_per_cycle)

        time = step * 600.0 + rng.uniform(0, 30, size=n)
        voltage = 4.1 - step * (0.8 / max(self.samples_per_cycle, 1)) + rng.normal(0, 0.02, size=n)
        current = -2.0 + rng.normal(0, 0.02, size=n)
        temperature = 24.0 + step * 1.5 + rng.normal(0, 0.3, size=n)

        return pd.DataFrame(
            {
                "voltage_measured": voltage,
                "current_measured": current,
                "temperature_measured": temperature,
                "time": time,
                "cycle": cycle,
                "capacity": capacity,
            }
        )
