"""
Result presentation helpers: prediction history, tables, chart series and
the downloadable JSON report.  Rendering itself is left to the templates or
to API clients.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

import pandas as pd

from . import config
from .data.sources import dataset_records
from .ml.metrics import Metrics
from .ml.model import PredictionResult


@dataclass(frozen=True)
class HistoryEntry:
    voltage: float
    current: float
    temperature: float
    time: float
    cycle: float
    capacity: float
    health: float
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["timestamp"] = self.timestamp.isoformat()
        return payload


class PredictionHistory:
    """Most recent predictions first; the oldest entry is evicted beyond `maxlen`."""

    def __init__(self, maxlen: int = config.HISTORY_SIZE) -> None:
        self._entries: Deque[HistoryEntry] = deque(maxlen=maxlen)

    def add(self, entry: HistoryEntry) -> None:
        self._entries.appendleft(entry)

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def predictions_table(result: PredictionResult, limit: int = config.PREVIEW_ROWS) -> List[Dict[str, float]]:
    """First `limit` predictions with their absolute error."""
    rows = []
    for i, (actual, predicted) in enumerate(zip(result.actual[:limit], result.predicted[:limit])):
        rows.append(
            {
                "index": i + 1,
                "actual": float(actual),
                "predicted": float(predicted),
                "error": float(abs(actual - predicted)),
            }
        )
    return rows


def chart_series(result: PredictionResult) -> Dict[str, Any]:
    """Line-chart data for actual vs predicted capacity."""
    return {
        "title": "Actual vs Predicted Battery Capacity",
        "labels": list(range(1, len(result.actual) + 1)),
        "datasets": [
            {"label": "Actual Capacity", "data": [float(v) for v in result.actual]},
            {"label": "Predicted Capacity", "data": [float(v) for v in result.predicted]},
        ],
        "x_label": "Cycle Number",
        "y_label": "Capacity (Ah)",
    }


def build_report(
    metrics: Metrics, model_type: str, generated_at: Optional[datetime] = None
) -> Dict[str, Any]:
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "metrics": metrics.to_dict(),
        "model": model_type,
        "timestamp": generated_at.isoformat(),
    }


def report_filename(generated_at: datetime) -> str:
    return f"battery_health_results_{int(generated_at.timestamp() * 1000)}.json"


def dataset_summary(filename: str, size_bytes: int, df: pd.DataFrame) -> Dict[str, Any]:
    return {
        "file_name": filename,
        "file_size_kb": round(size_bytes / 1024, 2),
        "record_count": len(df),
        "columns": list(df.columns),
        "preview": dataset_records(df.head(config.PREVIEW_ROWS)),
    }
