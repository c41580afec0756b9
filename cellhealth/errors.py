"""
Exception hierarchy for CellHealth.

Every failure the pipeline can report derives from `CellHealthError`.  The
web layer maps each class to an HTTP status code through `status_code`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


class CellHealthError(Exception):
    """Base class for all errors surfaced to the user."""

    status_code = 400


class ParseError(CellHealthError):
    """Uploaded file is malformed or in an unsupported format."""


class MissingColumnsError(ParseError):
    """Dataset lacks columns required by the selected model."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(f"Dataset missing required columns: {', '.join(self.missing)}")


class SizeLimitError(CellHealthError):
    """Uploaded file exceeds the accepted size."""

    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"File size {size} bytes exceeds the {limit // (1024 * 1024)}MB limit")


@dataclass(frozen=True)
class FieldViolation:
    field: str
    message: str


class ValidationError(CellHealthError):
    """One or more interactive inputs are out of range."""

    status_code = 422

    def __init__(self, violations: List[FieldViolation]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(v.message for v in self.violations))


class PipelineError(CellHealthError):
    """A pipeline precondition does not hold."""

    status_code = 422


class DegenerateFeatureError(PipelineError):
    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(f"Feature '{feature}' has identical minimum and maximum in training data")


class InsufficientDataError(PipelineError):
    pass


class InsufficientSequenceLengthError(PipelineError):
    pass


class LengthMismatchError(PipelineError):
    pass


class EmptyInputError(PipelineError):
    pass


class SessionBusyError(CellHealthError):
    """A training run is already in progress for this session."""

    status_code = 409


class NoDatasetError(CellHealthError):
    """An operation needs an uploaded dataset or a finished training run."""

    status_code = 404


class ExternalModelError(CellHealthError):
    """Failure inside the delegated training or inference library."""

    status_code = 502
