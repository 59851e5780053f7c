"""Core contracts and interfaces."""

from .errors import (
    PKDataError,
    ConfigError,
    ValidationError,
    TableError,
    IngestionError,
)
from .stage import Stage
from .types import (
    Category,
    ColumnBinding,
    Component,
    CovariateTable,
    Diagnostic,
    DiagnosticKind,
    DoseEvent,
    IngestionResult,
    Observation,
    ParsedRow,
    RowKind,
    Severity,
    StageResult,
    Subject,
    SubjectId,
    TimedRecord,
)

__all__ = [
    "PKDataError",
    "ConfigError",
    "ValidationError",
    "TableError",
    "IngestionError",
    "Stage",
    "Category",
    "ColumnBinding",
    "Component",
    "CovariateTable",
    "Diagnostic",
    "DiagnosticKind",
    "DoseEvent",
    "IngestionResult",
    "Observation",
    "ParsedRow",
    "RowKind",
    "Severity",
    "StageResult",
    "Subject",
    "SubjectId",
    "TimedRecord",
]
