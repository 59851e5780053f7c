"""Validation and normalization components, in pipeline order."""

from .snapshot import TableSnapshot, TableSnapshotter
from .columns import ColumnResolver
from .coercion import TypeCoercionChecker, coerce_numeric, is_missing
from .classify import RowClassifier
from .partition import SubjectPartition, partition_rows
from .dosing import DosingRegimenValidator
from .covariates import CovariateAuditor
from .grouping import SequencingInput, SubjectSequencer
from .reporter import DiagnosticReport

__all__ = [
    "TableSnapshot",
    "TableSnapshotter",
    "ColumnResolver",
    "TypeCoercionChecker",
    "coerce_numeric",
    "is_missing",
    "RowClassifier",
    "SubjectPartition",
    "partition_rows",
    "DosingRegimenValidator",
    "CovariateAuditor",
    "SequencingInput",
    "SubjectSequencer",
    "DiagnosticReport",
]
