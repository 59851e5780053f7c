"""Type definitions for ingestion inputs, outputs and diagnostics."""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Generic, Mapping, Optional, Tuple, TypeVar, Union, TYPE_CHECKING

from .errors import IngestionError

if TYPE_CHECKING:
    from ..validation.reporter import DiagnosticReport

SubjectId = Union[int, str]
T = TypeVar("T")


class Severity(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"


class Category(str, Enum):
    """Diagnostic taxonomy. Everything except ADVISORY fails the run."""

    STRUCTURAL = "structural"
    TYPE = "type"
    SEMANTIC = "semantic"
    ADVISORY = "advisory"


class Component(str, Enum):
    """Producing component, declared in report order."""

    SNAPSHOT = "snapshot"
    COLUMNS = "columns"
    TYPES = "types"
    EVENTS = "events"
    DOSING = "dosing"
    COVARIATES = "covariates"
    SEQUENCING = "sequencing"

    @property
    def rank(self) -> int:
        return list(Component).index(self)


class DiagnosticKind(str, Enum):
    """Diagnostic kinds; the value is the canonical message."""

    # Structural
    EMPTY_SCHEMA = "table has no columns"
    DUPLICATE_COLUMN = "column name appears more than once"
    INCONSISTENT_ROW = "row columns do not match the table schema"
    MANDATORY_ROLE_UNRESOLVED = "mandatory column role is not resolvable"
    COLUMN_NOT_FOUND = "configured column not found in table"
    AMBIGUOUS_COLUMN = "column name is ambiguous"
    COLUMN_BOUND_TWICE = "column bound to more than one role"
    # Type
    NON_NUMERIC_VALUES = "column contains non-numeric values"
    UNRESOLVED_COMPARTMENT_ALIAS = "compartment alias could not be resolved"
    # Semantic
    MISSING_SUBJECT_ID = "subject identifier is missing"
    MISSING_TIME = "record time is missing"
    UNRECOGNIZED_EVENT_TYPE = "unrecognized event-type value"
    DOSE_AMOUNT_NOT_POSITIVE = "dose amount must be positive"
    COMPARTMENT_NOT_POSITIVE = "compartment index must be positive"
    ADDL_NOT_INTEGER = "additional dose count must be a non-negative integer"
    ADDL_II_MISMATCH = "addl and ii must be jointly positive or jointly absent"
    RATE_INVALID = "infusion rate must be non-negative or a modeled-rate code"
    STEADY_STATE_INVALID = "steady-state flag must be 0, 1 or 2"
    STEADY_STATE_WITHOUT_INTERVAL = "steady-state dose requires a positive interval"
    OBSERVATION_WITH_DOSE_INFO = "observation row carries dosing information"
    # Advisory
    EMPTY_TABLE = "table contains no rows"
    EVENT_TYPE_UNBOUND = "event-type column is not bound"
    CO_TIMED_OBSERVATION = "observation coincides with dose time; value(s) discarded"
    COVARIATE_MISSING = "covariate value is missing"
    COVARIATE_NOT_CONSTANT = "constant covariate varies within subject"
    COVARIATE_MISSING_SUMMARY = "covariate missing for subjects"

    @property
    def category(self) -> Category:
        return _KIND_CATEGORY[self]


_KIND_CATEGORY: Dict[DiagnosticKind, Category] = {
    DiagnosticKind.EMPTY_SCHEMA: Category.STRUCTURAL,
    DiagnosticKind.DUPLICATE_COLUMN: Category.STRUCTURAL,
    DiagnosticKind.INCONSISTENT_ROW: Category.STRUCTURAL,
    DiagnosticKind.MANDATORY_ROLE_UNRESOLVED: Category.STRUCTURAL,
    DiagnosticKind.COLUMN_NOT_FOUND: Category.STRUCTURAL,
    DiagnosticKind.AMBIGUOUS_COLUMN: Category.STRUCTURAL,
    DiagnosticKind.COLUMN_BOUND_TWICE: Category.STRUCTURAL,
    DiagnosticKind.NON_NUMERIC_VALUES: Category.TYPE,
    DiagnosticKind.UNRESOLVED_COMPARTMENT_ALIAS: Category.TYPE,
    DiagnosticKind.MISSING_SUBJECT_ID: Category.SEMANTIC,
    DiagnosticKind.MISSING_TIME: Category.SEMANTIC,
    DiagnosticKind.UNRECOGNIZED_EVENT_TYPE: Category.SEMANTIC,
    DiagnosticKind.DOSE_AMOUNT_NOT_POSITIVE: Category.SEMANTIC,
    DiagnosticKind.COMPARTMENT_NOT_POSITIVE: Category.SEMANTIC,
    DiagnosticKind.ADDL_NOT_INTEGER: Category.SEMANTIC,
    DiagnosticKind.ADDL_II_MISMATCH: Category.SEMANTIC,
    DiagnosticKind.RATE_INVALID: Category.SEMANTIC,
    DiagnosticKind.STEADY_STATE_INVALID: Category.SEMANTIC,
    DiagnosticKind.STEADY_STATE_WITHOUT_INTERVAL: Category.SEMANTIC,
    DiagnosticKind.OBSERVATION_WITH_DOSE_INFO: Category.SEMANTIC,
    DiagnosticKind.EMPTY_TABLE: Category.ADVISORY,
    DiagnosticKind.EVENT_TYPE_UNBOUND: Category.ADVISORY,
    DiagnosticKind.CO_TIMED_OBSERVATION: Category.ADVISORY,
    DiagnosticKind.COVARIATE_MISSING: Category.ADVISORY,
    DiagnosticKind.COVARIATE_NOT_CONSTANT: Category.ADVISORY,
    DiagnosticKind.COVARIATE_MISSING_SUMMARY: Category.ADVISORY,
}


def subject_sort_key(subject_id: Optional[SubjectId]) -> Tuple[int, float, str]:
    """Order column-level findings first, then numeric ids, then text ids."""
    if subject_id is None:
        return (0, 0.0, "")
    if isinstance(subject_id, (int, float)):
        return (1, float(subject_id), "")
    return (2, 0.0, str(subject_id))


def format_time(value: Optional[float]) -> str:
    if value is None:
        return "missing"
    return f"{value:g}"


@dataclass(frozen=True)
class Diagnostic:
    """A single finding produced by one ingestion component."""

    kind: DiagnosticKind
    component: Component
    message: str
    columns: Tuple[str, ...] = ()
    subject_id: Optional[SubjectId] = None
    row_index: Optional[int] = None
    time: Optional[float] = None
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)

    @property
    def category(self) -> Category:
        return self.kind.category

    @property
    def severity(self) -> Severity:
        if self.kind.category is Category.ADVISORY:
            return Severity.WARNING
        return Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def sort_key(self) -> Tuple[Any, ...]:
        row = -1 if self.row_index is None else self.row_index
        return (
            self.component.rank,
            subject_sort_key(self.subject_id),
            row,
            self.kind.name,
            self.columns,
            self.message,
        )

    def render(self) -> str:
        location = []
        if self.subject_id is not None:
            location.append(f"subject {self.subject_id}")
        if self.row_index is not None:
            location.append(f"row {self.row_index}")
        if self.time is not None:
            location.append(f"time {format_time(self.time)}")
        where = f" ({', '.join(location)})" if location else ""
        return f"{self.severity.value} [{self.component.value}]{where}: {self.message}"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Output of one stage run together with the diagnostics it raised."""

    data: T
    diagnostics: Tuple[Diagnostic, ...] = ()


# ── Column binding and typed rows ───────────────────────────────────────

class RowKind(str, Enum):
    DOSE = "dose"
    OBSERVATION = "observation"
    INVALID = "invalid"


@dataclass(frozen=True)
class ColumnBinding:
    """Validated binding from logical roles to physical columns."""

    roles: Mapping[str, str] = field(default_factory=dict, hash=False)
    """Bound scalar roles only (id, time, amt, ...)"""

    observations: Tuple[str, ...] = ()
    covariates: Tuple[str, ...] = ()
    time_varying: FrozenSet[str] = frozenset()

    def column(self, role: str) -> Optional[str]:
        return self.roles.get(role)

    def is_bound(self, role: str) -> bool:
        return role in self.roles

    def is_time_varying(self, covariate: str) -> bool:
        return covariate in self.time_varying


@dataclass(frozen=True)
class ParsedRow:
    """One input row after numeric coercion, before and after classification."""

    index: int
    subject_id: Optional[SubjectId]
    time: Optional[float] = None
    amt: Optional[float] = None
    cmt: Optional[float] = None
    ii: Optional[float] = None
    addl: Optional[float] = None
    rate: Optional[float] = None
    ss: Optional[float] = None
    evid: Any = None
    observations: Mapping[str, Optional[float]] = field(default_factory=dict, hash=False)
    covariates: Mapping[str, Any] = field(default_factory=dict, hash=False)
    kind: Optional[RowKind] = None


# ── Subject records ─────────────────────────────────────────────────────

def _check_compartment_index(compartment: Optional[int]) -> None:
    if compartment is not None and compartment < 1:
        raise ValueError(f"compartment index must be positive, got {compartment}")


@dataclass(frozen=True)
class DoseEvent:
    """Administration of `amount` at `time`, repeated `additional` times every `interval`."""

    time: float
    amount: float
    row_index: int
    compartment: Optional[int] = None
    interval: float = 0.0
    additional: int = 0
    rate: Optional[float] = None
    steady_state: int = 0

    def __post_init__(self):
        if not self.amount > 0:
            raise ValueError(f"dose amount must be positive, got {self.amount}")
        _check_compartment_index(self.compartment)
        if self.additional > 0 and not self.interval > 0:
            raise ValueError("additional doses require a positive interval")
        if self.interval > 0 and self.additional == 0 and self.steady_state == 0:
            raise ValueError("a positive interval requires additional doses")

    @property
    def kind(self) -> RowKind:
        return RowKind.DOSE

    def dose_times(self) -> Tuple[float, ...]:
        """Administration times of the expanded regimen (`additional + 1` doses)."""
        return tuple(self.time + k * self.interval for k in range(self.additional + 1))


@dataclass(frozen=True)
class Observation:
    """Measured values at `time`; missing values are None."""

    time: float
    values: Mapping[str, Optional[float]] = field(hash=False)
    row_index: int
    compartment: Optional[int] = None

    def __post_init__(self):
        _check_compartment_index(self.compartment)
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @property
    def kind(self) -> RowKind:
        return RowKind.OBSERVATION

    @property
    def has_values(self) -> bool:
        return any(v is not None for v in self.values.values())

    def discard_values(self) -> "Observation":
        return replace(self, values={name: None for name in self.values})


TimedRecord = Union[DoseEvent, Observation]
CovariateTable = Mapping[SubjectId, Mapping[str, Any]]


@dataclass(frozen=True)
class Subject:
    """A subject's time-ordered records and subject-level covariates."""

    id: SubjectId
    records: Tuple[TimedRecord, ...] = ()
    covariates: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "records", tuple(self.records))
        object.__setattr__(self, "covariates", MappingProxyType(dict(self.covariates)))

    @property
    def doses(self) -> Tuple[DoseEvent, ...]:
        return tuple(r for r in self.records if isinstance(r, DoseEvent))

    @property
    def observations(self) -> Tuple[Observation, ...]:
        return tuple(r for r in self.records if isinstance(r, Observation))

    @property
    def times(self) -> Tuple[float, ...]:
        return tuple(r.time for r in self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of one ingestion run.

    `subjects` and `covariates` are empty whenever the report holds an Error;
    consumers must check `ok` (or call `raise_for_errors`) before use.
    """

    subjects: Tuple[Subject, ...]
    report: "DiagnosticReport"
    binding: Optional[ColumnBinding] = None
    covariates: CovariateTable = field(default_factory=dict, hash=False)
    runtime: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    @property
    def ok(self) -> bool:
        return not self.report.has_errors

    def raise_for_errors(self) -> None:
        if self.report.has_errors:
            raise IngestionError(
                f"Ingestion failed with {len(self.report.errors)} error(s)",
                report=self.report,
                details=self.report.summary(),
            )

    def subject(self, subject_id: SubjectId) -> Subject:
        for subj in self.subjects:
            if subj.id == subject_id:
                return subj
        raise KeyError(f"Subject not found: {subject_id}")
