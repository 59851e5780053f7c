"""Diagnostic reporter: one ordered report per run."""

from __future__ import annotations
from collections import Counter
from typing import Any, Dict, Iterable, Optional, Tuple

import pandas as pd

from ..contracts.types import Diagnostic, DiagnosticKind, Severity, SubjectId

REPORT_COLUMNS = [
    "severity",
    "category",
    "component",
    "kind",
    "subject_id",
    "row_index",
    "time",
    "columns",
    "message",
]


class DiagnosticReport:
    """All diagnostics of a run, ordered by component, subject id, then row.

    Any Error fails the run as a whole; warnings never block but are always
    part of the report.
    """

    def __init__(self, diagnostics: Iterable[Diagnostic] = ()):
        self._diagnostics: Tuple[Diagnostic, ...] = tuple(sorted(diagnostics, key=Diagnostic.sort_key))

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        return self._diagnostics

    @property
    def errors(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self._diagnostics if d.severity is Severity.ERROR)

    @property
    def warnings(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self._diagnostics if d.severity is Severity.WARNING)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)

    def __iter__(self):
        return iter(self._diagnostics)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DiagnosticReport):
            return NotImplemented
        return self._diagnostics == other._diagnostics

    def filter(
        self,
        kind: Optional[DiagnosticKind] = None,
        subject_id: Optional[SubjectId] = None,
        severity: Optional[Severity] = None,
    ) -> Tuple[Diagnostic, ...]:
        """Diagnostics matching every given criterion."""
        return tuple(
            d for d in self._diagnostics
            if (kind is None or d.kind is kind)
            and (subject_id is None or d.subject_id == subject_id)
            and (severity is None or d.severity is severity)
        )

    def summary(self) -> Dict[str, Any]:
        by_kind = Counter(d.kind.name for d in self._diagnostics)
        return {
            "errors": len(self.errors),
            "warnings": len(self.warnings),
            "by_kind": dict(sorted(by_kind.items())),
            "subjects_affected": len({d.subject_id for d in self._diagnostics if d.subject_id is not None}),
        }

    def render(self) -> str:
        """Deterministic plain-text rendering, errors first."""
        lines = [f"{len(self.errors)} error(s), {len(self.warnings)} warning(s)"]
        lines.extend(d.render() for d in self.errors)
        lines.extend(d.render() for d in self.warnings)
        return "\n".join(lines)

    def to_frame(self) -> pd.DataFrame:
        """Tabular view, one row per diagnostic, in report order."""
        records = [
            {
                "severity": d.severity.value,
                "category": d.category.value,
                "component": d.component.value,
                "kind": d.kind.name,
                "subject_id": d.subject_id,
                "row_index": d.row_index,
                "time": d.time,
                "columns": ",".join(d.columns),
                "message": d.message,
            }
            for d in self._diagnostics
        ]
        return pd.DataFrame.from_records(records, columns=REPORT_COLUMNS)

    def __repr__(self) -> str:
        return f"DiagnosticReport(errors={len(self.errors)}, warnings={len(self.warnings)})"
