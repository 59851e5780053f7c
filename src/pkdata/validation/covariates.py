"""Covariate auditor: per-subject covariate values and missingness."""

from __future__ import annotations
from typing import Any, Dict, List, Sequence, Tuple

import structlog

from ..contracts.types import (
    ColumnBinding,
    Component,
    Diagnostic,
    DiagnosticKind,
    StageResult,
    SubjectId,
    format_time,
    subject_sort_key,
)
from .partition import SubjectPartition

logger = structlog.get_logger()


def _rows_text(rows: Sequence[int]) -> str:
    return f"row{'s' if len(rows) != 1 else ''} {', '.join(str(r) for r in rows)}"


class CovariateAuditor:
    """Collect covariate values for one subject without imputing anything.

    Constant covariates are missing for the whole subject as soon as one row
    lacks a value. Time-varying covariates keep one (time, value) pair per
    row, missing values included.
    """

    name = "covariates"
    provides = {"covariate_table"}
    requires = {"classified_rows"}

    def __init__(self, binding: ColumnBinding):
        self.binding = binding

    def run(self, partition: SubjectPartition) -> StageResult[Dict[str, Any]]:
        values: Dict[str, Any] = {}
        diagnostics: List[Diagnostic] = []
        for covariate in self.binding.covariates:
            if self.binding.is_time_varying(covariate):
                values[covariate], found = self._time_varying(partition, covariate)
            else:
                values[covariate], found = self._constant(partition, covariate)
            diagnostics.extend(found)
        return StageResult(values, tuple(diagnostics))

    def _constant(self, partition: SubjectPartition, covariate: str) -> Tuple[Any, List[Diagnostic]]:
        cells = [(row.index, row.covariates[covariate]) for row in partition.rows]
        missing_rows = [index for index, value in cells if value is None]
        if missing_rows:
            return None, [self._missing(partition, covariate, missing_rows)]

        distinct: List[Any] = []
        for _, value in cells:
            if value not in distinct:
                distinct.append(value)
        if len(distinct) > 1:
            shown = ", ".join(repr(v) for v in distinct)
            return distinct[0], [Diagnostic(
                kind=DiagnosticKind.COVARIATE_NOT_CONSTANT,
                component=Component.COVARIATES,
                message=(
                    f"constant covariate '{covariate}' varies within subject {partition.subject_id} "
                    f"({shown}); keeping {distinct[0]!r}"
                ),
                columns=(covariate,),
                subject_id=partition.subject_id,
                details={"covariate": covariate, "values": tuple(distinct)},
            )]
        return (distinct[0] if distinct else None), []

    def _time_varying(self, partition: SubjectPartition, covariate: str) -> Tuple[Any, List[Diagnostic]]:
        series = tuple((row.time, row.covariates[covariate]) for row in partition.rows)
        missing = [row for row in partition.rows if row.covariates[covariate] is None]
        if not missing:
            return series, []
        times = ", ".join(format_time(row.time) for row in missing)
        diagnostic = self._missing(
            partition, covariate, [row.index for row in missing], extra=f" at time(s) {times}"
        )
        return series, [diagnostic]

    def _missing(
        self, partition: SubjectPartition, covariate: str, rows: List[int], extra: str = ""
    ) -> Diagnostic:
        return Diagnostic(
            kind=DiagnosticKind.COVARIATE_MISSING,
            component=Component.COVARIATES,
            message=(
                f"covariate '{covariate}' is missing for subject {partition.subject_id}{extra} "
                f"({_rows_text(rows)})"
            ),
            columns=(covariate,),
            subject_id=partition.subject_id,
            row_index=min(rows),
            details={"covariate": covariate, "rows": tuple(rows)},
        )

    def summarize(self, diagnostics: Sequence[Diagnostic]) -> Tuple[Diagnostic, ...]:
        """One summary warning per covariate with missing data, across all subjects."""
        affected: Dict[str, List[SubjectId]] = {}
        for diagnostic in diagnostics:
            if diagnostic.kind is not DiagnosticKind.COVARIATE_MISSING:
                continue
            subjects = affected.setdefault(diagnostic.details["covariate"], [])
            if diagnostic.subject_id not in subjects:
                subjects.append(diagnostic.subject_id)

        summary = []
        for covariate in self.binding.covariates:
            if not affected.get(covariate):
                continue
            subjects = sorted(affected[covariate], key=subject_sort_key)
            summary.append(Diagnostic(
                kind=DiagnosticKind.COVARIATE_MISSING_SUMMARY,
                component=Component.COVARIATES,
                message=(
                    f"covariate '{covariate}' missing for {len(subjects)} subject(s): "
                    f"{', '.join(str(s) for s in subjects)}"
                ),
                columns=(covariate,),
                details={"covariate": covariate, "subjects": tuple(subjects)},
            ))
        if summary:
            logger.info("Covariates with missing values", covariates=[d.columns[0] for d in summary])
        return tuple(summary)
