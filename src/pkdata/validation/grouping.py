"""Subject grouper and sequencer."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping

import structlog

from ..config.model import AppConfig
from ..contracts.types import (
    ColumnBinding,
    Component,
    Diagnostic,
    DiagnosticKind,
    DoseEvent,
    Observation,
    ParsedRow,
    RowKind,
    StageResult,
    Subject,
    TimedRecord,
    format_time,
)
from .partition import SubjectPartition

logger = structlog.get_logger()


@dataclass(frozen=True)
class SequencingInput:
    partition: SubjectPartition
    rejected: FrozenSet[int] = frozenset()
    covariates: Mapping[str, Any] = field(default_factory=dict)


class SubjectSequencer:
    """Build one Subject from its partition.

    Records are sorted by time, stable on input order. Observations sharing a
    time with a dose of the same subject lose their values, with one warning
    per (subject, time).
    """

    name = "sequencing"
    provides = {"subjects"}
    requires = {"classified_rows", "rejected_rows", "covariate_table"}

    def __init__(self, config: AppConfig, binding: ColumnBinding):
        self.config = config
        self.binding = binding

    def run(self, data: SequencingInput) -> StageResult[Subject]:
        partition = data.partition
        records: List[TimedRecord] = [
            self._to_record(row)
            for row in partition.rows
            if row.kind in (RowKind.DOSE, RowKind.OBSERVATION) and row.index not in data.rejected
        ]
        records.sort(key=lambda r: r.time)

        records, diagnostics = self._discard_co_timed(partition, records)
        subject = Subject(id=partition.subject_id, records=tuple(records), covariates=data.covariates)
        return StageResult(subject, tuple(diagnostics))

    def _to_record(self, row: ParsedRow) -> TimedRecord:
        compartment = int(row.cmt) if row.cmt is not None else None
        if row.kind is RowKind.DOSE:
            return DoseEvent(
                time=row.time,
                amount=row.amt,
                row_index=row.index,
                compartment=compartment,
                interval=row.ii or 0.0,
                additional=int(row.addl or 0),
                rate=row.rate,
                steady_state=int(row.ss or 0),
            )
        return Observation(
            time=row.time,
            values=row.observations,
            row_index=row.index,
            compartment=compartment,
        )

    def _discard_co_timed(self, partition: SubjectPartition, records: List[TimedRecord]):
        positions: Dict[float, List[int]] = {}
        for position, record in enumerate(records):
            positions.setdefault(record.time, []).append(position)

        diagnostics: List[Diagnostic] = []
        for time, members in positions.items():
            has_dose = any(isinstance(records[p], DoseEvent) for p in members)
            observed = [p for p in members if isinstance(records[p], Observation)]
            if not (has_dose and observed):
                continue
            for p in observed:
                records[p] = records[p].discard_values()
            rows = tuple(records[p].row_index for p in observed)
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.CO_TIMED_OBSERVATION,
                component=Component.SEQUENCING,
                message=(
                    f"observation coincides with dose time; value(s) discarded for subject "
                    f"{partition.subject_id} at time {format_time(time)} "
                    f"(row{'s' if len(rows) != 1 else ''} {', '.join(str(r) for r in rows)})"
                ),
                columns=self.binding.observations,
                subject_id=partition.subject_id,
                row_index=min(rows),
                time=time,
                details={"rows": rows},
            ))

        if diagnostics:
            logger.debug("Co-timed observations discarded", subject=partition.subject_id, n_times=len(diagnostics))
        return records, diagnostics
