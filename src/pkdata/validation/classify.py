"""Row classifier: dose, observation or invalid."""

from __future__ import annotations
from dataclasses import replace
from typing import List, Optional, Tuple

import structlog

from ..config.model import AppConfig
from ..contracts.types import (
    ColumnBinding,
    Component,
    Diagnostic,
    DiagnosticKind,
    ParsedRow,
    RowKind,
    StageResult,
)
from .coercion import NUMBER, coerce_numeric, display_value

logger = structlog.get_logger()


class RowClassifier:
    """Assign a RowKind to every parsed row.

    Rows without a subject id or a time are invalid. With `event_data`
    disabled every other row is an observation. With no event-type column
    bound every other row is an observation and a warning says so.
    """

    name = "events"
    provides = {"classified_rows"}
    requires = {"binding", "parsed_rows"}

    def __init__(self, config: AppConfig):
        self.events = config.events

    def run(self, data: Tuple[ColumnBinding, Tuple[ParsedRow, ...]]) -> StageResult[Tuple[ParsedRow, ...]]:
        binding, rows = data
        evid_column = binding.column("evid")
        diagnostics: List[Diagnostic] = []
        classified: List[ParsedRow] = []

        for row in rows:
            kind, problems = self._classify(row, binding, evid_column)
            diagnostics.extend(problems)
            classified.append(replace(row, kind=kind))

        if self.events.event_data and evid_column is None:
            diagnostics.append(self._unbound_warning(classified))

        logger.debug(
            "Rows classified",
            doses=sum(1 for r in classified if r.kind is RowKind.DOSE),
            observations=sum(1 for r in classified if r.kind is RowKind.OBSERVATION),
            invalid=sum(1 for r in classified if r.kind is RowKind.INVALID),
        )
        return StageResult(tuple(classified), tuple(diagnostics))

    def _classify(
        self, row: ParsedRow, binding: ColumnBinding, evid_column: Optional[str]
    ) -> Tuple[RowKind, List[Diagnostic]]:
        problems: List[Diagnostic] = []
        if row.subject_id is None:
            problems.append(Diagnostic(
                kind=DiagnosticKind.MISSING_SUBJECT_ID,
                component=Component.EVENTS,
                message=f"row {row.index} has no subject identifier in column '{binding.column('id')}'",
                columns=(binding.column("id"),),
                row_index=row.index,
            ))
        if row.time is None:
            problems.append(Diagnostic(
                kind=DiagnosticKind.MISSING_TIME,
                component=Component.EVENTS,
                message=f"row {row.index} has no time in column '{binding.column('time')}'",
                columns=(binding.column("time"),),
                subject_id=row.subject_id,
                row_index=row.index,
            ))
        if problems:
            return RowKind.INVALID, problems

        if not self.events.event_data or evid_column is None:
            return RowKind.OBSERVATION, problems

        cell = coerce_numeric(row.evid, ())
        if cell.status == NUMBER:
            if cell.value == self.events.dose_code:
                return RowKind.DOSE, problems
            if cell.value == self.events.observation_code:
                return RowKind.OBSERVATION, problems

        shown = "missing" if row.evid is None else f"'{display_value(row.evid)}'"
        problems.append(Diagnostic(
            kind=DiagnosticKind.UNRECOGNIZED_EVENT_TYPE,
            component=Component.EVENTS,
            message=(
                f"unrecognized event-type value {shown} in column '{evid_column}'; "
                f"expected {self.events.dose_code} (dose) or {self.events.observation_code} (observation)"
            ),
            columns=(evid_column,),
            subject_id=row.subject_id,
            row_index=row.index,
            time=row.time,
            details={"value": row.evid},
        ))
        return RowKind.INVALID, problems

    def _unbound_warning(self, rows: List[ParsedRow]) -> Diagnostic:
        with_amount = sum(1 for r in rows if r.amt is not None and r.amt > 0)
        message = (
            f"event-type column is not bound: no dosing events will be recognized and all "
            f"{len(rows)} row(s) are treated as observations"
        )
        if with_amount:
            message += f" ({with_amount} row(s) carry a positive amount)"
        message += "; set event_data = false to declare an event-free dataset"
        return Diagnostic(
            kind=DiagnosticKind.EVENT_TYPE_UNBOUND,
            component=Component.EVENTS,
            message=message,
            details={"n_rows": len(rows), "n_rows_with_amount": with_amount},
        )
