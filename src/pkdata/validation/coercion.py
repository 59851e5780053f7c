"""Type coercion checker: numeric roles must hold numbers or missing markers."""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import structlog

from ..config.constants import NUMERIC_ROLES
from ..config.model import AppConfig
from ..contracts.types import (
    ColumnBinding,
    Component,
    Diagnostic,
    DiagnosticKind,
    ParsedRow,
    StageResult,
    SubjectId,
)
from .snapshot import TableSnapshot

logger = structlog.get_logger()

MISSING = "missing"
NUMBER = "number"
INVALID = "invalid"


@dataclass(frozen=True)
class NumericCell:
    status: str
    value: Optional[float] = None


def is_missing(value: Any, missing_values: Iterable[str]) -> bool:
    """True for None, NaN and configured missing tokens."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        return value.strip() in missing_values
    return False


def coerce_numeric(value: Any, missing_values: Iterable[str]) -> NumericCell:
    """Classify a cell as missing, a finite number, or invalid."""
    if is_missing(value, missing_values):
        return NumericCell(MISSING)
    if isinstance(value, bool):
        return NumericCell(INVALID)
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return NumericCell(INVALID)
    if not math.isfinite(number):
        return NumericCell(INVALID)
    return NumericCell(NUMBER, number)


def normalize_subject_id(value: Any, missing_values: Iterable[str]) -> Optional[SubjectId]:
    """Normalize an identifier cell: integral floats become ints, text is stripped."""
    if is_missing(value, missing_values):
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return value.strip()
    return str(value)


def normalize_cell(value: Any, missing_values: Iterable[str]) -> Any:
    """Missing markers become None, text is stripped, anything else is kept."""
    if is_missing(value, missing_values):
        return None
    if isinstance(value, str):
        return value.strip()
    return value


def display_value(value: Any) -> str:
    return value.strip() if isinstance(value, str) else str(value)


class TypeCoercionChecker:
    """Scan every numeric-role column and parse rows into typed values.

    All offending columns are reported in one pass; each diagnostic lists the
    distinct offending values in first-seen order. Compartment text is looked
    up in the alias map when one is configured.
    """

    name = "types"
    provides = {"parsed_rows"}
    requires = {"binding", "snapshot"}

    def __init__(self, config: AppConfig):
        self.config = config
        self.missing_values = frozenset(config.table.missing_values)
        self.alias_map = dict(config.events.compartment_alias_map)

    def run(
        self, data: Tuple[ColumnBinding, TableSnapshot]
    ) -> StageResult[Optional[Tuple[ParsedRow, ...]]]:
        binding, snapshot = data
        numeric_columns = self._numeric_columns(binding)

        offending: Dict[str, Dict[str, None]] = {column: {} for _, column in numeric_columns}
        unresolved: Dict[str, None] = {}
        parsed: List[ParsedRow] = []

        for index, row in enumerate(snapshot.rows):
            values: Dict[str, Optional[float]] = {}
            for role, column in numeric_columns:
                raw = row[column]
                cell = coerce_numeric(raw, self.missing_values)
                if cell.status == INVALID and role == "cmt" and self.alias_map:
                    token = display_value(raw)
                    if token in self.alias_map:
                        cell = NumericCell(NUMBER, float(self.alias_map[token]))
                    else:
                        unresolved.setdefault(token)
                        continue
                if cell.status == INVALID:
                    offending[column].setdefault(display_value(raw))
                values[column] = cell.value
            parsed.append(self._build_row(index, row, binding, values))

        diagnostics = []
        for role, column in numeric_columns:
            bad = tuple(offending[column])
            if bad:
                quoted = ", ".join(f"'{v}'" for v in bad)
                diagnostics.append(Diagnostic(
                    kind=DiagnosticKind.NON_NUMERIC_VALUES,
                    component=Component.TYPES,
                    message=f"column '{column}' ({role}) contains non-numeric values: {quoted}",
                    columns=(column,),
                    details={"role": role, "offending_values": bad},
                ))
        if unresolved:
            column = binding.column("cmt")
            tokens = tuple(unresolved)
            quoted = ", ".join(f"'{v}'" for v in tokens)
            diagnostics.append(Diagnostic(
                kind=DiagnosticKind.UNRESOLVED_COMPARTMENT_ALIAS,
                component=Component.TYPES,
                message=f"column '{column}' contains compartment aliases that could not be resolved: {quoted}",
                columns=(column,),
                details={"role": "cmt", "unresolved_aliases": tokens},
            ))

        if diagnostics:
            logger.debug("Type check failed", n_columns=len(diagnostics))
            return StageResult(None, tuple(diagnostics))

        logger.debug("Type check passed", n_rows=len(parsed), n_numeric_columns=len(numeric_columns))
        return StageResult(tuple(parsed), ())

    def _numeric_columns(self, binding: ColumnBinding) -> List[Tuple[str, str]]:
        columns = [(role, binding.column(role)) for role in NUMERIC_ROLES if binding.is_bound(role)]
        columns.extend(("observation", column) for column in binding.observations)
        return columns

    def _build_row(
        self,
        index: int,
        row: Mapping[str, Any],
        binding: ColumnBinding,
        values: Mapping[str, Optional[float]],
    ) -> ParsedRow:
        def role_value(role: str) -> Optional[float]:
            column = binding.column(role)
            return values.get(column) if column is not None else None

        evid_column = binding.column("evid")
        return ParsedRow(
            index=index,
            subject_id=normalize_subject_id(row[binding.column("id")], self.missing_values),
            time=role_value("time"),
            amt=role_value("amt"),
            cmt=role_value("cmt"),
            ii=role_value("ii"),
            addl=role_value("addl"),
            rate=role_value("rate"),
            ss=role_value("ss"),
            evid=normalize_cell(row[evid_column], self.missing_values) if evid_column else None,
            observations={column: values.get(column) for column in binding.observations},
            covariates={
                column: normalize_cell(row[column], self.missing_values) for column in binding.covariates
            },
        )
