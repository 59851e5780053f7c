"""Single-pass table snapshot with structural checks."""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

import structlog

from ..contracts.types import Component, Diagnostic, DiagnosticKind, StageResult
from ..services.data_import import RawTable

logger = structlog.get_logger()


@dataclass(frozen=True)
class TableSnapshot:
    """Immutable copy of the table taken in one ordered pass."""

    columns: Tuple[str, ...]
    rows: Tuple[Mapping[str, Any], ...]

    def __len__(self) -> int:
        return len(self.rows)


class TableSnapshotter:
    """Read a RawTable exactly once and check that every row fits the schema.

    A structural problem stops the read at the offending row and no snapshot
    is produced.
    """

    name = "snapshot"
    provides = {"schema", "snapshot"}
    requires: set = set()

    def run(self, table: RawTable) -> StageResult[Optional[TableSnapshot]]:
        columns = tuple(table.columns)

        if not columns:
            return StageResult(None, (_structural(DiagnosticKind.EMPTY_SCHEMA, "table has no columns"),))

        duplicates = sorted(name for name, count in Counter(columns).items() if count > 1)
        if duplicates:
            return StageResult(None, (
                _structural(
                    DiagnosticKind.DUPLICATE_COLUMN,
                    f"column name appears more than once: {', '.join(duplicates)}",
                    columns=tuple(duplicates),
                ),
            ))

        expected = set(columns)
        rows = []
        for index, row in enumerate(table):
            keys = set(row.keys())
            if keys != expected:
                missing = sorted(expected - keys)
                unexpected = sorted(str(k) for k in keys - expected)
                parts = []
                if missing:
                    parts.append(f"missing {', '.join(missing)}")
                if unexpected:
                    parts.append(f"unexpected {', '.join(unexpected)}")
                logger.error("Inconsistent row schema", row=index)
                return StageResult(None, (
                    _structural(
                        DiagnosticKind.INCONSISTENT_ROW,
                        f"row {index} does not match the table schema ({'; '.join(parts)})",
                        row_index=index,
                        details={"missing": tuple(missing), "unexpected": tuple(unexpected)},
                    ),
                ))
            rows.append(dict(row))

        diagnostics: Tuple[Diagnostic, ...] = ()
        if not rows:
            diagnostics = (Diagnostic(
                kind=DiagnosticKind.EMPTY_TABLE,
                component=Component.SNAPSHOT,
                message="table contains no rows",
            ),)

        logger.debug("Table snapshot taken", n_rows=len(rows), n_columns=len(columns))
        return StageResult(TableSnapshot(columns=columns, rows=tuple(rows)), diagnostics)


def _structural(kind: DiagnosticKind, message: str, **kwargs) -> Diagnostic:
    return Diagnostic(kind=kind, component=Component.SNAPSHOT, message=message, **kwargs)
