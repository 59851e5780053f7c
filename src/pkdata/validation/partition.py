"""Subject partitions: the unit of per-subject (and parallel) work."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..contracts.types import ParsedRow, RowKind, SubjectId


@dataclass(frozen=True)
class SubjectPartition:
    """All rows of one subject in input order."""

    subject_id: SubjectId
    rows: Tuple[ParsedRow, ...]

    def rows_of_kind(self, kind: RowKind) -> Tuple[ParsedRow, ...]:
        return tuple(r for r in self.rows if r.kind is kind)


def partition_rows(rows: Tuple[ParsedRow, ...]) -> Tuple[SubjectPartition, ...]:
    """Group rows by subject id, subjects in first-appearance order.

    Rows without an id belong to no subject and are left out.
    """
    grouped: Dict[SubjectId, List[ParsedRow]] = {}
    for row in rows:
        if row.subject_id is None:
            continue
        grouped.setdefault(row.subject_id, []).append(row)
    return tuple(SubjectPartition(subject_id, tuple(items)) for subject_id, items in grouped.items())
