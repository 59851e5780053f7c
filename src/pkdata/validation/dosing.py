"""Dosing regimen validator.

Checks the cross-field rules that make a dose row a legal regimen. A dose
row describes ``addl + 1`` administrations spaced ``ii`` apart, so ``addl``
and ``ii`` must be positive together or absent together. Only when
``events.allow_steady_state_interval`` is set may a steady-state dose
(``ss > 0``) carry ``ii > 0`` without ``addl``.
"""

from __future__ import annotations
from typing import FrozenSet, List, Optional, Tuple

import structlog

from ..config.constants import MODELED_RATE_CODES, STEADY_STATE_CODES
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
from .partition import SubjectPartition

logger = structlog.get_logger()


def _fmt(value: Optional[float]) -> str:
    return "missing" if value is None else f"{value:g}"


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def _is_integer(value: float) -> bool:
    return float(value).is_integer()


class DosingRegimenValidator:
    """Validate the dose and observation rows of one subject partition.

    Returns the indices of rows rejected from sequencing.
    """

    name = "dosing"
    provides = {"rejected_rows"}
    requires = {"classified_rows"}

    def __init__(self, config: AppConfig, binding: ColumnBinding):
        self.config = config
        self.binding = binding
        self.check_observations = config.events.event_data and binding.is_bound("evid")
        self.allow_steady_state_interval = config.events.allow_steady_state_interval

    def run(self, partition: SubjectPartition) -> StageResult[FrozenSet[int]]:
        diagnostics: List[Diagnostic] = []
        for row in partition.rows:
            if row.kind is RowKind.DOSE:
                diagnostics.extend(self.check_dose(row))
            elif row.kind is RowKind.OBSERVATION:
                diagnostics.extend(self.check_observation(row))

        rejected = frozenset(d.row_index for d in diagnostics)
        if rejected:
            logger.debug("Dosing rows rejected", subject=partition.subject_id, n_rows=len(rejected))
        return StageResult(rejected, tuple(diagnostics))

    def check_compartments(self, partition: SubjectPartition) -> StageResult[FrozenSet[int]]:
        """Compartment check alone, for event-free datasets."""
        diagnostics = [
            d
            for row in partition.rows
            if row.kind in (RowKind.DOSE, RowKind.OBSERVATION)
            for d in self._check_compartment(row)
        ]
        return StageResult(frozenset(d.row_index for d in diagnostics), tuple(diagnostics))

    def check_dose(self, row: ParsedRow) -> List[Diagnostic]:
        """All dose checks, in reporting order."""
        found: List[Diagnostic] = []

        # 1. amount
        if not _positive(row.amt):
            found.append(self._error(
                row, DiagnosticKind.DOSE_AMOUNT_NOT_POSITIVE,
                f"dose amount must be positive (amt={_fmt(row.amt)})", ("amt",),
            ))

        # 2. compartment
        found.extend(self._check_compartment(row))

        # 3. additional dose count
        if row.addl is not None and (row.addl < 0 or not _is_integer(row.addl)):
            found.append(self._error(
                row, DiagnosticKind.ADDL_NOT_INTEGER,
                f"additional dose count must be a non-negative integer (addl={_fmt(row.addl)})", ("addl",),
            ))

        # 4. addl / ii agreement
        steady_state = _positive(row.ss)
        interval_only = steady_state and self.allow_steady_state_interval
        addl_positive = _positive(row.addl)
        ii_positive = _positive(row.ii)
        mismatch = (
            (addl_positive and not ii_positive)
            or (ii_positive and not addl_positive and not interval_only)
            or (row.ii is not None and row.ii < 0)
        )
        if mismatch:
            found.append(self._error(
                row, DiagnosticKind.ADDL_II_MISMATCH,
                "addl and ii must be jointly positive or jointly absent "
                f"(addl={_fmt(row.addl)}, ii={_fmt(row.ii)})",
                ("addl", "ii"),
            ))

        # 5. infusion rate
        if row.rate is not None and row.rate < 0 and row.rate not in MODELED_RATE_CODES:
            found.append(self._error(
                row, DiagnosticKind.RATE_INVALID,
                f"infusion rate must be non-negative or a modeled-rate code (rate={_fmt(row.rate)})",
                ("rate",),
            ))

        # 6. steady state
        if row.ss is not None:
            if row.ss not in STEADY_STATE_CODES:
                found.append(self._error(
                    row, DiagnosticKind.STEADY_STATE_INVALID,
                    f"steady-state flag must be 0, 1 or 2 (ss={_fmt(row.ss)})", ("ss",),
                ))
            elif steady_state and not ii_positive:
                found.append(self._error(
                    row, DiagnosticKind.STEADY_STATE_WITHOUT_INTERVAL,
                    f"steady-state dose requires a positive interval (ii={_fmt(row.ii)})", ("ss", "ii"),
                ))
        return found

    def check_observation(self, row: ParsedRow) -> List[Diagnostic]:
        found = self._check_compartment(row)
        if not self.check_observations:
            return found
        if _positive(row.amt) or (_positive(row.addl) and _positive(row.ii)):
            found.append(self._error(
                row, DiagnosticKind.OBSERVATION_WITH_DOSE_INFO,
                "observation row carries dosing information "
                f"(amt={_fmt(row.amt)}, addl={_fmt(row.addl)}, ii={_fmt(row.ii)})",
                ("evid", "amt", "addl", "ii"),
            ))
        return found

    def _check_compartment(self, row: ParsedRow) -> List[Diagnostic]:
        if row.cmt is None or (row.cmt > 0 and _is_integer(row.cmt)):
            return []
        return [self._error(
            row, DiagnosticKind.COMPARTMENT_NOT_POSITIVE,
            f"compartment index must be positive (cmt={_fmt(row.cmt)})", ("cmt",),
        )]

    def _error(
        self, row: ParsedRow, kind: DiagnosticKind, message: str, roles: Tuple[str, ...]
    ) -> Diagnostic:
        columns = tuple(c for c in (self.binding.column(role) for role in roles) if c is not None)
        return Diagnostic(
            kind=kind,
            component=Component.DOSING,
            message=message,
            columns=columns,
            subject_id=row.subject_id,
            row_index=row.index,
            time=row.time,
        )
