"""Ingestion pipeline: whole-table stages, then per-subject partitions."""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from ..config.model import AppConfig
from ..contracts.errors import PKDataError
from ..contracts.stage import Stage
from ..contracts.types import (
    ColumnBinding,
    Diagnostic,
    IngestionResult,
    Subject,
)
from ..services.data_import import RawTable
from ..validation.classify import RowClassifier
from ..validation.coercion import TypeCoercionChecker
from ..validation.columns import ColumnResolver
from ..validation.covariates import CovariateAuditor
from ..validation.dosing import DosingRegimenValidator
from ..validation.grouping import SequencingInput, SubjectSequencer
from ..validation.partition import SubjectPartition, partition_rows
from ..validation.reporter import DiagnosticReport
from ..validation.snapshot import TableSnapshotter
from .context import RunContext

# Stage classes in execution order; `requires` must be met by earlier `provides`
STAGE_ORDER = (
    TableSnapshotter,
    ColumnResolver,
    TypeCoercionChecker,
    RowClassifier,
    DosingRegimenValidator,
    CovariateAuditor,
    SubjectSequencer,
)


@dataclass(frozen=True)
class PartitionOutput:
    """Everything one subject partition produced."""

    subject: Subject
    covariates: Dict[str, Any]
    diagnostics: Tuple[Diagnostic, ...] = field(default=())


class IngestionPipeline:
    """Run all ingestion stages over one raw table.

    Structural problems stop the run right after the stage that found them and
    type problems stop it after the whole-table scan. Otherwise every subject
    partition is validated, audited and sequenced, on a thread pool when
    `run.threads > 1`, and all findings are merged into one report.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config or AppConfig()
        validate_stage_sequence(STAGE_ORDER)

    def run(self, table: RawTable, context: Optional[RunContext] = None) -> IngestionResult:
        """Ingest `table` and return subjects together with the diagnostic report.

        Raises:
            PKDataError: If the source cannot be read or a stage fails unexpectedly
        """
        if context is None:
            context = RunContext(run_id=f"ingest_{uuid4().hex[:8]}", threads=self.config.run.threads)
        context.start_run()

        try:
            result = self._execute(table, context)
        except PKDataError:
            context.end_run()
            context.logger.error("Ingestion aborted")
            raise
        except Exception as e:
            context.end_run()
            context.logger.error("Ingestion failed", error=str(e))
            raise PKDataError(f"Ingestion failed: {e}") from e

        total_runtime = context.end_run()
        context.logger.info(
            "Ingestion finished",
            subjects=len(result.subjects),
            errors=len(result.report.errors),
            warnings=len(result.report.warnings),
            total_runtime_s=total_runtime,
        )
        return result

    def _execute(self, table: RawTable, context: RunContext) -> IngestionResult:
        diagnostics: List[Diagnostic] = []

        with context.time_stage(TableSnapshotter):
            snapshot = TableSnapshotter().run(table)
        diagnostics.extend(snapshot.diagnostics)
        if snapshot.data is None:
            return self._finish(diagnostics, context)

        with context.time_stage(ColumnResolver):
            resolved = ColumnResolver(self.config.columns).run(snapshot.data.columns)
        diagnostics.extend(resolved.diagnostics)
        binding = resolved.data
        if binding is None:
            return self._finish(diagnostics, context)
        context.logger.debug("Columns resolved", roles=dict(binding.roles), observations=list(binding.observations))

        with context.time_stage(TypeCoercionChecker):
            parsed = TypeCoercionChecker(self.config).run((binding, snapshot.data))
        diagnostics.extend(parsed.diagnostics)
        if parsed.data is None:
            return self._finish(diagnostics, context, binding=binding)

        with context.time_stage(RowClassifier):
            classified = RowClassifier(self.config).run((binding, parsed.data))
        diagnostics.extend(classified.diagnostics)

        partitions = partition_rows(classified.data)
        context.logger.debug("Rows partitioned", n_subjects=len(partitions), n_rows=len(classified.data))

        auditor = CovariateAuditor(binding)
        with context.time_stage("subjects"):
            outputs = self._run_partitions(partitions, binding, auditor, context)

        subjects: List[Subject] = []
        covariates: Dict[Any, Dict[str, Any]] = {}
        partition_diagnostics: List[Diagnostic] = []
        for output in outputs:
            subjects.append(output.subject)
            if binding.covariates:
                covariates[output.subject.id] = output.covariates
            partition_diagnostics.extend(output.diagnostics)
        diagnostics.extend(partition_diagnostics)
        diagnostics.extend(auditor.summarize(partition_diagnostics))

        return self._finish(diagnostics, context, binding=binding, subjects=subjects, covariates=covariates)

    def _run_partitions(
        self,
        partitions: Sequence[SubjectPartition],
        binding: ColumnBinding,
        auditor: CovariateAuditor,
        context: RunContext,
    ) -> List[PartitionOutput]:
        dosing = DosingRegimenValidator(self.config, binding)
        event_data = self.config.events.event_data
        sequencer = SubjectSequencer(self.config, binding)

        def process(partition: SubjectPartition) -> PartitionOutput:
            with context.time_subject(partition.subject_id):
                return sequence(partition)

        def sequence(partition: SubjectPartition) -> PartitionOutput:
            found: List[Diagnostic] = []
            checked = dosing.run(partition) if event_data else dosing.check_compartments(partition)
            rejected = checked.data
            found.extend(checked.diagnostics)
            audited = auditor.run(partition)
            found.extend(audited.diagnostics)
            sequenced = sequencer.run(SequencingInput(partition, rejected, audited.data))
            found.extend(sequenced.diagnostics)
            return PartitionOutput(sequenced.data, audited.data, tuple(found))

        threads = context.threads
        if threads > 1 and len(partitions) > 1:
            context.logger.debug("Processing partitions in parallel", threads=threads, n_partitions=len(partitions))
            with ThreadPoolExecutor(max_workers=threads) as executor:
                return list(executor.map(process, partitions))
        return [process(partition) for partition in partitions]

    def _finish(
        self,
        diagnostics: Sequence[Diagnostic],
        context: RunContext,
        binding: Optional[ColumnBinding] = None,
        subjects: Sequence[Subject] = (),
        covariates: Optional[Dict[Any, Dict[str, Any]]] = None,
    ) -> IngestionResult:
        context.tally(diagnostics)
        report = DiagnosticReport(diagnostics)
        if report.has_errors:
            subjects, covariates = (), None
        return IngestionResult(
            subjects=tuple(subjects),
            report=report,
            binding=binding,
            covariates=covariates or {},
            runtime=context.get_runtime_metadata(),
        )


def validate_stage_sequence(stages: Sequence[Stage]) -> None:
    """Check that every stage's requirements are provided by an earlier stage.

    Raises:
        PKDataError: If an entry is not a Stage, or a stage requires something
            nothing before it provides
    """
    available: set = set()
    for stage in stages:
        if not isinstance(stage, Stage):
            label = getattr(stage, "__name__", type(stage).__name__)
            raise PKDataError(f"{label} does not implement the Stage protocol", details={"stage": label})
        missing = set(stage.requires) - available
        if missing:
            raise PKDataError(
                f"Stage '{stage.name}' requires {sorted(missing)} which no earlier stage provides",
                details={"stage": stage.name, "missing": sorted(missing)},
            )
        available |= set(stage.provides)
