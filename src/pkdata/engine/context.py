"""Run context for one ingestion run.

Holds the run-id bound logger, timings for the whole-table stages and for each
subject partition, and diagnostic tallies per producing component. All of it
ends up in ``IngestionResult.runtime``.
"""

from __future__ import annotations
import threading
import time
from collections import Counter
from typing import Any, Callable, Dict, Iterable, Optional, Union
import structlog

from ..contracts.stage import Stage
from ..contracts.types import Diagnostic, SubjectId


class RunContext:
    """Logging, timing and tallies for one ingestion run.

    Subject timers may run on pool threads; their bookkeeping is guarded by a
    lock.
    """

    def __init__(
        self,
        run_id: str,
        threads: int = 1,
        logger: Optional[structlog.BoundLogger] = None
    ):
        self.run_id = run_id
        self.threads = threads

        if logger is None:
            self.logger = structlog.get_logger().bind(run_id=run_id)
        else:
            self.logger = logger.bind(run_id=run_id)

        self._lock = threading.Lock()
        self._start_time: Optional[float] = None
        self._stage_times: Dict[str, float] = {}
        self._subject_times: Dict[SubjectId, float] = {}
        self._tallies: Dict[str, Counter] = {}

        self.metadata: Dict[str, Any] = {
            "run_id": run_id,
            "threads": threads,
        }

    def start_run(self) -> None:
        """Mark start of run execution."""
        self._start_time = time.perf_counter()
        self.logger.info("Ingestion started", threads=self.threads)

    def end_run(self) -> float:
        """Mark end of run execution and return total runtime in seconds."""
        if self._start_time is None:
            return 0.0

        runtime = time.perf_counter() - self._start_time
        self.logger.info(
            "Ingestion completed",
            runtime_s=runtime,
            stages=list(self._stage_times),
            subjects_timed=len(self._subject_times),
        )
        return runtime

    def time_stage(self, stage: Union[str, Stage]) -> "_Timer":
        """Time a whole-table stage, given as a Stage or by name."""
        name = stage if isinstance(stage, str) else stage.name
        return _Timer(self, "stage", name, self._record_stage)

    def time_subject(self, subject_id: SubjectId) -> "_Timer":
        """Time the dosing, covariate and sequencing work of one subject."""
        return _Timer(self, "subject", subject_id, self._record_subject)

    def tally(self, diagnostics: Iterable[Diagnostic]) -> None:
        """Count diagnostics by component and severity."""
        counts: Dict[str, Counter] = {}
        for diagnostic in diagnostics:
            counts.setdefault(diagnostic.component.value, Counter())[diagnostic.severity.value] += 1

        with self._lock:
            for component, counter in counts.items():
                self._tallies.setdefault(component, Counter()).update(counter)
        for component, counter in counts.items():
            self.logger.debug("Diagnostics raised", component=component, **dict(counter))

    def get_runtime_metadata(self) -> Dict[str, Any]:
        """Runtime information for this run: timings and diagnostic tallies."""
        with self._lock:
            stage_times = dict(self._stage_times)
            subject_times = dict(self._subject_times)
            tallies = {component: dict(counter) for component, counter in self._tallies.items()}

        metadata = self.metadata.copy()
        metadata.update({
            "stage_times": stage_times,
            "total_runtime_s": sum(stage_times.values()),
            "diagnostics": tallies,
        })
        if subject_times:
            slowest = max(subject_times, key=subject_times.get)
            metadata["subject_times"] = {
                "n_subjects": len(subject_times),
                "total_s": sum(subject_times.values()),
                "slowest_subject": slowest,
                "slowest_s": subject_times[slowest],
            }
        return metadata

    def _record_stage(self, name: str, runtime: float) -> None:
        with self._lock:
            self._stage_times[name] = runtime

    def _record_subject(self, subject_id: SubjectId, runtime: float) -> None:
        with self._lock:
            self._subject_times[subject_id] = runtime


class _Timer:
    """Context manager timing one stage or subject."""

    def __init__(
        self,
        context: RunContext,
        scope: str,
        label: Any,
        record: Callable[[Any, float], None],
    ):
        self.context = context
        self.scope = scope
        self.label = label
        self.record = record
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        if self.scope == "stage":
            self.context.logger.debug("Stage started", stage=self.label)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return
        runtime = time.perf_counter() - self.start_time
        self.record(self.label, runtime)

        fields = {self.scope: self.label, "runtime_s": runtime}
        if exc_type is not None:
            self.context.logger.error(f"{self.scope.capitalize()} failed", error=str(exc_val), **fields)
        elif self.scope == "stage":
            self.context.logger.info("Stage completed", **fields)
        else:
            self.context.logger.debug("Subject sequenced", **fields)
