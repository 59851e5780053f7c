"""Stage protocol definition."""

from typing import Generic, TypeVar, Protocol, Set, runtime_checkable

TIn = TypeVar("TIn")
TOut = TypeVar("TOut")


@runtime_checkable
class Stage(Protocol, Generic[TIn, TOut]):
    """Protocol for ingestion stages.

    Stages are the building blocks of the ingestion pipeline. Each stage:
    - Has a unique name used for timing and diagnostics ordering
    - Declares what artifacts it provides
    - Declares what artifacts it requires from upstream stages
    - Implements a run method that transforms input to output
    """

    name: str
    """Unique identifier for this stage."""

    provides: Set[str]
    """Artifact tags this stage provides.

    Examples:
    - {"binding"} for the column resolver
    - {"parsed_rows"} for the type coercion checker
    - {"subjects"} for the subject sequencer
    """

    requires: Set[str]
    """Artifact tags required from upstream stages.

    Examples:
    - {"schema"} for the column resolver
    - {"binding", "snapshot"} for the type coercion checker
    """

    def run(self, data: TIn) -> TOut:
        """Execute this stage with the given input data.

        Args:
            data: Input data matching the stage's expected input type

        Returns:
            A StageResult carrying the stage output and its diagnostics
        """
        ...
