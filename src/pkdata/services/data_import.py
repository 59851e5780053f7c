"""Tabular data sources for ingestion.

The engine reads a table through the small `RawTable` protocol: an ordered
column schema plus a single pass over row mappings. Loaders are provided for
in-memory records, pandas DataFrames and CSV files.
"""

from __future__ import annotations

from itertools import chain
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

import numpy as np
import pandas as pd

from ..contracts.errors import TableError


@runtime_checkable
class RawTable(Protocol):
    """Read-only tabular source consumed once, in order."""

    @property
    def columns(self) -> Tuple[str, ...]:
        ...

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        ...


class RecordTable:
    """Table over an iterable of row mappings, possibly lazily produced.

    When `columns` is omitted the schema is taken from the first row. Rows can
    be iterated exactly once.
    """

    def __init__(self, rows: Iterable[Mapping[str, Any]], columns: Optional[Sequence[str]] = None):
        self._rows: Iterator[Mapping[str, Any]] = iter(rows)
        self._consumed = False
        if columns is None:
            first = next(self._rows, None)
            if first is None:
                columns = ()
            else:
                columns = tuple(first.keys())
                self._rows = chain([first], self._rows)
        self._columns = tuple(columns)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        if self._consumed:
            raise TableError("Table rows have already been consumed")
        self._consumed = True
        return self._rows


class FrameTable:
    """Table view over a pandas DataFrame."""

    def __init__(self, frame: pd.DataFrame):
        self.frame = frame

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(str(c) for c in self.frame.columns)

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        names = self.columns
        for values in self.frame.itertuples(index=False, name=None):
            yield dict(zip(names, (_to_python(v) for v in values)))


def read_table(path: Union[str, Path], **read_csv_kwargs) -> FrameTable:
    """Read a CSV file without pandas missing-value inference.

    Missing markers are left as text so the engine applies the configured
    missing tokens itself.
    """
    path = Path(path)
    if not path.exists():
        raise TableError(f"Data file not found: {path}")
    read_csv_kwargs.setdefault("keep_default_na", False)
    try:
        frame = pd.read_csv(path, **read_csv_kwargs)
    except Exception as e:
        raise TableError(f"Failed to read {path}: {e}")
    return FrameTable(frame)


def as_table(source: Any) -> RawTable:
    """Coerce a supported source into a RawTable."""
    if isinstance(source, pd.DataFrame):
        return FrameTable(source)
    if isinstance(source, (str, Path)):
        return read_table(source)
    if isinstance(source, RawTable):
        return source
    if isinstance(source, Iterable):
        return RecordTable(source)
    raise TableError(f"Unsupported table source: {type(source).__name__}")


def _to_python(value: Any) -> Any:
    """Unwrap numpy scalars so cells are plain Python values.

    Every pandas missing scalar (NaN, NaT, pd.NA) becomes None.
    """
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value
