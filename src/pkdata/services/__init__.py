"""Table sources and subject export."""

from .data_import import RawTable, RecordTable, FrameTable, read_table, as_table
from .export import subjects_to_frame, write_subjects

__all__ = [
    "RawTable",
    "RecordTable",
    "FrameTable",
    "read_table",
    "as_table",
    "subjects_to_frame",
    "write_subjects",
]
