"""pkdata: validation and normalization of pharmacokinetic trial datasets."""

__version__ = "0.1.0"

from .app_api import (
    check_table,
    get_default_config,
    load_config_from_file,
    read_pkdata,
    validate_configuration,
)
from .config import AppConfig
from .contracts import (
    Diagnostic,
    DiagnosticKind,
    DoseEvent,
    IngestionError,
    IngestionResult,
    Observation,
    PKDataError,
    Severity,
    Subject,
)
from .services.export import subjects_to_frame
from .validation.reporter import DiagnosticReport

__all__ = [
    "__version__",
    "read_pkdata",
    "check_table",
    "get_default_config",
    "load_config_from_file",
    "validate_configuration",
    "subjects_to_frame",
    "AppConfig",
    "Diagnostic",
    "DiagnosticKind",
    "DiagnosticReport",
    "DoseEvent",
    "IngestionError",
    "IngestionResult",
    "Observation",
    "PKDataError",
    "Severity",
    "Subject",
]
