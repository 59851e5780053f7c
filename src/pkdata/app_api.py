"""Main API facade for the pkdata package.

This module provides the primary interface used by the CLI and by analysis
scripts. All high-level operations flow through these functions.
"""

from __future__ import annotations
import uuid
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from .config import AppConfig, default_config, load_config, validate_config
from .contracts.types import IngestionResult
from .engine import IngestionPipeline, RunContext
from .services.data_import import as_table
from .validation.reporter import DiagnosticReport

logger = structlog.get_logger()


def get_default_config() -> AppConfig:
    """Get default configuration.

    Returns:
        Default configuration with NONMEM-style column names
    """
    return default_config()


def load_config_from_file(path: Union[str, Path]) -> AppConfig:
    """Load and validate configuration from file.

    Args:
        path: Path to configuration file

    Returns:
        Loaded and validated configuration

    Raises:
        ConfigError: If configuration cannot be loaded or is invalid
    """
    config = load_config(path)
    validate_config(config)
    return config


def validate_configuration(config: AppConfig) -> None:
    """Validate configuration for common issues.

    Args:
        config: Configuration to validate

    Raises:
        ValidationError: If configuration has errors
    """
    validate_config(config)


def read_pkdata(
    table: Any,
    config: Optional[AppConfig] = None,
    run_id: Optional[str] = None,
    **options: Any,
) -> IngestionResult:
    """Validate and normalize a PK dataset.

    Args:
        table: RawTable, pandas DataFrame, CSV path or iterable of row mappings
        config: Configuration to start from (defaults if not provided)
        run_id: Optional run identifier (generated if not provided)
        **options: Flat option overrides, e.g. ``evidColumn="EVID"`` or
            ``event_data=False``

    Returns:
        Subjects, diagnostic report, column binding and covariate table.
        Subjects are empty when the report holds any Error.

    Raises:
        ConfigError: If an option is unknown or the configuration is invalid
        TableError: If the table cannot be read
    """
    config = (config or default_config()).with_options(**options)
    validate_config(config)

    if run_id is None:
        run_id = f"ingest_{uuid.uuid4().hex[:8]}"
    context = RunContext(run_id=run_id, threads=config.run.threads)

    source = as_table(table)
    logger.info("Reading dataset", run_id=run_id, columns=len(source.columns))
    return IngestionPipeline(config).run(source, context)


def check_table(
    table: Any,
    config: Optional[AppConfig] = None,
    run_id: Optional[str] = None,
    **options: Any,
) -> DiagnosticReport:
    """Run ingestion and return only the diagnostic report."""
    return read_pkdata(table, config=config, run_id=run_id, **options).report
