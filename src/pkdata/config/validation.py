"""Configuration validation utilities."""

from typing import Dict, List
import structlog

from ..contracts.errors import ValidationError
from .constants import MAX_RECOMMENDED_THREADS
from .model import AppConfig

logger = structlog.get_logger()


def validate_config(config: AppConfig) -> None:
    """Validate configuration for common issues and conflicts.

    Args:
        config: Configuration to validate

    Raises:
        ValidationError: If configuration is invalid
    """
    errors: List[str] = []
    warnings: List[str] = []

    _validate_column_roles(config, errors)
    _validate_covariates(config, errors)
    _validate_event_codes(config, errors, warnings)
    _validate_resource_constraints(config, warnings)

    for warning in warnings:
        logger.warning(warning)

    if errors:
        raise ValidationError(
            f"Configuration validation failed: {'; '.join(errors)}",
            details={"errors": errors},
        )


def _validate_column_roles(config: AppConfig, errors: List[str]) -> None:
    """A physical column may serve one role only."""
    columns = config.columns
    claimed: Dict[str, List[str]] = {}
    for role, column in columns.role_overrides().items():
        claimed.setdefault(column, []).append(role)
    for column in columns.observation_columns:
        claimed.setdefault(column, []).append("observation")
    for column in columns.covariate_columns:
        claimed.setdefault(column, []).append("covariate")

    for column, roles in claimed.items():
        if len(roles) > 1:
            errors.append(f"column '{column}' configured for several roles: {', '.join(roles)}")


def _validate_covariates(config: AppConfig, errors: List[str]) -> None:
    declared = set(config.columns.covariate_columns)
    undeclared = [c for c in config.columns.time_varying_covariates if c not in declared]
    if undeclared:
        errors.append(
            f"time-varying covariates must also be covariate columns: {', '.join(undeclared)}"
        )


def _validate_event_codes(config: AppConfig, errors: List[str], warnings: List[str]) -> None:
    events = config.events
    if events.dose_code == events.observation_code:
        errors.append(f"dose_code and observation_code are both {events.dose_code}")

    for alias in events.compartment_alias_map:
        try:
            float(alias)
        except ValueError:
            continue
        warnings.append(
            f"compartment alias '{alias}' is numeric and will never be consulted"
        )

    if not events.event_data and events.compartment_alias_map:
        warnings.append("compartment aliases are configured but event_data is disabled")


def _validate_resource_constraints(config: AppConfig, warnings: List[str]) -> None:
    if config.run.threads > MAX_RECOMMENDED_THREADS:
        warnings.append(
            f"threads={config.run.threads} may cause performance issues"
        )
