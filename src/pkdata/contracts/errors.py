"""Error definitions for the pkdata package."""

from __future__ import annotations
from typing import Dict, Optional


class PKDataError(Exception):
    """Base exception for all pkdata package errors."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(PKDataError):
    """Configuration-related errors."""
    pass


class ValidationError(ConfigError):
    """Configuration validation errors."""
    pass


class TableError(PKDataError):
    """Tabular data source errors (unreadable file, consumed iterator)."""
    pass


class IngestionError(PKDataError):
    """Raised when a run produced Error diagnostics and subjects are unusable."""

    def __init__(self, message: str, report=None, details: Optional[Dict] = None):
        super().__init__(message, details)
        self.report = report
