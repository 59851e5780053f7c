"""Configuration data models."""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple, Union
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..contracts.errors import ConfigError
from .constants import DEFAULT_MISSING_VALUES, DOSE_EVID, OBSERVATION_EVID


class ColumnConfig(BaseModel):
    """Binding of logical roles to physical column names.

    A role left as None binds to its default column name when the table has
    one; an explicitly named column must exist.
    """

    id_column: Optional[str] = Field(None, description="Subject identifier column (default 'id')")
    time_column: Optional[str] = Field(None, description="Record time column (default 'time')")
    amt_column: Optional[str] = None
    evid_column: Optional[str] = None
    cmt_column: Optional[str] = None
    ii_column: Optional[str] = None
    addl_column: Optional[str] = None
    rate_column: Optional[str] = None
    ss_column: Optional[str] = None
    observation_columns: List[str] = Field(default_factory=list, description="Numeric observation columns (default ['dv'])")
    covariate_columns: List[str] = Field(default_factory=list)
    time_varying_covariates: List[str] = Field(
        default_factory=list,
        description="Covariates tracked per record instead of per subject",
    )
    case_insensitive: bool = True

    def role_overrides(self) -> Dict[str, str]:
        """Return the explicitly configured role -> column names."""
        overrides = {}
        for key, value in self.model_dump().items():
            if key.endswith("_column") and value is not None:
                overrides[key[: -len("_column")]] = value
        return overrides


class EventConfig(BaseModel):
    """Event-type interpretation."""

    event_data: bool = Field(True, description="False treats every row as an observation")
    dose_code: int = DOSE_EVID
    observation_code: int = OBSERVATION_EVID
    compartment_alias_map: Dict[str, int] = Field(default_factory=dict)
    allow_steady_state_interval: bool = Field(
        False, description="Let a steady-state dose (ss > 0) carry ii > 0 without addl"
    )

    @field_validator("compartment_alias_map")
    @classmethod
    def validate_alias_map(cls, v: Dict[str, int]) -> Dict[str, int]:
        bad = sorted(alias for alias, index in v.items() if index <= 0)
        if bad:
            raise ValueError(f"compartment aliases must map to positive integers: {bad}")
        return {alias.strip(): index for alias, index in v.items()}


class TableConfig(BaseModel):
    """Raw table cell interpretation."""

    missing_values: List[str] = Field(default_factory=lambda: list(DEFAULT_MISSING_VALUES))

    @field_validator("missing_values")
    @classmethod
    def strip_missing_values(cls, v: List[str]) -> List[str]:
        return sorted({token.strip() for token in v})


class RunConfig(BaseModel):
    """Run execution configuration."""

    threads: int = 1

    @field_validator("threads")
    @classmethod
    def validate_threads(cls, v: int) -> int:
        if v < 1:
            raise ValueError("threads must be positive")
        return v


# camelCase option names accepted by AppConfig.with_options
_OPTION_ALIASES: Dict[str, Tuple[str, str]] = {
    "idColumn": ("columns", "id_column"),
    "timeColumn": ("columns", "time_column"),
    "amtColumn": ("columns", "amt_column"),
    "evidColumn": ("columns", "evid_column"),
    "cmtColumn": ("columns", "cmt_column"),
    "iiColumn": ("columns", "ii_column"),
    "addlColumn": ("columns", "addl_column"),
    "rateColumn": ("columns", "rate_column"),
    "ssColumn": ("columns", "ss_column"),
    "observationColumns": ("columns", "observation_columns"),
    "covariateColumns": ("columns", "covariate_columns"),
    "timeVaryingCovariates": ("columns", "time_varying_covariates"),
    "eventData": ("events", "event_data"),
    "compartmentAliasMap": ("events", "compartment_alias_map"),
    "allowSteadyStateInterval": ("events", "allow_steady_state_interval"),
    "missingValues": ("table", "missing_values"),
}


class AppConfig(BaseModel):
    """Complete application configuration."""

    run: RunConfig = Field(default_factory=RunConfig)
    table: TableConfig = Field(default_factory=TableConfig)
    columns: ColumnConfig = Field(default_factory=ColumnConfig)
    events: EventConfig = Field(default_factory=EventConfig)

    def with_options(self, **options: Any) -> "AppConfig":
        """Return a copy with flat options routed into their sections.

        Accepts field names (``event_data=False``) or camelCase option names
        (``eventData=False``).
        """
        if not options:
            return self
        data = self.model_dump()
        for name, value in options.items():
            section, field_name = _resolve_option(name)
            if isinstance(value, (set, frozenset, tuple)):
                value = sorted(value) if isinstance(value, (set, frozenset)) else list(value)
            data[section][field_name] = value
        try:
            return AppConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(
                f"Invalid configuration options: {e}", details={"options": sorted(options)}
            ) from e

    def model_dump_toml(self) -> str:
        """Export configuration as TOML string."""
        try:
            import tomli_w
            return tomli_w.dumps(self.model_dump(exclude_none=True))
        except ImportError:
            raise ImportError("tomli_w required for TOML export")

    @classmethod
    def from_toml_file(cls, path: Union[Path, str]) -> "AppConfig":
        """Load configuration from TOML file."""
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib

        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)


def _resolve_option(name: str) -> Tuple[str, str]:
    if name in _OPTION_ALIASES:
        return _OPTION_ALIASES[name]
    for section, model in (
        ("columns", ColumnConfig),
        ("events", EventConfig),
        ("table", TableConfig),
        ("run", RunConfig),
    ):
        if name in model.model_fields:
            return section, name
    raise ConfigError(f"Unknown configuration option: {name}")
