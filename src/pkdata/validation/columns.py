"""Column resolver: bind logical roles to physical columns."""

from __future__ import annotations
from typing import Dict, List, Optional, Sequence, Set, Tuple

import structlog

from ..config.constants import DEFAULT_OBSERVATION_COLUMNS, MANDATORY_ROLES, ROLE_DEFAULTS
from ..config.model import ColumnConfig
from ..contracts.types import ColumnBinding, Component, Diagnostic, DiagnosticKind, StageResult

logger = structlog.get_logger()


class ColumnResolver:
    """Resolve the configured roles against a table schema.

    Roles left unconfigured bind to their default column name if the table
    has it. Lookup is exact first, then case-insensitive when enabled; a
    case-insensitive match must be unique. Default lookups never claim a
    column that the configuration assigns elsewhere.
    """

    name = "columns"
    provides = {"binding"}
    requires = {"schema"}

    def __init__(self, config: ColumnConfig):
        self.config = config

    def run(self, schema: Sequence[str]) -> StageResult[Optional[ColumnBinding]]:
        self._schema = tuple(schema)
        self._diagnostics: List[Diagnostic] = []

        overrides = self.config.role_overrides()
        explicit_claims = set(overrides.values()) | set(self.config.observation_columns) | set(
            self.config.covariate_columns
        )

        roles: Dict[str, str] = {}
        for role, default_name in ROLE_DEFAULTS.items():
            explicit = overrides.get(role)
            column = self._lookup(explicit or default_name, role=role, explicit=explicit is not None)
            if column is None:
                continue
            if explicit is None and self._claimed(column, explicit_claims):
                continue
            roles[role] = column

        observations = self._resolve_list(self.config.observation_columns, "observation")
        if not self.config.observation_columns:
            observations = tuple(
                column
                for column in (self._find(name) for name in DEFAULT_OBSERVATION_COLUMNS)
                if isinstance(column, str) and not self._claimed(column, explicit_claims)
            )

        covariates = self._resolve_list(self.config.covariate_columns, "covariate")
        covariate_map = dict(zip(self.config.covariate_columns, covariates)) if len(covariates) == len(
            self.config.covariate_columns
        ) else {}
        time_varying = frozenset(
            covariate_map[name] for name in self.config.time_varying_covariates if name in covariate_map
        )

        self._check_double_binding(roles, observations, covariates)

        if self._diagnostics:
            return StageResult(None, tuple(self._diagnostics))

        binding = ColumnBinding(
            roles=roles,
            observations=observations,
            covariates=covariates,
            time_varying=time_varying,
        )
        logger.debug(
            "Resolved columns",
            roles=roles,
            observations=list(observations),
            covariates=list(covariates),
        )
        return StageResult(binding, ())

    def _claimed(self, column: str, claims: Set[str]) -> bool:
        if column in claims:
            return True
        return self.config.case_insensitive and column.lower() in {c.lower() for c in claims}

    def _find(self, name: str):
        """Return the matching column, a tuple of ambiguous matches, or None."""
        if name in self._schema:
            return name
        if not self.config.case_insensitive:
            return None
        matches = tuple(c for c in self._schema if c.lower() == name.lower())
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            return matches
        return None

    def _lookup(self, name: str, role: str, explicit: bool) -> Optional[str]:
        found = self._find(name)
        if isinstance(found, tuple):
            self._error(
                DiagnosticKind.AMBIGUOUS_COLUMN,
                f"column name '{name}' for role '{role}' is ambiguous: matches {', '.join(found)}",
                columns=found,
            )
            return None
        if found is None:
            if role in MANDATORY_ROLES:
                self._error(
                    DiagnosticKind.MANDATORY_ROLE_UNRESOLVED,
                    f"mandatory column role '{role}' is not resolvable: no column named '{name}'",
                    columns=(name,),
                )
            elif explicit:
                self._not_found(name, role)
        return found

    def _resolve_list(self, names: Sequence[str], role: str) -> Tuple[str, ...]:
        resolved = []
        for name in names:
            found = self._find(name)
            if isinstance(found, tuple):
                self._error(
                    DiagnosticKind.AMBIGUOUS_COLUMN,
                    f"{role} column name '{name}' is ambiguous: matches {', '.join(found)}",
                    columns=found,
                )
            elif found is None:
                self._not_found(name, role)
            else:
                resolved.append(found)
        return tuple(resolved)

    def _check_double_binding(
        self, roles: Dict[str, str], observations: Tuple[str, ...], covariates: Tuple[str, ...]
    ) -> None:
        claims: Dict[str, List[str]] = {}
        for role, column in roles.items():
            claims.setdefault(column, []).append(role)
        for column in observations:
            claims.setdefault(column, []).append("observation")
        for column in covariates:
            claims.setdefault(column, []).append("covariate")

        for column, claimed_by in claims.items():
            if len(claimed_by) > 1:
                self._error(
                    DiagnosticKind.COLUMN_BOUND_TWICE,
                    f"column '{column}' is bound to more than one role: {', '.join(claimed_by)}",
                    columns=(column,),
                )

    def _not_found(self, name: str, role: str) -> None:
        self._error(
            DiagnosticKind.COLUMN_NOT_FOUND,
            f"configured {role} column '{name}' not found in table",
            columns=(name,),
        )

    def _error(self, kind: DiagnosticKind, message: str, columns: Tuple[str, ...]) -> None:
        self._diagnostics.append(
            Diagnostic(kind=kind, component=Component.COLUMNS, message=message, columns=tuple(columns))
        )
