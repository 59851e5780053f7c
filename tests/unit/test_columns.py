"""Tests for the column resolver."""

from pkdata.config.model import ColumnConfig
from pkdata.contracts.types import DiagnosticKind
from pkdata.validation.columns import ColumnResolver

NONMEM_SCHEMA = ("id", "time", "evid", "amt", "cmt", "ii", "addl", "dv", "wt")


def resolve(schema, **columns):
    return ColumnResolver(ColumnConfig(**columns)).run(schema)


def kinds(result):
    return [d.kind for d in result.diagnostics]


class TestDefaultBinding:
    def test_nonmem_names_bind_by_default(self):
        result = resolve(NONMEM_SCHEMA)

        assert result.diagnostics == ()
        binding = result.data
        assert dict(binding.roles) == {
            "id": "id", "time": "time", "amt": "amt", "evid": "evid",
            "cmt": "cmt", "ii": "ii", "addl": "addl",
        }
        assert binding.observations == ("dv",)
        assert binding.covariates == ()

    def test_absent_optional_roles_are_unbound(self):
        result = resolve(("id", "time"))

        assert result.diagnostics == ()
        assert dict(result.data.roles) == {"id": "id", "time": "time"}
        assert result.data.observations == ()
        assert not result.data.is_bound("evid")

    def test_case_insensitive_lookup(self):
        result = resolve(("ID", "TIME", "EVID", "AMT", "DV"))

        assert result.diagnostics == ()
        assert result.data.column("id") == "ID"
        assert result.data.column("evid") == "EVID"
        assert result.data.observations == ("DV",)

    def test_case_sensitive_lookup(self):
        result = resolve(("ID", "TIME"), case_insensitive=False)

        assert result.data is None
        assert kinds(result) == [DiagnosticKind.MANDATORY_ROLE_UNRESOLVED] * 2


class TestConfiguredBinding:
    def test_explicit_columns(self):
        result = resolve(
            ("SUBJ", "TAD", "EVENT", "DOSE", "CONC", "CONC2"),
            id_column="SUBJ",
            time_column="TAD",
            evid_column="EVENT",
            amt_column="DOSE",
            observation_columns=["CONC", "CONC2"],
        )

        assert result.diagnostics == ()
        assert result.data.column("time") == "TAD"
        assert result.data.column("amt") == "DOSE"
        assert result.data.observations == ("CONC", "CONC2")

    def test_missing_mandatory_role(self):
        result = resolve(("subject", "time"))

        assert result.data is None
        assert kinds(result) == [DiagnosticKind.MANDATORY_ROLE_UNRESOLVED]
        assert "'id'" in result.diagnostics[0].message

    def test_explicit_column_must_exist(self):
        result = resolve(NONMEM_SCHEMA, evid_column="EVENT")

        assert result.data is None
        assert kinds(result) == [DiagnosticKind.COLUMN_NOT_FOUND]
        assert result.diagnostics[0].columns == ("EVENT",)

    def test_missing_observation_and_covariate_columns(self):
        result = resolve(NONMEM_SCHEMA, observation_columns=["conc"], covariate_columns=["sex"])

        assert result.data is None
        assert kinds(result) == [DiagnosticKind.COLUMN_NOT_FOUND] * 2

    def test_ambiguous_case_insensitive_match(self):
        result = resolve(("Id", "ID", "time"))

        assert result.data is None
        assert kinds(result) == [DiagnosticKind.AMBIGUOUS_COLUMN]
        assert result.diagnostics[0].columns == ("Id", "ID")

    def test_exact_match_wins_over_ambiguity(self):
        result = resolve(("id", "ID", "time"))

        assert result.diagnostics == ()
        assert result.data.column("id") == "id"

    def test_column_bound_twice(self):
        result = resolve(("subj", "time"), id_column="subj", amt_column="subj")

        assert result.data is None
        assert kinds(result) == [DiagnosticKind.COLUMN_BOUND_TWICE]
        assert result.diagnostics[0].columns == ("subj",)

    def test_default_lookup_leaves_claimed_columns(self):
        result = resolve(("id", "time", "amt"), observation_columns=["AMT"])

        assert result.diagnostics == ()
        assert not result.data.is_bound("amt")
        assert result.data.observations == ("amt",)

    def test_covariates_and_time_varying(self):
        result = resolve(
            NONMEM_SCHEMA + ("CRCL",),
            covariate_columns=["WT", "crcl"],
            time_varying_covariates=["crcl"],
        )

        assert result.diagnostics == ()
        assert result.data.covariates == ("wt", "CRCL")
        assert result.data.time_varying == frozenset({"CRCL"})
        assert result.data.is_time_varying("CRCL")
        assert not result.data.is_time_varying("wt")

    def test_column_level_diagnostics_have_no_subject(self):
        result = resolve(("subject",))

        assert all(d.subject_id is None and d.row_index is None for d in result.diagnostics)
