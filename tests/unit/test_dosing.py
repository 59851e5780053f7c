"""Tests for the dosing regimen validator."""

import pytest

from pkdata.config.model import AppConfig
from pkdata.contracts.types import Category, DiagnosticKind
from pkdata.services.data_import import RecordTable
from pkdata.validation.classify import RowClassifier
from pkdata.validation.coercion import TypeCoercionChecker
from pkdata.validation.columns import ColumnResolver
from pkdata.validation.dosing import DosingRegimenValidator
from pkdata.validation.partition import partition_rows
from pkdata.validation.snapshot import TableSnapshotter

DOSE_COLUMNS = ["id", "time", "evid", "amt", "cmt", "ii", "addl", "rate", "ss", "dv"]


def validate(records, config=None):
    """Run the dosing validator over the first subject of `records`."""
    config = config or AppConfig()
    snapshot = TableSnapshotter().run(RecordTable(records)).data
    binding = ColumnResolver(config.columns).run(snapshot.columns).data
    rows = TypeCoercionChecker(config).run((binding, snapshot)).data
    classified = RowClassifier(config).run((binding, rows)).data
    partition = partition_rows(classified)[0]
    return DosingRegimenValidator(config, binding).run(partition)


def dose(amt="100", cmt="1", ii=".", addl=".", rate=".", ss="."):
    return ["1", "0", "1", amt, cmt, ii, addl, rate, ss, "."]


def observation(time="1", amt=".", cmt="2", ii=".", addl=".", dv="5"):
    return ["1", time, "0", amt, cmt, ii, addl, ".", ".", dv]


def kinds(result):
    return [d.kind for d in result.diagnostics]


class TestValidRegimens:
    @pytest.mark.parametrize("row", [
        dose(),
        dose(addl="5", ii="12"),
        dose(amt="0.5", cmt="."),
        dose(ss="2", ii="12", addl="3"),
        dose(rate="10"),
        dose(rate="-1"),
        dose(rate="-2"),
        dose(addl="0", ii="0"),
    ])
    def test_no_dosing_errors(self, build_records, row):
        result = validate(build_records(DOSE_COLUMNS, [row, observation()]))

        assert result.diagnostics == ()
        assert result.data == frozenset()


class TestDoseChecks:
    @pytest.mark.parametrize("amt", ["0", "-5", "."])
    def test_amount_must_be_positive(self, build_records, amt):
        result = validate(build_records(DOSE_COLUMNS, [observation(time="0.5"), dose(amt=amt)]))

        assert kinds(result) == [DiagnosticKind.DOSE_AMOUNT_NOT_POSITIVE]
        diagnostic = result.diagnostics[0]
        assert diagnostic.row_index == 1
        assert diagnostic.subject_id == "1"
        assert diagnostic.category is Category.SEMANTIC
        assert diagnostic.columns == ("amt",)
        assert diagnostic.message.startswith("dose amount must be positive")

    @pytest.mark.parametrize("addl, ii, ok", [
        ("5", ".", False),
        ("5", "0", False),
        ("5", "12", True),
        ("0", "12", False),
        (".", "12", False),
        (".", ".", True),
        ("0", "0", True),
        (".", "-12", False),
    ])
    def test_addl_ii_agreement(self, build_records, addl, ii, ok):
        result = validate(build_records(DOSE_COLUMNS, [dose(addl=addl, ii=ii)]))

        expected = [] if ok else [DiagnosticKind.ADDL_II_MISMATCH]
        assert kinds(result) == expected

    def test_mismatch_names_both_columns(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(addl="5")]))

        assert result.diagnostics[0].columns == ("addl", "ii")
        assert result.diagnostics[0].message == (
            "addl and ii must be jointly positive or jointly absent (addl=5, ii=missing)"
        )

    @pytest.mark.parametrize("cmt", ["0", "-1", "1.5"])
    def test_compartment_must_be_positive_integer(self, build_records, cmt):
        result = validate(build_records(DOSE_COLUMNS, [dose(cmt=cmt)]))

        assert kinds(result) == [DiagnosticKind.COMPARTMENT_NOT_POSITIVE]

    @pytest.mark.parametrize("addl, ii", [("2.5", "12"), ("-1", ".")])
    def test_addl_must_be_non_negative_integer(self, build_records, addl, ii):
        result = validate(build_records(DOSE_COLUMNS, [dose(addl=addl, ii=ii)]))

        assert kinds(result) == [DiagnosticKind.ADDL_NOT_INTEGER]

    def test_rate_codes(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(rate="-3")]))

        assert kinds(result) == [DiagnosticKind.RATE_INVALID]

    def test_steady_state_flag(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(ss="3", ii="24")]))

        assert kinds(result) == [DiagnosticKind.STEADY_STATE_INVALID]

    def test_steady_state_interval_still_needs_additional_doses(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(ss="1", ii="12", addl="0")]))

        assert kinds(result) == [DiagnosticKind.ADDL_II_MISMATCH]
        assert result.data == frozenset({0})

    def test_steady_state_interval_allowed_when_enabled(self, build_records):
        config = AppConfig(events={"allow_steady_state_interval": True})
        result = validate(build_records(DOSE_COLUMNS, [dose(ss="1", ii="12", addl="0")]), config)

        assert result.diagnostics == ()

    def test_steady_state_requires_interval(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(ss="1")]))

        assert kinds(result) == [DiagnosticKind.STEADY_STATE_WITHOUT_INTERVAL]

    def test_all_checks_reported_in_order(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(amt="0", cmt="0", addl="5", rate="-4", ss="7")]))

        assert kinds(result) == [
            DiagnosticKind.DOSE_AMOUNT_NOT_POSITIVE,
            DiagnosticKind.COMPARTMENT_NOT_POSITIVE,
            DiagnosticKind.ADDL_II_MISMATCH,
            DiagnosticKind.RATE_INVALID,
            DiagnosticKind.STEADY_STATE_INVALID,
        ]
        assert {d.row_index for d in result.diagnostics} == {0}

    def test_rejected_rows(self, build_records):
        rows = [dose(), observation(), dose(amt="0"), observation(time="2", cmt="0")]
        result = validate(build_records(DOSE_COLUMNS, rows))

        assert result.data == frozenset({2, 3})


class TestObservationChecks:
    def test_observation_with_amount(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(), observation(amt="100")]))

        assert kinds(result) == [DiagnosticKind.OBSERVATION_WITH_DOSE_INFO]
        assert result.diagnostics[0].row_index == 1

    def test_observation_with_regimen(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(), observation(addl="2", ii="12")]))

        assert kinds(result) == [DiagnosticKind.OBSERVATION_WITH_DOSE_INFO]

    def test_observation_with_partial_regimen(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(), observation(addl="2")]))

        assert result.diagnostics == ()

    def test_observation_compartment(self, build_records):
        result = validate(build_records(DOSE_COLUMNS, [dose(), observation(cmt="-2")]))

        assert kinds(result) == [DiagnosticKind.COMPARTMENT_NOT_POSITIVE]

    def test_amount_allowed_when_event_column_unbound(self, build_records):
        records = build_records(["id", "time", "amt", "dv"], [["1", "0", "100", "."], ["1", "1", ".", "5"]])

        result = validate(records)

        assert result.diagnostics == ()
