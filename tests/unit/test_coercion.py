"""Tests for numeric coercion and the type coercion checker."""

import math

import pytest

from pkdata.config.model import AppConfig
from pkdata.contracts.types import Category, DiagnosticKind
from pkdata.services.data_import import RecordTable
from pkdata.validation.coercion import (
    INVALID,
    MISSING,
    NUMBER,
    TypeCoercionChecker,
    coerce_numeric,
    normalize_subject_id,
)
from pkdata.validation.columns import ColumnResolver
from pkdata.validation.snapshot import TableSnapshotter

MISSING_TOKENS = ("", ".", "NA")


def parse(records, config=None):
    config = config or AppConfig()
    snapshot = TableSnapshotter().run(RecordTable(records)).data
    binding = ColumnResolver(config.columns).run(snapshot.columns).data
    return TypeCoercionChecker(config).run((binding, snapshot))


class TestCoerceNumeric:
    @pytest.mark.parametrize("value", [None, "", " ", ".", "NA", float("nan")])
    def test_missing(self, value):
        assert coerce_numeric(value, MISSING_TOKENS).status == MISSING

    @pytest.mark.parametrize("value, expected", [
        ("10", 10.0),
        (" 3.5 ", 3.5),
        ("1e3", 1000.0),
        (7, 7.0),
        (-2.5, -2.5),
    ])
    def test_numbers(self, value, expected):
        cell = coerce_numeric(value, MISSING_TOKENS)
        assert cell.status == NUMBER
        assert cell.value == expected

    @pytest.mark.parametrize("value", ["<LOQ>", "abc", "inf", float("inf"), True, "1,5"])
    def test_invalid(self, value):
        assert coerce_numeric(value, MISSING_TOKENS).status == INVALID

    def test_custom_missing_tokens(self):
        assert coerce_numeric("BLQ", ("BLQ",)).status == MISSING
        assert coerce_numeric("NA", ("BLQ",)).status == INVALID


class TestNormalizeSubjectId:
    def test_integral_float_becomes_int(self):
        assert normalize_subject_id(1.0, MISSING_TOKENS) == 1

    def test_fractional_ids_stay_distinct(self):
        first = normalize_subject_id(1234567.5, MISSING_TOKENS)
        second = normalize_subject_id(1234568.5, MISSING_TOKENS)

        assert first == "1234567.5"
        assert second == "1234568.5"

    def test_text_is_stripped(self):
        assert normalize_subject_id(" A01 ", MISSING_TOKENS) == "A01"

    def test_missing(self):
        assert normalize_subject_id(".", MISSING_TOKENS) is None
        assert normalize_subject_id(math.nan, MISSING_TOKENS) is None


class TestTypeCoercionChecker:
    def test_missing_markers_are_not_offending(self, build_records):
        records = build_records(
            ["id", "time", "amt"],
            [["1", "0", "10"], ["1", "1", ""], ["1", "2", "7"]],
        )
        result = parse(records)

        assert result.diagnostics == ()
        assert [row.amt for row in result.data] == [10.0, None, 7.0]

    def test_offending_value_is_named(self, build_records):
        records = build_records(
            ["id", "time", "dv"],
            [["1", "0", "10"], ["1", "1", "<LOQ>"]],
        )
        result = parse(records)

        assert result.data is None
        assert len(result.diagnostics) == 1
        diagnostic = result.diagnostics[0]
        assert diagnostic.kind is DiagnosticKind.NON_NUMERIC_VALUES
        assert diagnostic.category is Category.TYPE
        assert diagnostic.columns == ("dv",)
        assert diagnostic.details["offending_values"] == ("<LOQ>",)
        assert "'<LOQ>'" in diagnostic.message

    def test_all_columns_reported_in_one_pass(self, build_records):
        records = build_records(
            ["id", "time", "amt", "dv"],
            [
                ["1", "0", "x", "1"],
                ["1", "zero", "y", "?"],
                ["1", "2", "x", "3"],
            ],
        )
        result = parse(records)

        assert result.data is None
        by_column = {d.columns[0]: d.details["offending_values"] for d in result.diagnostics}
        assert by_column == {"time": ("zero",), "amt": ("x", "y"), "dv": ("?",)}

    def test_custom_missing_values(self, build_records):
        records = build_records(["id", "time", "dv"], [["1", "0", "BLQ"]])
        config = AppConfig(table={"missing_values": ["", ".", "BLQ"]})

        result = parse(records, config)

        assert result.diagnostics == ()
        assert result.data[0].observations == {"dv": None}

    def test_compartment_aliases(self, build_records):
        records = build_records(
            ["id", "time", "cmt"],
            [["1", "0", "depot"], ["1", "1", "2"], ["1", "2", " central "]],
        )
        config = AppConfig(events={"compartment_alias_map": {"depot": 1, "central": 2}})

        result = parse(records, config)

        assert result.diagnostics == ()
        assert [row.cmt for row in result.data] == [1.0, 2.0, 2.0]

    def test_unresolved_compartment_alias(self, build_records):
        records = build_records(
            ["id", "time", "cmt"],
            [["1", "0", "depot"], ["1", "1", "gut"], ["1", "2", "gut"]],
        )
        config = AppConfig(events={"compartment_alias_map": {"depot": 1}})

        result = parse(records, config)

        assert result.data is None
        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.UNRESOLVED_COMPARTMENT_ALIAS]
        assert result.diagnostics[0].details["unresolved_aliases"] == ("gut",)

    def test_compartment_text_without_alias_map(self, build_records):
        records = build_records(["id", "time", "cmt"], [["1", "0", "depot"]])

        result = parse(records)

        assert [d.kind for d in result.diagnostics] == [DiagnosticKind.NON_NUMERIC_VALUES]

    def test_rows_are_typed(self, build_records):
        records = build_records(
            ["id", "time", "evid", "amt", "dv", "sex"],
            [["7", "1.5", "0", ".", "4.2", " F "]],
        )
        config = AppConfig(columns={"covariate_columns": ["sex"]})

        row = parse(records, config).data[0]

        assert row.index == 0
        assert row.subject_id == "7"
        assert row.time == 1.5
        assert row.amt is None
        assert row.evid == "0"
        assert row.observations == {"dv": 4.2}
        assert row.covariates == {"sex": "F"}
        assert row.kind is None

    def test_subject_id_is_not_type_checked(self, build_records):
        records = build_records(["id", "time"], [["A-01", "0"]])

        result = parse(records)

        assert result.diagnostics == ()
        assert result.data[0].subject_id == "A-01"
