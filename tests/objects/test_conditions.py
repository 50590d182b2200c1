"""Tests for condition trees rendered into WHERE clauses."""

from __future__ import annotations

from datetime import date

import pytest

from objectspine.core.dialect import PostgreSQLDialect, SQLiteDialect
from objectspine.core.errors import FieldNotFoundError, UnprocessableError
from objectspine.objects.conditions import And, Comparison, Not, Op, Or
from objectspine.objects.entity_object import EntityObjectStatus
from objectspine.objects.query import EntitySelectBuilder


def render(entity_type, condition, dialect=None):
    builder = EntitySelectBuilder(entity_type, dialect or SQLiteDialect())
    sql = condition.to_sql(builder)
    return sql, tuple(builder._params)


class TestScalarComparisons:
    def test_binary_operator(self, asset_type):
        assert render(asset_type, Comparison("weight", Op.GT, "2.5")) == ("t.weight > ?", (2.5,))

    def test_field_codes_are_case_insensitive(self, asset_type):
        assert render(asset_type, Comparison("LABEL", Op.EQ, "x")) == ("t.label = ?", ("x",))

    def test_standard_field(self, asset_type):
        assert render(asset_type, Comparison("status", Op.EQ, "INACTIVE")) == ("t.status = ?", (1,))
        assert render(asset_type, Comparison("status", Op.EQ, EntityObjectStatus.ACTIVE))[1] == (0,)
        assert render(asset_type, Comparison("id", Op.GE, "3")) == ("t.id >= ?", (3,))

    def test_dates_are_encoded_for_the_dialect(self, asset_type):
        sql, params = render(asset_type, Comparison("installed", Op.LT, "2026-01-05"))
        assert sql == "t.installed < ?"
        assert params == ("2026-01-05",)
        _, pg_params = render(asset_type, Comparison("installed", Op.LT, "2026-01-05"), PostgreSQLDialect())
        assert pg_params == (date(2026, 1, 5),)

    def test_like_binds_raw_text(self, asset_type):
        assert render(asset_type, Comparison("label", Op.LIKE, "Pump%")) == ("t.label LIKE ?", ("Pump%",))

    def test_ilike_per_dialect(self, asset_type):
        assert render(asset_type, Comparison("label", Op.ILIKE, "pump%"))[0] == "LOWER(t.label) LIKE LOWER(?)"
        assert render(asset_type, Comparison("label", Op.ILIKE, "pump%"), PostgreSQLDialect())[0] == (
            "t.label ILIKE %s"
        )

    def test_in(self, asset_type):
        assert render(asset_type, Comparison("weight", Op.IN, [1, 2])) == ("t.weight IN (?, ?)", (1.0, 2.0))

    def test_empty_in_matches_nothing(self, asset_type):
        assert render(asset_type, Comparison("weight", Op.IN, [])) == ("1 = 0", ())

    def test_between(self, asset_type):
        sql, params = render(asset_type, Comparison("weight", Op.BETWEEN, (1, 5)))
        assert sql == "t.weight BETWEEN ? AND ?"
        assert params == (1.0, 5.0)

    def test_between_needs_two_values(self, asset_type):
        with pytest.raises(UnprocessableError):
            render(asset_type, Comparison("weight", Op.BETWEEN, [1]))

    def test_in_needs_a_list(self, asset_type):
        with pytest.raises(UnprocessableError):
            render(asset_type, Comparison("weight", Op.IN, 3))

    def test_null_checks(self, asset_type):
        assert render(asset_type, Comparison("label", Op.IS_NULL)) == ("t.label IS NULL", ())
        assert render(asset_type, Comparison("location", Op.NOT_NULL)) == ("t.location IS NOT NULL", ())

    def test_unknown_field(self, asset_type):
        with pytest.raises(FieldNotFoundError):
            render(asset_type, Comparison("colour", Op.EQ, "red"))

    def test_geometry_supports_only_null_checks(self, asset_type):
        with pytest.raises(UnprocessableError):
            render(asset_type, Comparison("location", Op.EQ, "POINT(0 0)"))

    def test_unconvertible_value(self, asset_type):
        with pytest.raises(UnprocessableError):
            render(asset_type, Comparison("weight", Op.EQ, "heavy"))


class TestMultiValuedComparisons:
    def test_contains(self, asset_type):
        sql, params = render(asset_type, Comparison("tags", Op.EQ, 1))
        assert sql == "EXISTS (SELECT 1 FROM json_each(t.tags) WHERE json_each.value = ?)"
        assert params == (1.0,)

    def test_contains_postgres(self, asset_type):
        assert render(asset_type, Comparison("tags", Op.EQ, 1), PostgreSQLDialect())[0] == "%s = ANY(t.tags)"

    def test_ordering_operators_rejected(self, asset_type):
        with pytest.raises(UnprocessableError):
            render(asset_type, Comparison("tags", Op.GT, 1))


class TestRelationComparisons:
    def test_join_table_membership(self, asset_type):
        sql, params = render(asset_type, Comparison("parts", Op.EQ, 4))
        assert sql == (
            "EXISTS (SELECT 1 FROM objects_asset_parts j WHERE j.object_id = t.id AND j.related_id IN (?))"
        )
        assert params == (4,)

    def test_reverse_fk_in(self, asset_type):
        sql, params = render(asset_type, Comparison("sensors", Op.IN, [1, 2]))
        assert sql == "EXISTS (SELECT 1 FROM objects_sensor r WHERE r.asset_id = t.id AND r.id IN (?, ?))"
        assert params == (1, 2)

    def test_without_targets(self, asset_type):
        sql, _ = render(asset_type, Comparison("parts", Op.IS_NULL))
        assert sql == "NOT EXISTS (SELECT 1 FROM objects_asset_parts j WHERE j.object_id = t.id)"

    def test_with_any_target(self, asset_type):
        sql, _ = render(asset_type, Comparison("sensors", Op.NOT_NULL))
        assert sql == "EXISTS (SELECT 1 FROM objects_sensor r WHERE r.asset_id = t.id)"

    def test_unsupported_operator(self, asset_type):
        with pytest.raises(UnprocessableError):
            render(asset_type, Comparison("parts", Op.LIKE, "x"))


class TestJunctions:
    def test_and_or(self, asset_type):
        cond = And(Comparison("label", Op.EQ, "a"), Or(Comparison("weight", Op.LT, 1), Comparison("weight", Op.GT, 9)))
        sql, params = render(asset_type, cond)
        assert sql == "((t.label = ?) AND (((t.weight < ?) OR (t.weight > ?))))"
        assert params == ("a", 1.0, 9.0)

    def test_single_child_is_unwrapped(self, asset_type):
        assert render(asset_type, And(Comparison("label", Op.EQ, "a")))[0] == "t.label = ?"

    def test_empty_junctions(self, asset_type):
        assert render(asset_type, And())[0] == "1 = 1"
        assert render(asset_type, Or())[0] == "1 = 0"

    def test_not(self, asset_type):
        assert render(asset_type, Not(Comparison("label", Op.EQ, "a")))[0] == "NOT (t.label = ?)"

    def test_operators(self):
        a = Comparison("label", Op.EQ, "a")
        b = Comparison("label", Op.EQ, "b")
        assert a & b == And(a, b)
        assert a | b == Or(a, b)
        assert ~a == Not(a)
