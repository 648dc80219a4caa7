"""
Tests for QueryBuilder SQL assembly and execution.
"""

import pytest

from kestrel.faults import QueryFault

from tests.conftest import Member


def placeholders(sql: str) -> int:
    return sql.count("?")


class TestWhereNormalization:
    """Condition normalization and parameter binding."""

    def test_placeholders_match_params_in_order(self):
        qb = (
            Member.query()
            .where("name", "Alice")
            .where("age", ">", 20)
            .where_in("id", [1, 2, 3])
            .where_between("age", [18, 65])
        )
        sql, params = qb.to_sql()
        assert placeholders(sql) == len(params)
        assert params == ["Alice", 20, 1, 2, 3, 18, 65]
        assert sql == (
            "SELECT * FROM users WHERE name = ? AND age > ? "
            "AND id IN (?, ?, ?) AND age BETWEEN ? AND ?"
        )

    def test_null_equality_and_is_null_are_identical(self):
        eq_sql, eq_params = Member.query().where("deleted_at", "=", None).to_sql()
        is_sql, is_params = Member.query().where("deleted_at", "IS NULL").to_sql()
        assert eq_sql == is_sql == "SELECT * FROM users WHERE deleted_at IS NULL"
        assert eq_params == is_params == []

    def test_not_equal_null(self):
        sql, params = Member.query().where("deleted_at", "!=", None).to_sql()
        assert sql.endswith("deleted_at IS NOT NULL")
        assert params == []

    def test_where_in(self):
        sql, params = Member.query().where_in("status", ["a", "b", "c"]).to_sql()
        assert sql.endswith("status IN (?, ?, ?)")
        assert params == ["a", "b", "c"]

    def test_equality_with_list_becomes_in(self):
        sql, params = Member.query().where("id", "=", [4, 5]).to_sql()
        assert sql.endswith("id IN (?, ?)")
        assert params == [4, 5]

    def test_empty_in_lists(self):
        assert Member.query().where_in("id", []).to_sql()[0].endswith("WHERE 1 = 0")
        assert Member.query().where_not_in("id", []).to_sql()[0].endswith("WHERE 1 = 1")

    def test_between_requires_two_values(self):
        with pytest.raises(QueryFault):
            Member.query().where_between("age", [1])

    def test_unsupported_operator(self):
        with pytest.raises(QueryFault):
            Member.query().where("age", "~", 1)

    def test_invalid_column_name(self):
        with pytest.raises(QueryFault):
            Member.query().where("age; DROP TABLE users", 1)

    def test_where_array_mapping_and_triples(self):
        sql, params = Member.query().where_array({
            "active": 1,
            "deleted_at": None,
            0: ["age", ">=", 18],
            1: ["name", "Bob"],
        }).to_sql()
        assert sql == (
            "SELECT * FROM users WHERE active = ? AND deleted_at IS NULL "
            "AND age >= ? AND name = ?"
        )
        assert params == [1, 18, "Bob"]

    def test_where_array_rejects_short_entries(self):
        with pytest.raises(QueryFault):
            Member.query().where_array([["age"]])

    def test_where_not_empty(self):
        sql, params = Member.query().where_not_empty("email").to_sql()
        assert sql.endswith("email IS NOT NULL AND email != ?")
        assert params == [""]


class TestClauses:
    """ORDER BY, GROUP BY, LIMIT and OFFSET."""

    def test_clause_order(self):
        sql, _ = (
            Member.query()
            .select("name", "age")
            .where("active", 1)
            .group_by("age")
            .order_by("name", "desc")
            .limit(5)
            .offset(10)
            .to_sql()
        )
        assert sql == (
            "SELECT name, age FROM users WHERE active = ? "
            "GROUP BY age ORDER BY name DESC LIMIT 5 OFFSET 10"
        )

    def test_offset_without_limit_is_ignored(self):
        sql, _ = Member.query().offset(5).to_sql()
        assert "OFFSET" not in sql

    def test_invalid_direction(self):
        with pytest.raises(QueryFault):
            Member.query().order_by("name", "sideways")

    def test_latest(self):
        assert Member.query().latest().to_sql()[0].endswith("ORDER BY created_at DESC")


class TestImmutability:
    """Chain methods never mutate the receiver."""

    def test_branches_are_independent(self):
        base = Member.query().where("active", 1)
        older = base.where("age", ">", 30)
        younger = base.where("age", "<", 30)
        assert base.to_sql()[1] == [1]
        assert older.to_sql()[1] == [1, 30]
        assert younger.to_sql()[0].endswith("age < ?")

    def test_count_sql_drops_order_and_limit(self):
        qb = Member.query().where("active", 1).order_by("name").limit(3)
        sql, params = qb.to_count_sql()
        assert sql == "SELECT COUNT(*) AS total FROM users WHERE active = ?"
        assert params == [1]
        assert "LIMIT 3" in qb.to_sql()[0]

    def test_grouped_count_uses_subquery(self):
        sql, _ = Member.query().group_by("age").to_count_sql()
        assert sql == "SELECT COUNT(*) AS total FROM (SELECT age FROM users GROUP BY age) AS grouped"


class TestExecution:
    """Terminal methods against SQLite."""

    def test_get_and_first(self, seeded):
        active = Member.query().where("active", 1).order_by("name").get()
        assert [m["name"] for m in active] == ["Alice", "Carol"]
        assert Member.query().where("name", "Bob").first()["email"] == "bob@test.com"
        assert Member.query().where("name", "Nobody").first() is None

    def test_count_and_exists(self, seeded):
        assert Member.query().count() == 3
        assert Member.query().where("age", ">", 26).count() == 2
        assert Member.query().where("name", "LIKE", "%ar%").exists()
        assert not Member.query().where("name", "Zed").exists()

    def test_grouped_count(self, seeded):
        assert Member.query().group_by("active").count() == 2

    def test_to_array_hides_hidden(self, seeded):
        Member.query().where("name", "Alice").first().set("password", "x").save()
        rows = Member.query().where("name", "Alice").to_array()
        assert "password" not in rows[0]

    def test_iteration(self, seeded):
        assert len(list(Member.query())) == 3
