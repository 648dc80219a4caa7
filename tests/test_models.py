"""
Tests for the active-record Model.
"""

import json

import pytest

from kestrel import Model
from kestrel.faults import DatabaseConnectionFault, ModelNotFoundFault, PersistenceFault
from kestrel.models import table_name_for

from tests.conftest import Member, Tag


class TestTableNames:
    """Default table naming."""

    @pytest.mark.parametrize("class_name,table", [
        ("User", "users"),
        ("BlogPost", "blog_posts"),
        ("Category", "categories"),
        ("Box", "boxes"),
        ("Day", "days"),
    ])
    def test_table_name_for(self, class_name, table):
        assert table_name_for(class_name) == table

    def test_explicit_table_wins(self):
        assert Member.get_table() == "users"
        assert Tag.get_table() == "tags"


class TestAttributes:
    """Attribute bag behavior."""

    def test_fill_respects_fillable(self):
        member = Member({"name": "Ann", "is_admin": True})
        assert member.get("name") == "Ann"
        assert not member.has("is_admin")

    def test_empty_fillable_accepts_everything(self):
        assert Tag({"anything": 1}).get("anything") == 1

    def test_get_set_and_mapping_access(self):
        member = Member({"name": "Ann"})
        assert member.set("email", "ann@test.com") is member
        assert member.get("email") == "ann@test.com"
        assert member["name"] == "Ann"
        assert "email" in member
        assert member.get("age", 0) == 0
        with pytest.raises(KeyError):
            member["age"]

    def test_columns_are_not_attributes(self):
        member = Member({"name": "Ann"})
        with pytest.raises(AttributeError):
            member.name
        member.is_admin = True
        assert member.attributes == {"name": "Ann"}

    def test_set_respects_fillable(self):
        member = Member({"name": "Ann"}).set("is_admin", True)
        assert not member.has("is_admin")

    def test_unset_and_attributes_copy(self):
        member = Member({"name": "Ann", "age": 3})
        member.unset("age")
        attrs = member.attributes
        attrs["name"] = "Changed"
        assert member["name"] == "Ann"
        assert "age" not in member

    def test_to_array_never_includes_hidden(self):
        member = Member({"name": "Ann", "password": "secret"})
        assert member.to_array() == {"name": "Ann"}
        assert json.loads(member.to_json()) == {"name": "Ann"}

    def test_unbound_model_raises(self):
        class Orphan(Model):
            database = None

        with pytest.raises(DatabaseConnectionFault):
            Orphan.all()


class TestPersistence:
    """create / find / save / delete."""

    def test_create_then_find_round_trip(self, models):
        created = Member.create({"name": "Ann", "email": "ann@test.com", "age": 40, "active": 1})
        found = Member.find(created.get_key())
        for key in ("name", "email", "age", "active"):
            assert found.get(key) == created.get(key)
        assert found["id"] == created["id"]

    def test_rows_are_filtered_through_fillable(self, models, db):
        member = Member.create({"name": "Ann", "email": "ann@test.com"})
        db.update("UPDATE users SET remember_token = ? WHERE id = ?", ["tok", member.get_key()])

        found = Member.find(member.get_key())
        assert not found.has("remember_token")
        assert set(found.attributes) <= set(Member.fillable)

        row = Member.get_database().first("SELECT * FROM users WHERE id = ?", [member.get_key()])
        assert row["remember_token"] == "tok"

    def test_hydrated_rows_hide_hidden_keys(self, models):
        Member.create({"name": "Ann", "email": "ann@test.com", "password": "hash"})
        found = Member.where_first("email", "ann@test.com")
        assert found.get("password") == "hash"
        assert "password" not in found.to_array()

    def test_save_updates_existing_row(self, models):
        member = Member.create({"name": "Ann", "email": "ann@test.com"})
        member.set("name", "Annie")
        assert member.save() is True
        assert Member.find(member.get_key())["name"] == "Annie"

    def test_save_with_unknown_key_updates_nothing(self, models):
        ghost = Member({"id": 999, "name": "Ghost", "email": "g@test.com"})
        assert ghost.save() is False

    def test_create_with_nothing_fillable_raises(self, models):
        with pytest.raises(PersistenceFault):
            Member.create({"unknown": 1})

    def test_delete(self, models):
        member = Member.create({"name": "Ann", "email": "ann@test.com"})
        assert member.delete() is True
        assert Member.find(member.get_key()) is None
        assert member["name"] == "Ann"
        assert Member({"name": "New"}).delete() is False

    def test_find_or_fail(self, models):
        with pytest.raises(ModelNotFoundFault):
            Member.find_or_fail(123)

    def test_refresh(self, models, db):
        member = Member.create({"name": "Ann", "email": "ann@test.com"})
        db.update("UPDATE users SET name = ? WHERE id = ?", ["Changed", member.get_key()])
        assert member.refresh()["name"] == "Changed"

    def test_equality_by_key(self, models):
        member = Member.create({"name": "Ann", "email": "ann@test.com"})
        assert Member.find(member.get_key()) == member
        assert Member({"name": "Ann"}) != Member({"name": "Ann"})
        assert repr(member) == f"<Member id={member.get_key()!r}>"


class TestFinders:
    """Static finder wrappers."""

    def test_all_and_first(self, seeded):
        assert len(Member.all()) == 3
        assert Member.first()["name"] == "Alice"

    def test_where_pair_returns_models(self, seeded):
        result = Member.where("active", 1)
        assert isinstance(result, list)
        assert {m["name"] for m in result} == {"Alice", "Carol"}

    def test_where_mapping_returns_builder(self, seeded):
        builder = Member.where({"active": 1})
        assert builder.where("age", ">", 31).count() == 1

    def test_find_all_by(self, seeded):
        assert [m["name"] for m in Member.find_all_by("age", 25)] == ["Bob"]
