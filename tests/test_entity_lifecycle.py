"""
Tests for the Entity persistence state machine and the static API.
"""

import datetime

import pytest

from tessera.faults import ModelNotFoundFault, QueryFault, UsageFault
from tessera.models import Collection, Entity, Result

from entities import Member, Post, User, seed_users


# ============================================================================
# Insert / update
# ============================================================================


class TestCreate:
    def test_create_populates_key_and_timestamps(self, ctx, sql_log, frozen_now):
        user = User.create({"name": "Ann", "email": "a@x.com"})
        assert user.exists
        assert user.pk == 1
        assert user.id == 1
        assert user.created_at == frozen_now
        assert user.updated_at == frozen_now
        assert sql_log.statements == [
            (
                'INSERT INTO "users" ("name", "email", "created_at", "updated_at") VALUES (?, ?, ?, ?)',
                ["Ann", "a@x.com", frozen_now, frozen_now],
            )
        ]

    def test_preset_timestamps_are_kept(self, ctx):
        user = User({"name": "Ann"})
        user.set_attribute("created_at", "2000-01-01 00:00:00")
        user.save()
        assert User.find(user.pk).created_at == "2000-01-01 00:00:00"

    def test_entity_without_timestamps(self, ctx, sql_log):
        from entities import Tag

        Tag.create({"name": "python"})
        assert sql_log.last == ('INSERT INTO "tags" ("name") VALUES (?)', ["python"])

    def test_round_trip(self, ctx):
        user = User.create({"name": "Ann", "email": "a@x.com", "age": 31})
        found = User.find(user.pk)
        for column, value in user.get_raw_attributes().items():
            assert found.get_raw(column) == value
        assert found == user

    def test_storage_errors_propagate(self, ctx):
        ghost = type("Ghost", (Entity,), {"Meta": type("Meta", (), {"table": "ghosts"})})
        with pytest.raises(QueryFault) as info:
            ghost.create({"name": "boo"})
        assert "ghosts" in info.value.sql


class TestUpdate:
    def test_update_only_dirty_columns(self, ctx, sql_log, frozen_now):
        user = User.create({"name": "Ann", "email": "a@x.com"})
        sql_log.reset()

        user.name = "Ann2"
        assert user.save() is True
        assert sql_log.statements == [
            (
                'UPDATE "users" SET "name" = ?, "updated_at" = ? WHERE "id" = ?',
                ["Ann2", frozen_now, user.pk],
            )
        ]
        assert not user.is_dirty()

    def test_second_save_issues_no_sql(self, ctx, sql_log):
        user = User.create({"name": "Ann"})
        user.name = "Ann2"
        user.save()
        sql_log.reset()
        assert user.save() is True
        assert sql_log.statements == []

    def test_assigning_same_value_is_clean(self, ctx, sql_log):
        user = User.create({"name": "Ann"})
        sql_log.reset()
        user.name = "Ann"
        assert user.save() is True
        assert sql_log.statements == []

    def test_changed_primary_key_updates_original_row(self, ctx):
        user = User.create({"name": "Ann"})
        user.set_attribute("id", 50)
        user.save()
        assert User.find(1) is None
        assert User.find(50).name == "Ann"


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    def test_invalid_entity_is_not_saved(self, ctx, sql_log):
        member = Member({"name": "Al", "email": "nope", "age": 12})
        assert member.save() is False
        assert not member.exists
        assert sql_log.statements == []
        assert set(member.errors) == {"name", "email", "age"}
        assert member.first_error() == "Ensure this value has at least 3 character(s) (it has 2)."

    def test_skip_validation(self, ctx):
        member = Member({"name": "Al"})
        assert member.save(validate=False) is True
        assert member.exists

    def test_optional_columns_skip_format_rules(self, ctx):
        member = Member({"name": "Alice"})
        assert member.validate() is True
        assert member.errors == {}

    def test_required(self, ctx):
        member = Member({"name": "   "})
        assert member.save() is False
        assert member.errors["name"][0] == "This field is required."


# ============================================================================
# Lookups
# ============================================================================


class TestLookups:
    def test_find_missing(self, ctx):
        assert User.find(99) is None
        assert User.find(None) is None

    def test_find_or_fail(self, ctx):
        user = User.create({"name": "Ann"})
        assert User.find_or_fail(user.pk) == user
        with pytest.raises(ModelNotFoundFault) as info:
            User.find_or_fail(99)
        assert info.value.metadata == {"model": "User", "pk": 99}

    def test_try_find(self, ctx):
        user = User.create({"name": "Ann"})
        hit = User.try_find(user.pk)
        miss = User.try_find(42)
        assert isinstance(hit, Result)
        assert hit.is_ok and hit.value == user
        assert miss.is_err and miss.fault.code == "MODEL_NOT_FOUND"
        assert miss.unwrap_or("none") == "none"

    def test_find_or_new(self, ctx):
        fresh = User.find_or_new(5)
        assert not fresh.exists

    def test_all_and_first_record(self, ctx):
        seed_users("Ann", "Bob")
        everyone = User.all()
        assert isinstance(everyone, Collection)
        assert everyone.pluck("name").all() == ["Ann", "Bob"]
        assert User.first_record().name == "Ann"

    def test_first_or_create(self, ctx):
        first = User.first_or_create({"email": "a@x.com"}, {"name": "Ann"})
        again = User.first_or_create({"email": "a@x.com"}, {"name": "Other"})
        assert first.exists
        assert again == first
        assert again.name == "Ann"
        assert User.query().count() == 1

    def test_update_or_create(self, ctx):
        created = User.update_or_create({"email": "a@x.com"}, {"name": "Ann"})
        updated = User.update_or_create({"email": "a@x.com"}, {"name": "Ann2"})
        assert updated == created
        assert User.find(created.pk).name == "Ann2"

    def test_refresh(self, ctx):
        user = User.create({"name": "Ann"})
        User.query().where("id", user.pk).update({"name": "Changed"})
        assert user.refresh().name == "Changed"
        assert not user.is_dirty()

    def test_refresh_missing_row(self, ctx):
        user = User.create({"name": "Ann"})
        ctx.query('DELETE FROM "users"')
        with pytest.raises(ModelNotFoundFault):
            user.refresh()

    def test_refresh_requires_persisted(self, ctx):
        with pytest.raises(UsageFault):
            User({"name": "x"}).refresh()


# ============================================================================
# Bulk and raw
# ============================================================================


class TestBulk:
    def test_insert_bypasses_guard_and_timestamps(self, ctx, sql_log):
        count = User.insert([{"name": "a", "password": "p"}, {"name": "b"}])
        assert count == 2
        assert sql_log.last[0] == 'INSERT INTO "users" ("name", "password") VALUES (?, ?), (?, ?)'
        row = User.query().where("name", "a").as_array().first()
        assert row["password"] == "p"
        assert row["created_at"] is None

    def test_insert_nothing(self, ctx, sql_log):
        assert User.insert([]) == 0
        assert sql_log.statements == []

    def test_find_by_sql(self, ctx):
        seed_users("Ann", "Bob")
        users = User.find_by_sql('SELECT * FROM "users" WHERE "name" = ?', ["Bob"])
        assert [u.name for u in users] == ["Bob"]
        assert users.first().exists
        rows = User.find_by_sql('SELECT "name" FROM "users" ORDER BY "id"', as_array=True)
        assert rows.all() == [{"name": "Ann"}, {"name": "Bob"}]


# ============================================================================
# Serialization
# ============================================================================


class TestSerialization:
    def test_to_array_hides_columns(self, ctx):
        user = User.create({"name": "Ann", "age": 30})
        user.set_attribute("password", "secret")
        data = user.to_array()
        assert "password" not in data
        assert data["name"] == "Ann"
        assert data["age"] == 30

    def test_to_json(self, ctx):
        user = User({"name": "Ann", "settings": {"a": 1}})
        assert user.to_json() == '{"name": "Ann", "settings": {"a": 1}}'

    def test_repr(self, ctx):
        assert repr(User()) == "<User new>"
        assert repr(User.create({"name": "Ann"})) == "<User pk=1>"


# ============================================================================
# Cast persistence round trip
# ============================================================================


class Sample(Entity):
    class Meta:
        table = "samples"
        timestamps = False
        casts = {
            "count": "int",
            "ratio": "float",
            "flag": "bool",
            "label": "string",
            "payload": "json",
            "seen_at": "datetime",
            "day": "date",
        }


class TestCastRoundTrip:
    @pytest.fixture(autouse=True)
    def samples_table(self, ctx):
        ctx.query(
            "CREATE TABLE samples (id INTEGER PRIMARY KEY AUTOINCREMENT, count INTEGER, ratio REAL, "
            "flag INTEGER, label TEXT, payload TEXT, seen_at TEXT, day TEXT)"
        )

    @pytest.mark.parametrize(
        "column,value",
        [
            ("count", 7),
            ("ratio", 0.25),
            ("flag", True),
            ("label", "hello"),
            ("payload", {"tags": ["a", "b"], "n": 1}),
            ("seen_at", datetime.datetime(2024, 5, 6, 7, 8, 9)),
            ("day", datetime.date(2024, 5, 6)),
        ],
    )
    def test_value_survives_storage(self, ctx, column, value):
        sample = Sample()
        sample.set_attribute(column, value)
        sample.save()
        found = Sample.find(sample.pk)
        assert found.get_attribute(column) == value
        assert not found.is_dirty()
        found.set_attribute(column, value)
        assert not found.is_dirty(column)


# ============================================================================
# Identity
# ============================================================================


class TestIdentity:
    def test_unsaved_entity_is_unhashable(self, ctx):
        with pytest.raises(TypeError):
            hash(User({"name": "Ann"}))

    def test_hash_is_stable_once_persisted(self, ctx):
        user = User.create({"name": "Ann"})
        members = {user}
        user.name = "Anna"
        user.save()
        assert user in members
        assert User.find(user.pk) in members

    def test_unsaved_entities_still_deduplicate(self, ctx):
        ann, bob = User({"name": "Ann"}), User({"name": "Bob"})
        assert Collection([ann, bob, ann]).unique().all() == [ann, bob]
