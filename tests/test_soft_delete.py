"""
Tests for soft deletes, restore, force delete and query-scoped writes.
"""

import pytest

from tessera.faults import UsageFault

from entities import Post, User, seed_users


@pytest.fixture
def post(ctx):
    return Post.create({"title": "Hello", "user_id": 1})


# ============================================================================
# Instance soft delete
# ============================================================================


class TestInstanceSoftDelete:
    def test_delete_marks_row(self, ctx, sql_log, frozen_now, post):
        sql_log.reset()
        assert post.delete() is True
        assert sql_log.statements == [
            (
                'UPDATE "posts" SET "deleted_at" = ?, "updated_at" = ? WHERE "id" = ?',
                [frozen_now, frozen_now, post.pk],
            )
        ]
        assert post.exists
        assert post.trashed

    def test_deleted_row_is_hidden(self, ctx, post):
        post.delete()
        assert Post.find(post.pk) is None
        trashed = Post.query().with_trashed().where("id", post.pk).first()
        assert trashed is not None
        assert trashed.deleted_at is not None
        assert Post.query().only_trashed().count() == 1
        assert Post.query().count() == 0

    def test_restore(self, ctx, post):
        post.delete()
        assert post.restore() is True
        found = Post.find(post.pk)
        assert found is not None
        assert found.deleted_at is None
        assert not post.trashed

    def test_force_delete(self, ctx, sql_log, post):
        key = post.pk
        sql_log.reset()
        assert post.force_delete() is True
        assert sql_log.statements == [('DELETE FROM "posts" WHERE "id" = ?', [key])]
        assert not post.exists
        assert post.get_raw_attributes() == {}
        assert Post.query().with_trashed().count() == 0

    def test_force_delete_resets_flag(self, ctx, post):
        other = Post.create({"title": "Other"})
        post.force_delete()
        other.delete()
        assert other.exists
        assert Post.query().with_trashed().count() == 1

    def test_hard_delete_without_soft_delete(self, ctx, sql_log):
        user = User.create({"name": "Ann"})
        sql_log.reset()
        assert user.delete() is True
        assert sql_log.statements == [('DELETE FROM "users" WHERE "id" = ?', [1])]
        assert not user.exists

    def test_delete_requires_persisted(self, ctx):
        with pytest.raises(UsageFault):
            Post({"title": "draft"}).delete()

    def test_restore_requires_soft_delete(self, ctx):
        user = User.create({"name": "Ann"})
        with pytest.raises(UsageFault):
            user.restore()


# ============================================================================
# Query-scoped writes
# ============================================================================


class TestQueryWrites:
    def test_update(self, ctx, sql_log, frozen_now):
        seed_users("Ann", "Bob")
        sql_log.reset()
        affected = User.query().where("name", "Ann").update({"age": 40})
        assert affected == 1
        assert sql_log.statements == [
            ('UPDATE "users" SET "age" = ?, "updated_at" = ? WHERE "name" = ?', [40, frozen_now, "Ann"])
        ]

    def test_update_requires_predicate(self, ctx):
        with pytest.raises(UsageFault):
            User.query().update({"age": 1})

    def test_update_requires_values(self, ctx):
        with pytest.raises(UsageFault):
            User.query().where("id", 1).update({})

    def test_increment_and_decrement(self, ctx, sql_log, frozen_now, post):
        sql_log.reset()
        Post.query().where("id", post.pk).increment("views", 5)
        assert sql_log.last == (
            'UPDATE "posts" SET "views" = "views" + ?, "updated_at" = ? WHERE "id" = ?',
            [5, frozen_now, post.pk],
        )
        Post.query().where("id", post.pk).decrement("views")
        assert post.refresh().views == 4

    def test_increment_with_extra_columns(self, ctx, post):
        Post.query().where("id", post.pk).increment("views", 1, {"title": "Bumped"})
        fresh = post.refresh()
        assert fresh.views == 1
        assert fresh.title == "Bumped"

    def test_hard_delete_requires_predicate(self, ctx):
        with pytest.raises(UsageFault):
            User.query().delete()

    def test_hard_delete(self, ctx, sql_log):
        seed_users("Ann", "Bob", "Cid")
        sql_log.reset()
        assert User.query().where_in("name", ["Ann", "Cid"]).delete() == 2
        assert sql_log.last == ('DELETE FROM "users" WHERE "name" IN (?, ?)', ["Ann", "Cid"])
        assert User.all().pluck("name").all() == ["Bob"]

    def test_soft_delete_via_query_scoped(self, ctx, sql_log, frozen_now, post):
        Post.create({"title": "Keep", "user_id": 2})
        sql_log.reset()
        assert Post.query().where("user_id", 1).delete() == 1
        assert sql_log.last == (
            'UPDATE "posts" SET "deleted_at" = ?, "updated_at" = ? WHERE "user_id" = ?',
            [frozen_now, frozen_now, 1],
        )
        assert Post.query().pluck("title") == ["Keep"]

    def test_soft_delete_via_query_without_predicate(self, ctx, sql_log, frozen_now, post):
        sql_log.reset()
        assert Post.query().delete() == 1
        assert sql_log.last == ('UPDATE "posts" SET "deleted_at" = ?, "updated_at" = ?', [frozen_now, frozen_now])
        assert Post.query().count() == 0

    def test_restore_via_query(self, ctx, post):
        post.delete()
        assert Post.query().where("id", post.pk).restore() == 1
        assert Post.find(post.pk) is not None

    def test_restore_via_query_requires_predicate(self, ctx):
        with pytest.raises(UsageFault):
            Post.query().only_trashed().restore()

    def test_force_delete_via_query(self, ctx, post):
        post.delete()
        assert Post.query().where("id", post.pk).force_delete() == 1
        assert Post.query().with_trashed().count() == 0

    def test_force_delete_requires_predicate(self, ctx):
        with pytest.raises(UsageFault):
            Post.query().force_delete()
