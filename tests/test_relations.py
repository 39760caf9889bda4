"""
Tests for relation descriptors and batched eager loading.
"""

import pytest

from tessera.faults import UsageFault
from tessera.models import Collection

from entities import Comment, Post, Profile, Tag, User, seed_users


def select_count(sql_log):
    return sum(1 for sql in sql_log.sql if sql.startswith("SELECT"))


@pytest.fixture
def blog(ctx):
    ann, bob, cid = seed_users("Ann", "Bob", "Cid")
    p1 = Post.create({"title": "P1", "user_id": ann.pk})
    p2 = Post.create({"title": "P2", "user_id": ann.pk})
    p3 = Post.create({"title": "P3", "user_id": bob.pk})
    Comment.create({"post_id": p1.pk, "user_id": bob.pk, "body": "nice"})
    Comment.create({"post_id": p1.pk, "user_id": cid.pk, "body": "meh"})
    Comment.create({"post_id": p3.pk, "user_id": ann.pk, "body": "ok"})
    python, sql = Tag.create({"name": "python"}), Tag.create({"name": "sql"})
    ctx.query(
        'INSERT INTO "post_tag" ("post_id", "tag_id") VALUES (?, ?), (?, ?), (?, ?)',
        [p1.pk, python.pk, p1.pk, sql.pk, p2.pk, sql.pk],
    )
    Profile.create({"user_id": ann.pk, "bio": "hi"})
    return {"users": (ann, bob, cid), "posts": (p1, p2, p3), "tags": (python, sql)}


# ============================================================================
# Defaults
# ============================================================================


class TestRelationDefaults:
    def test_belongs_to_foreign_key(self):
        assert Comment.post.foreign_key == "post_id"
        assert Comment.post.owner_key == "id"

    def test_has_many_foreign_key(self):
        assert User.posts.foreign_key == "user_id"
        assert Post.comments.foreign_key == "post_id"
        assert User.posts.local_key == "id"

    def test_pivot_defaults(self):
        assert Post.tags.pivot_table == "post_tag"
        assert Tag.posts.pivot_table == "post_tag"
        assert Post.tags.foreign_pivot_key == "post_id"
        assert Post.tags.related_pivot_key == "tag_id"

    def test_related_type_resolved_by_name(self):
        assert Post.author.related_cls is User


# ============================================================================
# Lazy resolution
# ============================================================================


class TestLazyRelations:
    def test_belongs_to(self, blog):
        p1 = blog["posts"][0]
        assert p1.author.name == "Ann"

    def test_belongs_to_missing_row_is_none(self, ctx):
        post = Post.create({"title": "Orphan", "user_id": 7})
        assert post.author is None

    def test_belongs_to_unset_key_issues_no_query(self, ctx, sql_log):
        post = Post({"title": "Draft"})
        assert post.author is None
        assert sql_log.statements == []

    def test_has_many(self, blog):
        ann = blog["users"][0]
        assert isinstance(ann.posts, Collection)
        assert ann.posts.pluck("title").all() == ["P1", "P2"]

    def test_has_many_excludes_trashed(self, blog):
        ann = blog["users"][0]
        blog["posts"][1].delete()
        assert ann.relation_query("posts").pluck("title") == ["P1"]

    def test_has_one(self, blog):
        ann, bob, _ = blog["users"]
        assert ann.profile.bio == "hi"
        assert bob.profile is None

    def test_belongs_to_many(self, blog):
        p1, p2, p3 = blog["posts"]
        assert sorted(p1.tags.pluck("name").all()) == ["python", "sql"]
        assert p3.tags.all() == []
        sql_tag = blog["tags"][1]
        assert sorted(sql_tag.posts.pluck("title").all()) == ["P1", "P2"]

    def test_lazy_result_is_cached(self, blog, sql_log):
        p1 = blog["posts"][0]
        sql_log.reset()
        first = p1.author
        second = p1.author
        assert first is second
        assert select_count(sql_log) == 1
        assert p1.relation_loaded("author")

    def test_relation_query_is_prefiltered(self, blog):
        ann = blog["users"][0]
        sql, params = ann.relation_query("posts").order_by("id", "DESC").to_sql()
        assert sql == (
            'SELECT * FROM "posts" WHERE "posts"."deleted_at" IS NULL AND "user_id" = ? ORDER BY "id" DESC'
        )
        assert params == [ann.pk]

    def test_pivot_query_sql(self, blog):
        p1 = blog["posts"][0]
        sql, params = p1.relation_query("tags").to_sql()
        assert sql == (
            'SELECT "tags".* FROM "tags" INNER JOIN "post_tag" ON "tags"."id" = "post_tag"."tag_id" '
            'WHERE "post_tag"."post_id" = ?'
        )
        assert params == [p1.pk]

    def test_unknown_relation(self, blog):
        with pytest.raises(UsageFault):
            blog["users"][0].relation_query("friends")

    def test_assignment_sets_cache(self, ctx, sql_log):
        post = Post({"title": "x", "user_id": 1})
        author = User({"name": "Fake"})
        post.author = author
        assert post.author is author
        assert sql_log.statements == []


# ============================================================================
# Eager loading
# ============================================================================


class TestEagerLoading:
    def test_one_query_per_relation(self, blog, sql_log):
        sql_log.reset()
        posts = Post.query().with_("author", "comments", "tags").get()
        assert select_count(sql_log) == 4
        assert [p.author.name for p in posts] == ["Ann", "Ann", "Bob"]
        assert [len(p.comments) for p in posts] == [2, 0, 1]
        assert [sorted(p.tags.pluck("name").all()) for p in posts] == [["python", "sql"], ["sql"], []]
        assert select_count(sql_log) == 4

    def test_query_count_independent_of_owner_count(self, ctx, sql_log):
        owner = User.create({"name": "Ann"})
        for i in range(10):
            Post.create({"title": f"P{i}", "user_id": owner.pk})
        sql_log.reset()
        posts = Post.query().with_("author").get()
        assert len(posts) == 10
        assert select_count(sql_log) == 2
        assert sql_log.last == ('SELECT * FROM "users" WHERE "id" IN (?)', [owner.pk])

    def test_nested(self, blog, sql_log):
        sql_log.reset()
        users = User.query().with_("posts.comments.user").get()
        assert select_count(sql_log) == 4
        ann = users.first()
        commenters = [c.user.name for c in ann.posts.first().comments]
        assert commenters == ["Bob", "Cid"]
        assert select_count(sql_log) == 4

    def test_has_one_eager(self, blog):
        users = User.query().with_("profile").get()
        assert [u.profile.bio if u.profile else None for u in users] == ["hi", None, None]

    def test_pivot_alias_is_not_an_attribute(self, blog):
        post = Post.query().with_("tags").first()
        for tag in post.tags:
            assert "_pivot_owner_key" not in tag
            assert not tag.is_dirty()

    def test_empty_result_issues_no_relation_query(self, ctx, sql_log):
        assert Post.query().with_("author").get().is_empty()
        assert select_count(sql_log) == 1

    def test_null_foreign_keys_skip_query(self, ctx, sql_log):
        Post.create({"title": "Orphan"})
        sql_log.reset()
        posts = Post.query().with_("author").get()
        assert posts.first().author is None
        assert select_count(sql_log) == 1

    def test_load_on_instance(self, blog, sql_log):
        p1 = Post.find(blog["posts"][0].pk)
        sql_log.reset()
        p1.load("comments", "author")
        assert select_count(sql_log) == 2
        assert len(p1.comments) == 2

    def test_unknown_relation(self, blog):
        with pytest.raises(UsageFault):
            Post.query().with_("nope").get()

    def test_to_array_includes_loaded_relations(self, blog):
        post = Post.query().with_("author").first()
        data = post.to_array()
        assert data["author"]["name"] == "Ann"
        assert "password" not in data["author"]
