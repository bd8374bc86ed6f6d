from datetime import datetime

import pytest

from conduit_db.exceptions import ModelError, ModelNotFoundException
from conduit_db.orm import Model

from tests.models import Post, User


@pytest.fixture
def ann(blog):
    return User.create(blog, {"name": "ann", "active": True, "settings": {"theme": "dark"}})


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def test_create_assigns_key_and_timestamps(blog, ann):
    assert ann.exists
    assert ann.get_key() == 1
    assert isinstance(ann["created_at"], datetime)
    assert ann.get_raw_attributes()["updated_at"] == ann.get_raw_attributes()["created_at"]


def test_find_applies_casts(blog, ann):
    found = User.find(blog, ann.get_key())
    assert found["active"] is True
    assert found["settings"] == {"theme": "dark"}
    assert found.get_raw_attributes()["settings"] == '{"theme": "dark"}'
    assert User.find(blog, 99) is None


def test_find_or_fail(blog):
    with pytest.raises(ModelNotFoundException) as excinfo:
        User.find_or_fail(blog, 42)
    assert excinfo.value.model == "User"


def test_saving_clean_model_issues_no_statement(blog, ann):
    found = User.find(blog, ann.get_key())
    blog.enable_query_log()
    assert found.save() is True
    assert blog.query_log == []


def test_update_writes_only_dirty_columns(blog, ann):
    found = User.find(blog, ann.get_key())
    found["name"] = "anna"
    assert found.is_dirty("name")
    assert found.is_clean("email")

    blog.enable_query_log()
    found.save()

    log = blog.query_log
    assert len(log) == 1
    assert log[0].sql.startswith('UPDATE "users" SET "name" = ?')
    assert log[0].sql.endswith('WHERE "id" = ?')
    assert found.is_clean()
    assert User.find(blog, ann.get_key())["name"] == "anna"


def test_mass_assignment_ignores_guarded_keys():
    user = User({"name": "x", "id": 7, "is_admin": True})
    assert user.get_key() is None
    assert "is_admin" not in user
    user.force_fill({"id": 7})
    assert user.get_key() == 7


def test_dirty_tracking_against_original(blog, ann):
    ann["name"] = "other"
    assert ann.get_original("name") == "ann"
    assert ann.get_dirty() == {"name": "other"}
    ann["name"] = "ann"
    assert ann.is_clean()


def test_delete_removes_row(blog, ann):
    assert ann.delete() is True
    assert not ann.exists
    assert User.find(blog, 1) is None
    assert ann.delete() is False


def test_refresh_and_fresh(blog, ann):
    blog.table("users").where("id", ann.get_key()).update({"name": "changed"})
    assert ann.fresh()["name"] == "changed"
    assert ann["name"] == "ann"

    ann.refresh()
    assert ann["name"] == "changed"

    blog.table("users").delete(ann.get_key())
    with pytest.raises(ModelNotFoundException):
        ann.refresh()


def test_replicate_drops_key_and_timestamps(ann):
    copy = ann.replicate()
    assert not copy.exists
    assert copy.get_key() is None
    assert "created_at" not in copy
    assert copy["name"] == "ann"


def test_touch_updates_timestamp(blog, ann):
    ann.force_fill({"updated_at": "2000-01-01 00:00:00"})
    ann.sync_original()
    assert ann.touch() is True
    row = blog.table("users").find(ann.get_key())
    assert row["updated_at"] != "2000-01-01 00:00:00"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def test_hydrate_to_dict_round_trip():
    rows = [{
        "id": 1,
        "name": "ann",
        "active": 1,
        "settings": '{"a": [1, 2]}',
        "created_at": "2024-01-01 10:00:00",
    }]
    user = User.hydrate(rows).first()

    assert user.exists
    assert user["created_at"] == datetime(2024, 1, 1, 10, 0, 0)
    assert user.to_dict() == {
        "id": 1,
        "name": "ann",
        "active": True,
        "settings": {"a": [1, 2]},
        "created_at": "2024-01-01 10:00:00",
    }


def test_hidden_and_visible_filters():
    class Account(Model):
        hidden = ("password",)

    class Badge(Model):
        visible = ("id", "label")

    account = Account.hydrate([{"id": 1, "password": "secret"}]).first()
    assert account.to_dict() == {"id": 1}
    badge = Badge.hydrate([{"id": 2, "label": "gold", "internal": "x"}]).first()
    assert badge.to_dict() == {"id": 2, "label": "gold"}
    assert badge.to_json() == '{"id": 2, "label": "gold"}'


# ---------------------------------------------------------------------------
# Misuse
# ---------------------------------------------------------------------------

def test_save_without_connection_raises():
    with pytest.raises(ModelError):
        User({"name": "x"}).save()


def test_unknown_cast_is_rejected_at_class_creation():
    with pytest.raises(ModelError):
        class Broken(Model):
            casts = {"flag": "bitfield"}


def test_undefined_relation_raises(ann):
    with pytest.raises(ModelError):
        ann.relation("missing")
    with pytest.raises(ModelError):
        ann.relation("to_dict")


def test_table_and_key_naming():
    class BlogCategory(Model):
        pass

    class Person(Model):
        pass

    assert BlogCategory.get_table() == "blog_categories"
    assert BlogCategory.get_foreign_key() == "blog_category_id"
    assert Person.get_table() == "people"
    assert Post.get_table() == "posts"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

def test_listener_returning_false_cancels_create(blog):
    Post.listen("creating", lambda post: False)
    post = Post({"title": "draft", "user_id": 1}, connection=blog)

    assert post.save() is False
    assert not post.exists
    assert Post.query(blog).count() == 0


def test_listeners_run_in_order_and_see_the_model(blog, ann):
    seen = []
    Post.listen("saving", lambda post: seen.append(("saving", post["title"])))
    Post.listen("created", lambda post: seen.append(("created", post.get_key())))
    Post.listen("saved", lambda post: seen.append(("saved", post.exists)))

    Post.create(blog, {"title": "hello", "user_id": ann.get_key()})

    assert seen == [("saving", "hello"), ("created", 1), ("saved", True)]


def test_listeners_are_per_class(blog):
    User.listen("creating", lambda user: False)
    post = Post.create(blog, {"title": "kept", "user_id": 1})
    assert post.exists


def test_unknown_event_is_rejected():
    with pytest.raises(ValueError):
        Post.listen("exploding", lambda post: None)


# ---------------------------------------------------------------------------
# Soft deletes
# ---------------------------------------------------------------------------

def test_soft_delete_hides_and_restores(blog, ann):
    post = Post.create(blog, {"title": "hello", "user_id": ann.get_key()})
    post_id = post.get_key()

    assert post.delete() is True
    assert post.trashed()
    assert blog.table("posts").count() == 1
    assert Post.find(blog, post_id) is None
    assert Post.with_trashed(blog).find(post_id).trashed()
    assert Post.only_trashed(blog).count() == 1

    assert post.restore() is True
    assert Post.find(blog, post_id) is not None
    assert Post.only_trashed(blog).count() == 0


def test_force_delete_removes_soft_deleted_row(blog, ann):
    post = Post.create(blog, {"title": "gone", "user_id": ann.get_key()})
    post.delete()
    assert post.force_delete() is True
    assert blog.table("posts").count() == 0


def test_soft_delete_helpers_require_policy(blog):
    with pytest.raises(ModelError):
        User.with_trashed(blog)
