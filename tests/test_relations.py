import pytest

from conduit_db.collection import Collection

from tests.models import Comment, Post, Tag, User


@pytest.fixture
def seeded(blog):
    ann = User.create(blog, {"name": "ann"})
    bob = User.create(blog, {"name": "bob"})
    User.create(blog, {"name": "cid"})

    first = Post.create(blog, {"title": "first", "user_id": ann.get_key(), "votes": 10})
    Post.create(blog, {"title": "second", "user_id": ann.get_key(), "votes": 1})
    Post.create(blog, {"title": "third", "user_id": bob.get_key(), "votes": 7})

    Comment.create(blog, {"post_id": first.get_key(), "body": "nice"})
    Comment.create(blog, {"post_id": first.get_key(), "body": "meh"})
    return blog


def titles(posts):
    return sorted(p["title"] for p in posts)


# ---------------------------------------------------------------------------
# Lazy access
# ---------------------------------------------------------------------------

def test_has_many_lazy(seeded):
    ann = User.find(seeded, 1)
    posts = ann.related("posts")
    assert isinstance(posts, Collection)
    assert titles(posts) == ["first", "second"]


def test_related_is_cached(seeded):
    ann = User.find(seeded, 1)
    ann.related("posts")
    seeded.enable_query_log()
    ann.related("posts")
    assert seeded.query_log == []
    assert ann.relation_loaded("posts")


def test_relation_query_can_be_refined(seeded):
    ann = User.find(seeded, 1)
    assert ann.posts().where("votes", ">", 5).count() == 1
    assert ann.posts().order_by("votes", "desc").first()["title"] == "first"
    assert ann.posts().exists()


def test_has_one_and_belongs_to(seeded):
    bob = User.find(seeded, 2)
    assert bob.related("first_post")["title"] == "third"
    assert User.find(seeded, 3).related("first_post") is None

    post = Post.find(seeded, 3)
    assert post.related("author")["name"] == "bob"


def test_relation_without_parent_key_is_empty(seeded):
    draft = User({"name": "draft"}, connection=seeded)
    assert draft.related("posts").all() == []
    orphan = Post({"title": "orphan"}, connection=seeded)
    assert orphan.related("author") is None


def test_has_many_create_and_save(seeded):
    cid = User.find(seeded, 3)
    created = cid.posts().create({"title": "from relation"})
    assert created["user_id"] == 3

    loose = Post({"title": "saved through relation"})
    cid.posts().save(loose)
    assert loose.exists
    assert titles(cid.posts().get()) == ["from relation", "saved through relation"]


def test_belongs_to_associate_and_dissociate(seeded):
    post = Post.find(seeded, 3)
    ann = User.find(seeded, 1)
    post.author().associate(ann)
    assert post["user_id"] == 1
    post.author().dissociate()
    assert post["user_id"] is None


# ---------------------------------------------------------------------------
# Eager loading
# ---------------------------------------------------------------------------

def test_eager_loading_issues_one_query_per_relation(seeded):
    seeded.enable_query_log()
    users = User.with_(seeded, "posts").order_by("id").get()

    assert len(seeded.query_log) == 2
    assert "IN (?, ?, ?)" in seeded.query_log[1].sql

    by_name = {u["name"]: u for u in users}
    assert titles(by_name["ann"].get_relation("posts")) == ["first", "second"]
    assert titles(by_name["bob"].get_relation("posts")) == ["third"]
    assert by_name["cid"].get_relation("posts").all() == []


def test_nested_eager_loading(seeded):
    seeded.enable_query_log()
    users = User.with_(seeded, "posts.comments").where("name", "ann").get()

    assert len(seeded.query_log) == 3
    posts = {p["title"]: p for p in users.first().get_relation("posts")}
    assert sorted(c["body"] for c in posts["first"].get_relation("comments")) == ["meh", "nice"]
    assert posts["second"].get_relation("comments").all() == []


def test_eager_loading_with_constraint(seeded):
    users = User.with_(seeded, {"posts": lambda q: q.where("votes", ">", 5)}).order_by("id").get()
    assert titles(users[0].get_relation("posts")) == ["first"]
    assert titles(users[1].get_relation("posts")) == ["third"]


def test_eager_belongs_to_and_load(seeded):
    posts = Post.with_(seeded, "author").order_by("id").get()
    assert [p.get_relation("author")["name"] for p in posts] == ["ann", "ann", "bob"]

    bob = User.find(seeded, 2).load("posts")
    assert titles(bob.get_relation("posts")) == ["third"]


def test_eager_loading_skips_soft_deleted_children(seeded):
    Post.find(seeded, 2).delete()
    ann = User.with_(seeded, "posts").where("name", "ann").first()
    assert titles(ann.get_relation("posts")) == ["first"]


def test_to_dict_includes_loaded_relations(seeded):
    bob = User.with_(seeded, "posts").where("name", "bob").first()
    data = bob.to_dict()
    assert data["name"] == "bob"
    assert [p["title"] for p in data["posts"]] == ["third"]


# ---------------------------------------------------------------------------
# Many-to-many
# ---------------------------------------------------------------------------

@pytest.fixture
def tagged(seeded):
    for name in ("python", "sql", "orm"):
        Tag.create(seeded, {"name": name})
    return seeded


def tag_names(tags):
    return sorted(t["name"] for t in tags)


def test_attach_and_read_with_pivot(tagged):
    post = Post.find(tagged, 1)
    assert post.tags().attach([1, 2]) == 2

    tags = post.related("tags")
    assert tag_names(tags) == ["python", "sql"]
    assert tags[0].pivot == {"post_id": 1, "tag_id": tags[0].get_key()}
    assert "pivot_post_id" not in tags[0]


def test_attach_with_extra_pivot_columns(tagged):
    post = Post.find(tagged, 1)
    post.tags().attach({3: {"note": "core"}})
    tag = post.tags().with_pivot("note").first()
    assert tag["name"] == "orm"
    assert tag.pivot["note"] == "core"


def test_sync_and_toggle(tagged):
    post = Post.find(tagged, 1)
    post.tags().attach([1, 2])

    changes = post.tags().sync([2, 3])
    assert changes == {"attached": [3], "detached": [1]}
    assert sorted(post.tags().current_ids()) == [2, 3]

    changes = post.tags().toggle([3, 1])
    assert changes == {"attached": [1], "detached": [3]}
    assert sorted(post.tags().current_ids()) == [1, 2]

    assert post.tags().detach() == 2
    assert post.tags().current_ids() == []


def test_sync_without_detaching(tagged):
    post = Post.find(tagged, 1)
    post.tags().attach(1)
    assert post.tags().sync([2], detaching=False) == {"attached": [2], "detached": []}
    assert sorted(post.tags().current_ids()) == [1, 2]


def test_eager_many_to_many(tagged):
    Post.find(tagged, 1).tags().attach([1, 2])
    Post.find(tagged, 3).tags().attach([2])

    tagged.enable_query_log()
    posts = Post.with_(tagged, "tags").order_by("id").get()

    assert len(tagged.query_log) == 2
    assert [tag_names(p.get_relation("tags")) for p in posts] == [["python", "sql"], [], ["sql"]]

    inverse = Tag.find(tagged, 2).related("posts")
    assert titles(inverse) == ["first", "third"]
