import pytest

from conduit_db.exceptions import ModelNotFoundException, RawQueryDisabledError
from conduit_db.grammar import MySQLGrammar, PostgresGrammar
from conduit_db.query import Expression, QueryBuilder


@pytest.fixture
def users(conn, schema):
    def columns(t):
        t.increments("id")
        t.string("name")
        t.integer("age")
        t.string("status").nullable()
        t.integer("votes").default(0)

    schema.create("users", columns)
    conn.table("users").insert([
        {"name": "ann", "age": 31, "status": "active"},
        {"name": "bob", "age": 17, "status": "active"},
        {"name": "cid", "age": 45, "status": "banned"},
        {"name": "dee", "age": 22, "status": None},
    ])
    return conn


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------

def test_select_with_wheres_order_limit_offset(conn):
    query = (
        conn.table("users")
        .where("age", ">", 18)
        .where_in("status", ["a", "b"])
        .order_by("name")
        .limit(10)
        .offset(5)
    )
    assert query.to_sql() == (
        'SELECT * FROM "users" WHERE "age" > ? AND "status" IN (?, ?) '
        'ORDER BY "name" ASC LIMIT 10 OFFSET 5'
    )
    assert query.get_bindings() == [18, "a", "b"]


def test_placeholder_count_matches_bindings(conn):
    query = (
        conn.table("users")
        .join("posts", "users.id", "=", "posts.user_id")
        .where("users.age", ">=", 21)
        .or_where("users.name", "like", "a%")
        .where_between("posts.votes", [1, 10])
        .where_not_in("users.id", [4, 5, 6])
        .group_by("users.id")
        .having("users.id", ">", 0)
    )
    assert query.to_sql().count("?") == len(query.get_bindings()) == 8


def test_mysql_dialect_and_offset_without_limit(conn):
    query = QueryBuilder(conn, MySQLGrammar()).from_("users").where("id", 1).offset(10)
    assert query.to_sql() == "SELECT * FROM `users` WHERE `id` = ? LIMIT 18446744073709551615 OFFSET 10"


def test_sqlite_and_postgres_offset_without_limit(conn):
    assert conn.table("users").offset(3).to_sql() == 'SELECT * FROM "users" LIMIT -1 OFFSET 3'
    query = QueryBuilder(conn, PostgresGrammar()).from_("users").offset(3)
    assert query.to_sql() == 'SELECT * FROM "users" OFFSET 3'


def test_operator_is_upper_cased_and_checked(conn):
    assert conn.table("users").where("name", "like", "a%").to_sql() == 'SELECT * FROM "users" WHERE "name" LIKE ?'
    with pytest.raises(ValueError):
        conn.table("users").where("name", "=~", "a")


def test_none_value_becomes_is_null(conn):
    assert conn.table("users").where("status", None).to_sql() == 'SELECT * FROM "users" WHERE "status" IS NULL'
    sql = conn.table("users").where("status", "!=", None).to_sql()
    assert sql == 'SELECT * FROM "users" WHERE "status" IS NOT NULL'


def test_empty_in_lists(conn):
    assert conn.table("users").where_in("id", []).to_sql() == 'SELECT * FROM "users" WHERE 0 = 1'
    assert conn.table("users").where_not_in("id", []).to_sql() == 'SELECT * FROM "users" WHERE 1 = 1'


def test_expression_values_are_inlined_not_bound(conn):
    query = conn.table("users").select("status", Expression("COUNT(*) AS total")).where("age", ">", Expression("18"))
    assert query.to_sql() == 'SELECT "status", COUNT(*) AS total FROM "users" WHERE "age" > 18'
    assert query.get_bindings() == []


def test_having_bindings_follow_where_bindings(conn):
    query = (
        conn.table("users")
        .select("status", Expression("COUNT(*) AS total"))
        .where("active", True)
        .group_by("status")
        .having("total", ">", 3)
    )
    assert query.to_sql() == (
        'SELECT "status", COUNT(*) AS total FROM "users" WHERE "active" = ? '
        'GROUP BY "status" HAVING "total" > ?'
    )
    assert query.get_bindings() == [True, 3]


def test_having_none_becomes_is_null(conn):
    query = conn.table("users").group_by("status").having("status", None).or_having("status", "<>", None)
    assert query.to_sql() == (
        'SELECT * FROM "users" GROUP BY "status" HAVING "status" IS NULL OR "status" IS NOT NULL'
    )
    assert query.get_bindings() == []
    with pytest.raises(ValueError):
        conn.table("users").having("status", ">", None)


def test_update_bindings_precede_where_bindings(conn):
    log = conn.pretend(
        lambda c: c.table("users").where("id", 5).update({"name": "x", "votes": Expression('"votes" + 1')})
    )
    assert log[0].sql == 'UPDATE "users" SET "name" = ?, "votes" = "votes" + 1 WHERE "id" = ?'
    assert log[0].bindings == ("x", 5)


def test_clone_is_independent(conn):
    base = conn.table("users").where("age", ">", 18)
    copy = base.clone().where("status", "active")
    assert base.get_bindings() == [18]
    assert copy.get_bindings() == [18, "active"]


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def test_get_first_and_pluck(users):
    adults = users.table("users").where("age", ">=", 18).order_by("name").get()
    assert [row["name"] for row in adults] == ["ann", "cid", "dee"]
    assert users.table("users").order_by("age", "desc").first()["name"] == "cid"
    assert users.table("users").order_by("id").pluck("name").all() == ["ann", "bob", "cid", "dee"]
    assert users.table("users").pluck("age", "name")["bob"] == 17


def test_find_and_find_or_fail(users):
    assert users.table("users").find(2)["name"] == "bob"
    assert [r["name"] for r in users.table("users").find([1, 3])] == ["ann", "cid"]
    with pytest.raises(ModelNotFoundException):
        users.table("users").find_or_fail(99)


def test_aggregates(users):
    assert users.table("users").count() == 4
    assert users.table("users").where("status", "active").count() == 2
    assert users.table("users").max("age") == 45
    assert users.table("users").min("age") == 17
    assert users.table("users").sum("age") == 115
    assert users.table("users").where("age", ">", 100).sum("age") == 0


def test_grouped_count_counts_groups(users):
    assert users.table("users").where_not_null("status").group_by("status").count() == 2


def test_exists(users):
    assert users.table("users").where("name", "ann").exists()
    assert users.table("users").where("name", "zed").doesnt_exist()


def test_paginate(users):
    page = users.table("users").order_by("id").paginate(per_page=3, page=2)
    assert page.total == 4
    assert page.last_page == 2
    assert [r["name"] for r in page.items] == ["dee"]
    assert not page.has_more_pages()


def test_paginate_empty_result_has_no_pages(users):
    page = users.table("users").where("age", ">", 100).paginate(per_page=3)
    assert page.total == 0
    assert page.last_page == 0
    assert page.from_ is None
    assert not page.has_more_pages()


def test_chunk_stops_when_callback_returns_false(users):
    seen = []

    def collect(rows):
        seen.append(len(rows))
        return False

    assert users.table("users").order_by("id").chunk(3, collect) is False
    assert seen == [3]


def test_insert_get_id_update_increment_delete(users):
    new_id = users.table("users").insert_get_id({"name": "eve", "age": 28})
    assert new_id == 5

    assert users.table("users").where("id", new_id).update({"status": "active"}) == 1
    users.table("users").where("id", new_id).increment("votes", 3)
    assert users.table("users").where("id", new_id).value("votes") == 3

    assert users.table("users").delete(new_id) == 1
    assert users.table("users").count() == 4


def test_delete_by_id_leaves_builder_unchanged(users):
    query = users.table("users").where("age", "<", 40)
    assert query.delete(2) == 1
    assert query.get_bindings() == [40]
    assert sorted(r["name"] for r in query.get()) == ["ann", "dee"]


def test_increment_rejects_non_numeric(users):
    with pytest.raises(ValueError):
        users.table("users").increment("votes", "3")


def test_insert_rejects_mismatched_rows(users):
    with pytest.raises(ValueError):
        users.table("users").insert([{"name": "a", "age": 1}, {"name": "b"}])


def test_truncate(users):
    users.table("users").truncate()
    assert users.table("users").count() == 0


# ---------------------------------------------------------------------------
# Raw SQL guard
# ---------------------------------------------------------------------------

def test_raw_runs_in_testing(users):
    rows = users.table("users").raw('SELECT name FROM "users" WHERE age > ?', [40])
    assert [r["name"] for r in rows] == ["cid"]


def test_raw_refused_in_production(users):
    users.config.environment = "production"
    with pytest.raises(RawQueryDisabledError):
        users.table("users").raw('DELETE FROM "users"')


def test_raw_allowed_in_production_when_enabled(users):
    users.config.environment = "production"
    users.config.allow_raw_sql = True
    assert users.table("users").raw('UPDATE "users" SET votes = 1') == 4


def test_raw_warns_outside_testing(users, caplog):
    users.config.environment = "local"
    with caplog.at_level("WARNING", logger="conduit_db.query.builder"):
        users.table("users").raw('SELECT * FROM "users"')
    assert "Raw SQL executed in local environment" in caplog.text


# ---------------------------------------------------------------------------
# Table prefix
# ---------------------------------------------------------------------------

def test_prefixed_connection_runs_aliased_queries():
    from conduit_db.config import ConnectionConfig
    from conduit_db.db import Connection

    conn = Connection(ConnectionConfig(database=":memory:", prefix="app_", environment="testing"))
    schema = conn.schema()
    schema.create("users", lambda t: (t.increments("id"), t.string("name")))
    schema.create("posts", lambda t: (t.increments("id"), t.integer("user_id"), t.string("title")))
    conn.table("users").insert({"name": "ann"})
    conn.table("posts").insert({"user_id": 1, "title": "hello"})

    rows = (
        conn.table("users as u")
        .join("posts as p", "p.user_id", "=", "u.id")
        .where("u.id", 1)
        .select("u.name", "p.title")
        .get()
    )
    assert rows.all() == [{"name": "ann", "title": "hello"}]
    assert conn.table("users as u").where("u.name", "ann").count() == 1
    conn.disconnect()
