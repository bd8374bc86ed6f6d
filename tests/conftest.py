"""
Shared fixtures: an in-memory SQLite connection in the "testing"
environment, plus a small blog schema for the model tests.
"""

import pytest

from conduit_db.config import ConnectionConfig
from conduit_db.db import Connection
from conduit_db.orm import policies


@pytest.fixture
def conn():
    connection = Connection(
        ConnectionConfig(driver="sqlite", database=":memory:", environment="testing")
    )
    yield connection
    connection.disconnect()


@pytest.fixture
def schema(conn):
    return conn.schema()


@pytest.fixture
def blog(conn, schema):
    """users / posts / comments / tags / post_tag tables."""

    def users(t):
        t.increments("id")
        t.string("name")
        t.string("email").nullable()
        t.boolean("active").default(True)
        t.text("settings").nullable()
        t.timestamps()

    def posts(t):
        t.increments("id")
        t.integer("user_id")
        t.string("title")
        t.integer("votes").default(0)
        t.timestamps()
        t.soft_deletes()

    def comments(t):
        t.increments("id")
        t.integer("post_id")
        t.string("body")

    def tags(t):
        t.increments("id")
        t.string("name")

    def post_tag(t):
        t.integer("post_id")
        t.integer("tag_id")
        t.string("note").nullable()

    schema.create("users", users)
    schema.create("posts", posts)
    schema.create("comments", comments)
    schema.create("tags", tags)
    schema.create("post_tag", post_tag)
    return conn


@pytest.fixture(autouse=True)
def _reset_listeners():
    yield
    policies.clear_listeners()
