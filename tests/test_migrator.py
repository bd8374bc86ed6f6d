import textwrap

import pytest

from conduit_db.exceptions import MigrationError
from conduit_db.schema import Migrator, MigratorState, RiskLevel, load_migration


CREATE_USERS = """
from conduit_db.schema import Migration


class CreateUsersTable(Migration):
    def up(self):
        def columns(t):
            t.increments("id")
            t.string("name")

        self.schema.create("users", columns)

    def down(self):
        self.schema.drop("users")
"""

CREATE_POSTS = """
from conduit_db.schema import Migration


class CreatePostsTable(Migration):
    def up(self):
        self.schema.create("posts", lambda t: (t.increments("id"), t.integer("user_id")))

    def down(self):
        self.schema.drop_if_exists("posts")
"""

BROKEN = """
from conduit_db.schema import Migration


class Broken(Migration):
    def up(self):
        self.schema.create("halfway", lambda t: t.increments("id"))
        self.connection.statement("THIS IS NOT SQL")

    def down(self):
        pass
"""


def write(directory, name, source):
    (directory / f"{name}.py").write_text(textwrap.dedent(source))


@pytest.fixture
def messages():
    return []


@pytest.fixture
def migrator(conn, tmp_path, messages):
    write(tmp_path, "2024_01_01_000000_create_users_table", CREATE_USERS)
    write(tmp_path, "2024_01_02_000000_create_posts_table", CREATE_POSTS)
    return Migrator(conn, tmp_path, output=messages.append)


def test_run_applies_pending_in_one_batch(migrator, schema, messages):
    assert migrator.state == MigratorState.UNINITIALIZED
    assert migrator.pending_count() == 2

    ran = migrator.run()

    assert ran == ["2024_01_01_000000_create_users_table", "2024_01_02_000000_create_posts_table"]
    assert schema.has_table("users") and schema.has_table("posts")
    assert migrator.state == MigratorState.READY
    assert migrator.repository.get_migration_batches() == {1: ran}
    assert messages[0] == "Migration table created successfully."
    assert "Running batch #1..." in messages
    assert migrator.run() == []
    assert messages[-1] == "Nothing to migrate."


def test_rollback_reverses_last_batch_only(migrator, tmp_path, schema):
    migrator.run()
    write(tmp_path, "2024_01_03_000000_create_tags_table", CREATE_USERS.replace('"users"', '"tags"'))
    migrator.run()

    rolled = migrator.rollback(1)

    assert rolled == ["2024_01_03_000000_create_tags_table"]
    assert not schema.has_table("tags")
    assert schema.has_table("users")
    assert migrator.repository.get_last_batch_number() == 1


def test_rollback_walks_batches_newest_first(migrator, schema):
    migrator.run()
    rolled = migrator.rollback(5)
    assert rolled == ["2024_01_02_000000_create_posts_table", "2024_01_01_000000_create_users_table"]
    assert not schema.has_table("users")
    assert migrator.rollback() == []


def test_reset_and_fresh(migrator, schema):
    migrator.run()
    assert len(migrator.reset()) == 2
    assert not schema.has_table("posts")

    ran = migrator.fresh()
    assert len(ran) == 2
    assert schema.has_table("posts")
    assert migrator.repository.get_last_batch_number() == 1


def test_status(migrator, tmp_path):
    before = migrator.status()
    assert [s.ran for s in before] == [False, False]

    migrator.run()
    write(tmp_path, "2024_01_09_000000_later", CREATE_POSTS.replace('"posts"', '"later"'))
    after = {s.name: s for s in migrator.status()}
    assert after["2024_01_01_000000_create_users_table"].batch == 1
    assert after["2024_01_09_000000_later"].ran is False
    assert after["2024_01_09_000000_later"].batch is None


def test_failed_unit_is_rolled_back_and_named(conn, tmp_path, schema):
    write(tmp_path, "2024_01_01_000000_create_users_table", CREATE_USERS)
    write(tmp_path, "2024_01_02_000000_broken", BROKEN)
    migrator = Migrator(conn, tmp_path)

    with pytest.raises(MigrationError) as excinfo:
        migrator.run()

    assert excinfo.value.migration == "2024_01_02_000000_broken"
    assert "Migration failed: 2024_01_02_000000_broken" in str(excinfo.value)
    # earlier unit stays committed, failing unit leaves nothing behind
    assert schema.has_table("users")
    assert not schema.has_table("halfway")
    assert migrator.repository.get_ran() == ["2024_01_01_000000_create_users_table"]
    assert conn.transaction_level == 0
    assert migrator.state == MigratorState.READY


def test_preview_compiles_without_executing(migrator, schema):
    previews = migrator.preview()

    assert [p.migration for p in previews] == [
        "2024_01_01_000000_create_users_table",
        "2024_01_02_000000_create_posts_table",
    ]
    assert previews[0].statements == [
        'CREATE TABLE "users" ("id" INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT, "name" VARCHAR NOT NULL)'
    ]
    assert previews[0].analysis.total_risk == RiskLevel.LOW
    assert previews[0].analysis.affected_tables == ["users"]
    assert not schema.has_table("users")


def test_missing_file_raises(migrator):
    with pytest.raises(MigrationError):
        migrator.resolve("2099_01_01_000000_nope")


def test_load_migration_requires_exactly_one_class(tmp_path):
    write(tmp_path, "two", CREATE_USERS + CREATE_POSTS)
    with pytest.raises(MigrationError):
        load_migration(tmp_path / "two.py")

    write(tmp_path, "explicit", CREATE_USERS + CREATE_POSTS + "\nmigration = CreatePostsTable\n")
    assert load_migration(tmp_path / "explicit.py").__name__ == "CreatePostsTable"
