import pytest

from conduit_db import ConduitDB, create_conduit_db
from conduit_db.config import ConnectionConfig, DatabaseConfig, load_config
from conduit_db.exceptions import DatabaseConnectionError
from conduit_db.utils.inflect import Pluralizer, plural, snake_case


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def test_load_config_defaults(monkeypatch):
    for name in ("DB_CONNECTION", "DB_DATABASE", "DB_PORT", "APP_ENV", "ALLOW_RAW_SQL"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()
    conn = config.connection()

    assert config.default == "sqlite"
    assert conn.database == "conduit.db"
    assert conn.environment == "production"
    assert conn.allow_raw_sql is False
    assert config.migrations_table == "migrations"


def test_load_config_from_env(monkeypatch):
    monkeypatch.setenv("DB_CONNECTION", "pgsql")
    monkeypatch.setenv("DB_HOST", "db.internal")
    monkeypatch.setenv("DB_DATABASE", "app")
    monkeypatch.setenv("DB_USERNAME", "svc")
    monkeypatch.setenv("DB_PREFIX", "app_")
    monkeypatch.setenv("APP_ENV", "testing")
    monkeypatch.setenv("ALLOW_RAW_SQL", "yes")
    monkeypatch.setenv("DB_MIGRATIONS_PATH", "/srv/migrations")

    config = load_config()
    conn = config.connection("pgsql")

    assert conn.host == "db.internal"
    assert conn.port == 5432
    assert conn.prefix == "app_"
    assert conn.environment == "testing"
    assert conn.allow_raw_sql is True
    assert config.migrations_path == "/srv/migrations"
    conn.validate()


def test_validate_requires_driver_keys():
    with pytest.raises(DatabaseConnectionError):
        ConnectionConfig(driver="pgsql", host="h", database="d").validate()
    with pytest.raises(DatabaseConnectionError):
        ConnectionConfig(driver="mssql").validate()
    ConnectionConfig(driver="mysql", host="h", database="d", username="u").validate()


def test_from_mapping_ignores_unknown_keys():
    conn = ConnectionConfig.from_mapping({"driver": "mysql", "port": "3307", "pool": 5})
    assert conn.port == 3307
    assert not hasattr(conn, "pool")


def test_unknown_connection_name():
    with pytest.raises(DatabaseConnectionError):
        DatabaseConfig().connection("nope")


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------

def test_facade_wires_connections_schema_and_migrations(tmp_path):
    (tmp_path / "2024_01_01_000000_create_notes.py").write_text(
        "from conduit_db.schema import Migration\n"
        "\n"
        "class CreateNotes(Migration):\n"
        "    def up(self):\n"
        "        self.schema.create('notes', lambda t: (t.increments('id'), t.text('body')))\n"
        "\n"
        "    def down(self):\n"
        "        self.schema.drop('notes')\n"
    )
    config = DatabaseConfig(
        default="main",
        connections={"main": ConnectionConfig(environment="testing")},
        migrations_path=str(tmp_path),
        migrations_table="schema_log",
    )
    messages = []
    db = create_conduit_db(config, output=messages.append)

    assert isinstance(db, ConduitDB)
    assert db.migrate() == ["2024_01_01_000000_create_notes"]
    assert db.schema().has_table("schema_log")
    assert db.migrator() is db.migrator("main")

    db.table("notes").insert({"body": "hello"})
    assert db.table("notes").count() == 1

    assert db.rollback() == ["2024_01_01_000000_create_notes"]
    assert not db.schema().has_table("notes")
    assert "Migrated: 2024_01_01_000000_create_notes" in messages

    db.close()
    assert db.factory.connections() == {}


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "word, expected",
    [
        ("user", "users"),
        ("category", "categories"),
        ("day", "days"),
        ("box", "boxes"),
        ("person", "people"),
        ("blog_category", "blog_categories"),
        ("news", "news"),
        ("people", "people"),
    ],
)
def test_plural(word, expected):
    assert plural(word) == expected


def test_pluralizer_registry_is_extensible():
    pluralizer = Pluralizer(irregular={"cactus": "cacti"})
    assert pluralizer.plural("cactus") == "cacti"
    pluralizer.register("octopus", "octopodes")
    assert pluralizer.plural("sea_octopus") == "sea_octopodes"
    assert plural("cactus") == "cactuses"


def test_snake_case():
    assert snake_case("BlogPost") == "blog_post"
    assert snake_case("HTTPRequestLog") == "http_request_log"
    assert snake_case("User") == "user"
