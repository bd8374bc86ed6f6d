import pytest

from conduit_db.exceptions import GrammarError, UnsupportedColumnTypeError
from conduit_db.grammar import MySQLGrammar, PostgresGrammar, SQLiteGrammar, grammar_for
from conduit_db.query import Expression
from conduit_db.query.components import Join, QueryComponents, Where
from conduit_db.schema import Blueprint


def users_blueprint():
    table = Blueprint("users", creating=True)
    table.increments("id")
    table.string("email").unique()
    table.timestamps()
    return table


# ---------------------------------------------------------------------------
# Identifier wrapping
# ---------------------------------------------------------------------------

def test_grammar_for_known_and_unknown_drivers():
    assert isinstance(grammar_for("mysql"), MySQLGrammar)
    assert isinstance(grammar_for("pgsql"), PostgresGrammar)
    assert isinstance(grammar_for("sqlite"), SQLiteGrammar)
    with pytest.raises(GrammarError):
        grammar_for("oracle")


def test_wrap_quotes_per_dialect():
    assert SQLiteGrammar().wrap("users.id") == '"users"."id"'
    assert MySQLGrammar().wrap("users.id") == "`users`.`id`"
    assert PostgresGrammar().wrap("name as n") == '"name" AS "n"'


def test_wrap_star_and_expression_pass_through():
    g = SQLiteGrammar()
    assert g.wrap("*") == "*"
    assert g.wrap("posts.*") == '"posts".*'
    assert g.wrap(Expression("COUNT(*)")) == "COUNT(*)"


def test_wrap_escapes_embedded_quotes():
    assert SQLiteGrammar().wrap_value('we"ird') == '"we""ird"'
    assert MySQLGrammar().wrap_value("we`ird") == "`we``ird`"


def test_table_prefix_applies_to_tables_and_qualified_columns():
    g = SQLiteGrammar("app_")
    assert g.wrap_table("users") == '"app_users"'
    assert g.wrap("users.id") == '"app_users"."id"'


def test_table_prefix_skips_aliases_declared_by_the_query():
    g = SQLiteGrammar("app_")
    query = QueryComponents(
        columns=["u.name", "p.title", "users.email"],
        from_="users as u",
        joins=[Join("posts as p", "p.user_id", "=", "u.id")],
        wheres=[Where("basic", "u.id", "=", 1)],
    )
    assert g.compile_select(query) == (
        'SELECT "u"."name", "p"."title", "app_users"."email" FROM "app_users" AS "u" '
        'INNER JOIN "app_posts" AS "p" ON "p"."user_id" = "u"."id" WHERE "u"."id" = ?'
    )

    delete = QueryComponents(from_="users AS u", wheres=[Where("basic", "u.id", "=", 1)])
    assert g.compile_delete(delete) == 'DELETE FROM "app_users" AS "u" WHERE "u"."id" = ?'
    assert g.wrap("u.id") == '"app_u"."id"'


# ---------------------------------------------------------------------------
# DML
# ---------------------------------------------------------------------------

def test_insert_multi_row_and_empty_row():
    g = SQLiteGrammar()
    rows = [{"name": "a", "age": 1}, {"name": "b", "age": 2}]
    assert g.compile_insert("users", rows) == 'INSERT INTO "users" ("name", "age") VALUES (?, ?), (?, ?)'
    assert g.compile_insert("users", [{}]) == 'INSERT INTO "users" DEFAULT VALUES'
    assert MySQLGrammar().compile_insert("users", [{}]) == "INSERT INTO `users` () VALUES ()"


def test_insert_inlines_expressions():
    sql = SQLiteGrammar().compile_insert("users", [{"name": "a", "created_at": Expression("CURRENT_TIMESTAMP")}])
    assert sql == 'INSERT INTO "users" ("name", "created_at") VALUES (?, CURRENT_TIMESTAMP)'


def test_postgres_insert_get_id_uses_returning():
    sql = PostgresGrammar().compile_insert_get_id("users", {"name": "a"}, "id")
    assert sql == 'INSERT INTO "users" ("name") VALUES (?) RETURNING "id"'


def test_truncate_per_dialect():
    assert SQLiteGrammar().compile_truncate("users") == 'DELETE FROM "users"'
    assert MySQLGrammar().compile_truncate("users") == "TRUNCATE TABLE `users`"
    assert PostgresGrammar().compile_truncate("users") == 'TRUNCATE TABLE "users" RESTART IDENTITY CASCADE'


def test_transaction_statements():
    assert MySQLGrammar().compile_begin() == "START TRANSACTION"
    assert SQLiteGrammar().compile_begin() == "BEGIN"
    g = PostgresGrammar()
    assert g.compile_savepoint("trans1") == "SAVEPOINT trans1"
    assert g.compile_release_savepoint("trans1") == "RELEASE SAVEPOINT trans1"
    assert g.compile_rollback_to_savepoint("trans1") == "ROLLBACK TO SAVEPOINT trans1"


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

def test_sqlite_create_table():
    assert users_blueprint().to_sql(SQLiteGrammar()) == [
        'CREATE TABLE "users" ("id" INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT, '
        '"email" VARCHAR NOT NULL, "created_at" DATETIME, "updated_at" DATETIME)',
        'CREATE UNIQUE INDEX "users_email_unique" ON "users" ("email")',
    ]


def test_mysql_create_table():
    assert users_blueprint().to_sql(MySQLGrammar()) == [
        "CREATE TABLE `users` (`id` INT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY, "
        "`email` VARCHAR(255) NOT NULL, `created_at` TIMESTAMP NULL, `updated_at` TIMESTAMP NULL)",
        "ALTER TABLE `users` ADD UNIQUE `users_email_unique` (`email`)",
    ]


def test_postgres_create_table():
    assert users_blueprint().to_sql(PostgresGrammar()) == [
        'CREATE TABLE "users" ("id" SERIAL NOT NULL PRIMARY KEY, "email" VARCHAR(255) NOT NULL, '
        '"created_at" TIMESTAMP(0) WITHOUT TIME ZONE, "updated_at" TIMESTAMP(0) WITHOUT TIME ZONE)',
        'ALTER TABLE "users" ADD CONSTRAINT "users_email_unique" UNIQUE ("email")',
    ]


def test_defaults_per_dialect():
    table = Blueprint("flags", creating=True)
    table.boolean("on").default(True)
    table.string("label").default("it's")
    table.timestamp("seen_at").use_current()

    assert PostgresGrammar().compile_column(table, table.columns[0]) == '"on" BOOLEAN NOT NULL DEFAULT true'
    assert SQLiteGrammar().compile_column(table, table.columns[0]) == "\"on\" TINYINT(1) NOT NULL DEFAULT '1'"
    assert SQLiteGrammar().compile_column(table, table.columns[1]) == "\"label\" VARCHAR NOT NULL DEFAULT 'it''s'"
    assert SQLiteGrammar().compile_column(table, table.columns[2]) == '"seen_at" DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP'


def test_drop_index_per_dialect():
    def blueprint():
        table = Blueprint("users")
        table.drop_index(["email"])
        return table

    assert blueprint().to_sql(MySQLGrammar()) == ["DROP INDEX `users_email_index` ON `users`"]
    assert blueprint().to_sql(PostgresGrammar()) == ['DROP INDEX "users_email_index"']
    assert blueprint().to_sql(SQLiteGrammar()) == ['DROP INDEX "users_email_index"']


def test_mysql_alter_adds_column_then_foreign_key():
    table = Blueprint("posts")
    table.foreign_id("user_id").constrained().cascade_on_delete()

    assert table.to_sql(MySQLGrammar()) == [
        "ALTER TABLE `posts` ADD COLUMN `user_id` BIGINT UNSIGNED NOT NULL",
        "ALTER TABLE `posts` ADD CONSTRAINT `posts_user_id_foreign` "
        "FOREIGN KEY (`user_id`) REFERENCES `users` (`id`) ON DELETE CASCADE",
    ]


def test_sqlite_inlines_foreign_keys_when_creating():
    table = Blueprint("posts", creating=True)
    table.increments("id")
    table.integer("user_id")
    table.foreign("user_id").references("id").on("users").cascade_on_delete()

    assert table.to_sql(SQLiteGrammar()) == [
        'CREATE TABLE "posts" ("id" INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT, '
        '"user_id" INTEGER NOT NULL, '
        'FOREIGN KEY ("user_id") REFERENCES "users" ("id") ON DELETE CASCADE)'
    ]


def test_sqlite_rejects_foreign_key_on_existing_table():
    table = Blueprint("posts")
    table.foreign("user_id").references("id").on("users")
    with pytest.raises(GrammarError):
        table.to_sql(SQLiteGrammar())


def test_constrained_pluralizes_irregular_nouns():
    table = Blueprint("cars")
    fk = table.foreign_id("person_id").constrained()
    assert fk.referenced_table == "people"
    assert fk.referenced_columns == ["id"]


def test_constrained_without_id_suffix_needs_table():
    table = Blueprint("cars")
    with pytest.raises(GrammarError):
        table.integer("owner").constrained()


def test_unsupported_column_type_is_reported():
    table = Blueprint("prefs", creating=True)
    table.set("flags", ["a", "b"])
    with pytest.raises(UnsupportedColumnTypeError):
        table.to_sql(SQLiteGrammar())
    assert "SET('a', 'b')" in table.to_sql(MySQLGrammar())[0]


def test_index_names_include_table():
    table = Blueprint("post-tag")
    assert table.create_index_name("index", ["post.id", "tag_id"]) == "post_tag_post_id_tag_id_index"


def test_postgres_column_comments_follow_create():
    table = Blueprint("users", creating=True)
    table.string("name").comment("display name")
    statements = table.to_sql(PostgresGrammar())
    assert statements[1] == "COMMENT ON COLUMN \"users\".\"name\" IS 'display name'"


def test_rename_column_and_table():
    table = Blueprint("users")
    table.rename_column("name", "full_name")
    table.rename("people")
    assert table.to_sql(SQLiteGrammar()) == [
        'ALTER TABLE "users" RENAME COLUMN "name" TO "full_name"',
        'ALTER TABLE "users" RENAME TO "people"',
    ]


def test_fulltext_and_spatial_indexes_compile_on_mysql_only():
    def blueprint():
        table = Blueprint("places")
        table.fulltext(["title", "body"])
        table.spatial_index("location")
        table.drop_fulltext(["summary"])
        return table

    assert blueprint().to_sql(MySQLGrammar()) == [
        "ALTER TABLE `places` ADD FULLTEXT `places_title_body_fulltext` (`title`, `body`)",
        "ALTER TABLE `places` ADD SPATIAL INDEX `places_location_spatial_index` (`location`)",
        "DROP INDEX `places_summary_fulltext` ON `places`",
    ]
    with pytest.raises(GrammarError):
        blueprint().to_sql(SQLiteGrammar())
    with pytest.raises(GrammarError):
        blueprint().to_sql(PostgresGrammar())


def test_column_level_fulltext_becomes_index_command():
    table = Blueprint("posts", creating=True)
    table.increments("id")
    table.text("body").fulltext()
    statements = table.to_sql(MySQLGrammar())
    assert statements[-1] == "ALTER TABLE `posts` ADD FULLTEXT `posts_body_fulltext` (`body`)"
