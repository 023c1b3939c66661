"""
Tests for SQL generation in the SQLite, PostgreSQL and DuckDB dialects.
"""

import pytest

from strata.faults import ConfigInvalidFault
from strata.migrations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    C,
    CheckConstraint,
    CreateIndex,
    CreateTable,
    DataType,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    DuckDbDialect,
    ForeignKeyConstraint,
    IndexType,
    PostgresDialect,
    PrimaryKeyConstraint,
    RenameColumn,
    RenameTable,
    RunSql,
    SetAutoincrement,
    SetUnique,
    SqliteDialect,
    get_dialect,
)


def _pk_table():
    return CreateTable("users", columns=[C.bigint("id").primary_key().autoincrement()])


class TestAutoincrementPrimaryKey:
    def test_sqlite(self):
        sql = SqliteDialect().generate_sql(_pk_table())
        assert len(sql) == 1
        assert '"id" INTEGER PRIMARY KEY AUTOINCREMENT' in sql[0]

    def test_postgres(self):
        sql = PostgresDialect().generate_sql(_pk_table())
        assert len(sql) == 1
        assert '"id" BIGSERIAL PRIMARY KEY' in sql[0]

    def test_postgres_integer_serial(self):
        op = CreateTable("t", columns=[C.integer("id").primary_key().autoincrement()])
        assert '"id" SERIAL PRIMARY KEY' in PostgresDialect().generate_sql(op)[0]

    def test_duckdb_sequence_precedes_table(self):
        sql = DuckDbDialect().generate_sql(_pk_table())
        assert sql[0] == 'CREATE SEQUENCE IF NOT EXISTS "seq_users_id" START 1'
        assert sql[1].startswith('CREATE TABLE "users"')
        assert "DEFAULT nextval('seq_users_id')" in sql[1]

    def test_duckdb_add_column_creates_sequence(self):
        sql = DuckDbDialect().generate_sql(AddColumn("events", C.bigint("seq").autoincrement()))
        assert sql[0] == 'CREATE SEQUENCE IF NOT EXISTS "seq_events_seq" START 1'
        assert "nextval('seq_events_seq')" in sql[1]


class TestAutoincrementOtherColumns:
    def test_sqlite_non_primary_key_degrades_to_comment(self):
        op = CreateTable("t", columns=[C.integer("id").primary_key(), C.integer("n").not_null().autoincrement()])
        sql = SqliteDialect().generate_sql(op)
        assert "AUTOINCREMENT" not in sql[0]
        assert '"n" INTEGER NOT NULL' in sql[0]
        assert sql[1].startswith("-- SQLite does not support autoincrement on t.n")
        assert "table recreation required" in sql[1]

    def test_sqlite_text_primary_key_degrades_to_comment(self):
        op = CreateTable("t", columns=[C.text("code").primary_key().autoincrement()])
        sql = SqliteDialect().generate_sql(op)
        assert '"code" TEXT PRIMARY KEY\n' in sql[0]
        assert sql[1].startswith("-- SQLite does not support autoincrement on t.code")

    def test_sqlite_add_column(self):
        sql = SqliteDialect().generate_sql(AddColumn("t", C.integer("n").autoincrement()))
        assert sql[0] == 'ALTER TABLE "t" ADD COLUMN "n" INTEGER'
        assert sql[1].startswith("-- SQLite does not support autoincrement on t.n")

    @pytest.mark.parametrize("column, expected", [
        (C.smallint("n"), '"n" SMALLSERIAL'),
        (C.integer("n"), '"n" SERIAL'),
        (C.bigint("n"), '"n" BIGSERIAL'),
    ])
    def test_postgres_serial_without_primary_key(self, column, expected):
        op = CreateTable("t", columns=[C.bigint("id").primary_key(), column.not_null().autoincrement()])
        sql = PostgresDialect().generate_sql(op)
        assert len(sql) == 1
        assert expected + " NOT NULL" in sql[0]

    def test_postgres_non_integer_degrades_to_comment(self):
        sql = PostgresDialect().generate_sql(AddColumn("t", C.text("n").autoincrement()))
        assert sql[0] == 'ALTER TABLE "t" ADD COLUMN "n" TEXT'
        assert sql[1].startswith("-- PostgreSQL does not support autoincrement on t.n")


class TestCreateTable:
    def test_layout(self):
        op = CreateTable(
            "users",
            columns=[
                C.bigint("id").primary_key().autoincrement(),
                C.varchar("email", 255).not_null().unique(),
                C.boolean("active").not_null().default_bool(True),
            ],
        )
        assert SqliteDialect().generate_sql(op) == [
            'CREATE TABLE "users" (\n'
            '    "id" INTEGER PRIMARY KEY AUTOINCREMENT,\n'
            '    "email" TEXT NOT NULL UNIQUE,\n'
            '    "active" INTEGER NOT NULL DEFAULT 1\n'
            ")"
        ]

    def test_postgres_boolean_default(self):
        op = CreateTable("t", columns=[C.boolean("active").default_bool(False)])
        assert '"active" BOOLEAN DEFAULT FALSE' in PostgresDialect().generate_sql(op)[0]

    def test_if_not_exists(self):
        op = CreateTable("t", columns=[C.integer("id")], if_not_exists=True)
        assert SqliteDialect().generate_sql(op)[0].startswith('CREATE TABLE IF NOT EXISTS "t"')

    def test_constraints(self):
        op = CreateTable(
            "memberships",
            columns=[C.bigint("user_id").not_null(), C.bigint("group_id").not_null()],
            constraints=[
                PrimaryKeyConstraint(("user_id", "group_id")),
                ForeignKeyConstraint(("user_id",), "users", ("id",), on_delete="CASCADE", name="fk_user"),
                CheckConstraint("user_id > 0"),
            ],
        )
        sql = PostgresDialect().generate_sql(op)[0]
        assert 'PRIMARY KEY ("user_id", "group_id")' in sql
        assert (
            'CONSTRAINT "fk_user" FOREIGN KEY ("user_id") REFERENCES "users" ("id") ON DELETE CASCADE'
            in sql
        )
        assert "CHECK (user_id > 0)" in sql

    def test_inline_reference(self):
        op = AddColumn("posts", C.bigint("author_id").references_full("users", "id", on_delete="SET NULL"))
        assert SqliteDialect().generate_sql(op) == [
            'ALTER TABLE "posts" ADD COLUMN "author_id" INTEGER REFERENCES "users" ("id") ON DELETE SET NULL'
        ]

    def test_string_default_escaped(self):
        op = AddColumn("t", C.text("motto").default_str("it's"))
        assert SqliteDialect().generate_sql(op)[0].endswith("DEFAULT 'it''s'")

    def test_collation(self):
        op = AddColumn("t", C.text("name").collation("C"))
        assert PostgresDialect().generate_sql(op)[0].endswith('COLLATE "C"')
        assert SqliteDialect().generate_sql(op)[0].endswith("COLLATE C")


class TestTypeMapping:
    @pytest.mark.parametrize(
        "data_type, sqlite, postgres, duckdb",
        [
            (DataType.bigint(), "INTEGER", "BIGINT", "BIGINT"),
            (DataType.boolean(), "INTEGER", "BOOLEAN", "BOOLEAN"),
            (DataType.double(), "REAL", "DOUBLE PRECISION", "DOUBLE"),
            (DataType.decimal(10, 2), "REAL", "DECIMAL(10, 2)", "DECIMAL(10, 2)"),
            (DataType.varchar(255), "TEXT", "VARCHAR(255)", "VARCHAR(255)"),
            (DataType.blob(), "BLOB", "BYTEA", "BLOB"),
            (DataType.binary(8), "BLOB", "BIT(8)", "BLOB(8)"),
            (DataType.varbinary(), "BLOB", "BYTEA", "BLOB"),
            (DataType.datetime(), "TEXT", "TIMESTAMP", "TIMESTAMP"),
            (DataType.custom("UUID"), "UUID", "UUID", "UUID"),
        ],
    )
    def test_map_data_type(self, data_type, sqlite, postgres, duckdb):
        assert SqliteDialect().map_data_type(data_type) == sqlite
        assert PostgresDialect().map_data_type(data_type) == postgres
        assert DuckDbDialect().map_data_type(data_type) == duckdb

    @pytest.mark.parametrize(
        "type_name, expected",
        [
            ("int", DataType.bigint()),
            ("Optional[int]", DataType.bigint()),
            ("str | None", DataType.text()),
            ("datetime.datetime", DataType.timestamp()),
            ("typing.Optional[Decimal]", DataType.numeric()),
            ("UUID", DataType.custom("UUID")),
            ("SomethingElse", DataType.text()),
        ],
    )
    def test_postgres_host_types(self, type_name, expected):
        assert PostgresDialect().map_type(type_name) == expected

    def test_sqlite_host_types(self):
        d = SqliteDialect()
        assert d.map_type("bool") == DataType.integer()
        assert d.map_type("float") == DataType.real()
        assert d.map_type("bytes") == DataType.blob()


class TestAlterColumn:
    def test_sqlite_degrades_to_comments(self):
        d = SqliteDialect()
        type_sql = d.generate_sql(AlterColumn.set_type("users", "age", DataType.bigint()))[0]
        assert type_sql.startswith("-- SQLite does not support")
        assert "users.age" in type_sql
        assert "table recreation required" in type_sql
        nullable_sql = d.generate_sql(AlterColumn.set_nullable("users", "age", False))[0]
        assert nullable_sql.startswith("--")

    def test_sqlite_set_default_comment_shows_value(self):
        sql = SqliteDialect().generate_sql(AlterColumn.set_default("t", "c", True))[0]
        assert sql.startswith("--")
        assert sql.endswith("would set to: 1")

    def test_postgres(self):
        d = PostgresDialect()
        assert d.generate_sql(AlterColumn.set_type("t", "c", DataType.text())) == [
            'ALTER TABLE "t" ALTER COLUMN "c" TYPE TEXT'
        ]
        assert d.generate_sql(AlterColumn.set_nullable("t", "c", False)) == [
            'ALTER TABLE "t" ALTER COLUMN "c" SET NOT NULL'
        ]
        assert d.generate_sql(AlterColumn.set_nullable("t", "c", True)) == [
            'ALTER TABLE "t" ALTER COLUMN "c" DROP NOT NULL'
        ]
        assert d.generate_sql(AlterColumn.set_default("t", "c", "x")) == [
            "ALTER TABLE \"t\" ALTER COLUMN \"c\" SET DEFAULT 'x'"
        ]
        assert d.generate_sql(AlterColumn.drop_default("t", "c")) == [
            'ALTER TABLE "t" ALTER COLUMN "c" DROP DEFAULT'
        ]

    def test_postgres_unique(self):
        d = PostgresDialect()
        assert d.generate_sql(AlterColumn("t", "c", SetUnique(True))) == [
            'ALTER TABLE "t" ADD CONSTRAINT "t_c_key" UNIQUE ("c")'
        ]
        assert d.generate_sql(AlterColumn("t", "c", SetUnique(False))) == [
            'ALTER TABLE "t" DROP CONSTRAINT "t_c_key"'
        ]
        assert d.generate_sql(AlterColumn("t", "c", SetAutoincrement(True)))[0].startswith("--")

    def test_duckdb(self):
        assert DuckDbDialect().generate_sql(AlterColumn.set_type("t", "c", DataType.integer())) == [
            'ALTER TABLE "t" ALTER COLUMN "c" SET DATA TYPE INTEGER'
        ]

    def test_duckdb_unique_constraint_name(self):
        d = DuckDbDialect()
        assert d.generate_sql(AlterColumn("t", "c", SetUnique(True))) == ['ALTER TABLE "t" ADD UNIQUE ("c")']
        assert d.generate_sql(AlterColumn("t", "c", SetUnique(False))) == [
            'ALTER TABLE "t" DROP CONSTRAINT "t_c_key"'
        ]


class TestOtherOperations:
    def test_renames(self):
        for d in (SqliteDialect(), PostgresDialect(), DuckDbDialect()):
            assert d.generate_sql(RenameTable("a", "b")) == ['ALTER TABLE "a" RENAME TO "b"']
            assert d.generate_sql(RenameColumn("t", "a", "b")) == ['ALTER TABLE "t" RENAME COLUMN "a" TO "b"']

    def test_drops(self):
        d = PostgresDialect()
        assert d.generate_sql(DropTable("t", if_exists=True, cascade=True)) == ['DROP TABLE IF EXISTS "t" CASCADE']
        assert d.generate_sql(DropColumn("t", "c")) == ['ALTER TABLE "t" DROP COLUMN "c"']
        assert d.generate_sql(DropIndex("idx", if_exists=True)) == ['DROP INDEX IF EXISTS "idx"']

    def test_create_index(self):
        op = CreateIndex("idx_tags", "posts", ["tags"], index_type=IndexType.GIN, condition="tags IS NOT NULL")
        assert PostgresDialect().generate_sql(op) == [
            'CREATE INDEX "idx_tags" ON "posts" USING GIN ("tags") WHERE tags IS NOT NULL'
        ]
        unique = CreateIndex("idx_email", "users", ["email"], unique=True, if_not_exists=True)
        assert SqliteDialect().generate_sql(unique) == [
            'CREATE UNIQUE INDEX IF NOT EXISTS "idx_email" ON "users" ("email")'
        ]

    def test_foreign_keys(self):
        add = AddForeignKey("posts", ["author_id"], "users", ["id"], name="fk_author", on_delete="CASCADE")
        assert PostgresDialect().generate_sql(add) == [
            'ALTER TABLE "posts" ADD CONSTRAINT "fk_author" FOREIGN KEY ("author_id") '
            'REFERENCES "users" ("id") ON DELETE CASCADE'
        ]
        assert PostgresDialect().generate_sql(DropForeignKey("posts", "fk_author")) == [
            'ALTER TABLE "posts" DROP CONSTRAINT "fk_author"'
        ]
        sqlite_drop = SqliteDialect().generate_sql(DropForeignKey("posts", "fk_author"))[0]
        assert sqlite_drop.startswith("-- SQLite does not support DROP CONSTRAINT")
        assert "table recreation required" in sqlite_drop

    def test_sqlite_add_foreign_key_degrades_to_comment(self):
        add = AddForeignKey("posts", ["author_id"], "users", ["id"], name="fk_author")
        assert SqliteDialect().generate_sql(add) == [
            "-- SQLite does not support ADD CONSTRAINT; "
            "table recreation required to add foreign key fk_author to posts"
        ]
        unnamed = SqliteDialect().generate_sql(AddForeignKey("posts", ["author_id"], "users", ["id"]))[0]
        assert unnamed.startswith("-- SQLite does not support ADD CONSTRAINT")
        assert "(author_id)" in unnamed

    def test_run_sql_verbatim(self):
        assert SqliteDialect().generate_sql(RunSql("UPDATE t SET a = 1")) == ["UPDATE t SET a = 1"]

    def test_identifier_quoting_escapes_quotes(self):
        assert SqliteDialect().quote_identifier('we"ird') == '"we""ird"'

    def test_no_trailing_semicolons(self):
        sql = PostgresDialect().generate_all([_pk_table(), DropTable("users")])
        assert all(not s.rstrip().endswith(";") for s in sql)


class TestGetDialect:
    def test_names(self):
        assert isinstance(get_dialect("sqlite"), SqliteDialect)
        assert isinstance(get_dialect("postgres"), PostgresDialect)
        assert isinstance(get_dialect("PostgreSQL"), PostgresDialect)
        assert isinstance(get_dialect("duckdb"), DuckDbDialect)

    def test_instance_passthrough(self):
        d = DuckDbDialect()
        assert get_dialect(d) is d

    def test_unknown(self):
        with pytest.raises(ConfigInvalidFault):
            get_dialect("oracle")
