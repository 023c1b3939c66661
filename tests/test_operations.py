"""
Tests for operations: reversal, description, builders.
"""

import pytest

from strata.migrations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    C,
    CreateIndex,
    CreateIndexBuilder,
    CreateTable,
    CreateTableBuilder,
    DataType,
    DropColumn,
    DropDefault,
    DropForeignKey,
    DropIndex,
    DropTable,
    DropTableBuilder,
    ForeignKeyAction,
    ForeignKeyConstraint,
    IndexType,
    RenameColumn,
    RenameTable,
    RunSql,
    SetDataType,
    TableSchema,
    FieldSchema,
    reverse_operations,
)


class TestReverse:
    def test_create_table_reverses_to_drop(self):
        assert CreateTable("t", columns=[C.integer("id")]).reverse() == DropTable("t")

    @pytest.mark.parametrize(
        "op",
        [
            DropTable("t"),
            DropColumn("t", "c"),
            AlterColumn.set_type("t", "c", DataType.text()),
            DropIndex("idx"),
            DropForeignKey("t", "fk"),
            RunSql("DELETE FROM t"),
            AddForeignKey("t", ["a"], "u", ["id"]),
        ],
    )
    def test_irreversible(self, op):
        assert op.reverse() is None
        assert op.is_reversible() is False

    def test_renames_swap(self):
        assert RenameTable("a", "b").reverse() == RenameTable("b", "a")
        assert RenameColumn("t", "a", "b").reverse() == RenameColumn("t", "b", "a")

    def test_add_column(self):
        assert AddColumn("t", C.text("bio")).reverse() == DropColumn("t", "bio")

    def test_create_index(self):
        assert CreateIndex("idx", "t", ["a"]).reverse() == DropIndex("idx", table="t")

    def test_named_foreign_key(self):
        op = AddForeignKey("posts", ["author_id"], "users", ["id"], name="fk_author")
        assert op.reverse() == DropForeignKey("posts", "fk_author")

    def test_run_sql_with_down(self):
        op = RunSql.reversible("INSERT INTO t VALUES (1)", "DELETE FROM t")
        assert op.reverse() == RunSql("DELETE FROM t")

    def test_reverse_operations_reverses_order(self):
        ops = [CreateTable("a", columns=[C.integer("id")]), AddColumn("a", C.text("x"))]
        assert reverse_operations(ops) == [DropColumn("a", "x"), DropTable("a")]

    def test_reverse_operations_none_when_any_irreversible(self):
        assert reverse_operations([AddColumn("a", C.text("x")), DropTable("b")]) is None


class TestOperationValues:
    def test_builders_resolved_on_construction(self):
        op = AddColumn("t", C.text("bio"))
        assert op.column.name == "bio"
        assert not hasattr(op.column, "build")

    def test_alter_column_factories(self):
        assert AlterColumn.set_type("t", "c", DataType.text()).change == SetDataType(DataType.text())
        assert AlterColumn.drop_default("t", "c").change == DropDefault()
        assert AlterColumn.set_default("t", "c", 5).change.default.value == 5
        assert AlterColumn.set_nullable("t", "c", False).change.nullable is False

    def test_describe(self):
        assert CreateTable("users", columns=[C.integer("id")]).describe() == "Create table users (1 columns)"
        assert RenameColumn("t", "a", "b").describe() == "Rename column t.a to b"
        assert AlterColumn.drop_default("t", "c").describe() == "Alter column t.c (drop default)"

    def test_to_sql_delegates_to_dialect(self):
        assert DropTable("t").to_sql("postgresql") == ['DROP TABLE "t"']

    def test_create_table_from_schema(self):
        schema = TableSchema("users", [FieldSchema("id", "int", primary_key=True, autoincrement=True)])
        op = CreateTable.from_table(schema, "postgresql")
        assert op.columns[0].data_type == DataType.bigint()
        assert op.columns[0].autoincrement is True


class TestBuilders:
    def test_create_table_builder(self):
        op = (
            CreateTableBuilder("posts")
            .if_not_exists()
            .column(C.bigint("id").primary_key())
            .columns(C.bigint("author_id").not_null(), C.text("body"))
            .foreign_key(["author_id"], "users", ["id"], on_delete="CASCADE")
            .unique(["author_id", "body"])
            .build()
        )
        assert op.if_not_exists is True
        assert [c.name for c in op.columns] == ["id", "author_id", "body"]
        fk = op.constraints[0]
        assert isinstance(fk, ForeignKeyConstraint)
        assert fk.on_delete is ForeignKeyAction.CASCADE

    def test_create_table_builder_needs_columns(self):
        with pytest.raises(ValueError):
            CreateTableBuilder("empty").build()

    def test_drop_table_builder(self):
        assert DropTableBuilder("t").if_exists().cascade().build() == DropTable("t", if_exists=True, cascade=True)

    def test_create_index_builder(self):
        op = (
            CreateIndexBuilder("idx_tags", "posts")
            .columns("tags")
            .index_type("GIN")
            .where("tags IS NOT NULL")
            .build()
        )
        assert op.index_type is IndexType.GIN
        assert op.condition == "tags IS NOT NULL"
