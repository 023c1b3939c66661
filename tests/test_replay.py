"""
Tests for schema-state replay.
"""

import pytest

from strata.faults import InvalidStateFault
from strata.migrations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    C,
    CreateIndex,
    CreateTable,
    DataType,
    DropColumn,
    DropForeignKey,
    DropIndex,
    DropTable,
    ForeignKeyConstraint,
    Operation,
    RenameColumn,
    RenameTable,
    RunSql,
    SchemaState,
)

from conftest import make_migration, users_table


def _base_state() -> SchemaState:
    state = SchemaState()
    state.apply_operations([
        users_table(),
        CreateTable(
            "posts",
            columns=[C.bigint("id").primary_key(), C.bigint("author_id")],
            constraints=[ForeignKeyConstraint(("author_id",), "users", ("id",), name="fk_author")],
        ),
        CreateIndex("idx_posts_author", "posts", ["author_id"]),
    ])
    return state


REVERSIBLE = [
    CreateTable("tags", columns=[C.integer("id").primary_key()]),
    RenameTable("posts", "articles"),
    AddColumn("users", C.text("bio")),
    RenameColumn("users", "email", "login"),
    CreateIndex("idx_users_email", "users", ["email"], unique=True),
    AddForeignKey("posts", ["author_id"], "users", ["id"], name="fk_author_2"),
    RunSql("UPDATE users SET email = lower(email)", down_sql="SELECT 1"),
]


class TestRoundTrip:
    @pytest.mark.parametrize("op", REVERSIBLE, ids=lambda op: type(op).__name__)
    def test_apply_then_reverse_restores_state(self, op: Operation):
        state = _base_state()
        before = state.to_snapshot()
        state.apply_operation(op)
        state.apply_operation(op.reverse())
        assert state.to_snapshot() == before

    def test_create_then_drop(self):
        state = SchemaState()
        op = CreateTable("t", columns=[C.integer("id")])
        state.apply_operation(op)
        assert state.has_table("t")
        state.apply_operation(op.reverse())
        assert not state.has_table("t")


class TestReplay:
    def test_from_migrations(self, chain):
        state = SchemaState.from_migrations(chain)
        users = state.table("users")
        assert users.column_names == ["id", "email", "bio"]
        assert users.index("idx_users_email").columns == ["email"]

    def test_alter_column(self):
        state = _base_state()
        state.apply_operation(AlterColumn.set_type("users", "email", DataType.text()))
        state.apply_operation(AlterColumn.set_nullable("users", "email", True))
        state.apply_operation(AlterColumn.set_default("users", "email", "x"))
        col = state.table("users").column("email")
        assert col.data_type == DataType.text()
        assert col.nullable is True
        assert col.default.value == "x"
        state.apply_operation(AlterColumn.drop_default("users", "email"))
        assert state.table("users").column("email").default is None

    def test_rename_table_updates_references(self):
        state = _base_state()
        state.apply_operation(RenameTable("users", "accounts"))
        assert state.table("posts").foreign_keys[0].references_table == "accounts"

    def test_rename_column_updates_indexes(self):
        state = _base_state()
        state.apply_operation(RenameColumn("posts", "author_id", "writer_id"))
        posts = state.table("posts")
        assert posts.index("idx_posts_author").columns == ["writer_id"]
        assert posts.foreign_keys[0].columns == ["writer_id"]

    def test_create_table_foreign_keys_tracked(self):
        state = _base_state()
        state.apply_operation(DropForeignKey("posts", "fk_author"))
        assert state.table("posts").foreign_keys == []

    def test_drop_column_drops_dependent_index_and_foreign_key(self):
        state = _base_state()
        state.apply_operation(DropColumn("posts", "author_id"))
        posts = state.table("posts")
        assert posts.column_names == ["id"]
        assert posts.indexes == []
        assert posts.foreign_keys == []

    def test_drop_column_drops_index_on_it(self):
        state = SchemaState()
        state.apply_operations([
            CreateTable("t", columns=[C.integer("id").primary_key(), C.text("b"), C.text("c")]),
            CreateIndex("idx_b", "t", ["b"]),
            CreateIndex("idx_c", "t", ["c"]),
            DropColumn("t", "b"),
        ])
        assert [idx.name for idx in state.table("t").indexes] == ["idx_c"]

    def test_drop_referenced_column_drops_incoming_foreign_key(self):
        state = _base_state()
        state.apply_operation(DropColumn("users", "id"))
        assert state.table("posts").foreign_keys == []
        assert state.table("posts").index("idx_posts_author") is not None

    def test_drop_table_drops_incoming_foreign_keys(self):
        state = _base_state()
        state.apply_operation(DropTable("users"))
        assert state.table_names() == ["posts"]
        assert state.table("posts").foreign_keys == []
        assert state.table("posts").column_names == ["id", "author_id"]

    def test_if_exists_variants(self):
        state = _base_state()
        state.apply_operation(CreateTable("users", columns=[], if_not_exists=True))
        state.apply_operation(DropTable("missing", if_exists=True))
        state.apply_operation(DropIndex("missing", if_exists=True))
        assert state.table_names() == ["posts", "users"]

    def test_snapshot_is_detached(self):
        state = _base_state()
        snapshot = state.to_snapshot()
        state.apply_operation(AddColumn("users", C.text("bio")))
        assert snapshot.table("users").column("bio") is None

    def test_migration(self):
        state = SchemaState()
        state.apply_migration(make_migration("0001", [users_table()]))
        assert state.has_table("users")


class TestInvalidState:
    @pytest.mark.parametrize(
        "op",
        [
            CreateTable("users", columns=[]),
            DropTable("missing"),
            RenameTable("missing", "other"),
            RenameTable("users", "posts"),
            AddColumn("users", C.text("email")),
            AddColumn("missing", C.text("x")),
            DropColumn("users", "missing"),
            AlterColumn.set_nullable("users", "missing", True),
            RenameColumn("users", "missing", "x"),
            RenameColumn("users", "id", "email"),
            CreateIndex("idx_posts_author", "users", ["email"]),
            CreateIndex("idx_new", "users", ["missing"]),
            DropIndex("missing"),
            DropForeignKey("posts", "missing"),
            AddForeignKey("posts", ["author_id"], "users", ["id"], name="fk_author"),
        ],
        ids=lambda op: op.describe(),
    )
    def test_raises(self, op):
        with pytest.raises(InvalidStateFault):
            _base_state().apply_operation(op)
