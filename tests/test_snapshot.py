"""
Tests for schema snapshots and their JSON persistence.
"""

import json

import pytest

from strata.faults import SchemaMismatchFault
from strata.migrations import (
    ColumnSnapshot,
    DataType,
    DefaultValue,
    FieldSchema,
    ForeignKeySnapshot,
    IndexSnapshot,
    SchemaIntrospector,
    SchemaSnapshot,
    TableSchema,
    TableSnapshot,
    load_snapshot,
    save_snapshot,
)
from strata.migrations.types import ForeignKeyAction, IndexType


def _schema() -> SchemaSnapshot:
    users = TableSnapshot(
        "users",
        columns=[
            ColumnSnapshot("id", DataType.bigint(), nullable=False, primary_key=True, autoincrement=True),
            ColumnSnapshot("email", DataType.varchar(255), nullable=False, unique=True),
            ColumnSnapshot("created_at", DataType.timestamp(), default=DefaultValue.expression("CURRENT_TIMESTAMP")),
        ],
        indexes=[IndexSnapshot("idx_users_email", ["email"], unique=True)],
    )
    posts = TableSnapshot(
        "posts",
        columns=[
            ColumnSnapshot("id", DataType.bigint(), nullable=False, primary_key=True),
            ColumnSnapshot("author_id", DataType.bigint()),
        ],
        foreign_keys=[ForeignKeySnapshot(["author_id"], "users", ["id"], on_delete="CASCADE", name="fk_author")],
    )
    return SchemaSnapshot([users, posts])


class TestSnapshotModel:
    def test_tables_sorted_by_name(self):
        assert _schema().table_names() == ["posts", "users"]
        assert list(_schema().tables) == ["posts", "users"]

    def test_from_table_schema_resolves_types(self):
        schema = TableSchema(
            "users",
            [
                FieldSchema("id", "int", primary_key=True, autoincrement=True),
                FieldSchema("bio", "Optional[str]", nullable=True),
                FieldSchema("created_at", "datetime", default_expr="CURRENT_TIMESTAMP"),
            ],
        )
        table = TableSnapshot.from_table_schema(schema, "postgresql")
        assert table.column("id").data_type == DataType.bigint()
        assert table.column("id").nullable is False
        assert table.column("bio").nullable is True
        assert table.column("created_at").default == DefaultValue.expression("CURRENT_TIMESTAMP")

    def test_to_create_table(self):
        op = _schema().table("posts").to_create_table()
        assert op.name == "posts"
        assert [c.name for c in op.columns] == ["id", "author_id"]
        assert op.constraints[0].references_table == "users"

    def test_foreign_key_coerces_actions(self):
        fk = ForeignKeySnapshot(["a"], "t", ["id"], on_delete="set null")
        assert fk.on_delete is ForeignKeyAction.SET_NULL

    def test_same_structure_ignores_name(self):
        a = ForeignKeySnapshot(["a"], "t", ["id"], name="one")
        b = ForeignKeySnapshot(["a"], "t", ["id"], name="two")
        assert a.same_structure(b)
        assert a != b

    def test_equality(self):
        assert _schema() == _schema()

    def test_dict_round_trip(self):
        original = _schema()
        restored = SchemaSnapshot.from_dict(json.loads(json.dumps(original.to_dict())))
        assert restored == original
        assert restored.table("users").indexes[0].index_type is IndexType.BTREE


class TestSnapshotPersistence:
    def test_save_and_load(self, tmp_path):
        path = save_snapshot(_schema(), tmp_path / "nested" / "snapshot.json")
        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert len(data["checksum"]) == 16
        assert load_snapshot(path) == _schema()

    def test_missing_file(self, tmp_path):
        assert load_snapshot(tmp_path / "missing.json") is None

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert load_snapshot(path) is None

    def test_tampering_detected(self, tmp_path):
        path = save_snapshot(_schema(), tmp_path / "snapshot.json")
        data = json.loads(path.read_text())
        data["tables"]["users"]["columns"][1]["nullable"] = True
        path.write_text(json.dumps(data))
        with pytest.raises(SchemaMismatchFault):
            load_snapshot(path)


class TestIntrospectorProtocol:
    def test_runtime_checkable(self):
        class Catalog:
            async def introspect(self):
                return SchemaSnapshot()

        assert isinstance(Catalog(), SchemaIntrospector)
        assert not isinstance(object(), SchemaIntrospector)
