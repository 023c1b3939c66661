"""
Migration File Generator — renders migration modules from a ``SchemaDiff``.

The generated module is plain Python that imports from
``strata.migrations`` and defines one ``Migration`` subclass:

    class Migration0002AddBio(Migration):
        id = "0002_add_bio"
        app = "default"
        dependencies = [("default", "0001_initial")]

        def up(self):
            return [
                AddColumn("users", C.text("bio")),
            ]

        def down(self):
            return [
                DropColumn("users", "bio"),
            ]

When any operation cannot be reversed, ``down()`` returns an empty list
(the migration is then not reversible) and names the offending operations
in comments.
"""

from __future__ import annotations

import datetime
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Union

from ..faults import MigrationExistsFault
from .columns import ColumnDefinition
from .diff import SchemaDiff
from .loader import MIGRATION_FILE_RE, migration_files
from .operations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    AlterColumnChange,
    CheckConstraint,
    CreateIndex,
    CreateTable,
    DropColumn,
    DropDefault,
    DropForeignKey,
    DropIndex,
    DropTable,
    ForeignKeyConstraint,
    Operation,
    PrimaryKeyConstraint,
    RenameColumn,
    RenameTable,
    RunSql,
    SetAutoincrement,
    SetDataType,
    SetDefault,
    SetNullable,
    SetUnique,
    TableConstraint,
    UniqueConstraint,
)
from .state import MigrationKey
from .types import DataType, DefaultKind, DefaultValue, ForeignKeyAction, IndexType, TypeKind

logger = logging.getLogger("strata.migrations.codegen")

_SIZED = {TypeKind.CHAR, TypeKind.VARCHAR, TypeKind.BINARY, TypeKind.VARBINARY}
_PRECISION = {TypeKind.DECIMAL, TypeKind.NUMERIC}

_DEFAULT_METHODS = {
    DefaultKind.BOOLEAN: "default_bool",
    DefaultKind.INTEGER: "default_int",
    DefaultKind.FLOAT: "default_float",
    DefaultKind.STRING: "default_str",
    DefaultKind.EXPRESSION: "default_expr",
}


# ── Naming ──────────────────────────────────────────────────────────────────


def slugify(name: str) -> str:
    """Convert free text to a migration slug."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


def id_to_class_name(migration_id: str) -> str:
    """``0001_initial`` -> ``Migration0001Initial``."""
    parts = [p for p in re.split(r"[^A-Za-z0-9]+", migration_id) if p]
    return "Migration" + "".join(p if p.isdigit() else p[:1].upper() + p[1:] for p in parts)


def next_migration_id(directory: Union[str, Path], name: Optional[str] = None) -> str:
    """
    The id of the next migration in ``directory``.

    Numbers continue from the highest existing ``NNNN`` prefix; without a
    ``name`` the first migration is called ``initial`` and later ones
    ``auto_<date>``.
    """
    numbers = [int(MIGRATION_FILE_RE.match(p.name).group(1)) for p in migration_files(directory)]
    number = max(numbers, default=0) + 1
    if name:
        slug = slugify(name) or "migration"
    elif number == 1:
        slug = "initial"
    else:
        slug = "auto_" + datetime.datetime.now(datetime.timezone.utc).strftime("%Y%m%d_%H%M")
    return f"{number:04d}_{slug}"


# ── Value rendering ─────────────────────────────────────────────────────────


def render_data_type(data_type: DataType) -> str:
    kind = data_type.kind
    if kind is TypeKind.CUSTOM:
        return f"DataType.custom({data_type.name!r})"
    if kind in _SIZED:
        args = "" if data_type.length is None else repr(data_type.length)
        return f"DataType.{kind.value}({args})"
    if kind in _PRECISION:
        return f"DataType.{kind.value}({_precision_args(data_type)})"
    return f"DataType.{kind.value}()"


def _precision_args(data_type: DataType) -> str:
    args = []
    if data_type.precision is not None:
        args.append(repr(data_type.precision))
        if data_type.scale is not None:
            args.append(repr(data_type.scale))
    return ", ".join(args)


def render_default(default: DefaultValue) -> str:
    if default.kind is DefaultKind.NULL:
        return "DefaultValue.null()"
    return f"DefaultValue.{default.kind.value}({default.value!r})"


def _action(action: Optional[ForeignKeyAction]) -> str:
    return repr(action.value) if action is not None else "None"


def render_column(col: ColumnDefinition) -> str:
    """Render a column as a ``C.<type>(...)`` builder chain."""
    kind = col.data_type.kind
    if kind is TypeKind.CUSTOM:
        sql = f"C.custom({col.name!r}, {col.data_type.name!r})"
    elif kind in _SIZED and col.data_type.length is not None:
        sql = f"C.{kind.value}({col.name!r}, {col.data_type.length!r})"
    elif kind in _PRECISION and col.data_type.precision is not None:
        sql = f"C.{kind.value}({col.name!r}, {_precision_args(col.data_type)})"
    else:
        sql = f"C.{kind.value}({col.name!r})"

    if col.primary_key:
        sql += ".primary_key()"
    elif not col.nullable:
        sql += ".not_null()"
    if col.unique:
        sql += ".unique()"
    if col.autoincrement:
        sql += ".autoincrement()"
    if col.default is not None:
        if col.default.kind is DefaultKind.NULL:
            sql += ".default_null()"
        else:
            sql += f".{_DEFAULT_METHODS[col.default.kind]}({col.default.value!r})"
    if col.references is not None:
        ref = col.references
        if ref.on_delete is None and ref.on_update is None:
            sql += f".references({ref.table!r}, {ref.column!r})"
        else:
            sql += (
                f".references_full({ref.table!r}, {ref.column!r}, "
                f"on_delete={_action(ref.on_delete)}, on_update={_action(ref.on_update)})"
            )
    if col.check:
        sql += f".check({col.check!r})"
    if col.collation:
        sql += f".collation({col.collation!r})"
    return sql


def render_change(change: AlterColumnChange) -> str:
    if isinstance(change, SetDataType):
        return f"SetDataType({render_data_type(change.data_type)})"
    if isinstance(change, SetNullable):
        return f"SetNullable({change.nullable!r})"
    if isinstance(change, SetDefault):
        return f"SetDefault({render_default(change.default)})"
    if isinstance(change, DropDefault):
        return "DropDefault()"
    if isinstance(change, SetUnique):
        return f"SetUnique({change.unique!r})"
    if isinstance(change, SetAutoincrement):
        return f"SetAutoincrement({change.autoincrement!r})"
    raise TypeError(f"Cannot render column change {type(change).__name__}")


def render_constraint(constraint: TableConstraint) -> str:
    name = f", name={constraint.name!r}" if constraint.name else ""
    if isinstance(constraint, (PrimaryKeyConstraint, UniqueConstraint)):
        return f"{type(constraint).__name__}({constraint.columns!r}{name})"
    if isinstance(constraint, ForeignKeyConstraint):
        return (
            f"ForeignKeyConstraint({constraint.columns!r}, {constraint.references_table!r}, "
            f"{constraint.references_columns!r}, on_delete={_action(constraint.on_delete)}, "
            f"on_update={_action(constraint.on_update)}{name})"
        )
    if isinstance(constraint, CheckConstraint):
        return f"CheckConstraint({constraint.expression!r}{name})"
    raise TypeError(f"Cannot render constraint {type(constraint).__name__}")


# ── Operation rendering ─────────────────────────────────────────────────────


def render_operation(op: Operation, indent: str = "            ") -> str:
    """Render one operation as a Python expression (no trailing comma)."""
    inner = indent + "    "
    if isinstance(op, CreateTable):
        lines = [f"CreateTable(", f"{inner}{op.name!r},", f"{inner}columns=["]
        lines.extend(f"{inner}    {render_column(c)}," for c in op.columns)
        lines.append(f"{inner}],")
        if op.constraints:
            lines.append(f"{inner}constraints=[")
            lines.extend(f"{inner}    {render_constraint(c)}," for c in op.constraints)
            lines.append(f"{inner}],")
        if op.if_not_exists:
            lines.append(f"{inner}if_not_exists=True,")
        lines.append(f"{indent})")
        return "\n".join(lines)
    if isinstance(op, DropTable):
        extra = ""
        if op.if_exists:
            extra += ", if_exists=True"
        if op.cascade:
            extra += ", cascade=True"
        return f"DropTable({op.name!r}{extra})"
    if isinstance(op, RenameTable):
        return f"RenameTable({op.old_name!r}, {op.new_name!r})"
    if isinstance(op, AddColumn):
        return f"AddColumn({op.table!r}, {render_column(op.column)})"
    if isinstance(op, DropColumn):
        return f"DropColumn({op.table!r}, {op.column!r})"
    if isinstance(op, AlterColumn):
        return f"AlterColumn({op.table!r}, {op.column!r}, {render_change(op.change)})"
    if isinstance(op, RenameColumn):
        return f"RenameColumn({op.table!r}, {op.old_name!r}, {op.new_name!r})"
    if isinstance(op, CreateIndex):
        args = [repr(op.name), repr(op.table), repr(list(op.columns))]
        if op.unique:
            args.append("unique=True")
        if op.index_type is not IndexType.BTREE:
            args.append(f"index_type={op.index_type.value!r}")
        if op.if_not_exists:
            args.append("if_not_exists=True")
        if op.condition:
            args.append(f"condition={op.condition!r}")
        return f"CreateIndex({', '.join(args)})"
    if isinstance(op, DropIndex):
        args = [repr(op.name)]
        if op.table:
            args.append(f"table={op.table!r}")
        if op.if_exists:
            args.append("if_exists=True")
        return f"DropIndex({', '.join(args)})"
    if isinstance(op, AddForeignKey):
        return (
            f"AddForeignKey({op.table!r}, {list(op.columns)!r}, {op.references_table!r}, "
            f"{list(op.references_columns)!r}, name={op.name!r}, "
            f"on_delete={_action(op.on_delete)}, on_update={_action(op.on_update)})"
        )
    if isinstance(op, DropForeignKey):
        return f"DropForeignKey({op.table!r}, {op.name!r})"
    if isinstance(op, RunSql):
        if op.down_sql is None:
            return f"RunSql({op.up_sql!r})"
        return f"RunSql({op.up_sql!r}, down_sql={op.down_sql!r})"
    raise TypeError(f"Cannot render operation {type(op).__name__}")


def _used_names(operations: Iterable[Operation]) -> Set[str]:
    names: Set[str] = set()
    for op in operations:
        names.add(type(op).__name__)
        text = render_operation(op)
        for helper in ("C", "DataType", "DefaultValue", "SetDataType", "SetNullable", "SetDefault",
                       "DropDefault", "SetUnique", "SetAutoincrement", "PrimaryKeyConstraint",
                       "UniqueConstraint", "ForeignKeyConstraint", "CheckConstraint"):
            if re.search(rf"\b{helper}[.(]", text):
                names.add(helper)
    return names


def _render_list(operations: Sequence[Operation]) -> List[str]:
    if not operations:
        return ["        return []"]
    lines = ["        return ["]
    lines.extend(f"            {render_operation(op)}," for op in operations)
    lines.append("        ]")
    return lines


def render_migration(
    app: str,
    migration_id: str,
    diff: Optional[SchemaDiff] = None,
    dependencies: Sequence[MigrationKey] = (),
) -> str:
    """Render the source of a migration module for ``diff``."""
    diff = diff if diff is not None else SchemaDiff()
    operations = list(diff.operations)

    irreversible = [op for op in operations if not op.is_reversible()]
    down_ops: List[Operation] = []
    if not irreversible:
        down_ops = [op.reverse() for op in reversed(operations)]

    imports = sorted(_used_names(operations + down_ops) | {"Migration"})
    now = datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")

    lines = ['"""', f"Migration: {app}/{migration_id}", f"Generated: {now}"]
    if diff.warnings:
        lines.append("")
        lines.append("Review before applying:")
        lines.extend(f"- {w.describe()}" for w in diff.warnings)
    lines.extend(['"""', "", "from strata.migrations import ("])
    lines.extend(f"    {name}," for name in imports)
    lines.extend([")", "", ""])

    lines.append(f"class {id_to_class_name(migration_id)}(Migration):")
    lines.append(f"    id = {migration_id!r}")
    lines.append(f"    app = {app!r}")
    deps = ", ".join(f"({a!r}, {n!r})" for a, n in dependencies)
    lines.append(f"    dependencies = [{deps}]")
    lines.append("")
    lines.append("    def up(self):")
    lines.extend(_render_list(operations))
    lines.append("")
    lines.append("    def down(self):")
    for op in irreversible:
        lines.append(f"        # cannot auto-reverse: {op.describe()}")
    lines.extend(_render_list(down_ops))
    lines.append("")
    return "\n".join(lines)


def write_migration(directory: Union[str, Path], migration_id: str, source: str) -> Path:
    """
    Write ``source`` to ``<directory>/<migration_id>.py``.

    Raises:
        MigrationExistsFault: the file already exists
    """
    path = Path(directory) / f"{migration_id}.py"
    if path.exists():
        raise MigrationExistsFault(str(path))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding="utf-8")
    logger.info(f"Generated migration: {path}")
    return path
