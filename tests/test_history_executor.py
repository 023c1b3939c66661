"""
Tests for the history table and the migration executor, run against a
temporary SQLite database.
"""

import io

import pytest

from strata.faults import (
    MigrationNotFoundFault,
    MissingDependencyFault,
    NotReversibleFault,
    QueryFault,
)
from strata.migrations import (
    AddColumn,
    AddForeignKey,
    AlterColumn,
    C,
    CreateTable,
    DropTable,
    ExecutableMigration,
    MigrationExecutor,
    MigrationHistory,
    MigrationRunner,
    MigrationState,
    RunSql,
)

from conftest import make_migration, users_table


async def _columns(db, table):
    rows = await db.fetch_all(f'PRAGMA table_info("{table}")')
    return [r["name"] for r in rows]


# ============================================================================
# History
# ============================================================================


class TestMigrationHistory:
    @pytest.mark.asyncio
    async def test_ensure_table_is_idempotent(self, db):
        history = MigrationHistory(db, "sqlite")
        await history.ensure_table()
        await history.ensure_table()
        assert await history.table_exists()
        assert await history.count_applied() == 0

    @pytest.mark.asyncio
    async def test_custom_table_name(self, db):
        history = MigrationHistory(db, "sqlite", table="schema_log")
        await history.ensure_table()
        assert await db.table_exists("schema_log")
        assert not await db.table_exists("strata_migrations")

    @pytest.mark.asyncio
    async def test_record_and_query(self, db):
        history = MigrationHistory(db, "sqlite")
        await history.ensure_table()
        await history.record_applied("default", "0001_initial")
        await history.record_applied("blog", "0001_posts")
        await history.record_applied("default", "0002_add_bio")

        assert await history.is_applied("default", "0001_initial")
        assert not await history.is_applied("blog", "0001_initial")
        assert await history.count_applied() == 3
        assert await history.count_applied("blog") == 1

        applied = await history.get_applied()
        assert [a.label for a in applied] == [
            "default/0001_initial",
            "blog/0001_posts",
            "default/0002_add_bio",
        ]
        assert applied[0].applied_at is not None

        last = await history.get_last_applied("default")
        assert last.name == "0002_add_bio"
        assert await history.get_last_applied("shop") is None
        assert [a.name for a in await history.get_applied_for_app("blog")] == ["0001_posts"]
        assert ("blog", "0001_posts") in await history.get_applied_set()

    @pytest.mark.asyncio
    async def test_duplicate_record_fails(self, db):
        history = MigrationHistory(db, "sqlite")
        await history.ensure_table()
        await history.record_applied("default", "0001")
        with pytest.raises(QueryFault):
            await history.record_applied("default", "0001")

    @pytest.mark.asyncio
    async def test_record_unapplied(self, db):
        history = MigrationHistory(db, "sqlite")
        await history.ensure_table()
        await history.record_applied("default", "0001")
        await history.record_unapplied("default", "0001")
        assert not await history.is_applied("default", "0001")

        with pytest.raises(MigrationNotFoundFault):
            await history.record_unapplied("default", "0001")

    @pytest.mark.asyncio
    async def test_load_state(self, db):
        history = MigrationHistory(db, "sqlite")
        assert (await history.load_state()).applied_count == 0

        await history.ensure_table()
        await history.record_applied("default", "0001")
        state = await history.load_state()
        assert state.is_applied("0001")
        assert state.applied_at("0001") is not None


# ============================================================================
# Executor
# ============================================================================


class TestApply:
    @pytest.mark.asyncio
    async def test_apply_creates_schema_and_records(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()

        assert await executor.apply(chain[0])
        assert await db.table_exists("users")
        assert await executor.history.is_applied("default", "0001_initial")

    @pytest.mark.asyncio
    async def test_apply_is_idempotent(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        assert await executor.apply(chain[0])
        assert not await executor.apply(chain[0])
        assert await executor.history.count_applied() == 1

    @pytest.mark.asyncio
    async def test_missing_dependency_fails_before_running(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        with pytest.raises(MissingDependencyFault):
            await executor.apply(chain[1])
        assert await executor.history.count_applied() == 0

    @pytest.mark.asyncio
    async def test_apply_all(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        ran = await executor.apply_all(chain)
        assert ran == ["default/0001_initial", "default/0002_add_bio", "default/0003_email_index"]
        assert await _columns(db, "users") == ["id", "email", "bio"]
        assert await executor.apply_all(chain) == []

    @pytest.mark.asyncio
    async def test_pending(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply(chain[0])
        assert [m.name for m in await executor.pending(chain)] == ["0002_add_bio", "0003_email_index"]

    @pytest.mark.asyncio
    async def test_executable_migration_builder(self, db):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        first = ExecutableMigration("default", "0001").operation(users_table())
        second = (
            ExecutableMigration("default", "0002")
            .operation(AddColumn("users", C.text("bio")))
            .depends_on("0001")
        )
        assert await executor.apply_all([first, second]) == ["default/0001", "default/0002"]

    @pytest.mark.asyncio
    async def test_unsupported_statements_are_skipped(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply(chain[0])
        alter = make_migration(
            "0002_nullable_email",
            [AlterColumn.set_nullable("users", "email", True)],
            ["0001_initial"],
        )
        assert await executor.apply(alter)
        assert await executor.history.is_applied("default", "0002_nullable_email")

    @pytest.mark.asyncio
    async def test_foreign_key_on_existing_table(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply(chain[0])
        posts = make_migration(
            "0002_posts",
            [
                CreateTable("posts", columns=[C.bigint("id").primary_key(), C.bigint("author_id")]),
                AddForeignKey("posts", ["author_id"], "users", ["id"], name="fk_author"),
            ],
            ["0001_initial"],
        )
        assert await executor.apply(posts)
        assert await db.table_exists("posts")

    @pytest.mark.asyncio
    async def test_autoincrement_outside_primary_key(self, db):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        m = make_migration(
            "0001",
            [CreateTable("t", columns=[C.integer("id").primary_key(), C.integer("n").autoincrement()])],
        )
        assert await executor.apply(m)
        assert await _columns(db, "t") == ["id", "n"]


class TestAtomic:
    @pytest.mark.asyncio
    async def test_failed_migration_leaves_nothing_behind(self, db):
        executor = MigrationExecutor(db, "sqlite", atomic=True)
        await executor.init()
        broken = make_migration(
            "0001_broken",
            [CreateTable("t", columns=[C.integer("id")]), RunSql("THIS IS NOT SQL")],
        )
        with pytest.raises(QueryFault):
            await executor.apply(broken)
        assert not await db.table_exists("t")
        assert await executor.history.count_applied() == 0

    @pytest.mark.asyncio
    async def test_non_atomic_keeps_earlier_statements(self, db):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        broken = make_migration(
            "0001_broken",
            [CreateTable("t", columns=[C.integer("id")]), RunSql("THIS IS NOT SQL")],
        )
        with pytest.raises(QueryFault):
            await executor.apply(broken)
        assert await db.table_exists("t")
        assert await executor.history.count_applied() == 0


class TestRollback:
    @pytest.mark.asyncio
    async def test_rollback_reverses_and_unrecords(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply_all(chain[:2])

        assert await executor.rollback(chain[1])
        assert await _columns(db, "users") == ["id", "email"]
        assert not await executor.history.is_applied("default", "0002_add_bio")

    @pytest.mark.asyncio
    async def test_rollback_not_applied(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        assert not await executor.rollback(chain[0])

    @pytest.mark.asyncio
    async def test_rollback_uses_explicit_down(self, db):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        m = make_migration(
            "0001",
            [RunSql('CREATE TABLE "notes" ("id" INTEGER)')],
            down=[RunSql('DROP TABLE "notes"')],
        )
        await executor.apply(m)
        assert await db.table_exists("notes")
        await executor.rollback(m)
        assert not await db.table_exists("notes")

    @pytest.mark.asyncio
    async def test_irreversible(self, db):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply(make_migration("0001", [users_table()]))
        drop = make_migration("0002", [DropTable("users")], ["0001"])
        await executor.apply(drop)

        with pytest.raises(NotReversibleFault):
            await executor.rollback(drop)
        assert await executor.history.is_applied("default", "0002")

    @pytest.mark.asyncio
    async def test_explicit_empty_down_is_not_reversible(self, db):
        m = make_migration("0001", [users_table()], down=[])
        state = MigrationState()
        state.mark_applied(m.key)
        with pytest.raises(NotReversibleFault):
            MigrationRunner("sqlite").register(m).sql_for_rollback(state)

        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply(m)
        assert not ExecutableMigration.from_migration(m).is_reversible()
        with pytest.raises(NotReversibleFault):
            await executor.rollback(m)
        assert await db.table_exists("users")

    @pytest.mark.asyncio
    async def test_default_down_reverses_up(self, db):
        m = make_migration("0001", [users_table()])
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply(m)
        assert await executor.rollback(m)
        assert not await db.table_exists("users")

    @pytest.mark.asyncio
    async def test_rollback_all(self, db, chain):
        executor = MigrationExecutor(db, "sqlite")
        await executor.init()
        await executor.apply_all(chain)
        rolled = await executor.rollback_all(chain)
        assert rolled == ["default/0003_email_index", "default/0002_add_bio", "default/0001_initial"]
        assert not await db.table_exists("users")
        assert await executor.history.count_applied() == 0


class TestDryRun:
    @pytest.mark.asyncio
    async def test_prints_statements_without_touching_history(self, db, chain):
        out = io.StringIO()
        executor = MigrationExecutor(db, "sqlite", dry_run=True, output=out)
        await executor.init()
        ran = await executor.apply_all(chain)

        assert len(ran) == 3
        lines = out.getvalue().splitlines()
        assert lines[0] == 'CREATE TABLE "users" ('
        assert lines[-2:] == [
            'ALTER TABLE "users" ADD COLUMN "bio" TEXT;',
            'CREATE INDEX "idx_users_email" ON "users" ("email");',
        ]
        assert out.getvalue().count(";\n") == 3
        assert not await db.table_exists("users")
        assert not await db.table_exists("strata_migrations")

    @pytest.mark.asyncio
    async def test_without_database(self, chain):
        out = io.StringIO()
        executor = MigrationExecutor(None, "postgresql", dry_run=True, output=out)
        await executor.apply_all(chain)
        assert 'ALTER TABLE "users" ADD COLUMN "bio" TEXT;\n' in out.getvalue()

    @pytest.mark.asyncio
    async def test_dry_rollback_of_applied(self, db, chain):
        live = MigrationExecutor(db, "sqlite")
        await live.init()
        await live.apply_all(chain[:2])

        out = io.StringIO()
        dry = MigrationExecutor(db, "sqlite", dry_run=True, output=out)
        assert await dry.rollback(chain[1])
        assert out.getvalue() == 'ALTER TABLE "users" DROP COLUMN "bio";\n'
        assert await live.history.is_applied("default", "0002_add_bio")
        assert await _columns(db, "users") == ["id", "email", "bio"]
