"""Database migrations for scenario, execution and schedule tables."""

import logging

import aiosqlite

logger = logging.getLogger("scenably.supervisor.migrations")

MIGRATIONS: list[tuple[str, str]] = [
    (
        "20240101_create_scenarios",
        """
        CREATE TABLE IF NOT EXISTS scenarios (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            target_url TEXT NOT NULL,
            script TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    ),
    (
        "20240101_create_executions",
        """
        CREATE TABLE IF NOT EXISTS executions (
            id TEXT PRIMARY KEY,
            scenario_id TEXT NOT NULL,
            status TEXT NOT NULL,
            trigger_kind TEXT NOT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT,
            error_message TEXT,
            failure TEXT
        )
        """,
    ),
    (
        "20240101_create_executions_scenario_index",
        """
        CREATE INDEX IF NOT EXISTS idx_executions_scenario ON executions(scenario_id, started_at)
        """,
    ),
    (
        "20240101_create_schedules",
        """
        CREATE TABLE IF NOT EXISTS schedules (
            id TEXT PRIMARY KEY,
            scenario_id TEXT NOT NULL UNIQUE,
            enabled INTEGER NOT NULL DEFAULT 1,
            frequency TEXT NOT NULL,
            time TEXT NOT NULL,
            day_of_week TEXT,
            day_of_month INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    ),
    (
        "20240101_create_schedule_runs",
        """
        CREATE TABLE IF NOT EXISTS schedule_runs (
            id TEXT PRIMARY KEY,
            schedule_id TEXT NOT NULL,
            scenario_id TEXT NOT NULL,
            execution_id TEXT NOT NULL,
            status TEXT NOT NULL,
            due_at TEXT NOT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT,
            error_message TEXT
        )
        """,
    ),
    (
        "20240101_create_schedule_runs_schedule_index",
        """
        CREATE INDEX IF NOT EXISTS idx_schedule_runs_schedule ON schedule_runs(schedule_id, started_at)
        """,
    ),
]


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Apply one-time database migrations in order."""
    logger.info("Running scenario DB migrations...")
    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            id TEXT PRIMARY KEY,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    async with db.execute("SELECT id FROM schema_migrations") as cursor:
        rows = await cursor.fetchall()
    applied = {row[0] for row in rows}

    for migration_id, sql in MIGRATIONS:
        if migration_id in applied:
            logger.debug("Migration already applied: %s", migration_id)
            continue
        logger.info("Applying migration: %s", migration_id)
        await db.execute(sql)
        await db.execute(
            "INSERT INTO schema_migrations (id) VALUES (?)",
            (migration_id,),
        )

    await db.commit()
    logger.info("Scenario DB migrations complete.")
