"""
SQLite connection, schema and transaction scope for the meal planning store.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from mealplan.utilities.config import DATABASE_PATH
from mealplan.utilities.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS meal_plans (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at INTEGER NOT NULL,
        shopping_complete INTEGER NOT NULL DEFAULT 0
    );

    -- Recipe documents are versioned JSON; a save bumps version
    CREATE TABLE IF NOT EXISTS planned_recipes (
        id TEXT PRIMARY KEY,
        meal_plan_id INTEGER NOT NULL,
        position INTEGER NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 1,
        document TEXT NOT NULL,
        cooked INTEGER NOT NULL DEFAULT 0,
        cooked_at INTEGER,
        FOREIGN KEY (meal_plan_id) REFERENCES meal_plans(id) ON DELETE CASCADE
    );

    CREATE TABLE IF NOT EXISTS shopping_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        meal_plan_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        quantity REAL NOT NULL DEFAULT 0,
        unit TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL,
        display_quantity TEXT,
        checked INTEGER NOT NULL DEFAULT 0,
        in_cart INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (meal_plan_id) REFERENCES meal_plans(id) ON DELETE CASCADE
    );

    -- Provenance: which recipe ingredient lines a shopping item came from
    CREATE TABLE IF NOT EXISTS shopping_item_sources (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        shopping_item_id INTEGER NOT NULL,
        recipe_id TEXT NOT NULL,
        ingredient_index INTEGER NOT NULL,
        original_name TEXT NOT NULL,
        original_quantity REAL NOT NULL DEFAULT 0,
        original_unit TEXT NOT NULL DEFAULT '',
        FOREIGN KEY (shopping_item_id) REFERENCES shopping_items(id) ON DELETE CASCADE
    );

    CREATE TABLE IF NOT EXISTS pantry_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        quantity_initial REAL NOT NULL DEFAULT 0,
        quantity_remaining REAL NOT NULL DEFAULT 0,
        unit TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL DEFAULT 'OTHER',
        tracking_mode TEXT NOT NULL DEFAULT 'UNITS',
        stock_level TEXT,
        perishable INTEGER NOT NULL DEFAULT 0,
        expiry INTEGER,
        date_added INTEGER NOT NULL,
        last_updated INTEGER NOT NULL,
        last_stock_check INTEGER,
        CHECK (quantity_remaining <= quantity_initial)
    );

    CREATE TABLE IF NOT EXISTS pending_jobs (
        job_id TEXT PRIMARY KEY,
        job_type TEXT NOT NULL,
        related_entity_id TEXT,
        started_at INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_shopping_items_plan ON shopping_items(meal_plan_id);
    CREATE INDEX IF NOT EXISTS idx_sources_item ON shopping_item_sources(shopping_item_id);
    CREATE INDEX IF NOT EXISTS idx_sources_recipe ON shopping_item_sources(recipe_id);
    CREATE INDEX IF NOT EXISTS idx_planned_recipes_plan ON planned_recipes(meal_plan_id);
    CREATE INDEX IF NOT EXISTS idx_pending_jobs_type ON pending_jobs(job_type);
"""

# Child tables first so a reset never trips a foreign key
_RESET_ORDER = (
    "shopping_item_sources", "shopping_items", "planned_recipes",
    "meal_plans", "pantry_items", "pending_jobs",
)


class Database:
    """Owns one SQLite connection.

    ``transaction()`` is reentrant: the outermost scope runs BEGIN/COMMIT and
    nested scopes use savepoints, so a repository method that opens its own
    scope can be composed into a larger atomic operation.

    Usage:
        with db.transaction() as conn:
            conn.execute("INSERT INTO ...")
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or DATABASE_PATH
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = sqlite3.connect(self.path, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            # Enable foreign keys
            self._conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise StorageError("Could not open database", "connect", {"path": self.path}) from e
        self._depth = 0
        self.initialize()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def initialize(self) -> None:
        """Create all tables if they don't exist."""
        try:
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StorageError("Schema creation failed", "initialize") from e
        logger.debug(f"Database schema ready at {self.path}")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        depth = self._depth
        savepoint = f"sp_{depth}"
        try:
            self._conn.execute("BEGIN" if depth == 0 else f"SAVEPOINT {savepoint}")
        except sqlite3.Error as e:
            raise StorageError("Could not open transaction", "transaction") from e
        self._depth += 1
        try:
            yield self._conn
        except BaseException as exc:
            self._depth -= 1
            self._rollback(depth, savepoint)
            if isinstance(exc, sqlite3.Error):
                raise StorageError(str(exc), "transaction") from exc
            raise
        else:
            self._depth -= 1
            try:
                self._conn.execute("COMMIT" if depth == 0 else f"RELEASE SAVEPOINT {savepoint}")
            except sqlite3.Error as e:
                self._rollback(depth, savepoint)
                raise StorageError("Commit failed", "transaction") from e

    def _rollback(self, depth: int, savepoint: str) -> None:
        try:
            if depth == 0:
                self._conn.execute("ROLLBACK")
            else:
                self._conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                self._conn.execute(f"RELEASE SAVEPOINT {savepoint}")
        except sqlite3.Error:
            logger.exception("Rollback failed")

    def query(self, sql: str, params=()) -> list:
        """Run a read and return all rows."""
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(str(e), "query") from e

    def query_one(self, sql: str, params=()):
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def reset_all(self) -> None:
        """Delete every row of every table in one transaction."""
        with self.transaction() as conn:
            for table in _RESET_ORDER:
                conn.execute(f"DELETE FROM {table}")
        logger.info("All local data deleted")

    def close(self) -> None:
        self._conn.close()
