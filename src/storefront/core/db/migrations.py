from __future__ import annotations

import sqlite3
from pathlib import Path

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def connect_db(db_path: Path, timeout_sec: float = 10.0) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # timeout doubles as the busy timeout writers wait on under BEGIN IMMEDIATE
    connection = sqlite3.connect(str(db_path), timeout=timeout_sec)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    connection.execute("PRAGMA journal_mode = WAL")
    return connection


def pending_migrations(connection: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            filename TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    connection.commit()
    applied = {row["filename"] for row in connection.execute("SELECT filename FROM schema_migrations")}
    return [path for path in sorted(migrations_dir.glob("*.sql")) if path.name not in applied]


def apply_migrations(connection: sqlite3.Connection, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Run every pending ``*.sql`` file in name order, each in its own transaction."""
    executed: list[str] = []
    for path in pending_migrations(connection, migrations_dir):
        escaped_name = path.name.replace("'", "''")
        # executescript commits first, so the script carries its own transaction
        try:
            connection.executescript(
                "BEGIN;\n"
                f"{path.read_text(encoding='utf-8')}\n"
                f"INSERT OR IGNORE INTO schema_migrations (filename) VALUES ('{escaped_name}');\n"
                "COMMIT;"
            )
        except sqlite3.Error:
            if connection.in_transaction:
                connection.rollback()
            raise
        executed.append(path.name)
    return executed
