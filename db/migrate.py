from __future__ import annotations

import hashlib
import importlib.util
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.(sql|py)$")


@dataclass(frozen=True, slots=True)
class MigrationFile:
    version: str
    name: str
    ext: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}.{self.ext}"

    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


def _ensure_migration_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )
    conn.commit()


def _load_applied(conn: sqlite3.Connection) -> dict[str, tuple[str, str]]:
    cur = conn.execute("SELECT version, name, checksum FROM schema_migrations")
    return {str(version): (str(name), str(checksum)) for version, name, checksum in cur.fetchall()}


def discover_migrations(migrations_dir: str | Path) -> list[MigrationFile]:
    base = Path(migrations_dir)
    if not base.is_dir():
        raise RuntimeError(f"Migrations directory not found: {migrations_dir}")

    found: dict[str, MigrationFile] = {}
    for p in sorted(base.iterdir()):
        m = MIGRATION_RE.match(p.name)
        if not p.is_file() or not m:
            continue
        migration = MigrationFile(version=m.group(1), name=m.group(2), ext=m.group(3), path=p)
        if migration.version in found:
            raise RuntimeError(
                f"Duplicate migration version {migration.version}: "
                f"{found[migration.version].path.name} and {p.name}"
            )
        found[migration.version] = migration
    return [found[v] for v in sorted(found)]


def _run_py(conn: sqlite3.Connection, migration: MigrationFile) -> None:
    spec = importlib.util.spec_from_file_location(f"bookmark_migration_{migration.path.stem}", str(migration.path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {migration.path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Python migration missing upgrade(conn): {migration.path}")
    upgrade(conn)


def apply_sqlite_migrations(conn: sqlite3.Connection, migrations_dir: str | Path) -> list[str]:
    """Apply pending migrations in version order and return the labels that ran."""
    _ensure_migration_table(conn)
    applied = _load_applied(conn)
    ran: list[str] = []

    for migration in discover_migrations(migrations_dir):
        checksum = migration.checksum()
        existing = applied.get(migration.version)
        if existing:
            old_name, old_checksum = existing
            if old_name != migration.name or old_checksum != checksum:
                raise RuntimeError(
                    f"Migration version {migration.version} already applied with different content "
                    f"(existing name={old_name}, file name={migration.name})."
                )
            continue

        print(f"[DB] Applying migration {migration.label}")
        if migration.ext == "sql":
            conn.executescript(migration.path.read_text(encoding="utf-8"))
        else:
            _run_py(conn, migration)

        conn.execute(
            "INSERT INTO schema_migrations (version, name, checksum, applied_at_utc) VALUES (?, ?, ?, ?)",
            (migration.version, migration.name, checksum, datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()
        ran.append(migration.label)
    return ran


def list_schema_migrations_sync(conn: sqlite3.Connection, limit: int = 200) -> list[tuple[str, str, str]]:
    try:
        cur = conn.execute(
            "SELECT version, name, applied_at_utc FROM schema_migrations ORDER BY version DESC LIMIT ?",
            (max(1, min(int(limit), 500)),),
        )
    except sqlite3.OperationalError:
        return []
    return cur.fetchall()


def table_columns_sync(conn: sqlite3.Connection, table: str) -> list[str]:
    cur = conn.execute(f"PRAGMA table_info({table})")
    # rows: (cid, name, type, notnull, dflt_value, pk)
    return [str(row[1]) for row in cur.fetchall()]


def missing_columns_sync(conn: sqlite3.Connection, table: str, required: list[str]) -> list[str]:
    cols = set(table_columns_sync(conn, table))
    return [c for c in required if c not in cols]
