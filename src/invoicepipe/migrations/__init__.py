# SPDX-License-Identifier: Apache-2.0
"""SQLite schema migrations for the order store.

Migration scripts live in ``versions/`` and are named ``NNN_description.sql``.
Each script runs once, inside its own transaction, and its prefix is then
recorded in ``schema_version``.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import List, Tuple, Union

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "versions"


def apply_pending(db_path: Union[str, Path]) -> List[str]:
    """Apply migrations that have not run against ``db_path`` yet.

    Returns:
        Versions applied by this call, in order
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version TEXT PRIMARY KEY,
                applied_ts INTEGER NOT NULL
            )
            """
        )
        applied = {row[0] for row in conn.execute("SELECT version FROM schema_version")}

    pending = [(v, f) for v, f in _migration_files() if v not in applied]
    if not pending:
        logger.debug("No pending migrations for %s", db_path)
        return []

    logger.info("Applying %d pending migrations to %s", len(pending), db_path)
    for version, migration_file in pending:
        _apply_migration(db_path, version, migration_file)
        logger.info("Applied migration %s: %s", version, migration_file.name)
    return [v for v, _ in pending]


def _migration_files() -> List[Tuple[str, Path]]:
    return [(f.stem.split("_")[0], f) for f in sorted(MIGRATIONS_DIR.glob("*.sql"))]


def _apply_migration(db_path: Path, version: str, migration_file: Path) -> None:
    script = migration_file.read_text(encoding="utf-8")
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(f"BEGIN;\n{script}\nCOMMIT;")
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_ts) VALUES (?, ?)",
            (version, int(time.time())),
        )
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise RuntimeError(f"Migration {version} failed: {e}") from e
    finally:
        conn.close()
