"""
Durable state schema -- SQLite tables for the apply log and agent knowledge.

Usage:
    initialize_schema(db_path)  # create missing tables, safe to repeat
    get_connection(db_path)     # caller closes it

apply_log and revert_log are append-only. Knowledge tables are keyed by
agent type and upserted. Timestamps are ISO strings; JSON fields store
change values as serialized strings.
"""

import json
import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/workload_arbiter.db")

SCHEMA_SQL = """
-- Apply log: every attempted change, keyed by plan name
CREATE TABLE IF NOT EXISTS apply_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    plan_name TEXT NOT NULL,
    kind TEXT NOT NULL,
    target TEXT NOT NULL,
    change_json TEXT NOT NULL,
    prior_json TEXT DEFAULT 'null',
    had_prior INTEGER DEFAULT 1,
    status TEXT NOT NULL,
    reason TEXT DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_apply_plan
    ON apply_log(plan_name, id);

-- Revert log: one row per revert attempt against an apply_log entry
CREATE TABLE IF NOT EXISTS revert_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    apply_id INTEGER NOT NULL REFERENCES apply_log(id),
    plan_name TEXT NOT NULL,
    ok INTEGER NOT NULL,
    reason TEXT DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_revert_apply
    ON revert_log(apply_id, ok);

-- Agent knowledge: success rates per action
CREATE TABLE IF NOT EXISTS agent_success_rates (
    agent_type TEXT NOT NULL,
    action TEXT NOT NULL,
    rate REAL NOT NULL,
    samples INTEGER DEFAULT 0,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (agent_type, action)
);

-- Agent knowledge: scenario -> action weights (adjusted, never deleted)
CREATE TABLE IF NOT EXISTS agent_patterns (
    agent_type TEXT NOT NULL,
    scenario TEXT NOT NULL,
    action TEXT NOT NULL,
    weight REAL NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (agent_type, scenario, action)
);

CREATE TABLE IF NOT EXISTS agent_preferences (
    agent_type TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (agent_type, key)
);

-- Consumed feedback, so a record is never folded in twice
CREATE TABLE IF NOT EXISTS feedback_archive (
    id TEXT PRIMARY KEY,
    agent_type TEXT NOT NULL,
    action TEXT NOT NULL,
    kind TEXT NOT NULL,
    feedback_json TEXT NOT NULL,
    consumed_at TEXT NOT NULL
);
"""


def get_connection(db_path: Path = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open the arbiter database (parents created), WAL journal, Row factory."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    for pragma in ("journal_mode=WAL", "foreign_keys=ON"):
        conn.execute(f"PRAGMA {pragma}")
    return conn


def initialize_schema(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Idempotent; every statement is CREATE ... IF NOT EXISTS."""
    conn = get_connection(db_path)
    try:
        with conn:
            conn.executescript(SCHEMA_SQL)
    finally:
        conn.close()
    logger.info(f"[StorageSchema] Ready at {db_path}")


def _decode(raw: str):
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"[StorageSchema] Undecodable JSON column: {raw[:40]!r}")
        return None


def dict_from_row(row: sqlite3.Row) -> dict:
    """Row as a dict; `<name>_json` text columns come back decoded as `<name>`."""
    out = {}
    for key in row.keys():
        value = row[key]
        if key.endswith("_json") and isinstance(value, str):
            out[key[: -len("_json")]] = _decode(value)
        else:
            out[key] = value
    return out
