"""
ApplyLog -- durable, append-only record of every attempted change.

Revert replays this log backwards. An APPLIED entry stays pending until a
successful revert row references it, so a failed revert is retried by the
next revert call instead of being dropped.

Usage:
    log = ApplyLog(db_path)
    entry_id = log.append("VALORANT", outcome)
    for entry in log.pending("VALORANT"):   # newest first
        ...
        log.record_revert(entry, ok=True)
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from workload_arbiter.configuration.changes import ConfigChange
from workload_arbiter.configuration.models import ChangeOutcome, ChangeStatus

from .schema import DEFAULT_DB_PATH, dict_from_row, get_connection, initialize_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogEntry:
    id: int
    plan_name: str
    change: ConfigChange
    prior_value: Any
    had_prior: bool
    status: ChangeStatus
    reason: str
    created_at: str


class ApplyLog:
    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self._db_path = db_path
        initialize_schema(db_path)

    def append(self, plan_name: str, outcome: ChangeOutcome, had_prior: bool = True) -> int:
        conn = get_connection(self._db_path)
        try:
            cursor = conn.execute(
                """INSERT INTO apply_log
                   (plan_name, kind, target, change_json, prior_json, had_prior,
                    status, reason, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    plan_name,
                    outcome.change.kind.value,
                    outcome.change.target,
                    json.dumps(outcome.change.to_dict(), default=str),
                    json.dumps(outcome.prior_value, default=str),
                    1 if had_prior else 0,
                    outcome.status.value,
                    outcome.reason,
                    datetime.now().isoformat(),
                ),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    def pending(self, plan_name: str) -> list[LogEntry]:
        """APPLIED entries with no successful revert yet, newest first."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """SELECT * FROM apply_log a
                   WHERE a.plan_name = ? AND a.status = ?
                     AND NOT EXISTS (
                        SELECT 1 FROM revert_log r WHERE r.apply_id = a.id AND r.ok = 1
                     )
                   ORDER BY a.id DESC""",
                (plan_name, ChangeStatus.APPLIED.value),
            ).fetchall()
            return [self._entry_from_row(r) for r in rows]
        finally:
            conn.close()

    def has_pending(self, plan_name: str) -> bool:
        return bool(self.pending(plan_name))

    def record_revert(self, entry: LogEntry, ok: bool, reason: str = "") -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """INSERT INTO revert_log (apply_id, plan_name, ok, reason, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (entry.id, entry.plan_name, 1 if ok else 0, reason, datetime.now().isoformat()),
            )
            conn.commit()
        finally:
            conn.close()
        if not ok:
            logger.warning(
                f"[ApplyLog] Revert of {entry.change.action_name} for "
                f"'{entry.plan_name}' failed: {reason}"
            )

    def history(self, plan_name: str | None = None, limit: int = 50) -> list[LogEntry]:
        conn = get_connection(self._db_path)
        try:
            if plan_name is None:
                rows = conn.execute(
                    "SELECT * FROM apply_log ORDER BY id DESC LIMIT ?", (limit,)
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM apply_log WHERE plan_name = ? ORDER BY id DESC LIMIT ?",
                    (plan_name, limit),
                ).fetchall()
            return [self._entry_from_row(r) for r in rows]
        finally:
            conn.close()

    def plan_names(self) -> list[str]:
        """Plan names with at least one pending entry."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                """SELECT DISTINCT a.plan_name FROM apply_log a
                   WHERE a.status = ? AND NOT EXISTS (
                        SELECT 1 FROM revert_log r WHERE r.apply_id = a.id AND r.ok = 1
                   )""",
                (ChangeStatus.APPLIED.value,),
            ).fetchall()
            return [row["plan_name"] for row in rows]
        finally:
            conn.close()

    @staticmethod
    def _entry_from_row(row) -> LogEntry:
        data = dict_from_row(row)
        return LogEntry(
            id=data["id"],
            plan_name=data["plan_name"],
            change=ConfigChange.from_dict(data["change"]),
            prior_value=data.get("prior"),
            had_prior=bool(data.get("had_prior", 1)),
            status=ChangeStatus(data["status"]),
            reason=data.get("reason", ""),
            created_at=data["created_at"],
        )
