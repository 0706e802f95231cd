"""
KnowledgeStore -- durable AgentKnowledge keyed by agent type.

An agent with no stored rows gets an empty AgentKnowledge (fresh install).
An unreadable database or a rate outside [0, 1] is corruption, and load()
raises KnowledgeCorrupt instead of handing back half-trusted state.

Usage:
    store = KnowledgeStore(db_path)
    knowledge = store.load("gaming")
    store.save("gaming", knowledge)
    store.merge_into("gaming", imported)   # sample-weighted merge, then save
"""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from workload_arbiter.errors import KnowledgeCorrupt
from workload_arbiter.storage.schema import (
    DEFAULT_DB_PATH,
    get_connection,
    initialize_schema,
)

from .models import AgentFeedback, AgentKnowledge

logger = logging.getLogger(__name__)


class KnowledgeStore:
    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self._db_path = db_path
        try:
            initialize_schema(db_path)
        except sqlite3.DatabaseError as e:
            logger.error(f"[KnowledgeStore] Cannot open {db_path}: {e}")
            raise KnowledgeCorrupt(f"Knowledge store {db_path} is unreadable: {e}") from e

    def load(self, agent_type: str) -> AgentKnowledge:
        try:
            conn = get_connection(self._db_path)
            try:
                rates = conn.execute(
                    "SELECT action, rate, samples FROM agent_success_rates WHERE agent_type = ?",
                    (agent_type,),
                ).fetchall()
                patterns = conn.execute(
                    "SELECT scenario, action, weight FROM agent_patterns WHERE agent_type = ?",
                    (agent_type,),
                ).fetchall()
                prefs = conn.execute(
                    "SELECT key, value FROM agent_preferences WHERE agent_type = ?",
                    (agent_type,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.DatabaseError as e:
            logger.error(f"[KnowledgeStore] Failed to load {agent_type}: {e}")
            raise KnowledgeCorrupt(f"Cannot read knowledge for {agent_type}: {e}") from e

        knowledge = AgentKnowledge()
        for row in rates:
            rate = row["rate"]
            if rate is None or not 0.0 <= rate <= 1.0:
                raise KnowledgeCorrupt(
                    f"{agent_type}/{row['action']} has out-of-range rate {rate}"
                )
            knowledge.success_rates[row["action"]] = rate
            knowledge.sample_counts[row["action"]] = row["samples"] or 0
        for row in patterns:
            knowledge.learned_patterns.setdefault(row["scenario"], {})[row["action"]] = row["weight"]
        for row in prefs:
            knowledge.user_preferences[row["key"]] = row["value"]
        return knowledge

    def save(self, agent_type: str, knowledge: AgentKnowledge) -> None:
        now = datetime.now().isoformat()
        conn = get_connection(self._db_path)
        try:
            conn.executemany(
                """INSERT INTO agent_success_rates (agent_type, action, rate, samples, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(agent_type, action) DO UPDATE SET
                    rate = excluded.rate,
                    samples = excluded.samples,
                    updated_at = excluded.updated_at""",
                [
                    (agent_type, action, rate, knowledge.sample_counts.get(action, 0), now)
                    for action, rate in knowledge.success_rates.items()
                ],
            )
            conn.executemany(
                """INSERT INTO agent_patterns (agent_type, scenario, action, weight, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(agent_type, scenario, action) DO UPDATE SET
                    weight = excluded.weight,
                    updated_at = excluded.updated_at""",
                [
                    (agent_type, scenario, action, weight, now)
                    for scenario, actions in knowledge.learned_patterns.items()
                    for action, weight in actions.items()
                ],
            )
            conn.executemany(
                """INSERT INTO agent_preferences (agent_type, key, value, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(agent_type, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at""",
                [
                    (agent_type, key, str(value), now)
                    for key, value in knowledge.user_preferences.items()
                ],
            )
            conn.commit()
        finally:
            conn.close()

    def merge_into(self, agent_type: str, other: AgentKnowledge) -> AgentKnowledge:
        merged = self.load(agent_type).merge(other)
        self.save(agent_type, merged)
        logger.info(f"[KnowledgeStore] Merged knowledge into {agent_type}")
        return merged

    # -------------------------------------------------------------------------
    # Feedback archive
    # -------------------------------------------------------------------------

    def is_consumed(self, feedback_id: str) -> bool:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT 1 FROM feedback_archive WHERE id = ?", (feedback_id,)
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    def archive(self, feedback: AgentFeedback) -> None:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """INSERT OR IGNORE INTO feedback_archive
                   (id, agent_type, action, kind, feedback_json, consumed_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    feedback.id,
                    feedback.agent_type,
                    feedback.action,
                    feedback.kind.value,
                    json.dumps(feedback.to_dict()),
                    datetime.now().isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def archived(self, agent_type: str | None = None, limit: int = 50) -> list[dict]:
        conn = get_connection(self._db_path)
        try:
            if agent_type is None:
                rows = conn.execute(
                    "SELECT feedback_json FROM feedback_archive ORDER BY consumed_at DESC LIMIT ?",
                    (limit,),
                ).fetchall()
            else:
                rows = conn.execute(
                    """SELECT feedback_json FROM feedback_archive WHERE agent_type = ?
                       ORDER BY consumed_at DESC LIMIT ?""",
                    (agent_type, limit),
                ).fetchall()
            return [json.loads(row["feedback_json"]) for row in rows]
        finally:
            conn.close()
