"""
Audit Service — records administrative changes to rate cards and config.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


class AuditService:
    """
    Records who changed which rate card or config, and when.
    Without a database handle entries live in an in-memory list;
    otherwise they are appended to the `audit_log` collection.
    """

    def __init__(self, db: Any = None):
        self._db = db
        self._entries: list[dict[str, Any]] = []

    def record(
        self,
        entity_id: str,
        actor: str,
        action: str,
        details: str = "",
    ) -> dict[str, Any]:
        """Record an audit entry and return it."""
        entry = {
            "entity_id": entity_id,
            "actor": actor,
            "action": action,
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if self._db is None:
            self._entries.append(entry)
        else:
            self._db.audit_log.insert_one(dict(entry))
        logger.debug(f"[AUDIT] {actor or 'unknown'} → {action} {entity_id}: {details}")

        return entry

    def get_trail(self, entity_id: str) -> list[dict[str, Any]]:
        """Return all audit entries for one rate card (or the config key), oldest first."""
        if self._db is None:
            return [e for e in self._entries if e["entity_id"] == entity_id]
        cursor = self._db.audit_log.find({"entity_id": entity_id}, {"_id": 0}).sort("timestamp", 1)
        return list(cursor)

    def get_all(self) -> list[dict[str, Any]]:
        """Return every audit entry, oldest first."""
        if self._db is None:
            return list(self._entries)
        return list(self._db.audit_log.find({}, {"_id": 0}).sort("timestamp", 1))
