"""
Audit sink. Every significant state change calls ActivityLogService.log_action
with before/after snapshots of the fields it changed plus enough detail
(quantities, counterparties, references) to render a summary without going
back to the database.
"""

import logging
from typing import Dict, Any, List, Optional

from orders.models import ActivityLog

logger = logging.getLogger(__name__)

IGNORED_DIFF_FIELDS = {"created_at", "updated_at"}


class ActivityLogService:

    @staticmethod
    def compute_diff(before: Optional[Dict], after: Optional[Dict]) -> Dict[str, List]:
        if not before or not after:
            return {}
        diff = {}
        for key in sorted(set(before) | set(after)):
            if key in IGNORED_DIFF_FIELDS:
                continue
            if before.get(key) != after.get(key):
                diff[key] = [before.get(key), after.get(key)]
        return diff

    @classmethod
    def log_action(cls,
                   entity_type: str,
                   entity_id: Any,
                   action: str,
                   summary: str,
                   user_id: int = None,
                   before: Dict = None,
                   after: Dict = None,
                   details: Dict = None,
                   tags: List[str] = None) -> ActivityLog:
        entry = ActivityLog.objects.create(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            user_id=user_id,
            summary=summary,
            before=before,
            after=after,
            diff=cls.compute_diff(before, after),
            details=details or {},
            tags=tags or [],
        )
        logger.info(f"[{entity_type}:{entity_id}] {action}: {summary}")
        return entry

    @classmethod
    def get_entity_history(cls, entity_type: str, entity_id: Any, limit: int = 50) -> List[Dict[str, Any]]:
        entries = ActivityLog.objects.filter(
            entity_type=entity_type, entity_id=str(entity_id)
        ).order_by("-created_at", "-id")[:limit]
        return [cls.serialize(e) for e in entries]

    @staticmethod
    def serialize(entry: ActivityLog) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "entity_type": entry.entity_type,
            "entity_id": entry.entity_id,
            "action": entry.action,
            "user_id": entry.user_id,
            "summary": entry.summary,
            "diff": entry.diff,
            "details": entry.details,
            "tags": entry.tags,
            "created_at": entry.created_at.isoformat(),
        }
