"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        db, farm_id, actor, action="created", entity_type="seeding_request",
        entity_id=req.id, summary="Requested 4 trays of Pea Shoots",
    )

The row is added to the current session and committed with the
enclosing transaction; no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.models.activity_log import ActivityLog

SYSTEM_ACTOR = "system"


async def log_activity(
    db: AsyncSession,
    farm_id: str,
    actor: str | None,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    entry = ActivityLog(
        farm_id=farm_id,
        actor=actor or SYSTEM_ACTOR,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary,
        details=details,
    )
    db.add(entry)
