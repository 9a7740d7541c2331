"""Tray lifecycle: derived status plus the operator actions that change it.

Status is computed on read, never stored.  Precedence is strict:

  1. Lost        status == "lost" (terminal, operator action only)
  2. Harvested   a harvest date is recorded, or status == "harvested"
  3. <stage>     name of the earliest-scheduled pending TrayStep
                 (ties broken by sequence order)
  4. Growing     nothing pending

Every action below refuses Lost trays.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.database import utcnow
from sproutify.middleware.exceptions import BusinessLogicError, ResourceNotFoundError, TerminalStateError
from sproutify.models.tray import Tray
from sproutify.services.durations import step_windows, total_grow_days, window_for_day
from sproutify.utils.activity import log_activity

logger = logging.getLogger(__name__)

LOST = "Lost"
HARVESTED = "Harvested"
GROWING = "Growing"

LOSS_REASONS = (
    "disease",
    "dried_out",
    "bad_seed",
    "mold",
    "pest",
    "contamination",
    "overwatered",
    "temperature",
    "other",
)

# Phase buckets for the passive (no action needed) tray overview
PASSIVE_PHASES = ("Germination", "Blackout", "Growing")


# ── Pure resolver ───────────────────────────────────────────

def pending_tray_steps(steps: Iterable[Any]) -> list:
    return [s for s in steps if not s.completed and not s.skipped]


def resolve_tray_status(
    status: str | None,
    harvest_date: date | None,
    pending_steps: Iterable[Any] = (),
) -> str:
    if status == "lost":
        return LOST
    if harvest_date is not None or status == "harvested":
        return HARVESTED
    pending = list(pending_steps)
    if pending:
        current = min(
            pending,
            key=lambda s: (s.scheduled_date or date.max, s.sequence_order),
        )
        return current.step_name
    return GROWING


def tray_status(tray: Tray) -> str:
    return resolve_tray_status(tray.status, tray.harvest_date, pending_tray_steps(tray.steps))


def projected_harvest_date(sow_date: date, total_days: int) -> date:
    return sow_date + timedelta(days=total_days)


def tray_harvest_date(tray: Tray) -> date:
    """Recorded harvest date, else sow date plus the snapshotted plan."""
    if tray.harvest_date:
        return tray.harvest_date
    return projected_harvest_date(tray.sow_date, total_grow_days(tray.steps))


def is_growing(tray: Tray) -> bool:
    return tray.status == "active" and tray.harvest_date is None


# ── Queries ─────────────────────────────────────────────────

@dataclass
class TrayView:
    tray: Tray
    status: str
    projected_harvest_date: date
    days_since_sow: int


async def list_trays(
    db: AsyncSession,
    farm_id: str,
    include_finished: bool = False,
    today: date | None = None,
) -> list[TrayView]:
    today = today or date.today()
    query = select(Tray).where(Tray.farm_id == farm_id)
    if not include_finished:
        query = query.where(Tray.status == "active", Tray.harvest_date.is_(None))
    result = await db.execute(query.order_by(Tray.sow_date, Tray.tray_code))
    return [
        TrayView(
            tray=t,
            status=tray_status(t),
            projected_harvest_date=tray_harvest_date(t),
            days_since_sow=(today - t.sow_date).days,
        )
        for t in result.scalars().all()
    ]


async def _load_trays(db: AsyncSession, farm_id: str, tray_ids: list[str]) -> list[Tray]:
    if not tray_ids:
        raise BusinessLogicError("No trays provided")
    result = await db.execute(
        select(Tray).where(Tray.farm_id == farm_id, Tray.id.in_(tray_ids))
    )
    trays = list(result.scalars().all())
    missing = set(tray_ids) - {t.id for t in trays}
    if missing:
        raise ResourceNotFoundError("Tray", ", ".join(sorted(missing)))
    return trays


def _reject_lost(trays: list[Tray]) -> None:
    lost = [t.tray_code for t in trays if t.status == "lost"]
    if lost:
        raise TerminalStateError(f"Trays already lost: {', '.join(lost)}")


def _reject_harvested(trays: list[Tray]) -> None:
    harvested = [t.tray_code for t in trays if t.harvest_date or t.status == "harvested"]
    if harvested:
        raise TerminalStateError(f"Trays already harvested: {', '.join(harvested)}")


# ── Operator actions ────────────────────────────────────────

async def mark_trays_lost(
    db: AsyncSession,
    farm_id: str,
    tray_ids: list[str],
    reason: str,
    notes: str | None = None,
    actor: str | None = None,
) -> list[Tray]:
    if reason not in LOSS_REASONS:
        raise BusinessLogicError(
            f"Unknown loss reason '{reason}'. Must be one of: {', '.join(LOSS_REASONS)}"
        )
    trays = await _load_trays(db, farm_id, tray_ids)
    _reject_lost(trays)
    _reject_harvested(trays)

    now = utcnow()
    for tray in trays:
        tray.status = "lost"
        tray.loss_reason = reason
        tray.loss_notes = notes
        tray.lost_at = now
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="lost",
        entity_type="tray",
        summary=f"Marked {len(trays)} tray(s) lost: {reason}",
        details={"tray_ids": [t.id for t in trays], "reason": reason},
    )
    logger.info("Farm %s: %d tray(s) marked lost (%s)", farm_id, len(trays), reason)
    return trays


async def record_harvest(
    db: AsyncSession,
    farm_id: str,
    tray_ids: list[str],
    harvest_date: date | None = None,
    total_yield_grams: float | None = None,
    actor: str | None = None,
) -> list[Tray]:
    """Harvest trays, splitting the total yield evenly between them.

    Remaining steps are marked completed.
    """
    trays = await _load_trays(db, farm_id, tray_ids)
    _reject_lost(trays)
    _reject_harvested(trays)

    harvest_date = harvest_date or date.today()
    per_tray = (
        round(total_yield_grams / len(trays), 2)
        if total_yield_grams is not None else None
    )
    now = utcnow()
    for tray in trays:
        tray.harvest_date = harvest_date
        tray.status = "harvested"
        tray.yield_grams = per_tray
        for step in pending_tray_steps(tray.steps):
            step.completed = True
            step.completed_at = now
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="harvested",
        entity_type="tray",
        summary=f"Harvested {len(trays)} tray(s)",
        details={
            "tray_ids": [t.id for t in trays],
            "harvest_date": harvest_date.isoformat(),
            "total_yield_grams": total_yield_grams,
        },
    )
    return trays


async def harvest_tray_now(
    db: AsyncSession,
    farm_id: str,
    tray_id: str,
    yield_grams: float | None = None,
    actor: str | None = None,
) -> Tray:
    trays = await record_harvest(db, farm_id, [tray_id], date.today(), yield_grams, actor)
    return trays[0]


async def _set_step_flags(
    db: AsyncSession,
    farm_id: str,
    tray_ids: list[str],
    step_name: str,
    *,
    skip: bool,
    actor: str | None,
) -> int:
    trays = await _load_trays(db, farm_id, tray_ids)
    _reject_lost(trays)

    now = utcnow()
    touched = 0
    for tray in trays:
        for step in tray.steps:
            if step.step_name != step_name or step.completed:
                continue
            if skip:
                step.skipped = True
                step.skipped_at = now
            else:
                step.completed = True
                step.completed_at = now
                step.skipped = False
                step.skipped_at = None
            touched += 1
    if not touched:
        raise BusinessLogicError(f"No open '{step_name}' step on the given trays")
    await db.flush()

    await log_activity(
        db, farm_id, actor,
        action="skipped" if skip else "completed",
        entity_type="tray_step",
        summary=f"{'Skipped' if skip else 'Completed'} '{step_name}' on {touched} tray(s)",
        details={"tray_ids": [t.id for t in trays], "step_name": step_name},
    )
    return touched


async def complete_tray_steps(
    db: AsyncSession,
    farm_id: str,
    tray_ids: list[str],
    step_name: str,
    actor: str | None = None,
) -> int:
    """Complete a step on each tray; also clears an earlier skip."""
    return await _set_step_flags(db, farm_id, tray_ids, step_name, skip=False, actor=actor)


async def skip_tray_steps(
    db: AsyncSession,
    farm_id: str,
    tray_ids: list[str],
    step_name: str,
    actor: str | None = None,
) -> int:
    return await _set_step_flags(db, farm_id, tray_ids, step_name, skip=True, actor=actor)


# ── Passive overview ────────────────────────────────────────

@dataclass
class PassiveGroup:
    phase: str
    variety: str
    tray_ids: list[str] = field(default_factory=list)

    @property
    def trays(self) -> int:
        return len(self.tray_ids)


@dataclass
class PassiveStatus:
    groups: list[PassiveGroup]
    nearly_ready: list[TrayView]


def passive_phase(step_name: str | None) -> str:
    name = (step_name or "").lower()
    if "germ" in name:
        return "Germination"
    if "blackout" in name or "dark" in name:
        return "Blackout"
    return "Growing"


async def passive_tray_status(
    db: AsyncSession,
    farm_id: str,
    on_date: date | None = None,
) -> PassiveStatus:
    """Growing trays grouped by phase and variety, plus trays 1-2 days from harvest."""
    on_date = on_date or date.today()
    views = await list_trays(db, farm_id, today=on_date)

    groups: dict[tuple[str, str], PassiveGroup] = {}
    nearly_ready = []
    for view in views:
        tray = view.tray
        window = window_for_day(step_windows(tray.steps), view.days_since_sow)
        phase = passive_phase(window.step.step_name if window else None)
        variety = tray.recipe.variety_name or tray.recipe.name
        group = groups.setdefault((phase, variety), PassiveGroup(phase=phase, variety=variety))
        group.tray_ids.append(tray.id)

        days_until_ready = (view.projected_harvest_date - on_date).days
        if 1 <= days_until_ready <= 2:
            nearly_ready.append(view)

    ordered = sorted(
        groups.values(),
        key=lambda g: (PASSIVE_PHASES.index(g.phase), g.variety),
    )
    return PassiveStatus(groups=ordered, nearly_ready=nearly_ready)
