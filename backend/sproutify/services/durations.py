"""Duration calculator: reduces a recipe's ordered steps to whole days.

Per-step rule:
  days (or no/unknown unit)  → the magnitude as given
  hours                      → 1 day when the magnitude is >= 12, else 0

Contributions are summed first and the total is rounded once, at the half
day, so two half-day steps make one day.  Step boundaries round the running
total the same way, which keeps the last window ending on the total.

A recipe without steps lasts 0 days, so every date derived from it equals
the sow date.  Steps are always walked in ``sequence_order``; two steps
sharing a position is a configuration error.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from sproutify.middleware.exceptions import RecipeConfigurationError

HALF_DAY_HOURS = 12

_HOUR_UNITS = {"hour", "hours", "hr", "hrs", "h"}


@dataclass(frozen=True)
class StepWindow:
    """A step's position on the tray's timeline, in days after sowing."""
    step: Any
    start_day: int
    end_day: int

    @property
    def days(self) -> int:
        return self.end_day - self.start_day


def step_duration_days(duration: float | None, unit: str | None) -> float:
    """A single step's contribution in days, before any rounding."""
    magnitude = duration or 0
    normalized = (unit or "").strip().lower()
    if normalized in _HOUR_UNITS:
        return 1 if magnitude >= HALF_DAY_HOURS else 0
    return magnitude


def round_days(days: float) -> int:
    """Round a day count at the half day."""
    whole = int(days)
    return whole + 1 if days - whole >= 0.5 else whole


def ordered_steps(steps: Iterable[Any]) -> list:
    """Return steps sorted by sequence_order, rejecting duplicate positions."""
    result = sorted(steps, key=lambda s: s.sequence_order)
    seen: set[int] = set()
    for step in result:
        if step.sequence_order in seen:
            raise RecipeConfigurationError(
                f"Two steps share sequence position {step.sequence_order}",
                recipe_id=getattr(step, "recipe_id", None),
            )
        seen.add(step.sequence_order)
    return result


def total_grow_days(steps: Iterable[Any]) -> int:
    return round_days(sum(
        step_duration_days(step.duration, step.duration_unit)
        for step in ordered_steps(steps)
    ))


def step_windows(steps: Iterable[Any]) -> list[StepWindow]:
    windows = []
    elapsed = 0.0
    for step in ordered_steps(steps):
        start = round_days(elapsed)
        elapsed += step_duration_days(step.duration, step.duration_unit)
        windows.append(StepWindow(step=step, start_day=start, end_day=round_days(elapsed)))
    return windows


def window_for_day(windows: list[StepWindow], day: int) -> StepWindow | None:
    """The step a tray is in ``day`` days after sowing, if any."""
    for window in windows:
        if window.start_day <= day < window.end_day:
            return window
    return None
