"""Management CLI for farm operations.

Usage:
    python -m sproutify.cli fulfill                          # Run the fulfillment boundary once
    python -m sproutify.cli seeding-plan FARM_ID YYYY-MM-DD  # Print a seeding plan as CSV
"""

import asyncio
import sys
from datetime import date

from sproutify.database import async_session
from sproutify.services.scheduler import run_fulfillment_cycle
from sproutify.services.seeding_plan import load_seeding_plan, seeding_plan_csv


def fulfill() -> int:
    summary = asyncio.run(run_fulfillment_cycle())
    if summary is None:
        print("Fulfillment run failed; see the log.")
        return 1
    print(
        f"  {len(summary.fulfilled_request_ids)} request(s) fulfilled, "
        f"{summary.trays_created} tray(s) created, "
        f"{len(summary.failed_request_ids)} waiting"
    )
    return 0


async def _seeding_plan(farm_id: str, sow_date: date) -> str:
    async with async_session() as db:
        plan = await load_seeding_plan(db, farm_id, sow_date)
    return seeding_plan_csv(plan)


def seeding_plan(farm_id: str, sow_date: str) -> int:
    print(asyncio.run(_seeding_plan(farm_id, date.fromisoformat(sow_date))), end="")
    return 0


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "fulfill":
        sys.exit(fulfill())
    elif cmd == "seeding-plan" and len(sys.argv) == 4:
        sys.exit(seeding_plan(sys.argv[2], sys.argv[3]))
    else:
        print(__doc__)
        sys.exit(2)
