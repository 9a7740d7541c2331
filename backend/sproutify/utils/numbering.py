"""Tray code generation.

Format tokens (``settings.tray_code_format``):
  {date}       → YYYYMMDD of the sow date
  {seq:N}      → zero-padded sequence number, N digits, per farm and prefix

Default format:  TRY-{date}-{seq:4}  →  TRY-20240510-0007
"""

import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sproutify.config import settings
from sproutify.models.tray import Tray

_SEQ_RE = re.compile(r"\{seq:(\d+)\}")


def _build_prefix(fmt: str, date_str: str) -> str:
    """Everything before {seq:N}, used to count existing codes."""
    prefix = fmt.replace("{date}", date_str)
    return re.sub(r"\{seq:\d+\}.*$", "", prefix)


async def _count_existing(db: AsyncSession, farm_id: str, prefix: str) -> int:
    result = await db.execute(
        select(func.count(Tray.id)).where(
            Tray.farm_id == farm_id,
            Tray.tray_code.like(f"{prefix}%"),
        )
    )
    return result.scalar() or 0


async def generate_tray_codes(
    db: AsyncSession,
    farm_id: str,
    sow_date: date,
    count: int = 1,
) -> list[str]:
    """Reserve ``count`` consecutive tray codes for trays sown on ``sow_date``."""
    fmt = settings.tray_code_format
    date_str = sow_date.strftime("%Y%m%d")
    prefix = _build_prefix(fmt, date_str)

    start = await _count_existing(db, farm_id, prefix) + 1

    seq_match = _SEQ_RE.search(fmt)
    seq_width = int(seq_match.group(1)) if seq_match else 4

    codes = []
    for seq_num in range(start, start + count):
        code = fmt.replace("{date}", date_str)
        code = _SEQ_RE.sub(f"{seq_num:0{seq_width}d}", code)
        codes.append(code)
    return codes
