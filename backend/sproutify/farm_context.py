"""Request-scoped farm context.

  - _farm_ctx    ContextVar holding the farm id for the current request
  - set / get / clear helpers for the ContextVar
  - validate_farm_id()   rejects malformed ids before they reach a query
  - current_farm_id / current_actor   router dependencies

The middleware in ``sproutify.middleware.farm`` fills the ContextVar from
the ``X-Farm-Id`` header; routers read it via ``get_current_farm_id``.
"""

import re
from contextvars import ContextVar

from fastapi import Header, HTTPException, status

FARM_HEADER = "x-farm-id"

_farm_ctx: ContextVar[str | None] = ContextVar("_farm_ctx", default=None)

_FARM_ID_RE = re.compile(r"^[A-Za-z0-9-]{1,36}$")


def set_current_farm_id(farm_id: str) -> None:
    _farm_ctx.set(farm_id)


def get_current_farm_id() -> str:
    """Return the current farm id or raise if unset."""
    farm_id = _farm_ctx.get()
    if farm_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No farm context: send the X-Farm-Id header",
        )
    return farm_id


def clear_farm_context() -> None:
    _farm_ctx.set(None)


def validate_farm_id(farm_id: str) -> str:
    if not _FARM_ID_RE.match(farm_id):
        raise ValueError(f"Invalid farm id: {farm_id!r}")
    return farm_id


# ── FastAPI dependencies ────────────────────────────────────

async def current_farm_id() -> str:
    """Dependency form of ``get_current_farm_id`` (runs on the event loop)."""
    return get_current_farm_id()


async def current_actor(
    x_operator: str | None = Header(None, alias="X-Operator"),
) -> str | None:
    """Name of the operator performing the action, for the activity log."""
    return x_operator.strip() if x_operator and x_operator.strip() else None
