"""Farm middleware: resolves the farm context from the request headers.

Flow:
  1. Read the X-Farm-Id header
  2. Validate its shape
  3. Set the ContextVar so routers can read it
  4. After the response, clear the ContextVar

Routes that are not farm-scoped (health, docs) never call
get_current_farm_id(), so a missing header is fine for them.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from sproutify.farm_context import (
    FARM_HEADER,
    clear_farm_context,
    set_current_farm_id,
    validate_farm_id,
)


class FarmContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        farm_id = request.headers.get(FARM_HEADER)

        if farm_id:
            try:
                set_current_farm_id(validate_farm_id(farm_id.strip()))
            except ValueError as exc:
                clear_farm_context()
                return JSONResponse(
                    status_code=400,
                    content={"error": {"code": "INVALID_FARM", "message": str(exc), "details": {}}},
                )
        else:
            clear_farm_context()

        try:
            response = await call_next(request)
        finally:
            clear_farm_context()

        return response
