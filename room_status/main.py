"""Main application entry point for the room status service.

This module defines the FastAPI application, configures logging, owns the
process-wide access token cache and serves the JSON API consumed by room
displays.

Endpoints:
  - ``/api/status``: report whether the room is occupied, with the current
    and next meeting of the day.
  - ``/api/health``: simple health check endpoint.

Every response carries permissive CORS headers so displays served from any
origin can poll the API. Upstream failures are logged with their kind and
reported to callers as a generic 500.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import settings
from .graph_client import CalendarError, GraphCalendarClient, TokenCache, utcnow
from .models import ErrorResponse, RoomStatus, iso_z
from .occupancy import build_status

logger = logging.getLogger("room_status")
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="Room Status Service")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
FETCH_ERROR_MESSAGE = "Failed to fetch calendar events"

# The status handler ignores the request method; only OPTIONS is special.
STATUS_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]

# Lives as long as the process. Serverless platforms may recycle it at any time.
_token_cache = TokenCache()


def get_calendar_client() -> GraphCalendarClient:
    """Return a Graph client bound to the process-wide token cache."""
    return GraphCalendarClient(settings, _token_cache)


@app.middleware("http")
async def add_cors_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


@app.options("/api/status")
def api_status_preflight() -> Response:
    """Answer CORS preflight requests without touching the calendar."""
    return Response(status_code=200)


@app.api_route(
    "/api/status",
    methods=STATUS_METHODS,
    response_model=RoomStatus,
    responses={500: {"model": ErrorResponse}},
)
def api_status(calendar: GraphCalendarClient = Depends(get_calendar_client)):
    """Return the occupancy status of the configured room."""
    try:
        events = calendar.get_today_events()
        return build_status(events, calendar.clock(), calendar.config.room_email)
    except CalendarError as exc:
        logger.error("API Error (%s): %s", exc.kind, exc)
    except Exception as exc:
        logger.exception("API Error (other): %s", exc)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=FETCH_ERROR_MESSAGE).model_dump(),
    )


@app.get("/api/health")
def api_health() -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    return {"ok": True, "time": iso_z(utcnow())}
