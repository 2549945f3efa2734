"""Microsoft Graph client utilities for the room status service.

This module acquires app-only access tokens from Microsoft Entra ID with the
OAuth2 client-credentials grant and lists the room mailbox's events for the
current day through the Graph ``calendarView`` endpoint. Tokens are kept in
an explicit ``TokenCache`` owned by the caller, and the time source is
injectable so behaviour around expiry and "today" can be pinned in tests.

The functions here are deliberately synchronous and do not retry: a failed
upstream call surfaces immediately as ``AuthError`` or ``GraphError``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx

from .config import Settings
from .models import CalendarEvent, iso_z

logger = logging.getLogger(__name__)

# Tokens are treated as expired this many seconds before the lifetime
# reported by the identity provider.
EXPIRY_MARGIN_SECONDS = 300

# Page size for calendarView. Only the first page is read.
MAX_EVENTS = 50

DEFAULT_SUBJECT = "Meeting"
DEFAULT_ORGANIZER = "Unknown"

# Graph returns up to seven fractional digits; datetime handles six.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


class CalendarError(Exception):
    """Base class for upstream failures while building the room status."""

    kind = "other"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(CalendarError):
    """The token endpoint did not return a success status."""

    kind = "auth"


class GraphError(CalendarError):
    """The calendar endpoint did not return a success status."""

    kind = "graph"


@dataclass
class TokenCache:
    """Single slot holding the current access token and its local expiry."""

    token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_valid(self, now: datetime) -> bool:
        """Return True if a token is present and ``now`` is strictly before its expiry."""
        if self.token is None or self.expires_at is None:
            return False
        return now < self.expires_at

    def store(self, token: str, expires_in: int, issued_at: datetime) -> None:
        self.token = token
        self.expires_at = issued_at + timedelta(seconds=expires_in - EXPIRY_MARGIN_SECONDS)


def resolve_zone(name: Optional[str], fallback: tzinfo) -> tzinfo:
    """Return the IANA zone called ``name``, or ``fallback`` if it is unknown.

    Graph echoes back whatever timezone was requested in the ``Prefer``
    header, but may also report Windows zone names that ``zoneinfo`` does not
    know about.
    """
    if not name:
        return fallback
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return fallback


def parse_graph_datetime(value: str, zone: tzinfo) -> datetime:
    """Parse a Graph ``dateTime`` string into an aware datetime.

    Values without an offset are wall-clock times in ``zone``.
    """
    text = _FRACTION_RE.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zone)
    return dt


def format_clock(dt: datetime) -> str:
    """Render ``dt`` on a 12-hour clock, e.g. ``9:05 AM``."""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def format_time_range(start: datetime, end: datetime, zone: tzinfo) -> str:
    return f"{format_clock(start.astimezone(zone))} - {format_clock(end.astimezone(zone))}"


def day_window(now: datetime, zone: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """Return the aware bounds ``[start of day, start of next day)`` containing ``now``.

    With ``zone`` left as None the calendar day is taken from the server
    process's local timezone, which need not match the display timezone.
    """
    local_now = now.astimezone(zone)
    day = local_now.date()
    start = datetime.combine(day, time.min)
    end = datetime.combine(day + timedelta(days=1), time.min)
    if zone is None:
        # Naive datetimes are interpreted as system local time.
        return start.astimezone(), end.astimezone()
    return start.replace(tzinfo=zone), end.replace(tzinfo=zone)


def normalize_event(item: Dict[str, Any], zone: tzinfo) -> CalendarEvent:
    """Convert a raw Graph event into a ``CalendarEvent``.

    Raises:
        KeyError: if the event has no ``start`` or ``end`` timestamp.
    """
    start_raw = item["start"]
    end_raw = item["end"]
    start = parse_graph_datetime(start_raw["dateTime"], resolve_zone(start_raw.get("timeZone"), zone))
    end = parse_graph_datetime(end_raw["dateTime"], resolve_zone(end_raw.get("timeZone"), zone))
    organizer = ((item.get("organizer") or {}).get("emailAddress") or {}).get("name")
    return CalendarEvent(
        id=item.get("id"),
        subject=item.get("subject") or DEFAULT_SUBJECT,
        organizer=organizer or DEFAULT_ORGANIZER,
        startTime=start,
        endTime=end,
        timeRange=format_time_range(start, end, zone),
    )


class GraphCalendarClient:
    """Reads a room mailbox's calendar through Microsoft Graph.

    Args:
        config: the service settings (credentials, room mailbox, timezone).
        cache: token slot shared across requests; a fresh one is created if
            omitted.
        clock: returns the current time as an aware datetime.
        transport: optional ``httpx`` transport, used to stub upstream calls.
        local_tz: the server's local timezone for the day window; None means
            the system timezone.
    """

    def __init__(
        self,
        config: Settings,
        cache: Optional[TokenCache] = None,
        *,
        clock: Clock = utcnow,
        transport: Optional[httpx.BaseTransport] = None,
        local_tz: Optional[tzinfo] = None,
    ) -> None:
        self.config = config
        self.cache = cache if cache is not None else TokenCache()
        self.clock = clock
        self._transport = transport
        self._local_tz = local_tz

    @property
    def display_zone(self) -> tzinfo:
        """Zone for rendered time ranges and, when enabled, the day window.

        Resolved on use so an unknown name fails inside the request, not at construction.
        """
        return ZoneInfo(self.config.timezone)

    @property
    def token_url(self) -> str:
        return f"{self.config.authority_url.rstrip('/')}/{self.config.tenant_id}/oauth2/v2.0/token"

    @property
    def calendar_view_url(self) -> str:
        return f"{self.config.graph_base_url.rstrip('/')}/users/{self.config.room_email}/calendar/calendarView"

    def _client(self) -> httpx.Client:
        return httpx.Client(transport=self._transport)

    def get_access_token(self) -> str:
        """Return a bearer token, requesting a new one when the cached one has expired.

        Raises:
            AuthError: if the token endpoint responds with a non-success status.
        """
        if self.cache.is_valid(self.clock()):
            logger.debug("Using cached Graph access token")
            return self.cache.token

        data = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "scope": self.config.graph_scope,
            "grant_type": "client_credentials",
        }
        with self._client() as client:
            response = client.post(self.token_url, data=data)
        if not response.is_success:
            logger.error("Token request failed with status %s", response.status_code)
            raise AuthError(f"Token request failed: {response.status_code}", status_code=response.status_code)

        payload = response.json()
        self.cache.store(payload["access_token"], int(payload["expires_in"]), self.clock())
        logger.info("Acquired Graph access token, cached until %s", iso_z(self.cache.expires_at))
        return payload["access_token"]

    def get_today_events(self) -> List[CalendarEvent]:
        """List the room's events for the current day in provider order.

        Raises:
            AuthError: if a token could not be acquired.
            GraphError: if the calendar endpoint responds with a non-success status.
            ZoneInfoNotFoundError: if the configured display timezone is unknown.
        """
        display_zone = self.display_zone
        token = self.get_access_token()
        window_zone = display_zone if self.config.day_window_use_display_timezone else self._local_tz
        start, end = day_window(self.clock(), window_zone)
        params = {
            "startDateTime": iso_z(start),
            "endDateTime": iso_z(end),
            "$orderby": "start/dateTime",
            "$top": MAX_EVENTS,
        }
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Prefer": f'outlook.timezone="{self.config.timezone}"',
        }
        with self._client() as client:
            response = client.get(self.calendar_view_url, params=params, headers=headers)
        if not response.is_success:
            logger.error("Graph calendarView request failed with status %s", response.status_code)
            raise GraphError(
                f"Graph API request failed: {response.status_code}", status_code=response.status_code
            )

        items = response.json().get("value") or []
        events = [normalize_event(item, display_zone) for item in items]
        logger.debug("Fetched %s events for %s", len(events), self.config.room_email)
        return events
