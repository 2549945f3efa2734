"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Settings pointing at a fake tenant and room mailbox
- A controllable clock
- A fake identity provider / Graph API served through ``httpx.MockTransport``
- A FastAPI TestClient wired to the fake calendar client
"""

from datetime import datetime, timedelta, timezone
from typing import Generator, List, Optional
from zoneinfo import ZoneInfo

import httpx
import pytest
from fastapi.testclient import TestClient

from room_status.config import Settings
from room_status.graph_client import GraphCalendarClient, TokenCache
from room_status.main import app, get_calendar_client

TORONTO = ZoneInfo("America/Toronto")
ROOM_EMAIL = "room-4a@example.com"

# 09:15 in Toronto (EDT, UTC-4)
MORNING = datetime(2024, 5, 1, 13, 15, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGraph:
    """Answers token and calendarView requests and records every request."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.events: Optional[List[dict]] = []
        self.token_status = 200
        self.graph_status = 200
        self.expires_in = 3600
        self.issued = 0
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if request.url.path.endswith("/oauth2/v2.0/token"):
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            self.issued += 1
            return httpx.Response(
                200,
                json={
                    "token_type": "Bearer",
                    "expires_in": self.expires_in,
                    "access_token": f"token-{self.issued}",
                },
            )
        if request.url.path.endswith("/calendar/calendarView"):
            if self.graph_status != 200:
                return httpx.Response(self.graph_status, json={"error": {"code": "ErrorAccessDenied"}})
            if self.events is None:
                return httpx.Response(200, json={})
            return httpx.Response(200, json={"value": self.events})
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/oauth2/v2.0/token")]

    @property
    def calendar_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/calendar/calendarView")]


def graph_event(
    event_id: str,
    start: str,
    end: str,
    subject: Optional[str] = "Weekly sync",
    organizer: Optional[str] = "Ada Lovelace",
    tz: str = "America/Toronto",
) -> dict:
    """Build a calendarView item the way Graph returns it with a timezone preference."""
    item = {
        "id": event_id,
        "start": {"dateTime": f"{start}.0000000", "timeZone": tz},
        "end": {"dateTime": f"{end}.0000000", "timeZone": tz},
    }
    if subject is not None:
        item["subject"] = subject
    if organizer is not None:
        item["organizer"] = {"emailAddress": {"name": organizer, "address": "ada@example.com"}}
    return item


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        TENANT_ID="tenant-id",
        CLIENT_ID="client-id",
        CLIENT_SECRET="client-secret",
        ROOM_EMAIL=ROOM_EMAIL,
        TIMEZONE="America/Toronto",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(MORNING)


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def calendar(config: Settings, clock: FakeClock, fake_graph: FakeGraph) -> GraphCalendarClient:
    return GraphCalendarClient(
        config,
        TokenCache(),
        clock=clock,
        transport=fake_graph.transport,
        local_tz=TORONTO,
    )


@pytest.fixture
def client(calendar: GraphCalendarClient) -> Generator[TestClient, None, None]:
    """Test client whose status endpoint talks to the fake Graph."""
    app.dependency_overrides[get_calendar_client] = lambda: calendar
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
