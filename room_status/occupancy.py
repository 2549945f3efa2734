"""Derive the room's current and next meeting from today's events."""

from datetime import datetime
from typing import Optional, Sequence

from .models import CalendarEvent, RoomStatus, iso_z


def find_current_event(events: Sequence[CalendarEvent], now: datetime) -> Optional[CalendarEvent]:
    """Return the first event in progress at ``now`` (start inclusive, end exclusive)."""
    for event in events:
        if event.startTime <= now < event.endTime:
            return event
    return None


def find_next_event(events: Sequence[CalendarEvent], now: datetime) -> Optional[CalendarEvent]:
    """Return the first event starting strictly after ``now``.

    Events are expected in ascending start order, as requested from Graph.
    """
    for event in events:
        if event.startTime > now:
            return event
    return None


def build_status(events: Sequence[CalendarEvent], now: datetime, room_email: Optional[str]) -> RoomStatus:
    current = find_current_event(events, now)
    return RoomStatus(
        roomEmail=room_email,
        currentTime=iso_z(now),
        isOccupied=current is not None,
        currentEvent=current,
        nextEvent=find_next_event(events, now),
        todayEventCount=len(events),
    )
