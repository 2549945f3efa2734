"""Response bodies for the room status API.

A ``RoomStatus`` is built fresh for every request from the day's
``CalendarEvent`` list and is never stored. Instants are always sent as UTC
strings with millisecond precision, whatever zone they were parsed in.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, field_serializer


def iso_z(dt: datetime) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CalendarEvent(BaseModel):
    """A room booking normalised for display."""

    id: Optional[str] = None
    subject: str = "Meeting"
    organizer: str = "Unknown"
    startTime: datetime
    endTime: datetime
    timeRange: str

    @field_serializer("startTime", "endTime")
    def _serialize_instant(self, value: datetime) -> str:
        return iso_z(value)


class RoomStatus(BaseModel):
    """Represents the computed status of the room at a point in time."""

    success: bool = True
    roomEmail: Optional[str] = None
    currentTime: str
    isOccupied: bool
    currentEvent: Optional[CalendarEvent] = None
    nextEvent: Optional[CalendarEvent] = None
    todayEventCount: int


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
