"""Family calendar router for Homebase (proxied to Google Calendar)."""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query

from homebase.auth import get_family, require_member
from homebase.calendar_client import CalendarClient
from homebase.dependencies import get_calendar_client
from homebase.errors import ValidationError
from homebase.models import Family, FamilyMember
from homebase.schemas import (
    CalendarEventBase,
    CalendarEventCreate,
    CalendarEventResponse,
    CalendarSummary,
)
from homebase.utils.timezone import ensure_utc, now_utc

router = APIRouter(prefix="/api/families/{family_id}/calendar", tags=["calendar"])


def _calendar_id(family: Family, calendar_id: str | None) -> str:
    return calendar_id or family.primary_calendar_id or "primary"


def _check_window(start: datetime, end: datetime) -> None:
    if ensure_utc(end) <= ensure_utc(start):
        raise ValidationError("End must be after start", field="end")


@router.get("/calendars", response_model=list[CalendarSummary])
def list_calendars(
    _: FamilyMember = Depends(require_member),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    """Calendars visible to the caller's Google account."""
    return calendar.list_calendars()


@router.get("/events", response_model=list[CalendarEventResponse])
def list_events(
    time_min: datetime | None = Query(None, description="Window start; defaults to now"),
    time_max: datetime | None = Query(None, description="Window end; defaults to 7 days after start"),
    calendar_id: str | None = Query(None),
    max_results: int = Query(100, ge=1, le=2500),
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    """Events in [time_min, time_max] with recurring events expanded."""
    start = ensure_utc(time_min) if time_min else now_utc()
    end = ensure_utc(time_max) if time_max else start + timedelta(days=7)
    _check_window(start, end)
    return calendar.list_events(_calendar_id(family, calendar_id), start, end, max_results)


@router.post("/events", response_model=CalendarEventResponse, status_code=201)
def create_event(
    event: CalendarEventCreate,
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    if not event.title.strip():
        raise ValidationError("Title is required", field="title")
    _check_window(event.start, event.end)
    return calendar.create_event(_calendar_id(family, event.calendar_id), event)


@router.put("/events/{event_id}", response_model=CalendarEventResponse)
def update_event(
    event_id: str,
    event: CalendarEventBase,
    calendar_id: str | None = Query(None),
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    if not event.title.strip():
        raise ValidationError("Title is required", field="title")
    _check_window(event.start, event.end)
    return calendar.update_event(_calendar_id(family, calendar_id), event_id, event)


@router.delete("/events/{event_id}", status_code=204)
def delete_event(
    event_id: str,
    calendar_id: str | None = Query(None),
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    calendar: CalendarClient = Depends(get_calendar_client),
):
    calendar.delete_event(_calendar_id(family, calendar_id), event_id)
    return None
