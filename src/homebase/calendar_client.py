"""Google Calendar client for Homebase.

Talks to the Calendar v3 REST API with the signed-in user's OAuth access
token. Events come back as CalendarEventResponse models so the routers and
the assistant consume one shape regardless of the raw payload.
"""

import logging
from datetime import datetime, time, timedelta
from enum import Enum
from urllib.parse import quote

import requests

from homebase.errors import AuthenticationError, CollaboratorError
from homebase.schemas import (
    CalendarEventBase,
    CalendarEventResponse,
    CalendarSummary,
    EventAttendee,
)
from homebase.utils.timezone import ensure_utc, week_bounds

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/calendar/v3"
DEFAULT_EVENT_COLOR = "#4285F4"


class EventColor(str, Enum):
    """Google Calendar event color ids."""

    LAVENDER = "1"
    SAGE = "2"
    GRAPE = "3"
    FLAMINGO = "4"
    BANANA = "5"
    TANGERINE = "6"
    PEACOCK = "7"
    GRAPHITE = "8"
    BLUEBERRY = "9"
    BASIL = "10"
    TOMATO = "11"


EVENT_COLOR_RGB = {
    EventColor.LAVENDER: "#7986CB",
    EventColor.SAGE: "#33B679",
    EventColor.GRAPE: "#8E24AA",
    EventColor.FLAMINGO: "#E67C73",
    EventColor.BANANA: "#F6BF26",
    EventColor.TANGERINE: "#F4511E",
    EventColor.PEACOCK: "#039BE5",
    EventColor.GRAPHITE: "#616161",
    EventColor.BLUEBERRY: "#3F51B5",
    EventColor.BASIL: "#0B8043",
    EventColor.TOMATO: "#D50000",
}


def event_color(color_id: str | None) -> str:
    """RGB hex for a Google color id, or the default blue when unmapped."""
    try:
        return EVENT_COLOR_RGB[EventColor(color_id)]
    except ValueError:
        return DEFAULT_EVENT_COLOR


def natural_date_range(query: str, now: datetime) -> tuple[datetime, datetime]:
    """Turn phrases like "tomorrow" or "this weekend" into a [start, end] window.

    Days are taken in ``now``'s timezone. Defaults to today.
    """
    query = query.lower()
    tz = now.tzinfo
    today = now.date()
    start_day = end_day = today

    if "tomorrow" in query:
        start_day = end_day = today + timedelta(days=1)
    elif "weekend" in query:
        # Saturday-Sunday; when already on the weekend, the next one
        weekday = today.weekday()  # Monday=0
        if weekday >= 5:
            days_to_saturday = 12 - weekday
        else:
            days_to_saturday = 5 - weekday
        start_day = today + timedelta(days=days_to_saturday)
        end_day = start_day + timedelta(days=1)
    elif "week" in query:
        start_day, end_day = week_bounds(today)
    elif "month" in query:
        start_day = today.replace(day=1)
        next_month = (start_day + timedelta(days=32)).replace(day=1)
        end_day = next_month - timedelta(days=1)

    start = datetime.combine(start_day, time.min, tzinfo=tz)
    end = datetime.combine(end_day, time.max, tzinfo=tz)
    return start, end


def _parse_when(when: dict) -> datetime:
    """Parse a Google start/end object; all-day events begin at midnight UTC."""
    if "dateTime" in when:
        return datetime.fromisoformat(when["dateTime"].replace("Z", "+00:00"))
    return ensure_utc(datetime.fromisoformat(when["date"]))


def event_from_google(calendar_id: str, item: dict) -> CalendarEventResponse:
    attendees = [
        EventAttendee(email=a["email"], display_name=a.get("displayName"))
        for a in item.get("attendees", [])
        if a.get("email")
    ]
    return CalendarEventResponse(
        id=item["id"],
        calendar_id=calendar_id,
        title=item.get("summary", "Untitled Event"),
        description=item.get("description"),
        start=_parse_when(item["start"]),
        end=_parse_when(item["end"]),
        location=item.get("location"),
        attendees=attendees or None,
        color_id=item.get("colorId"),
        color=event_color(item.get("colorId")),
    )


def event_to_google(event: CalendarEventBase) -> dict:
    body = {
        "summary": event.title,
        "start": {"dateTime": ensure_utc(event.start).isoformat()},
        "end": {"dateTime": ensure_utc(event.end).isoformat()},
    }
    if event.description:
        body["description"] = event.description
    if event.location:
        body["location"] = event.location
    if event.attendees:
        body["attendees"] = [
            {"email": a.email, **({"displayName": a.display_name} if a.display_name else {})}
            for a in event.attendees
        ]
    if event.color_id:
        body["colorId"] = event.color_id
    return body


class CalendarClient:
    """Thin wrapper over the Google Calendar REST API."""

    def __init__(self, access_token: str, session: requests.Session | None = None, timeout: int = 10):
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict | None:
        url = f"{API_BASE}{path}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.error("Calendar request %s %s failed: %s", method, path, exc)
            raise CollaboratorError("calendar", str(exc)) from exc

        if response.status_code == 401:
            raise AuthenticationError("Calendar provider token expired")
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            logger.error("Calendar API returned %s for %s %s", response.status_code, method, path)
            raise CollaboratorError("calendar", str(exc)) from exc

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def list_calendars(self) -> list[CalendarSummary]:
        data = self._request("GET", "/users/me/calendarList") or {}
        return [
            CalendarSummary(
                id=item["id"],
                summary=item.get("summary", item["id"]),
                primary=item.get("primary", False),
                background_color=item.get("backgroundColor"),
                foreground_color=item.get("foregroundColor"),
            )
            for item in data.get("items", [])
        ]

    def list_events(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
        max_results: int = 100,
    ) -> list[CalendarEventResponse]:
        """Events overlapping [time_min, time_max], recurring events expanded."""
        params = {
            "timeMin": ensure_utc(time_min).isoformat(),
            "timeMax": ensure_utc(time_max).isoformat(),
            "maxResults": max_results,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        data = self._request("GET", f"/calendars/{quote(calendar_id)}/events", params=params) or {}
        return [event_from_google(calendar_id, item) for item in data.get("items", [])]

    def create_event(self, calendar_id: str, event: CalendarEventBase) -> CalendarEventResponse:
        data = self._request(
            "POST", f"/calendars/{quote(calendar_id)}/events", json=event_to_google(event)
        )
        logger.info("Created event %s in calendar %s", data["id"], calendar_id)
        return event_from_google(calendar_id, data)

    def update_event(
        self, calendar_id: str, event_id: str, event: CalendarEventBase
    ) -> CalendarEventResponse:
        data = self._request(
            "PUT",
            f"/calendars/{quote(calendar_id)}/events/{quote(event_id)}",
            json=event_to_google(event),
        )
        return event_from_google(calendar_id, data)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._request("DELETE", f"/calendars/{quote(calendar_id)}/events/{quote(event_id)}")
        logger.info("Deleted event %s from calendar %s", event_id, calendar_id)
