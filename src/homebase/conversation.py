"""Chat turn orchestration for Homebase.

A turn: pull a calendar command out of the message, act on "create", gather
the family snapshot, ask the assistant for a reply, then store the pair.
"""

import logging
from datetime import datetime, timedelta

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from homebase.assistant import (
    Assistant,
    AssistantContext,
    ContextChore,
    ContextEvent,
    ContextMember,
    ContextTodo,
)
from homebase.calendar_client import CalendarClient, natural_date_range
from homebase.config import AppSettings
from homebase.directory import member_roster
from homebase.errors import AuthenticationError, CollaboratorError
from homebase.models import ChatHistory, Chore, Family, Todo, TodoStatus, UserProfile
from homebase.schemas import (
    CalendarCommand,
    CalendarEventBase,
    CalendarEventResponse,
    ChatMessage,
    ChatTurnResponse,
)
from homebase.utils.timezone import ensure_utc

logger = logging.getLogger(__name__)

ERROR_REPLY = "Sorry, I encountered an error while processing your request. Please try again later."
REQUIRED_EVENT_FIELDS = ("summary", "start", "end")


def load_history(db: Session, family_id: int, limit: int = 50) -> list[ChatMessage]:
    """The family's last ``limit`` turns as alternating user/assistant messages."""
    rows = (
        db.query(ChatHistory)
        .filter(ChatHistory.family_id == family_id)
        .order_by(ChatHistory.created_at.desc(), ChatHistory.id.desc())
        .limit(limit)
        .all()
    )
    messages = []
    for row in reversed(rows):
        ts = ensure_utc(row.created_at)
        messages.append(ChatMessage(role="user", content=row.message, timestamp=ts))
        messages.append(
            ChatMessage(
                role="assistant",
                content=row.response,
                timestamp=ts + timedelta(microseconds=1),
            )
        )
    return messages


def clear_history(db: Session, family_id: int, user_id: str) -> int:
    """Delete the caller's own turns in this family."""
    count = (
        db.query(ChatHistory)
        .filter(ChatHistory.family_id == family_id, ChatHistory.user_id == user_id)
        .delete()
    )
    db.commit()
    return count


def _events_for_context(events: list[CalendarEventResponse]) -> list[ContextEvent]:
    return [
        ContextEvent(
            id=e.id,
            summary=e.title,
            start=e.start.isoformat(),
            end=e.end.isoformat(),
            attendees=[a.display_name or a.email for a in e.attendees] if e.attendees else None,
        )
        for e in events
    ]


def _fetch_events(
    calendar: CalendarClient | None, calendar_id: str, start: datetime, end: datetime
) -> list[CalendarEventResponse]:
    """Events for grounding; a calendar failure leaves the snapshot without events."""
    if calendar is None:
        return []
    try:
        return calendar.list_events(calendar_id, start, end)
    except (CollaboratorError, AuthenticationError) as exc:
        logger.warning("Skipping calendar events in chat context: %s", exc)
        return []


def build_context(
    db: Session,
    family: Family,
    calendar: CalendarClient | None,
    settings: AppSettings,
    now: datetime,
) -> AssistantContext:
    """Snapshot of the family's members, upcoming events, todos and chores."""
    roster = member_roster(db, family.id)
    names = {m.user_id: m.display_name or m.email for m in roster}

    todos = (
        db.query(Todo)
        .filter(Todo.family_id == family.id)
        .order_by(Todo.due_date.asc().nulls_last())
        .all()
    )
    chores = db.query(Chore).filter(Chore.family_id == family.id).all()

    events = _fetch_events(
        calendar,
        family.primary_calendar_id or "primary",
        now,
        now + timedelta(days=settings.upcoming_event_days),
    )

    return AssistantContext(
        family_name=family.name,
        today=now.strftime("%A, %B %d, %Y"),
        family_members=[
            ContextMember(id=m.user_id, name=m.display_name or "Unknown", role=m.role.value)
            for m in roster
        ],
        events=_events_for_context(events),
        todos=[
            ContextTodo(
                id=t.id,
                title=t.title,
                assigned_to=names.get(t.assigned_to, t.assigned_to) if t.assigned_to else None,
                due_date=ensure_utc(t.due_date).isoformat() if t.due_date else None,
                completed=t.status == TodoStatus.COMPLETED.value,
            )
            for t in todos
        ],
        chores=[
            ContextChore(
                id=c.id,
                title=c.title,
                assigned_to=names.get(c.assigned_to, c.assigned_to) if c.assigned_to else None,
                frequency=c.frequency,
                next_due=ensure_utc(c.next_due).isoformat() if c.next_due else None,
                last_completed=ensure_utc(c.last_completed).isoformat() if c.last_completed else None,
            )
            for c in chores
        ],
    )


def event_from_command(command: CalendarCommand) -> CalendarEventBase | None:
    """Event to create for a "create" command, or None when details are missing."""
    details = command.event_details or {}
    if not all(details.get(field) for field in REQUIRED_EVENT_FIELDS):
        return None
    try:
        return CalendarEventBase(
            title=details["summary"],
            description=details.get("description"),
            start=details["start"],
            end=details["end"],
            location=details.get("location"),
            attendees=details.get("attendees"),
        )
    except PydanticValidationError as exc:
        logger.warning("Ignoring malformed event details %r: %s", details, exc)
        return None


def dispatch_command(
    command: CalendarCommand, calendar: CalendarClient | None, calendar_id: str
) -> CalendarEventResponse | None:
    """Act on a calendar command. Only "create" changes anything."""
    if command.command != "create" or calendar is None:
        return None
    event = event_from_command(command)
    if event is None:
        return None
    try:
        return calendar.create_event(calendar_id, event)
    except (CollaboratorError, AuthenticationError) as exc:
        logger.error("Failed to create event from chat: %s", exc)
        return None


def send_message(
    db: Session,
    family: Family,
    user: UserProfile,
    content: str,
    assistant: Assistant,
    calendar: CalendarClient | None,
    settings: AppSettings,
    now: datetime,
) -> ChatTurnResponse:
    """Run one chat turn and store it.

    A failure from the language model yields an apology message and nothing
    is stored.
    """
    user_message = ChatMessage(role="user", content=content, timestamp=now)
    calendar_id = family.primary_calendar_id or "primary"

    history = load_history(db, family.id, settings.chat_history_limit)
    history = history[-settings.chat_context_messages:] if settings.chat_context_messages else []

    try:
        command = assistant.extract_command(content, now.date().isoformat())
    except CollaboratorError as exc:
        logger.warning("Calendar command extraction failed: %s", exc)
        command = CalendarCommand()

    created_event = dispatch_command(command, calendar, calendar_id)

    context = build_context(db, family, calendar, settings, now)
    if command.command == "query":
        window_start, window_end = natural_date_range(content, now)
        context.events = _events_for_context(
            _fetch_events(calendar, calendar_id, window_start, window_end)
        )

    try:
        reply = assistant.generate_reply([*history, user_message], context)
    except CollaboratorError as exc:
        logger.error("Reply generation failed for family %s: %s", family.id, exc)
        return ChatTurnResponse(
            user_message=user_message,
            assistant_message=ChatMessage(role="assistant", content=ERROR_REPLY, timestamp=now),
            command=command.command,
            created_event=created_event,
        )

    db.add(
        ChatHistory(
            family_id=family.id,
            user_id=user.user_id,
            message=content,
            response=reply,
            created_at=ensure_utc(now),
        )
    )
    db.commit()

    return ChatTurnResponse(
        user_message=user_message,
        assistant_message=ChatMessage(role="assistant", content=reply, timestamp=now),
        command=command.command,
        created_event=created_event,
    )
