"""Homebase Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from homebase.models import Frequency, Priority, Role, TodoStatus

# Sentinel value to distinguish "field not provided" from "field set to None"
UNSET = object()

# Profiles


class UserProfileResponse(BaseModel):
    user_id: str
    email: str
    full_name: str
    avatar_url: str | None = None

    model_config = ConfigDict(from_attributes=True)


# Families


class FamilyCreate(BaseModel):
    name: str
    primary_calendar_id: str | None = None


class FamilyUpdate(BaseModel):
    name: str | None = None
    primary_calendar_id: str | None = UNSET


class FamilyResponse(BaseModel):
    id: int
    name: str
    created_by: str
    primary_calendar_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MeResponse(BaseModel):
    profile: UserProfileResponse
    families: list[FamilyResponse]


class FamilyMemberAdd(BaseModel):
    email: str
    role: Role = Role.OTHER


class FamilyMemberResponse(BaseModel):
    id: int
    family_id: int
    user_id: str
    email: str
    role: Role
    color: str | None = None
    display_name: str | None = None  # resolved from user_profiles
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationResponse(BaseModel):
    id: int
    family_id: int
    email: str
    role: Role
    expires_at: datetime
    accepted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MemberAddResult(BaseModel):
    """Either the new member or the invitation sent in their place."""

    member: FamilyMemberResponse | None = None
    invitation: InvitationResponse | None = None


# Todos


class TodoBase(BaseModel):
    title: str
    description: str | None = None
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    assigned_to: str | None = None  # user_id; None means "Everyone"


class TodoCreate(TodoBase):
    status: TodoStatus = TodoStatus.PENDING


class TodoUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    due_date: datetime | None = UNSET
    priority: Priority | None = None
    status: TodoStatus | None = None
    assigned_to: str | None = UNSET


class TodoResponse(TodoBase):
    id: int
    family_id: int
    status: TodoStatus
    created_by: str
    created_at: datetime
    assignee_name: str | None = None
    creator_name: str | None = None

    model_config = ConfigDict(from_attributes=True)


class TodoGroup(BaseModel):
    state: str
    label: str
    todos: list[TodoResponse]


# Chores


class ChoreBase(BaseModel):
    title: str
    description: str | None = None
    frequency: Frequency = Frequency.WEEKLY
    rotation: bool = False
    rotation_members: list[str] | None = None  # ordered user_ids
    assigned_to: str | None = None  # ignored under rotation


class ChoreCreate(ChoreBase):
    pass


class ChoreUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    frequency: Frequency | None = None
    rotation: bool | None = None
    rotation_members: list[str] | None = UNSET
    assigned_to: str | None = UNSET
    next_due: datetime | None = UNSET


class ChoreResponse(ChoreBase):
    id: int
    family_id: int
    current_assignee_index: int | None = None
    next_due: datetime | None = None
    last_completed: datetime | None = None
    created_by: str
    created_at: datetime
    assignee_name: str | None = None
    creator_name: str | None = None
    due_state: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ChoreGroup(BaseModel):
    state: str
    label: str
    chores: list[ChoreResponse]


# Calendar


class CalendarSummary(BaseModel):
    id: str
    summary: str
    primary: bool = False
    background_color: str | None = None
    foreground_color: str | None = None


class EventAttendee(BaseModel):
    email: str
    display_name: str | None = None


class CalendarEventBase(BaseModel):
    title: str
    description: str | None = None
    start: datetime
    end: datetime
    location: str | None = None
    attendees: list[EventAttendee] | None = None
    color_id: str | None = None


class CalendarEventCreate(CalendarEventBase):
    calendar_id: str | None = None  # defaults to the family's primary calendar


class CalendarEventResponse(CalendarEventBase):
    id: str
    calendar_id: str
    color: str  # resolved RGB hex


# Chat


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime | None = None


class ChatSend(BaseModel):
    content: str = Field(min_length=1)


class ChatTurnResponse(BaseModel):
    user_message: ChatMessage
    assistant_message: ChatMessage
    command: str | None = None
    created_event: CalendarEventResponse | None = None


class CalendarCommand(BaseModel):
    """Calendar intent pulled out of a free-text chat message."""

    command: Literal["create", "update", "delete", "query", "none"] = "none"
    event_details: dict[str, Any] | None = None


# Settings


class SettingsUpdate(BaseModel):
    """Bulk settings update as key/value pairs."""

    settings: dict[str, str]


class SettingsResponse(BaseModel):
    """All settings as a flat dict."""

    settings: dict[str, str]
