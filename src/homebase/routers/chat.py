"""Family assistant chat router for Homebase."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from homebase.assistant import Assistant
from homebase.auth import get_current_user, get_family, require_member
from homebase.calendar_client import CalendarClient
from homebase.config import AppSettings
from homebase.conversation import clear_history, load_history, send_message
from homebase.database import get_db
from homebase.dependencies import get_assistant, get_optional_calendar_client, get_settings
from homebase.errors import ValidationError
from homebase.models import Family, FamilyMember, UserProfile
from homebase.schemas import ChatMessage, ChatSend, ChatTurnResponse
from homebase.utils.timezone import now_utc

router = APIRouter(prefix="/api/families/{family_id}/chat", tags=["chat"])


@router.get("", response_model=list[ChatMessage])
def get_history(
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    settings: AppSettings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Recent conversation as alternating user/assistant messages."""
    return load_history(db, family.id, settings.chat_history_limit)


@router.post("", response_model=ChatTurnResponse)
def post_message(
    payload: ChatSend,
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    assistant: Assistant = Depends(get_assistant),
    calendar: CalendarClient | None = Depends(get_optional_calendar_client),
    db: Session = Depends(get_db),
):
    """Send a message to the assistant and get its reply."""
    content = payload.content.strip()
    if not content:
        raise ValidationError("Message is required", field="content")
    now = now_utc().astimezone(settings.tz)
    return send_message(db, family, user, content, assistant, calendar, settings, now)


@router.delete("", status_code=204)
def clear_chat(
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Forget the caller's own turns in this family."""
    clear_history(db, family.id, user.user_id)
    return None
