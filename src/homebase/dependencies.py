"""Dependency helpers shared across FastAPI routes."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from homebase.assistant import Assistant
from homebase.auth import get_current_user, get_provider_token
from homebase.calendar_client import CalendarClient
from homebase.config import AppSettings, load_settings
from homebase.database import get_db
from homebase.models import UserProfile


def get_settings(db: Session = Depends(get_db)) -> AppSettings:
    """Settings as of this request; DB edits apply without a restart."""
    return load_settings(db)


def get_assistant(settings: AppSettings = Depends(get_settings)) -> Assistant:
    return Assistant(settings)


def get_calendar_client(token: str = Depends(get_provider_token)) -> CalendarClient:
    return CalendarClient(token)


def get_optional_calendar_client(
    x_provider_token: str | None = Header(None),
) -> CalendarClient | None:
    """Calendar client when the caller has a Google token; chat works without one."""
    if not x_provider_token:
        return None
    return CalendarClient(x_provider_token)


def require_admin(
    user: UserProfile = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
) -> UserProfile:
    """Callers listed in ``admin_user_ids``, which only config.toml can set."""
    if user.user_id not in settings.admin_user_ids:
        raise HTTPException(status_code=403, detail="Only operators can manage settings")
    return user
