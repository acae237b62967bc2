"""Settings router for Homebase."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from homebase.config import FILE_ONLY_KEYS, SECRET_KEYS, AppSettings
from homebase.database import get_db
from homebase.dependencies import require_admin
from homebase.errors import ValidationError
from homebase.models import Setting, UserProfile
from homebase.schemas import SettingsResponse, SettingsUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])

MASK = "********"


def _all_settings(db: Session) -> SettingsResponse:
    """Secrets are masked; the rest is returned verbatim."""
    rows = db.query(Setting).all()
    return SettingsResponse(
        settings={r.key: (MASK if r.key in SECRET_KEYS and r.value else r.value) for r in rows}
    )


@router.get("", response_model=SettingsResponse)
def get_settings(
    _: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Get all settings as a flat dict. Operators only."""
    return _all_settings(db)


@router.put("", response_model=SettingsResponse)
def update_settings(
    payload: SettingsUpdate,
    user: UserProfile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Bulk upsert settings. Sending the mask back leaves a secret unchanged."""
    unknown = set(payload.settings) - (set(AppSettings.model_fields) - FILE_ONLY_KEYS)
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}", field="settings")

    for key, value in payload.settings.items():
        if key in SECRET_KEYS and value == MASK:
            continue
        existing = db.query(Setting).filter(Setting.key == key).first()
        if existing:
            existing.value = value
        else:
            db.add(Setting(key=key, value=value))
    db.commit()
    logger.info("Settings %s updated by %s", sorted(payload.settings), user.user_id)

    return _all_settings(db)
