"""Caller identity and family scoping.

Sign-in itself happens at the identity provider in front of Homebase, which
forwards the authenticated subject in ``X-User-Id`` (plus ``X-User-Email`` and
``X-User-Name`` on first sight) and the user's Google OAuth token in
``X-Provider-Token``. A profile row is created the first time a subject is
seen.
"""

import logging

from fastapi import Depends, Header, HTTPException, Path
from sqlalchemy.orm import Session

from homebase.database import get_db
from homebase.errors import AuthenticationError
from homebase.models import Family, FamilyMember, Role, UserProfile

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: str | None = Header(None),
    x_user_email: str | None = Header(None),
    x_user_name: str | None = Header(None),
    db: Session = Depends(get_db),
) -> UserProfile:
    """Resolve the caller's profile, creating it on first sight."""
    if not x_user_id:
        raise AuthenticationError("No signed-in user")

    profile = db.query(UserProfile).filter(UserProfile.user_id == x_user_id).first()
    if profile is None:
        if not x_user_email:
            raise AuthenticationError("Identity provider did not supply an email")
        profile = UserProfile(
            user_id=x_user_id,
            email=x_user_email.strip().lower(),
            full_name=x_user_name or "User",
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        logger.info("Created profile for %s", x_user_id)
    return profile


def get_provider_token(x_provider_token: str | None = Header(None)) -> str:
    """Google OAuth access token for calendar calls."""
    if not x_provider_token:
        raise AuthenticationError("No calendar provider token available")
    return x_provider_token


def get_family(family_id: int = Path(...), db: Session = Depends(get_db)) -> Family:
    family = db.query(Family).filter(Family.id == family_id).first()
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    return family


def require_member(
    family: Family = Depends(get_family),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FamilyMember:
    """Reject callers who are not members of the family in the path."""
    membership = (
        db.query(FamilyMember)
        .filter(FamilyMember.family_id == family.id, FamilyMember.user_id == user.user_id)
        .first()
    )
    if not membership:
        raise HTTPException(status_code=403, detail="Not a member of this family")
    return membership


def require_parent(membership: FamilyMember = Depends(require_member)) -> FamilyMember:
    if membership.role != Role.PARENT.value:
        raise HTTPException(status_code=403, detail="Only parents can manage family members")
    return membership


def is_member(db: Session, family_id: int, user_id: str) -> bool:
    return (
        db.query(FamilyMember.id)
        .filter(FamilyMember.family_id == family_id, FamilyMember.user_id == user_id)
        .first()
        is not None
    )
