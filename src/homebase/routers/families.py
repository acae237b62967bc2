"""Families, members and invitations router for Homebase."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from homebase.auth import get_current_user, get_family, require_member, require_parent
from homebase.chores import drop_member
from homebase.database import get_db
from homebase.directory import member_roster
from homebase.errors import ValidationError
from homebase.models import Chore, Family, FamilyMember, Invitation, Role, Todo, UserProfile
from homebase.schemas import (
    UNSET,
    FamilyCreate,
    FamilyMemberAdd,
    FamilyMemberResponse,
    FamilyResponse,
    FamilyUpdate,
    InvitationResponse,
    MeResponse,
    MemberAddResult,
    UserProfileResponse,
)
from homebase.utils.timezone import ensure_utc, now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["families"])

CREATOR_COLOR = "#4285F4"
ROLE_COLORS = {
    Role.PARENT: "#EA4335",
    Role.CHILD: "#34A853",
    Role.OTHER: "#FBBC05",
}
INVITATION_TTL = timedelta(days=7)


def _families_for(db: Session, user_id: str) -> list[Family]:
    return (
        db.query(Family)
        .join(FamilyMember, FamilyMember.family_id == Family.id)
        .filter(FamilyMember.user_id == user_id)
        .order_by(Family.created_at.asc())
        .all()
    )


@router.get("/me", response_model=MeResponse)
def get_me(user: UserProfile = Depends(get_current_user), db: Session = Depends(get_db)):
    """The caller's profile and the families they belong to."""
    return MeResponse(
        profile=UserProfileResponse.model_validate(user),
        families=[FamilyResponse.model_validate(f) for f in _families_for(db, user.user_id)],
    )


@router.get("/families", response_model=list[FamilyResponse])
def list_families(user: UserProfile = Depends(get_current_user), db: Session = Depends(get_db)):
    return _families_for(db, user.user_id)


@router.post("/families", response_model=FamilyResponse, status_code=201)
def create_family(
    family: FamilyCreate,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a family; the creator joins as a parent."""
    if not family.name.strip():
        raise ValidationError("Family name is required", field="name")

    db_family = Family(
        name=family.name.strip(),
        created_by=user.user_id,
        primary_calendar_id=family.primary_calendar_id,
    )
    db.add(db_family)
    db.flush()
    db.add(
        FamilyMember(
            family_id=db_family.id,
            user_id=user.user_id,
            email=user.email,
            role=Role.PARENT.value,
            color=CREATOR_COLOR,
        )
    )
    db.commit()
    db.refresh(db_family)
    logger.info("Family %s created by %s", db_family.id, user.user_id)
    return db_family


@router.get("/families/{family_id}", response_model=FamilyResponse)
def get_family_detail(
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
):
    return family


@router.put("/families/{family_id}", response_model=FamilyResponse)
def update_family(
    payload: FamilyUpdate,
    family: Family = Depends(get_family),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update a family. Only its creator may do this."""
    if family.created_by != user.user_id:
        raise HTTPException(status_code=403, detail="Only the family creator can update it")

    if payload.name is not None:
        if not payload.name.strip():
            raise ValidationError("Family name is required", field="name")
        family.name = payload.name.strip()
    if payload.primary_calendar_id is not UNSET:
        family.primary_calendar_id = payload.primary_calendar_id

    db.commit()
    db.refresh(family)
    return family


@router.get("/families/{family_id}/members", response_model=list[FamilyMemberResponse])
def list_members(
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    return member_roster(db, family.id)


@router.post("/families/{family_id}/members", response_model=MemberAddResult, status_code=201)
def add_member(
    payload: FamilyMemberAdd,
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_parent),
    db: Session = Depends(get_db),
):
    """Add someone by email: known users join directly, others get an invitation."""
    email = payload.email.strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", field="email")

    profile = db.query(UserProfile).filter(UserProfile.email == email).first()
    if profile is None:
        invitation = Invitation(
            family_id=family.id,
            email=email,
            role=payload.role.value,
            expires_at=now_utc() + INVITATION_TTL,
            accepted=False,
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
        logger.info("Invited %s to family %s", email, family.id)
        return MemberAddResult(invitation=InvitationResponse.model_validate(invitation))

    existing = (
        db.query(FamilyMember)
        .filter(FamilyMember.family_id == family.id, FamilyMember.user_id == profile.user_id)
        .first()
    )
    if existing:
        raise ValidationError("That person is already in this family", field="email")

    member = FamilyMember(
        family_id=family.id,
        user_id=profile.user_id,
        email=profile.email,
        role=payload.role.value,
        color=ROLE_COLORS[payload.role],
    )
    db.add(member)
    db.commit()
    db.refresh(member)

    response = FamilyMemberResponse.model_validate(member)
    response.display_name = profile.full_name
    return MemberAddResult(member=response)


@router.delete("/families/{family_id}/members/{member_id}", status_code=204)
def remove_member(
    member_id: int,
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_parent),
    db: Session = Depends(get_db),
):
    member = (
        db.query(FamilyMember)
        .filter(FamilyMember.id == member_id, FamilyMember.family_id == family.id)
        .first()
    )
    if not member:
        raise HTTPException(status_code=404, detail="Family member not found")

    # Nothing in the family may stay assigned to someone outside it
    chores = db.query(Chore).filter(Chore.family_id == family.id).all()
    changed = sum(drop_member(chore, member.user_id) for chore in chores)
    db.query(Todo).filter(
        Todo.family_id == family.id, Todo.assigned_to == member.user_id
    ).update({Todo.assigned_to: None}, synchronize_session="fetch")

    db.delete(member)
    db.commit()
    logger.info(
        "Removed %s from family %s; %d chores reassigned", member.user_id, family.id, changed
    )
    return None


@router.get("/families/{family_id}/invitations", response_model=list[InvitationResponse])
def list_invitations(
    family: Family = Depends(get_family),
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    return (
        db.query(Invitation)
        .filter(Invitation.family_id == family.id)
        .order_by(Invitation.created_at.desc())
        .all()
    )


@router.get("/invitations", response_model=list[InvitationResponse])
def my_invitations(user: UserProfile = Depends(get_current_user), db: Session = Depends(get_db)):
    """Open invitations addressed to the caller's email."""
    now = now_utc()
    invitations = (
        db.query(Invitation)
        .filter(Invitation.email == user.email, Invitation.accepted == False)  # noqa: E712
        .all()
    )
    return [i for i in invitations if ensure_utc(i.expires_at) > now]


@router.post("/invitations/{invitation_id}/accept", response_model=FamilyMemberResponse)
def accept_invitation(
    invitation_id: int,
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invitation = db.query(Invitation).filter(Invitation.id == invitation_id).first()
    if not invitation or invitation.email != user.email:
        raise HTTPException(status_code=404, detail="Invitation not found")
    if invitation.accepted:
        raise ValidationError("Invitation was already accepted")
    if ensure_utc(invitation.expires_at) <= now_utc():
        raise ValidationError("Invitation has expired")

    role = Role(invitation.role)
    member = (
        db.query(FamilyMember)
        .filter(FamilyMember.family_id == invitation.family_id, FamilyMember.user_id == user.user_id)
        .first()
    )
    if member is None:
        member = FamilyMember(
            family_id=invitation.family_id,
            user_id=user.user_id,
            email=user.email,
            role=role.value,
            color=ROLE_COLORS[role],
        )
        db.add(member)
    invitation.accepted = True
    db.commit()
    db.refresh(member)

    response = FamilyMemberResponse.model_validate(member)
    response.display_name = user.full_name
    return response
