"""Chores router for Homebase."""

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from homebase.auth import get_current_user, is_member, require_member
from homebase.chores import MIN_ROTATION_MEMBERS, complete_chore, initial_assignment, next_due
from homebase.config import AppSettings
from homebase.database import get_db
from homebase.dependencies import get_settings
from homebase.directory import chore_responses
from homebase.due_state import (
    CHORE_GROUP_LABELS,
    classify_chore,
    completed_this_week,
    group_chores,
    sort_chores,
)
from homebase.errors import ValidationError
from homebase.models import Chore, FamilyMember, UserProfile
from homebase.schemas import UNSET, ChoreCreate, ChoreGroup, ChoreResponse, ChoreUpdate
from homebase.utils.timezone import ensure_utc, now_utc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/families/{family_id}/chores", tags=["chores"])


def _get_chore(db: Session, family_id: int, chore_id: int) -> Chore:
    chore = db.query(Chore).filter(Chore.id == chore_id, Chore.family_id == family_id).first()
    if not chore:
        raise HTTPException(status_code=404, detail="Chore not found")
    return chore


def validate_assignment(
    db: Session,
    family_id: int,
    rotation: bool,
    rotation_members: list[str] | None,
    assigned_to: str | None,
) -> None:
    """Rotation needs at least two distinct family members; assignees must belong to the family."""
    if rotation:
        members = rotation_members or []
        if len(members) < MIN_ROTATION_MEMBERS:
            raise ValidationError(
                "Rotation requires at least 2 family members", field="rotation_members"
            )
        if len(set(members)) != len(members):
            raise ValidationError("Rotation members must be distinct", field="rotation_members")
        for user_id in members:
            if not is_member(db, family_id, user_id):
                raise ValidationError(
                    "Rotation member is not in this family", field="rotation_members"
                )
    elif assigned_to and not is_member(db, family_id, assigned_to):
        raise ValidationError("Assignee is not a member of this family", field="assigned_to")


def filter_chores(chores: list[Chore], view: str, user_id: str, now: datetime) -> list[Chore]:
    """all, mine (assigned to caller), due (next_due has passed), completed (this week)."""
    if view == "mine":
        return [c for c in chores if c.assigned_to == user_id]
    if view == "due":
        return [c for c in chores if c.next_due and ensure_utc(c.next_due) <= now]
    if view == "completed":
        return [c for c in chores if completed_this_week(c.last_completed, now)]
    return list(chores)


@router.get("", response_model=list[ChoreResponse])
def list_chores(
    family_id: int,
    view: Literal["all", "mine", "due", "completed"] = Query("all"),
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """List chores by next due date, each tagged with its due state."""
    now = now_utc().astimezone(settings.tz)
    chores = db.query(Chore).filter(Chore.family_id == family_id).all()
    chores = sort_chores(filter_chores(chores, view, user.user_id, now))
    states = {c.id: classify_chore(c.next_due, c.last_completed, now).value for c in chores}
    return chore_responses(db, chores, states)


@router.get("/grouped", response_model=list[ChoreGroup])
def grouped_chores(
    family_id: int,
    view: Literal["all", "mine", "due", "completed"] = Query("all"),
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Chores bucketed Overdue, Due Today, Upcoming, No Due Date, Completed This Week."""
    now = now_utc().astimezone(settings.tz)
    chores = db.query(Chore).filter(Chore.family_id == family_id).all()
    groups = []
    for state, items in group_chores(filter_chores(chores, view, user.user_id, now), now):
        states = {c.id: state.value for c in items}
        groups.append(
            ChoreGroup(
                state=state.value,
                label=CHORE_GROUP_LABELS[state],
                chores=chore_responses(db, items, states),
            )
        )
    return groups


@router.post("", response_model=ChoreResponse, status_code=201)
def create_chore(
    family_id: int,
    chore: ChoreCreate,
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a chore; the first occurrence is due one period from now."""
    title = chore.title.strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    validate_assignment(db, family_id, chore.rotation, chore.rotation_members, chore.assigned_to)

    assigned_to, members, index = initial_assignment(
        chore.rotation, chore.rotation_members, chore.assigned_to
    )
    db_chore = Chore(
        family_id=family_id,
        title=title,
        description=chore.description,
        frequency=chore.frequency.value,
        rotation=chore.rotation,
        rotation_members=members,
        current_assignee_index=index,
        assigned_to=assigned_to,
        next_due=next_due(chore.frequency, now_utc()),
        last_completed=None,
        created_by=user.user_id,
    )
    db.add(db_chore)
    db.commit()
    db.refresh(db_chore)
    return chore_responses(db, [db_chore])[0]


@router.get("/{chore_id}", response_model=ChoreResponse)
def get_chore(
    family_id: int,
    chore_id: int,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    return chore_responses(db, [_get_chore(db, family_id, chore_id)])[0]


@router.put("/{chore_id}", response_model=ChoreResponse)
def update_chore(
    family_id: int,
    chore_id: int,
    chore: ChoreUpdate,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    """Update a chore.

    Assignment fields are re-derived together: editing the rotation resets it
    to the first member, and turning rotation off clears the rotation fields.
    A rotating chore's assignee cannot be edited directly.
    """
    db_chore = _get_chore(db, family_id, chore_id)

    if chore.title is not None:
        if not chore.title.strip():
            raise ValidationError("Title is required", field="title")
        db_chore.title = chore.title.strip()
    if chore.description is not None:
        db_chore.description = chore.description
    if chore.frequency is not None:
        db_chore.frequency = chore.frequency.value
    if chore.next_due is not UNSET:
        db_chore.next_due = ensure_utc(chore.next_due) if chore.next_due else None

    rotation_changed = chore.rotation is not None and chore.rotation != db_chore.rotation
    members_changed = chore.rotation_members is not UNSET
    assignee_changed = chore.assigned_to is not UNSET and chore.assigned_to != db_chore.assigned_to

    if rotation_changed or members_changed or assignee_changed:
        rotation = chore.rotation if chore.rotation is not None else db_chore.rotation
        members = chore.rotation_members if members_changed else db_chore.rotation_members
        assignee = chore.assigned_to if assignee_changed else db_chore.assigned_to
        validate_assignment(db, family_id, rotation, members, assignee)

        if rotation and not rotation_changed and not members_changed:
            raise ValidationError(
                "Assignee follows the rotation on a rotating chore", field="assigned_to"
            )
        (
            db_chore.assigned_to,
            db_chore.rotation_members,
            db_chore.current_assignee_index,
        ) = initial_assignment(rotation, members, assignee)
        db_chore.rotation = rotation

    db.commit()
    db.refresh(db_chore)
    return chore_responses(db, [db_chore])[0]


@router.post("/{chore_id}/complete", response_model=ChoreResponse)
def mark_chore_complete(
    family_id: int,
    chore_id: int,
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark a chore done: schedule the next occurrence and hand it to the next person.

    Last writer wins if two members complete the same chore at once.
    """
    db_chore = _get_chore(db, family_id, chore_id)
    completion = complete_chore(db_chore)
    completion.apply(db_chore)
    db.commit()
    db.refresh(db_chore)
    logger.info(
        "Chore %s completed by %s; next due %s, assigned to %s",
        chore_id,
        user.user_id,
        completion.next_due.isoformat(),
        completion.assigned_to,
    )
    return chore_responses(db, [db_chore])[0]


@router.delete("/{chore_id}", status_code=204)
def delete_chore(
    family_id: int,
    chore_id: int,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    db_chore = _get_chore(db, family_id, chore_id)
    db.delete(db_chore)
    db.commit()
    return None
