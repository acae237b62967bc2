"""Display-name resolution for user ids.

Rows store bare user ids; responses carry resolved names filled in by an
explicit join against user_profiles.
"""

from collections.abc import Iterable

from sqlalchemy.orm import Session

from homebase.models import Chore, FamilyMember, Todo, UserProfile
from homebase.schemas import ChoreResponse, FamilyMemberResponse, TodoResponse


def display_names(db: Session, user_ids: Iterable[str | None]) -> dict[str, str]:
    """Map each known user id to its profile's full name."""
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    rows = (
        db.query(UserProfile.user_id, UserProfile.full_name)
        .filter(UserProfile.user_id.in_(ids))
        .all()
    )
    return {user_id: full_name for user_id, full_name in rows}


def member_roster(db: Session, family_id: int) -> list[FamilyMemberResponse]:
    rows = (
        db.query(FamilyMember, UserProfile.full_name)
        .outerjoin(UserProfile, FamilyMember.user_id == UserProfile.user_id)
        .filter(FamilyMember.family_id == family_id)
        .order_by(FamilyMember.created_at.asc())
        .all()
    )
    roster = []
    for member, full_name in rows:
        response = FamilyMemberResponse.model_validate(member)
        response.display_name = full_name
        roster.append(response)
    return roster


def todo_responses(db: Session, todos: list[Todo]) -> list[TodoResponse]:
    names = display_names(db, [t.assigned_to for t in todos] + [t.created_by for t in todos])
    responses = []
    for todo in todos:
        response = TodoResponse.model_validate(todo)
        response.assignee_name = names.get(todo.assigned_to) if todo.assigned_to else None
        response.creator_name = names.get(todo.created_by)
        responses.append(response)
    return responses


def chore_responses(
    db: Session, chores: list[Chore], states: dict[int, str] | None = None
) -> list[ChoreResponse]:
    names = display_names(db, [c.assigned_to for c in chores] + [c.created_by for c in chores])
    responses = []
    for chore in chores:
        response = ChoreResponse.model_validate(chore)
        response.assignee_name = names.get(chore.assigned_to) if chore.assigned_to else None
        response.creator_name = names.get(chore.created_by)
        if states is not None:
            response.due_state = states.get(chore.id)
        responses.append(response)
    return responses
