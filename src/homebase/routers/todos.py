"""Todos router for Homebase."""

from datetime import timedelta
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from homebase.auth import get_current_user, is_member, require_member
from homebase.config import AppSettings
from homebase.database import get_db
from homebase.dependencies import get_settings
from homebase.directory import todo_responses
from homebase.due_state import TODO_GROUP_LABELS, group_todos, sort_todos
from homebase.errors import ValidationError
from homebase.models import FamilyMember, Priority, Todo, TodoStatus, UserProfile
from homebase.schemas import UNSET, TodoCreate, TodoGroup, TodoResponse, TodoUpdate
from homebase.utils.timezone import ensure_utc, now_utc

router = APIRouter(prefix="/api/families/{family_id}/todos", tags=["todos"])

DUE_SOON_WINDOW = timedelta(hours=48)


def _get_todo(db: Session, family_id: int, todo_id: int) -> Todo:
    todo = db.query(Todo).filter(Todo.id == todo_id, Todo.family_id == family_id).first()
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return todo


def _check_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    return title


def _check_assignee(db: Session, family_id: int, assigned_to: str | None) -> None:
    if assigned_to and not is_member(db, family_id, assigned_to):
        raise ValidationError("Assignee is not a member of this family", field="assigned_to")


def filter_todos(
    todos: list[Todo],
    status: str | None = None,
    assigned_to: str | None = None,
    priority: str | None = None,
    due_soon: bool = False,
) -> list[Todo]:
    """Apply list filters. ``status="active"`` means anything not completed."""
    now = now_utc()
    result = []
    for todo in todos:
        if assigned_to is not None and todo.assigned_to != assigned_to:
            continue
        if status == "active" and todo.status == TodoStatus.COMPLETED.value:
            continue
        if status and status != "active" and todo.status != status:
            continue
        if priority and todo.priority != priority:
            continue
        if due_soon and (
            todo.due_date is None or ensure_utc(todo.due_date) - now > DUE_SOON_WINDOW
        ):
            continue
        result.append(todo)
    return result


def _query_todos(
    db: Session,
    family_id: int,
    user: UserProfile,
    status: str | None,
    assigned_to: str | None,
    mine: bool,
    priority: Priority | None,
    due_soon: bool,
) -> list[Todo]:
    todos = db.query(Todo).filter(Todo.family_id == family_id).all()
    return filter_todos(
        todos,
        status=status,
        assigned_to=user.user_id if mine else assigned_to,
        priority=priority.value if priority else None,
        due_soon=due_soon,
    )


@router.get("", response_model=list[TodoResponse])
def list_todos(
    family_id: int,
    status: Literal["pending", "in_progress", "completed", "active"] | None = Query(None),
    assigned_to: str | None = Query(None),
    mine: bool = Query(False, description="Only todos assigned to the caller"),
    priority: Priority | None = Query(None),
    due_soon: bool = Query(False, description="Only todos due within 48 hours"),
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List todos, incomplete first, then by due date, then by priority."""
    todos = _query_todos(db, family_id, user, status, assigned_to, mine, priority, due_soon)
    return todo_responses(db, sort_todos(todos))


@router.get("/grouped", response_model=list[TodoGroup])
def grouped_todos(
    family_id: int,
    status: Literal["pending", "in_progress", "completed", "active"] | None = Query(None),
    assigned_to: str | None = Query(None),
    mine: bool = Query(False),
    priority: Priority | None = Query(None),
    due_soon: bool = Query(False),
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    settings: AppSettings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Todos bucketed Overdue, Today, Tomorrow, This Week, Later, No Due Date."""
    todos = _query_todos(db, family_id, user, status, assigned_to, mine, priority, due_soon)
    now = now_utc().astimezone(settings.tz)
    return [
        TodoGroup(state=state.value, label=TODO_GROUP_LABELS[state], todos=todo_responses(db, items))
        for state, items in group_todos(todos, now)
    ]


@router.post("", response_model=TodoResponse, status_code=201)
def create_todo(
    family_id: int,
    todo: TodoCreate,
    _: FamilyMember = Depends(require_member),
    user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a new todo."""
    title = _check_title(todo.title)
    _check_assignee(db, family_id, todo.assigned_to)

    db_todo = Todo(
        family_id=family_id,
        title=title,
        description=todo.description,
        due_date=ensure_utc(todo.due_date) if todo.due_date else None,
        priority=todo.priority.value,
        status=todo.status.value,
        assigned_to=todo.assigned_to,
        created_by=user.user_id,
    )
    db.add(db_todo)
    db.commit()
    db.refresh(db_todo)
    return todo_responses(db, [db_todo])[0]


@router.get("/{todo_id}", response_model=TodoResponse)
def get_todo(
    family_id: int,
    todo_id: int,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    return todo_responses(db, [_get_todo(db, family_id, todo_id)])[0]


@router.put("/{todo_id}", response_model=TodoResponse)
def update_todo(
    family_id: int,
    todo_id: int,
    todo: TodoUpdate,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    """Update a todo."""
    db_todo = _get_todo(db, family_id, todo_id)

    # Update only provided fields
    if todo.title is not None:
        db_todo.title = _check_title(todo.title)
    if todo.description is not None:
        db_todo.description = todo.description
    if todo.due_date is not UNSET:
        db_todo.due_date = ensure_utc(todo.due_date) if todo.due_date else None
    if todo.priority is not None:
        db_todo.priority = todo.priority.value
    if todo.status is not None:
        db_todo.status = todo.status.value
    if todo.assigned_to is not UNSET:
        _check_assignee(db, family_id, todo.assigned_to)
        db_todo.assigned_to = todo.assigned_to

    db.commit()
    db.refresh(db_todo)
    return todo_responses(db, [db_todo])[0]


@router.post("/{todo_id}/toggle", response_model=TodoResponse)
def toggle_todo(
    family_id: int,
    todo_id: int,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    """Flip a todo between completed and pending."""
    db_todo = _get_todo(db, family_id, todo_id)
    if db_todo.status == TodoStatus.COMPLETED.value:
        db_todo.status = TodoStatus.PENDING.value
    else:
        db_todo.status = TodoStatus.COMPLETED.value
    db.commit()
    db.refresh(db_todo)
    return todo_responses(db, [db_todo])[0]


@router.delete("/{todo_id}", status_code=204)
def delete_todo(
    family_id: int,
    todo_id: int,
    _: FamilyMember = Depends(require_member),
    db: Session = Depends(get_db),
):
    """Delete a todo."""
    db_todo = _get_todo(db, family_id, todo_id)
    db.delete(db_todo)
    db.commit()
    return None
