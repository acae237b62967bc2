"""Read-time due-state classification for chores and todos.

Nothing here is persisted: "overdue" is computed against the current moment
whenever a list is read. The same classification drives both grouping and
ordering of lists.
"""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TypeVar

from homebase.models import Chore, Priority, Todo, TodoStatus
from homebase.utils.timezone import ensure_utc, local_date, week_bounds

T = TypeVar("T")


class ChoreDueState(str, Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"
    NO_DUE_DATE = "no_due_date"
    RECENTLY_COMPLETED = "recently_completed"


class TodoDueState(str, Enum):
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    LATER = "later"
    NO_DUE_DATE = "no_due_date"


CHORE_GROUP_ORDER = [
    ChoreDueState.OVERDUE,
    ChoreDueState.DUE_TODAY,
    ChoreDueState.UPCOMING,
    ChoreDueState.NO_DUE_DATE,
    ChoreDueState.RECENTLY_COMPLETED,
]

TODO_GROUP_ORDER = [
    TodoDueState.OVERDUE,
    TodoDueState.TODAY,
    TodoDueState.TOMORROW,
    TodoDueState.THIS_WEEK,
    TodoDueState.LATER,
    TodoDueState.NO_DUE_DATE,
]

CHORE_GROUP_LABELS = {
    ChoreDueState.OVERDUE: "Overdue",
    ChoreDueState.DUE_TODAY: "Due Today",
    ChoreDueState.UPCOMING: "Upcoming",
    ChoreDueState.NO_DUE_DATE: "No Due Date",
    ChoreDueState.RECENTLY_COMPLETED: "Completed This Week",
}

TODO_GROUP_LABELS = {
    TodoDueState.OVERDUE: "Overdue",
    TodoDueState.TODAY: "Today",
    TodoDueState.TOMORROW: "Tomorrow",
    TodoDueState.THIS_WEEK: "This Week",
    TodoDueState.LATER: "Later",
    TodoDueState.NO_DUE_DATE: "No Due Date",
}

_PRIORITY_RANK = {Priority.HIGH.value: 0, Priority.MEDIUM.value: 1, Priority.LOW.value: 2}


def completed_this_week(last_completed: datetime | None, now: datetime) -> bool:
    """Whether ``last_completed`` falls in the Monday-Sunday week containing ``now``."""
    if last_completed is None:
        return False
    monday, sunday = week_bounds(now.date())
    return monday <= local_date(last_completed, now) <= sunday


def classify_chore(
    due: datetime | None, last_completed: datetime | None, now: datetime
) -> ChoreDueState:
    """Classify a chore relative to ``now``.

    A completion this week takes priority over any due-date check. Calendar
    days are evaluated in ``now``'s timezone.
    """
    if completed_this_week(last_completed, now):
        return ChoreDueState.RECENTLY_COMPLETED
    if due is None:
        return ChoreDueState.NO_DUE_DATE

    same_day = local_date(due, now) == now.date()
    if ensure_utc(due) < ensure_utc(now) and not same_day:
        return ChoreDueState.OVERDUE
    if same_day:
        return ChoreDueState.DUE_TODAY
    return ChoreDueState.UPCOMING


def classify_todo(due: datetime | None, status: str, now: datetime) -> TodoDueState:
    """Classify a todo on the Overdue/Today/Tomorrow/This Week/Later ladder.

    A completed todo is never overdue; a past completed todo lands in
    This Week.
    """
    if due is None:
        return TodoDueState.NO_DUE_DATE

    due_utc = ensure_utc(due)
    now_utc = ensure_utc(now)
    due_day = local_date(due, now)
    today = now.date()

    if due_utc < now_utc and due_day != today and status != TodoStatus.COMPLETED.value:
        return TodoDueState.OVERDUE
    if due_day == today:
        return TodoDueState.TODAY
    if due_day == today + timedelta(days=1):
        return TodoDueState.TOMORROW
    if due_utc < now_utc + timedelta(days=7):
        return TodoDueState.THIS_WEEK
    return TodoDueState.LATER


def _far_future() -> datetime:
    return datetime.max.replace(tzinfo=UTC)


def todo_sort_key(todo: Todo) -> tuple:
    """Incomplete first, then by due date (undated last), then by priority."""
    due = ensure_utc(todo.due_date) if todo.due_date else _far_future()
    return (
        todo.status == TodoStatus.COMPLETED.value,
        todo.due_date is None,
        due,
        _PRIORITY_RANK.get(todo.priority, 1),
    )


def chore_sort_key(chore: Chore) -> tuple:
    """By next due date (undated last), then by title."""
    due = ensure_utc(chore.next_due) if chore.next_due else _far_future()
    return (chore.next_due is None, due, chore.title.lower())


def sort_todos(todos: Iterable[Todo]) -> list[Todo]:
    return sorted(todos, key=todo_sort_key)


def sort_chores(chores: Iterable[Chore]) -> list[Chore]:
    return sorted(chores, key=chore_sort_key)


def _group(
    items: Iterable[T],
    classify: Callable[[T], Enum],
    order: list,
    sort_key: Callable[[T], tuple],
) -> list[tuple[Enum, list[T]]]:
    buckets: dict[Enum, list[T]] = {state: [] for state in order}
    for item in sorted(items, key=sort_key):
        buckets[classify(item)].append(item)
    return [(state, buckets[state]) for state in order if buckets[state]]


def group_chores(chores: Iterable[Chore], now: datetime) -> list[tuple[ChoreDueState, list[Chore]]]:
    """Group chores by due state in display order, dropping empty groups."""
    return _group(
        chores,
        lambda c: classify_chore(c.next_due, c.last_completed, now),
        CHORE_GROUP_ORDER,
        chore_sort_key,
    )


def group_todos(todos: Iterable[Todo], now: datetime) -> list[tuple[TodoDueState, list[Todo]]]:
    """Group todos by due state in display order, dropping empty groups."""
    return _group(
        todos,
        lambda t: classify_todo(t.due_date, t.status, now),
        TODO_GROUP_ORDER,
        todo_sort_key,
    )
