"""Chore recurrence and rotation for Homebase.

Completing a chore is the only write that derives two values from one event:
the next due date from the frequency, and the next assignee from the
rotation. Both are computed here as pure functions; the router persists the
result in a single commit.

Concurrent completions of the same chore are last-writer-wins. Two members
completing at once can advance the rotation twice.
"""

import calendar as cal_module
from dataclasses import dataclass
from datetime import datetime, timedelta

from homebase.models import Chore, Frequency
from homebase.utils.timezone import now_utc

MIN_ROTATION_MEMBERS = 2


def add_month(ts: datetime) -> datetime:
    """Advance one calendar month, clamping to the last day of the target month.

    2024-01-31 becomes 2024-02-29; time of day and tzinfo are kept.
    """
    if ts.month == 12:
        year, month = ts.year + 1, 1
    else:
        year, month = ts.year, ts.month + 1
    day = min(ts.day, cal_module.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


def next_due(frequency: Frequency | str, from_ts: datetime) -> datetime:
    """Get the next due timestamp after ``from_ts`` for the given frequency."""
    frequency = Frequency(frequency)
    if frequency == Frequency.DAILY:
        return from_ts + timedelta(days=1)
    elif frequency == Frequency.WEEKLY:
        return from_ts + timedelta(days=7)
    return add_month(from_ts)


def advance_rotation(members: list[str], current_index: int | None) -> tuple[int, str]:
    """Get the next (index, member) in a circular rotation.

    A rotation that has never been advanced starts at index 0.
    """
    if not members:
        raise ValueError("rotation has no members")
    if current_index is None:
        next_index = 0
    else:
        next_index = (current_index + 1) % len(members)
    return next_index, members[next_index]


@dataclass(frozen=True)
class ChoreCompletion:
    """Field values to write when a chore is marked done."""

    last_completed: datetime
    next_due: datetime
    assigned_to: str | None
    current_assignee_index: int | None

    def apply(self, chore: Chore) -> None:
        chore.last_completed = self.last_completed
        chore.next_due = self.next_due
        chore.assigned_to = self.assigned_to
        chore.current_assignee_index = self.current_assignee_index


def complete_chore(chore: Chore, now: datetime | None = None) -> ChoreCompletion:
    """Compute the state transition for completing ``chore`` at ``now``."""
    if now is None:
        now = now_utc()

    due = next_due(chore.frequency, now)

    if chore.rotation and chore.rotation_members:
        index, assignee = advance_rotation(chore.rotation_members, chore.current_assignee_index)
    else:
        index, assignee = chore.current_assignee_index, chore.assigned_to

    return ChoreCompletion(
        last_completed=now,
        next_due=due,
        assigned_to=assignee,
        current_assignee_index=index,
    )


def initial_assignment(
    rotation: bool, rotation_members: list[str] | None, assigned_to: str | None
) -> tuple[str | None, list[str] | None, int | None]:
    """Get (assigned_to, rotation_members, current_assignee_index) for a new or edited chore.

    Under rotation the assignee is always the member at the current index,
    starting from the first member. Without rotation the rotation fields are
    cleared.
    """
    if rotation:
        members = list(rotation_members or [])
        return members[0], members, 0
    return assigned_to, None, None


def drop_member(chore: Chore, user_id: str) -> bool:
    """Take a departing member off ``chore``; returns whether anything changed.

    They leave the rotation (which turns off below two members) and lose any
    direct assignment. A remaining assignee keeps their turn; a departing one
    hands it to the next member in line.
    """
    members = chore.rotation_members or []
    if chore.rotation and user_id in members:
        remaining = [m for m in members if m != user_id]
        if len(remaining) < MIN_ROTATION_MEMBERS:
            chore.rotation = False
            assignee = remaining[0] if remaining else None
            (
                chore.assigned_to,
                chore.rotation_members,
                chore.current_assignee_index,
            ) = initial_assignment(False, None, assignee)
        elif chore.assigned_to in remaining:
            chore.rotation_members = remaining
            chore.current_assignee_index = remaining.index(chore.assigned_to)
        else:
            # The departing assignee's turn passes to whoever followed them
            index = (chore.current_assignee_index or 0) % len(remaining)
            chore.rotation_members = remaining
            chore.current_assignee_index = index
            chore.assigned_to = remaining[index]
        return True
    if chore.assigned_to == user_id:
        chore.assigned_to = None
        return True
    return False
