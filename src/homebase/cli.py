"""Homebase CLI commands."""

from datetime import timedelta

from homebase.chores import initial_assignment, next_due
from homebase.database import SessionLocal, init_db
from homebase.models import (
    ChatHistory,
    Chore,
    Family,
    FamilyMember,
    Frequency,
    Invitation,
    Priority,
    Role,
    Setting,
    Todo,
    TodoStatus,
    UserProfile,
)
from homebase.routers.families import CREATOR_COLOR, ROLE_COLORS
from homebase.utils.timezone import now_utc


def seed():
    """Seed the database with a sample family for development."""
    init_db()
    db = SessionLocal()

    try:
        # Clear existing data
        for model in (ChatHistory, Chore, Todo, Invitation, FamilyMember, Family, UserProfile, Setting):
            db.query(model).delete()
        db.commit()

        now = now_utc()

        # Sample people as the identity provider would report them
        profiles = [
            UserProfile(user_id="dev-mom", email="mom@example.com", full_name="Mom"),
            UserProfile(user_id="dev-dad", email="dad@example.com", full_name="Dad"),
            UserProfile(user_id="dev-emma", email="emma@example.com", full_name="Emma"),
            UserProfile(user_id="dev-jake", email="jake@example.com", full_name="Jake"),
        ]
        db.add_all(profiles)

        family = Family(name="The Sample Family", created_by="dev-mom")
        db.add(family)
        db.flush()  # Get IDs assigned

        roles = {
            "dev-mom": Role.PARENT,
            "dev-dad": Role.PARENT,
            "dev-emma": Role.CHILD,
            "dev-jake": Role.CHILD,
        }
        for profile in profiles:
            role = roles[profile.user_id]
            color = CREATOR_COLOR if profile.user_id == family.created_by else ROLE_COLORS[role]
            db.add(
                FamilyMember(
                    family_id=family.id,
                    user_id=profile.user_id,
                    email=profile.email,
                    role=role.value,
                    color=color,
                )
            )

        db.add(
            Invitation(
                family_id=family.id,
                email="grandma@example.com",
                role=Role.OTHER.value,
                expires_at=now + timedelta(days=7),
            )
        )

        todos = [
            Todo(
                family_id=family.id,
                title="Schedule dentist appointments",
                description="Need to book checkups for the whole family",
                priority=Priority.HIGH.value,
                due_date=now - timedelta(days=1),
                created_by="dev-mom",
            ),
            Todo(
                family_id=family.id,
                title="Plan weekend hike",
                description="Research trails and check weather forecast",
                assigned_to="dev-dad",
                due_date=now + timedelta(days=2),
                created_by="dev-mom",
            ),
            Todo(
                family_id=family.id,
                title="Return library books",
                assigned_to="dev-emma",
                priority=Priority.LOW.value,
                status=TodoStatus.IN_PROGRESS.value,
                due_date=now + timedelta(days=1),
                created_by="dev-dad",
            ),
            Todo(
                family_id=family.id,
                title="Finish reading chapter 3",
                description="Book club meets next week",
                assigned_to="dev-jake",
                created_by="dev-jake",
            ),
        ]
        db.add_all(todos)

        chore_specs = [
            ("Take out the trash", Frequency.WEEKLY, True, ["dev-emma", "dev-jake"], None),
            ("Feed the cat", Frequency.DAILY, True, ["dev-jake", "dev-emma", "dev-dad"], None),
            ("Change the furnace filter", Frequency.MONTHLY, False, None, "dev-dad"),
        ]
        chores = []
        for title, frequency, rotation, members, assignee in chore_specs:
            assigned_to, rotation_members, index = initial_assignment(rotation, members, assignee)
            chores.append(
                Chore(
                    family_id=family.id,
                    title=title,
                    frequency=frequency.value,
                    rotation=rotation,
                    rotation_members=rotation_members,
                    current_assignee_index=index,
                    assigned_to=assigned_to,
                    next_due=next_due(frequency, now),
                    created_by="dev-mom",
                )
            )
        db.add_all(chores)

        sample_settings = [
            Setting(key="local_timezone", value="America/Chicago"),
            Setting(key="llm_provider", value="openai"),
            Setting(key="llm_openai_base_url", value="http://localhost:1234/v1"),
            Setting(key="llm_openai_model", value="your-model-name"),
        ]
        db.add_all(sample_settings)

        db.commit()
        print("✅ Database seeded with sample data")
        print(f"   - 1 family with {len(profiles)} members and 1 pending invitation")
        print(f"   - {len(todos)} sample todos")
        print(f"   - {len(chores)} sample chores")
        print(f"   - {len(sample_settings)} settings")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
