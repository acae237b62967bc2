"""Tests for chat turns, history and the chat API."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from conftest import ALICE, BOB, MALLORY

from homebase.calendar_client import CalendarClient
from homebase.config import AppSettings
from homebase.conversation import (
    ERROR_REPLY,
    build_context,
    dispatch_command,
    event_from_command,
    load_history,
    send_message,
)
from homebase.dependencies import get_assistant, get_optional_calendar_client
from homebase.errors import CollaboratorError
from homebase.main import app
from homebase.models import ChatHistory, Chore, Todo, UserProfile
from homebase.schemas import CalendarCommand, CalendarEventResponse

NOW = datetime(2024, 6, 12, 15, 0, tzinfo=UTC)

CREATE_DETAILS = {
    "summary": "Dentist",
    "start": "2024-06-13T09:00:00+00:00",
    "end": "2024-06-13T10:00:00+00:00",
}


class FakeAssistant:
    """Stands in for the LLM: fixed command, echoing reply."""

    def __init__(self, command=None, reply="Sure thing.", fail_reply=False):
        self.command = command or CalendarCommand()
        self.reply = reply
        self.fail_reply = fail_reply
        self.seen_messages = None
        self.seen_context = None

    def extract_command(self, message, today):
        return self.command

    def generate_reply(self, messages, context):
        self.seen_messages = messages
        self.seen_context = context
        if self.fail_reply:
            raise CollaboratorError("llm", "overloaded")
        return self.reply


def _created_event():
    return CalendarEventResponse(
        id="evt1",
        calendar_id="primary",
        title="Dentist",
        start=datetime(2024, 6, 13, 9, 0, tzinfo=UTC),
        end=datetime(2024, 6, 13, 10, 0, tzinfo=UTC),
        color="#4285F4",
    )


@pytest.fixture
def calendar():
    fake = MagicMock(spec=CalendarClient)
    fake.list_events.return_value = []
    fake.create_event.return_value = _created_event()
    return fake


def family_user(db, user_id):
    return db.query(UserProfile).filter(UserProfile.user_id == user_id).one()


def _turn(db, family, user_id, message, response, created_at):
    db.add(
        ChatHistory(
            family_id=family.id,
            user_id=user_id,
            message=message,
            response=response,
            created_at=created_at,
        )
    )
    db.commit()


class TestHistory:
    def test_pairs_in_chronological_order(self, db, family):
        _turn(db, family, "alice", "first?", "one", NOW)
        _turn(db, family, "bob", "second?", "two", NOW + timedelta(minutes=1))

        history = load_history(db, family.id)

        assert [(m.role, m.content) for m in history] == [
            ("user", "first?"),
            ("assistant", "one"),
            ("user", "second?"),
            ("assistant", "two"),
        ]
        assert history[1].timestamp > history[0].timestamp

    def test_limit_keeps_most_recent_turns(self, db, family):
        for i in range(5):
            _turn(db, family, "alice", f"q{i}", f"a{i}", NOW + timedelta(minutes=i))

        history = load_history(db, family.id, limit=2)

        assert [m.content for m in history] == ["q3", "a3", "q4", "a4"]


class TestSendMessage:
    def test_reply_is_stored(self, db, family):
        user = family_user(db, "alice")
        assistant = FakeAssistant(reply="Bob has the trash.")

        turn = send_message(db, family, user, "Who has trash?", assistant, None, AppSettings(), NOW)

        assert turn.assistant_message.content == "Bob has the trash."
        assert turn.command == "none"
        row = db.query(ChatHistory).one()
        assert (row.user_id, row.message, row.response) == ("alice", "Who has trash?", "Bob has the trash.")

    def test_failed_reply_is_apology_and_not_stored(self, db, family):
        user = family_user(db, "alice")

        turn = send_message(
            db, family, user, "hi", FakeAssistant(fail_reply=True), None, AppSettings(), NOW
        )

        assert turn.assistant_message.content == ERROR_REPLY
        assert db.query(ChatHistory).count() == 0

    def test_only_recent_messages_sent_as_context(self, db, family):
        for i in range(8):
            _turn(db, family, "alice", f"q{i}", f"a{i}", NOW - timedelta(hours=8 - i))
        assistant = FakeAssistant()

        send_message(
            db, family, family_user(db, "alice"), "latest", assistant, None,
            AppSettings(chat_context_messages=4), NOW,
        )

        assert [m.content for m in assistant.seen_messages] == ["q6", "a6", "q7", "a7", "latest"]

    def test_create_command_adds_event(self, db, family, calendar):
        assistant = FakeAssistant(CalendarCommand(command="create", event_details=CREATE_DETAILS))

        turn = send_message(
            db, family, family_user(db, "alice"), "Add dentist tomorrow 9am", assistant, calendar,
            AppSettings(), NOW,
        )

        assert turn.command == "create"
        assert turn.created_event.id == "evt1"
        calendar_id, event = calendar.create_event.call_args.args
        assert calendar_id == "primary"
        assert event.title == "Dentist"

    def test_query_command_uses_requested_window(self, db, family, calendar):
        assistant = FakeAssistant(CalendarCommand(command="query"))

        send_message(
            db, family, family_user(db, "alice"), "What's on tomorrow?", assistant, calendar,
            AppSettings(), NOW,
        )

        start, end = calendar.list_events.call_args_list[-1].args[1:3]
        assert start.date().isoformat() == "2024-06-13"
        assert end.date().isoformat() == "2024-06-13"

    def test_calendar_failure_still_replies(self, db, family, calendar):
        calendar.list_events.side_effect = CollaboratorError("calendar", "down")
        assistant = FakeAssistant()

        turn = send_message(
            db, family, family_user(db, "alice"), "hi", assistant, calendar, AppSettings(), NOW
        )

        assert turn.assistant_message.content == "Sure thing."
        assert assistant.seen_context.events == []


class TestCommands:
    def test_incomplete_details_are_ignored(self, calendar):
        command = CalendarCommand(command="create", event_details={"summary": "No times"})
        assert event_from_command(command) is None
        assert dispatch_command(command, calendar, "primary") is None
        calendar.create_event.assert_not_called()

    def test_non_create_commands_do_nothing(self, calendar):
        command = CalendarCommand(command="delete", event_details=CREATE_DETAILS)
        assert dispatch_command(command, calendar, "primary") is None
        calendar.create_event.assert_not_called()

    def test_create_failure_returns_no_event(self, calendar):
        calendar.create_event.side_effect = CollaboratorError("calendar", "down")
        command = CalendarCommand(command="create", event_details=CREATE_DETAILS)
        assert dispatch_command(command, calendar, "primary") is None


def test_context_uses_display_names(db, family):
    db.add(Todo(family_id=family.id, title="Homework", assigned_to="bob", created_by="alice"))
    db.add(Chore(family_id=family.id, title="Trash", frequency="weekly", assigned_to="carol", created_by="alice"))
    db.commit()

    context = build_context(db, family, None, AppSettings(), NOW)

    assert context.family_name == "The Smiths"
    assert {m.name for m in context.family_members} == {"Alice", "Bob", "Carol"}
    assert context.todos[0].assigned_to == "Bob"
    assert context.chores[0].assigned_to == "Carol"
    assert context.today == "Wednesday, June 12, 2024"


class TestChatApi:
    @pytest.fixture
    def fake_assistant(self, client):
        assistant = FakeAssistant(reply="Hi there!")
        app.dependency_overrides[get_assistant] = lambda: assistant
        app.dependency_overrides[get_optional_calendar_client] = lambda: None
        return assistant

    def test_send_and_read_history(self, client, family, fake_assistant):
        url = f"/api/families/{family.id}/chat"

        response = client.post(url, json={"content": "Hello"}, headers=ALICE)

        assert response.status_code == 200
        assert response.json()["assistant_message"]["content"] == "Hi there!"
        history = client.get(url, headers=BOB).json()
        assert [m["role"] for m in history] == ["user", "assistant"]

    def test_empty_message_rejected(self, client, family, fake_assistant):
        response = client.post(f"/api/families/{family.id}/chat", json={"content": ""}, headers=ALICE)
        assert response.status_code == 422

    def test_blank_message_rejected_and_not_stored(self, client, family, fake_assistant, db):
        response = client.post(f"/api/families/{family.id}/chat", json={"content": "  \n "}, headers=ALICE)

        assert response.status_code == 422
        assert response.json()["field"] == "content"
        assert fake_assistant.seen_messages is None
        assert db.query(ChatHistory).count() == 0

    def test_outsider_forbidden(self, client, family, fake_assistant):
        response = client.post(
            f"/api/families/{family.id}/chat", json={"content": "hi"}, headers=MALLORY
        )
        assert response.status_code == 403

    def test_clear_only_removes_own_turns(self, client, family, fake_assistant, db):
        url = f"/api/families/{family.id}/chat"
        client.post(url, json={"content": "from alice"}, headers=ALICE)
        client.post(url, json={"content": "from bob"}, headers=BOB)

        assert client.delete(url, headers=ALICE).status_code == 204

        assert [row.user_id for row in db.query(ChatHistory).all()] == ["bob"]
