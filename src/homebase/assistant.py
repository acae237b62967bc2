"""Family assistant: reply generation and calendar command extraction.

Both operations go to the configured LLM provider. Replies are grounded in an
AssistantContext snapshot (family, members, upcoming events, todos, chores)
passed as plain JSON in the system prompt.
"""

import json
import logging
import re
from typing import Any

from pydantic import BaseModel

from homebase.config import AppSettings
from homebase.errors import CollaboratorError
from homebase.schemas import CalendarCommand, ChatMessage
from homebase.utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ContextMember(BaseModel):
    id: str
    name: str
    role: str


class ContextEvent(BaseModel):
    id: str
    summary: str
    start: str
    end: str
    attendees: list[str] | None = None


class ContextTodo(BaseModel):
    id: int
    title: str
    assigned_to: str | None = None
    due_date: str | None = None
    completed: bool


class ContextChore(BaseModel):
    id: int
    title: str
    assigned_to: str | None = None
    frequency: str
    next_due: str | None = None
    last_completed: str | None = None


class AssistantContext(BaseModel):
    """Serializable snapshot of the family's state for grounding replies."""

    family_name: str | None = None
    today: str | None = None
    family_members: list[ContextMember] = []
    events: list[ContextEvent] = []
    todos: list[ContextTodo] = []
    chores: list[ContextChore] = []


SYSTEM_PROMPT = """You are Homebase, a warm and practical assistant for a family.
You help the family coordinate their shared calendar, to-do list and chores.

Answer using only the family data below. If something is not in the data, say
so rather than guessing. Keep replies short and friendly, mention people by
name, and use plain text without HTML.

FAMILY DATA (JSON):
{context}"""

COMMAND_PROMPT = """Decide whether the message below asks to change or look up
the family calendar. Respond with ONLY a JSON object (no markdown fences) using
this exact schema:
{{
  "command": "create" | "update" | "delete" | "query" | "none",
  "eventDetails": {{
    "summary": "Event title",
    "description": "Optional details",
    "start": "ISO-8601 start with offset",
    "end": "ISO-8601 end with offset",
    "location": "Optional location",
    "attendees": [{{"email": "someone@example.com"}}]
  }} or null
}}

Today is {today}. Use "none" with null eventDetails for anything that is not
about the calendar.

MESSAGE:
{message}"""


def extract_json_object(text: str) -> dict | None:
    """Try to extract the first top-level JSON object from arbitrary text.

    Handles code fences and leading/trailing noise, and balances braces while
    being aware of strings and escapes.
    """
    if not text:
        return None

    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```[a-zA-Z0-9_-]*\n", "", text)
        text = re.sub(r"\n```\s*$", "", text)
        text = text.strip()

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_str = False
    esc = False
    end = None
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
        else:
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i + 1
                    break

    if end is None:
        return None
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError:
        return None


class Assistant:
    """LLM-backed assistant for one request."""

    def __init__(self, settings: AppSettings, client: Any = None):
        self.settings = settings
        self.provider = settings.llm_provider
        self.max_tokens = settings.llm_max_tokens

        if self.provider == "anthropic":
            self.model = settings.llm_anthropic_model
            if client is None:
                import anthropic

                client = anthropic.Anthropic(api_key=settings.llm_anthropic_api_key)
        else:
            self.model = settings.llm_openai_model
            if client is None:
                from openai import OpenAI

                client = OpenAI(
                    base_url=settings.llm_openai_base_url,
                    api_key=settings.llm_openai_api_key,
                )
        self.client = client

    def _call_llm(self, system: str, messages: list[dict]) -> str:
        """Call the configured LLM provider and return the response text."""
        try:
            if self.provider == "anthropic":
                response = self.client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=system,
                    messages=messages,
                )
                return response.content[0].text if response.content else ""

            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "system", "content": system}, *messages],
            )
            return response.choices[0].message.content if response.choices else ""
        except Exception as exc:
            logger.exception("LLM call to %s failed", self.provider)
            raise CollaboratorError("llm", str(exc)) from exc

    def generate_reply(self, messages: list[ChatMessage], context: AssistantContext) -> str:
        """Generate the assistant's next message for the conversation."""
        system = SYSTEM_PROMPT.format(context=context.model_dump_json(indent=2))
        history = [{"role": m.role, "content": m.content} for m in messages]
        return self._call_llm(system, history).strip()

    def extract_command(self, message: str, today: str | None = None) -> CalendarCommand:
        """Classify a message as a calendar command.

        ``today`` is the ISO date relative phrases resolve against, by default
        the current UTC date.
        Unparseable model output counts as "none"; provider failures propagate.
        """
        if today is None:
            today = now_utc().date().isoformat()
        prompt = COMMAND_PROMPT.format(message=message, today=today)
        response_text = self._call_llm(
            "You extract calendar commands as JSON.",
            [{"role": "user", "content": prompt}],
        )

        data = extract_json_object(response_text)
        if data is None:
            logger.warning("Could not parse calendar command from: %r", response_text)
            return CalendarCommand()

        command = data.get("command") or "none"
        if command not in ("create", "update", "delete", "query", "none"):
            logger.warning("Unknown calendar command %r", command)
            return CalendarCommand()

        details = data.get("eventDetails")
        if not isinstance(details, dict):
            details = None
        return CalendarCommand(command=command, event_details=details)
