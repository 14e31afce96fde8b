"""
OmniAgent — Data Models.

Plain records for the task list, the calendar, the chat transcript and the
agent trail. All of it lives in memory for the lifetime of a session; there
is no storage layer behind these dataclasses.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AgentRole(Enum):
    PLANNER = "Planner"
    MANAGER = "Manager"
    EXECUTOR = "Executor"
    REVIEWER = "Reviewer"


class Sender(Enum):
    USER = "user"
    ASSISTANT = "assistant"


TASK_PRIORITIES = ("low", "medium", "high")
EVENT_TYPES = ("work", "personal", "health", "social")


def new_id() -> str:
    """Return a fresh opaque id for tasks, events, messages and logs."""
    return uuid.uuid4().hex[:12]


@dataclass
class Task:
    """A to-do item on the dashboard."""

    id: str
    title: str
    completed: bool = False
    priority: str = "medium"          # one of TASK_PRIORITIES
    category: str = "General"
    due_date: str | None = None       # ISO date YYYY-MM-DD


@dataclass
class CalendarEvent:
    """A calendar entry. Times are opaque "HH:MM" strings; overlaps are allowed."""

    id: str
    title: str
    start_time: str
    end_time: str
    type: str = "work"                # one of EVENT_TYPES
    location: str | None = None


@dataclass
class AgentLog:
    """One progress entry emitted by the orchestrator during a run."""

    id: str
    role: AgentRole
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ChatMessage:
    id: str
    sender: Sender
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    logs: list[AgentLog] = field(default_factory=list)


@dataclass
class AppState:
    """Everything the user sees. Owned by the StateController."""

    tasks: list[Task] = field(default_factory=list)
    events: list[CalendarEvent] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=list)
    is_processing: bool = False
