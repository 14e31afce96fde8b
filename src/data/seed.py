"""Built-in sample data every new session starts from."""

from __future__ import annotations

from src.data.models import AppState, CalendarEvent, ChatMessage, Sender, Task

WELCOME_MESSAGE = (
    "Hello! I am your OmniAgent. I coordinate multiple specialized agents "
    "to help you manage your day. How can I assist you today?"
)


def initial_tasks() -> list[Task]:
    return [
        Task(id="1", title="Prepare weekly grocery list", priority="medium", category="Personal"),
        Task(id="2", title="Review project milestones", completed=True, priority="high", category="Work"),
        Task(id="3", title="Schedule dental appointment", priority="low", category="Health"),
    ]


def initial_events() -> list[CalendarEvent]:
    return [
        CalendarEvent(id="e1", title="Morning Sync", start_time="09:00", end_time="09:30", type="work"),
        CalendarEvent(id="e2", title="Gym Session", start_time="17:30", end_time="18:30", type="health"),
        CalendarEvent(id="e3", title="Dinner with Sarah", start_time="19:30", end_time="21:00", type="social"),
    ]


def initial_state() -> AppState:
    """Return a fresh AppState seeded with the sample tasks, events and greeting.

    Each call builds new objects, so sessions never share mutable records.
    """
    return AppState(
        tasks=initial_tasks(),
        events=initial_events(),
        messages=[ChatMessage(id="1", sender=Sender.ASSISTANT, content=WELCOME_MESSAGE)],
    )
