"""
OmniAgent — Application State Controller.

Owns the mutable AppState and is the only place it changes. The orchestrator
gets a deep-copied snapshot; its drafts become real tasks, events and chat
messages here, in apply_workflow_result().
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING

from src.data.models import (
    EVENT_TYPES,
    TASK_PRIORITIES,
    AgentLog,
    AppState,
    CalendarEvent,
    ChatMessage,
    Sender,
    Task,
    new_id,
)

if TYPE_CHECKING:
    from src.core.orchestrator import EventDraft, TaskDraft, WorkflowResult

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY = "General"
DEFAULT_EVENT_TYPE = "work"
DEFAULT_END_TIME = "Noon"


def _normalize_choice(value: str | None, allowed: tuple[str, ...], default: str) -> str:
    if not value:
        return default
    value = value.strip().lower()
    return value if value in allowed else default


def task_from_draft(draft: TaskDraft) -> Task:
    """Materialize a draft: fresh id, not completed, defaults for missing fields."""
    return Task(
        id=new_id(),
        title=draft.title,
        completed=False,
        priority=_normalize_choice(draft.priority, TASK_PRIORITIES, DEFAULT_PRIORITY),
        category=(draft.category or "").strip() or DEFAULT_CATEGORY,
        due_date=draft.due_date,
    )


def event_from_draft(draft: EventDraft) -> CalendarEvent:
    """Materialize a draft: fresh id, placeholder end time and "work" type if absent."""
    return CalendarEvent(
        id=new_id(),
        title=draft.title,
        start_time=draft.start_time,
        end_time=(draft.end_time or "").strip() or DEFAULT_END_TIME,
        type=_normalize_choice(draft.type, EVENT_TYPES, DEFAULT_EVENT_TYPE),
        location=(draft.location or "").strip() or None,
    )


class StateController:
    """Mutation operations over one AppState.

    Not thread-safe; callers admit one orchestrator run at a time through
    begin_turn() / is_processing.
    """

    def __init__(self, state: AppState | None = None) -> None:
        if state is None:
            from src.data.seed import initial_state
            state = initial_state()
        self._state = state
        self._current_logs: list[AgentLog] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def current_logs(self) -> list[AgentLog]:
        """Logs of the latest (or in-flight) orchestrator run."""
        return list(self._current_logs)

    def snapshot(self) -> AppState:
        """Deep copy handed to the orchestrator; later mutations don't leak into it."""
        return copy.deepcopy(self._state)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def toggle_task(self, task_id: str) -> Task | None:
        """Flip ``completed`` on the matching task. Unknown ids are a no-op."""
        for task in self._state.tasks:
            if task.id == task_id:
                task.completed = not task.completed
                logger.info("Task %s marked %s", task_id, "done" if task.completed else "open")
                return task
        logger.info("toggle_task: no task with id %s", task_id)
        return None

    def add_task(self, draft: TaskDraft) -> Task:
        """Create a task from ``draft`` and put it first (newest-first)."""
        task = task_from_draft(draft)
        self._state.tasks.insert(0, task)
        logger.info("Added task %s: %s", task.id, task.title)
        return task

    def add_event(self, draft: EventDraft) -> CalendarEvent:
        """Create an event from ``draft`` and append it."""
        event = event_from_draft(draft)
        self._state.events.append(event)
        logger.info("Added event %s: %s at %s", event.id, event.title, event.start_time)
        return event

    # ------------------------------------------------------------------
    # Chat turn lifecycle
    # ------------------------------------------------------------------

    def begin_turn(self, text: str) -> ChatMessage | None:
        """Admit a new send: record the user message and raise is_processing.

        Returns None (and changes nothing) when a run is already in flight or
        the text is blank.
        """
        if self._state.is_processing:
            logger.warning("Send rejected: a workflow run is already in progress")
            return None
        if not text.strip():
            return None

        message = ChatMessage(id=new_id(), sender=Sender.USER, content=text)
        self._state.messages.append(message)
        self._state.is_processing = True
        self._current_logs = []
        return message

    def record_progress(self, log: AgentLog) -> None:
        self._current_logs.append(log)

    def cancel_turn(self) -> None:
        """Lower is_processing without a reply (the run was torn down mid-flight)."""
        self._state.is_processing = False

    def apply_workflow_result(self, result: WorkflowResult) -> ChatMessage:
        """Merge an orchestrator result into the state and end the turn.

        Drafts get the same ids and defaults as add_task / add_event, but are
        appended in the order the Executor proposed them.
        """
        for draft in result.proposed_tasks:
            self._state.tasks.append(task_from_draft(draft))
        for draft in result.proposed_events:
            self._state.events.append(event_from_draft(draft))

        reply = ChatMessage(
            id=new_id(),
            sender=Sender.ASSISTANT,
            content=result.response,
            logs=list(result.logs),
        )
        self._state.messages.append(reply)
        self._state.is_processing = False

        logger.info(
            "Applied workflow result (%s): +%d task(s), +%d event(s)",
            result.kind.value, len(result.proposed_tasks), len(result.proposed_events),
        )
        return reply

    # ------------------------------------------------------------------
    # Read helpers for the presentation layer
    # ------------------------------------------------------------------

    def pending_tasks(self) -> list[Task]:
        return [t for t in self._state.tasks if not t.completed]

    def events_by_type(self, event_type: str = "all") -> list[CalendarEvent]:
        """Events filtered by type; "all" returns every event."""
        if event_type == "all":
            return list(self._state.events)
        return [e for e in self._state.events if e.type == event_type]
