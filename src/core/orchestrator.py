"""
OmniAgent — Agent Orchestrator.

Chains three LLM calls, strictly in order:

    Planner  → strategy text for the request, given the current tasks/events
    Executor → structured JSON (reasoning, answer, new tasks, new events)
    Reviewer → polished user-facing reply built from the Executor's answer

Each stage reports AgentLog entries through a progress callback before the
next stage starts. The orchestrator never mutates application state; it
returns a WorkflowResult whose drafts the StateController merges.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.core.llm import complete
from src.core.prompts import ROLE_PROMPTS, executor_system_prompt
from src.data.models import AgentLog, AgentRole, new_id

if TYPE_CHECKING:
    from src.config import Settings
    from src.data.models import AppState
    from src.ports.llm_port import TextGenerator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AgentLog], "Awaitable[None] | None"]

# Fixed texts used when a stage comes back empty or the run fails
PLAN_STARTED = "Analyzing user request and state..."
PLAN_FALLBACK = "Decomposed into strategy: Fetch state, Process logic, Review."
EXECUTION_STARTED = "Retrieving relevant data..."
EXECUTION_FALLBACK = "Executed request logic."
REVIEW_STARTED = "Polishing final response..."
REVIEW_FALLBACK = "I've handled that for you."
FAILURE_LOG = "Error occurred during agent orchestration. Falling back to simple response."
APOLOGY = "I encountered an issue coordinating my internal agents. Please try again."


# ---------------------------------------------------------------------------
# Structured output contract for the Executor stage
# ---------------------------------------------------------------------------


class _Draft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class TaskDraft(_Draft):
    """A task proposed by the Executor (or typed by the user), before defaults.

    JSON example:
    {"title": "Buy milk", "priority": "low", "category": "Errands"}
    """
    priority: str | None = None
    category: str | None = None
    due_date: str | None = Field(default=None, alias="dueDate")

    @field_validator("priority", "category", "due_date", mode="before")
    @classmethod
    def drop_non_text(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class EventDraft(_Draft):
    """An event proposed by the Executor (or typed by the user), before defaults.

    JSON example:
    {"title": "Dentist", "startTime": "16:00", "endTime": "17:00",
     "type": "health", "location": "Main St"}
    """
    start_time: str = Field(alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")
    type: str | None = None
    location: str | None = None

    @field_validator("end_time", "type", "location", mode="before")
    @classmethod
    def drop_non_text(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class ExecutionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reasoning: str = ""
    answer: str = ""
    new_tasks: list[TaskDraft] = Field(default_factory=list, alias="newTasks")
    new_events: list[EventDraft] = Field(default_factory=list, alias="newEvents")


def _clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from LLM's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _collect_drafts(items: Any, model: type[_Draft]) -> list:
    """Validate each draft on its own; malformed entries are dropped, not fatal."""
    if not isinstance(items, list):
        if items is not None:
            logger.warning("Expected a list of %s, got %s", model.__name__, type(items).__name__)
        return []

    drafts = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning("Skipping non-dict %s: %s", model.__name__, item)
            continue
        try:
            drafts.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping malformed %s %s: %s", model.__name__, item, exc.errors())
    return drafts


def parse_execution_result(raw_text: str | None) -> ExecutionResult:
    """Parse the Executor's reply. Anything unusable becomes an empty result."""
    cleaned = _clean_llm_response(raw_text or "")
    if not cleaned:
        return ExecutionResult()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Executor output is not JSON: %s — raw: '%s'", exc, cleaned[:200])
        return ExecutionResult()

    if not isinstance(data, dict):
        logger.warning("Executor returned unexpected type: %s", type(data).__name__)
        return ExecutionResult()

    return ExecutionResult(
        reasoning=_as_text(data.get("reasoning")),
        answer=_as_text(data.get("answer")),
        new_tasks=_collect_drafts(data.get("newTasks"), TaskDraft),
        new_events=_collect_drafts(data.get("newEvents"), EventDraft),
    )


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


class WorkflowOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class WorkflowResult:
    kind: WorkflowOutcome
    response: str
    logs: list[AgentLog] = field(default_factory=list)
    proposed_tasks: list[TaskDraft] = field(default_factory=list)
    proposed_events: list[EventDraft] = field(default_factory=list)


@dataclass
class WorkflowSuccess(WorkflowResult):
    plan: str = ""
    reasoning: str = ""


@dataclass
class WorkflowFailure(WorkflowResult):
    error: str = ""


# ---------------------------------------------------------------------------
# AgentOrchestrator
# ---------------------------------------------------------------------------


def _serialize_state(snapshot: AppState) -> str:
    return json.dumps(
        {
            "tasks": [asdict(t) for t in snapshot.tasks],
            "events": [asdict(e) for e in snapshot.events],
        },
        ensure_ascii=False,
    )


class AgentOrchestrator:
    """Runs the Planner → Executor → Reviewer chain for one user message.

    Args:
        generate: Text-generation capability. Defaults to src.core.llm.complete.
        config: Settings supplying per-stage token budgets. Defaults to the
            global settings singleton.
    """

    def __init__(self, generate: TextGenerator | None = None, config: Settings | None = None) -> None:
        if config is None:
            from src.config import settings as config
        self._generate = generate or complete
        self._config = config

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _plan(self, user_input: str, snapshot: AppState) -> str:
        text = await self._generate(
            system=ROLE_PROMPTS[AgentRole.PLANNER],
            user_message=f"User Request: {user_input}\n\nCurrent App State: {_serialize_state(snapshot)}",
            max_tokens=self._config.PLANNER_MAX_TOKENS,
        )
        return (text or "").strip()

    async def _execute(self, plan: str, user_input: str) -> ExecutionResult:
        raw = await self._generate(
            system=executor_system_prompt(),
            user_message=f"Strategy: {plan}\nUser Query: {user_input}",
            max_tokens=self._config.EXECUTOR_MAX_TOKENS,
            json_output=True,
        )
        logger.debug("Executor raw response: %s", raw)
        return parse_execution_result(raw)

    async def _review(self, answer: str) -> str:
        text = await self._generate(
            system=ROLE_PROMPTS[AgentRole.REVIEWER],
            user_message=f"Raw Execution Result: {answer}",
            max_tokens=self._config.REVIEWER_MAX_TOKENS,
        )
        return (text or "").strip()

    # ------------------------------------------------------------------
    # Public: run one workflow
    # ------------------------------------------------------------------

    async def run_workflow(
        self,
        user_input: str,
        snapshot: AppState,
        on_progress: ProgressCallback | None = None,
    ) -> WorkflowResult:
        """Run all three stages for ``user_input`` against a read-only state snapshot.

        ``on_progress`` receives every AgentLog as soon as it is emitted. It may be
        a plain function or a coroutine function; either way it finishes before the
        next stage begins. Errors raised by the callback are logged and ignored.

        Never raises: any stage failure yields a WorkflowFailure carrying the
        logs emitted so far plus one Reviewer error entry.
        """
        logs: list[AgentLog] = []

        async def add_log(role: AgentRole, content: str) -> None:
            log = AgentLog(id=new_id(), role=role, content=content)
            logs.append(log)
            if on_progress is None:
                return
            try:
                pending = on_progress(log)
                if inspect.isawaitable(pending):
                    await pending
            except Exception as exc:
                logger.warning("Progress callback failed for %s log: %s", role.value, exc)

        try:
            await add_log(AgentRole.PLANNER, PLAN_STARTED)
            plan = await self._plan(user_input, snapshot) or PLAN_FALLBACK
            await add_log(AgentRole.PLANNER, plan)
            logger.info("Planner stage done (%d chars)", len(plan))

            await add_log(AgentRole.MANAGER, EXECUTION_STARTED)
            execution = await self._execute(plan, user_input)
            await add_log(AgentRole.EXECUTOR, execution.reasoning or EXECUTION_FALLBACK)
            logger.info(
                "Executor stage done: %d task draft(s), %d event draft(s)",
                len(execution.new_tasks), len(execution.new_events),
            )

            await add_log(AgentRole.REVIEWER, REVIEW_STARTED)
            response = await self._review(execution.answer) or REVIEW_FALLBACK
            await add_log(AgentRole.REVIEWER, response)
            logger.info("Reviewer stage done")

        except Exception as exc:
            logger.error("Workflow failed: %s", exc)
            await add_log(AgentRole.REVIEWER, FAILURE_LOG)
            return WorkflowFailure(
                kind=WorkflowOutcome.FAILURE,
                response=APOLOGY,
                logs=logs,
                error=str(exc),
            )

        return WorkflowSuccess(
            kind=WorkflowOutcome.SUCCESS,
            response=response,
            logs=logs,
            proposed_tasks=list(execution.new_tasks),
            proposed_events=list(execution.new_events),
            plan=plan,
            reasoning=execution.reasoning,
        )
