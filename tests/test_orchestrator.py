"""Tests for src.core.orchestrator — the Planner → Executor → Reviewer chain.

The LLM is always an AsyncMock; no provider SDK is touched.
"""

import json

import pytest
from pydantic import ValidationError
from unittest.mock import AsyncMock, MagicMock

from src.core.orchestrator import (
    APOLOGY,
    EXECUTION_FALLBACK,
    FAILURE_LOG,
    PLAN_FALLBACK,
    PLAN_STARTED,
    REVIEW_FALLBACK,
    AgentOrchestrator,
    EventDraft,
    ExecutionResult,
    TaskDraft,
    WorkflowFailure,
    WorkflowOutcome,
    WorkflowSuccess,
    _clean_llm_response,
    parse_execution_result,
)
from src.core.prompts import ROLE_PROMPTS, executor_system_prompt
from src.data.models import AgentRole
from src.data.seed import initial_state


def _config():
    config = MagicMock()
    config.PLANNER_MAX_TOKENS = 100
    config.EXECUTOR_MAX_TOKENS = 200
    config.REVIEWER_MAX_TOKENS = 50
    return config


def _orchestrator(llm):
    return AgentOrchestrator(generate=llm, config=_config())


def _execution(**overrides):
    payload = {
        "reasoning": "Need a dentist slot.",
        "answer": "Booked the dentist at 16:00.",
        "newTasks": [],
        "newEvents": [{"title": "Dentist", "startTime": "16:00", "type": "health"}],
    }
    payload.update(overrides)
    return json.dumps(payload)


# ---------------------------------------------------------------------------
# parse_execution_result
# ---------------------------------------------------------------------------


class TestCleanLlmResponse:
    def test_strips_json_code_block(self):
        assert _clean_llm_response('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_code_block(self):
        assert _clean_llm_response('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_code_block(self):
        assert _clean_llm_response('  {"a": 1} ') == '{"a": 1}'


class TestParseExecutionResult:
    def test_full_payload(self):
        result = parse_execution_result(_execution(newTasks=[{"title": "Floss", "priority": "low"}]))
        assert result.reasoning == "Need a dentist slot."
        assert result.answer == "Booked the dentist at 16:00."
        assert result.new_tasks == [TaskDraft(title="Floss", priority="low")]
        assert result.new_events[0].start_time == "16:00"
        assert result.new_events[0].end_time is None
        assert result.new_events[0].type == "health"

    def test_event_draft_full_schema(self):
        raw = _execution(newEvents=[{
            "title": "Lunch", "startTime": "12:00", "endTime": "13:00",
            "type": "social", "location": "Cafe",
        }])
        event = parse_execution_result(raw).new_events[0]
        assert (event.end_time, event.type, event.location) == ("13:00", "social", "Cafe")

    def test_invalid_json_is_empty(self):
        assert parse_execution_result("Sure! Here you go") == ExecutionResult()

    def test_none_and_empty_are_empty(self):
        assert parse_execution_result(None) == ExecutionResult()
        assert parse_execution_result("   ") == ExecutionResult()

    def test_non_object_is_empty(self):
        assert parse_execution_result('[{"title": "x"}]') == ExecutionResult()

    def test_missing_fields_default(self):
        result = parse_execution_result('{"answer": "ok"}')
        assert result.reasoning == ""
        assert result.answer == "ok"
        assert result.new_tasks == []
        assert result.new_events == []

    def test_null_fields_default(self):
        result = parse_execution_result('{"reasoning": null, "answer": null, "newTasks": null}')
        assert result == ExecutionResult()

    def test_malformed_drafts_skipped_siblings_kept(self):
        raw = _execution(
            newTasks=[{"title": "Keep me"}, {"priority": "high"}, "not a dict", {"title": "   "}],
            newEvents=[{"title": "No start"}, {"title": "Gym", "startTime": "18:00"}],
        )
        result = parse_execution_result(raw)
        assert [t.title for t in result.new_tasks] == ["Keep me"]
        assert [e.title for e in result.new_events] == ["Gym"]

    def test_wrongly_typed_optional_fields_keep_draft(self):
        raw = _execution(
            newTasks=[{"title": "Pay rent", "priority": 1, "category": ["Home"], "dueDate": 20261101}],
            newEvents=[{"title": "Gym", "startTime": "18:00", "endTime": 19, "type": None, "location": 42}],
        )
        result = parse_execution_result(raw)
        assert result.new_tasks == [TaskDraft(title="Pay rent")]
        event = result.new_events[0]
        assert (event.title, event.start_time) == ("Gym", "18:00")
        assert (event.end_time, event.type, event.location) == (None, None, None)

    def test_non_string_start_time_drops_event(self):
        result = parse_execution_result(_execution(newEvents=[{"title": "Gym", "startTime": 1800}]))
        assert result.new_events == []

    def test_non_string_answer_and_reasoning_are_empty(self):
        result = parse_execution_result('{"reasoning": ["a"], "answer": {"x": 1}}')
        assert result.reasoning == ""
        assert result.answer == ""

    def test_arrays_of_wrong_type_are_empty(self):
        result = parse_execution_result('{"answer": "a", "newTasks": "Buy milk", "newEvents": {}}')
        assert result.new_tasks == []
        assert result.new_events == []

    def test_code_fenced_payload(self):
        result = parse_execution_result("```json\n" + _execution() + "\n```")
        assert result.new_events[0].title == "Dentist"


# ---------------------------------------------------------------------------
# run_workflow — success path
# ---------------------------------------------------------------------------


class TestRunWorkflowSuccess:
    @pytest.mark.asyncio
    async def test_returns_review_text_and_drafts(self):
        llm = AsyncMock(side_effect=["Plan: add event", _execution(), "Your dentist is booked."])
        result = await _orchestrator(llm).run_workflow("Dentist at 4pm", initial_state())

        assert isinstance(result, WorkflowSuccess)
        assert result.kind == WorkflowOutcome.SUCCESS
        assert result.response == "Your dentist is booked."
        assert result.plan == "Plan: add event"
        assert result.reasoning == "Need a dentist slot."
        assert result.proposed_tasks == []
        assert [e.title for e in result.proposed_events] == ["Dentist"]

    @pytest.mark.asyncio
    async def test_log_sequence_roles(self):
        llm = AsyncMock(side_effect=["plan", _execution(), "final"])
        result = await _orchestrator(llm).run_workflow("hi", initial_state())

        assert [log.role for log in result.logs] == [
            AgentRole.PLANNER,
            AgentRole.PLANNER,
            AgentRole.MANAGER,
            AgentRole.EXECUTOR,
            AgentRole.REVIEWER,
            AgentRole.REVIEWER,
        ]
        assert result.logs[0].content == PLAN_STARTED
        assert result.logs[1].content == "plan"
        assert result.logs[3].content == "Need a dentist slot."
        assert result.logs[-1].content == "final"
        assert len({log.id for log in result.logs}) == len(result.logs)

    @pytest.mark.asyncio
    async def test_stages_chain_outputs(self):
        llm = AsyncMock(side_effect=["THE PLAN", _execution(answer="RAW ANSWER"), "final"])
        await _orchestrator(llm).run_workflow("Book dentist", initial_state())

        assert llm.await_count == 3
        plan_call, exec_call, review_call = llm.await_args_list

        assert "User Request: Book dentist" in plan_call.kwargs["user_message"]
        assert "Prepare weekly grocery list" in plan_call.kwargs["user_message"]
        assert "Morning Sync" in plan_call.kwargs["user_message"]
        assert plan_call.kwargs["max_tokens"] == 100
        assert plan_call.kwargs["system"] == ROLE_PROMPTS[AgentRole.PLANNER]

        assert "Strategy: THE PLAN" in exec_call.kwargs["user_message"]
        assert "User Query: Book dentist" in exec_call.kwargs["user_message"]
        assert exec_call.kwargs["json_output"] is True
        assert exec_call.kwargs["max_tokens"] == 200
        assert exec_call.kwargs["system"] == executor_system_prompt()

        assert review_call.kwargs["user_message"] == "Raw Execution Result: RAW ANSWER"
        assert review_call.kwargs["max_tokens"] == 50
        assert review_call.kwargs["system"] == ROLE_PROMPTS[AgentRole.REVIEWER]

    @pytest.mark.asyncio
    async def test_empty_stage_outputs_use_fallbacks(self):
        llm = AsyncMock(side_effect=["", "not json at all", "   "])
        result = await _orchestrator(llm).run_workflow("hello", initial_state())

        assert isinstance(result, WorkflowSuccess)
        assert result.response == REVIEW_FALLBACK
        assert result.logs[1].content == PLAN_FALLBACK
        assert result.logs[3].content == EXECUTION_FALLBACK
        assert result.logs[-1].content == REVIEW_FALLBACK
        assert result.proposed_tasks == []
        assert result.proposed_events == []

    @pytest.mark.asyncio
    async def test_fallback_plan_feeds_execution(self):
        llm = AsyncMock(side_effect=[None, _execution(), "ok"])
        await _orchestrator(llm).run_workflow("hello", initial_state())
        exec_call = llm.await_args_list[1]
        assert f"Strategy: {PLAN_FALLBACK}" in exec_call.kwargs["user_message"]

    @pytest.mark.asyncio
    async def test_snapshot_not_mutated(self):
        snapshot = initial_state()
        before = (len(snapshot.tasks), len(snapshot.events), len(snapshot.messages))
        llm = AsyncMock(side_effect=["plan", _execution(newTasks=[{"title": "X"}]), "ok"])
        await _orchestrator(llm).run_workflow("add X", snapshot)
        assert (len(snapshot.tasks), len(snapshot.events), len(snapshot.messages)) == before


# ---------------------------------------------------------------------------
# run_workflow — progress callback
# ---------------------------------------------------------------------------


class TestProgressCallback:
    @pytest.mark.asyncio
    async def test_sync_callback_sees_every_log_in_order(self):
        seen = []
        llm = AsyncMock(side_effect=["plan", _execution(), "final"])
        result = await _orchestrator(llm).run_workflow("hi", initial_state(), seen.append)
        assert seen == result.logs

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self):
        seen = []

        async def on_progress(log):
            seen.append(log.role)

        llm = AsyncMock(side_effect=["plan", _execution(), "final"])
        await _orchestrator(llm).run_workflow("hi", initial_state(), on_progress)
        assert len(seen) == 6

    @pytest.mark.asyncio
    async def test_logs_reported_before_next_stage(self):
        events = []

        async def llm(system, user_message, max_tokens=256, json_output=False):
            events.append("call")
            return {0: "plan", 1: _execution(), 2: "final"}[events.count("call") - 1]

        await _orchestrator(llm).run_workflow("hi", initial_state(), lambda log: events.append(log.role))
        assert events == [
            AgentRole.PLANNER, "call", AgentRole.PLANNER,
            AgentRole.MANAGER, "call", AgentRole.EXECUTOR,
            AgentRole.REVIEWER, "call", AgentRole.REVIEWER,
        ]

    @pytest.mark.asyncio
    async def test_callback_error_does_not_abort_run(self):
        def broken(log):
            raise RuntimeError("UI gone")

        llm = AsyncMock(side_effect=["plan", _execution(), "final"])
        result = await _orchestrator(llm).run_workflow("hi", initial_state(), broken)
        assert isinstance(result, WorkflowSuccess)
        assert result.response == "final"


# ---------------------------------------------------------------------------
# run_workflow — failure path
# ---------------------------------------------------------------------------


class TestRunWorkflowFailure:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("failing_stage", [0, 1, 2])
    async def test_any_stage_failure_returns_apology(self, failing_stage):
        outputs = ["plan", _execution(newTasks=[{"title": "X"}]), "final"]
        outputs[failing_stage] = ConnectionError("network down")
        llm = AsyncMock(side_effect=outputs)

        result = await _orchestrator(llm).run_workflow("hi", initial_state())

        assert isinstance(result, WorkflowFailure)
        assert result.kind == WorkflowOutcome.FAILURE
        assert result.response == APOLOGY
        assert result.proposed_tasks == []
        assert result.proposed_events == []
        assert "network down" in result.error
        assert result.logs[-1].role == AgentRole.REVIEWER
        assert result.logs[-1].content == FAILURE_LOG
        assert sum(1 for log in result.logs if log.content == FAILURE_LOG) == 1
        assert llm.await_count == failing_stage + 1

    @pytest.mark.asyncio
    async def test_failure_in_planner_keeps_trail(self):
        llm = AsyncMock(side_effect=RuntimeError("quota"))
        seen = []
        result = await _orchestrator(llm).run_workflow("hi", initial_state(), seen.append)

        assert [log.content for log in result.logs] == [PLAN_STARTED, FAILURE_LOG]
        assert seen == result.logs

    @pytest.mark.asyncio
    async def test_failure_in_review_logs(self):
        llm = AsyncMock(side_effect=["plan", _execution(), TimeoutError()])
        result = await _orchestrator(llm).run_workflow("hi", initial_state())
        assert [log.role for log in result.logs] == [
            AgentRole.PLANNER,
            AgentRole.PLANNER,
            AgentRole.MANAGER,
            AgentRole.EXECUTOR,
            AgentRole.REVIEWER,
            AgentRole.REVIEWER,
        ]
        assert result.logs[-1].content == FAILURE_LOG


class TestDefaultGenerator:
    def test_defaults_to_llm_complete(self):
        from src.core import llm

        orchestrator = AgentOrchestrator(config=_config())
        assert orchestrator._generate is llm.complete

    def test_defaults_to_global_settings(self):
        from src.config import settings

        orchestrator = AgentOrchestrator(generate=AsyncMock())
        assert orchestrator._config is settings


class TestDraftModels:
    def test_task_draft_by_alias_and_name(self):
        assert TaskDraft(dueDate="2026-01-01", title="a").due_date == "2026-01-01"
        assert TaskDraft(due_date="2026-01-01", title="a").due_date == "2026-01-01"

    def test_event_draft_requires_start(self):
        with pytest.raises(ValidationError):
            EventDraft(title="No start")

    def test_title_stripped(self):
        assert TaskDraft(title="  Buy milk ").title == "Buy milk"
