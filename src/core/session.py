"""
OmniAgent — Chat session.

The send boundary between a chat front-end and the agent pipeline: admits at
most one run at a time, feeds the run a state snapshot, and merges the result.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING

from src.core.orchestrator import AgentOrchestrator
from src.core.state_controller import StateController

if TYPE_CHECKING:
    from src.core.orchestrator import ProgressCallback, WorkflowResult
    from src.data.models import AgentLog

logger = logging.getLogger(__name__)


class AssistantSession:
    """One user's in-memory workspace: state controller plus orchestrator."""

    def __init__(
        self,
        controller: StateController | None = None,
        orchestrator: AgentOrchestrator | None = None,
    ) -> None:
        self.controller = controller or StateController()
        self.orchestrator = orchestrator or AgentOrchestrator()

    @property
    def is_processing(self) -> bool:
        return self.controller.is_processing

    async def send(self, text: str, on_progress: ProgressCallback | None = None) -> WorkflowResult | None:
        """Run the agent pipeline for ``text`` and merge the outcome.

        Returns None when the send is rejected (blank text, or a run is already
        in flight). Rejected sends are dropped, never queued.
        """
        if self.controller.begin_turn(text) is None:
            return None

        async def _progress(log: AgentLog) -> None:
            self.controller.record_progress(log)
            if on_progress is not None:
                pending = on_progress(log)
                if inspect.isawaitable(pending):
                    await pending

        snapshot = self.controller.snapshot()
        try:
            result = await self.orchestrator.run_workflow(text, snapshot, _progress)
        except BaseException:
            self.controller.cancel_turn()
            raise

        self.controller.apply_workflow_result(result)
        logger.info("Turn finished: %s", result.kind.value)
        return result
