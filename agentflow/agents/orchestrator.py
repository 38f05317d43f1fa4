"""
Agent Orchestrator: drives the context -> architect -> coder -> reviewer pipeline.

Flow for one request:
1. Context agent (if registered) loads workspace files
2. Architect agent (if registered and the prompt asks for it) analyzes the project
3. Coder agent implements the request with the architecture in ``data``
4. Reviewer agent (if registered) reviews the code; advisory only
5. The coder's result is returned with every agent's reasoning attached

Any agent failure aborts the pipeline and is re-raised to the caller.
There is no retry at this layer and no lock across concurrent requests.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..errors import AgentError
from ..events import (
    AgentLifecycleEvent,
    AgentStateChangedEvent,
    LifecycleEventManager,
    LifecycleEventName,
    SuggestionLifecycleEvent,
)
from ..history import DecisionHistory, DecisionRecord, DecisionStatus, DecisionType
from ..metrics import pipeline_runs_total
from ..models import AgentRequest, AgentResponse, AgentType
from .base import BaseAgent


logger = logging.getLogger(__name__)

ARCHITECTURE_KEYWORDS = ("architecture", "design", "structure", "refactor", "pattern", "setup", "scaffold")


def needs_architecture(prompt: str) -> bool:
    """True when the prompt mentions any architecture keyword (case-insensitive)."""
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in ARCHITECTURE_KEYWORDS)


class AgentOrchestrator:
    """Runs the agent pipeline for user requests."""

    name = "orchestrator"

    def __init__(
        self,
        events: Optional[LifecycleEventManager] = None,
        history: Optional[DecisionHistory] = None,
    ):
        self.events = events or LifecycleEventManager()
        self.history = history or DecisionHistory()
        self._agents: Dict[str, BaseAgent] = {}

    def register_agent(self, agent: BaseAgent) -> None:
        """Add or replace an agent, keyed by its name."""
        self._agents[agent.name] = agent
        logger.debug(f"Registered agent {agent.name}")

    def get_agent(self, name: str) -> Optional[BaseAgent]:
        return self._agents.get(name)

    @property
    def agents(self) -> List[BaseAgent]:
        return list(self._agents.values())

    async def process_user_request(self, prompt: str, data: Optional[Dict[str, Any]] = None) -> AgentResponse:
        """
        Run the pipeline for one request.

        Args:
            prompt: User's request text
            data: Extra request data (active_file, open_files, current_phase, ...)

        Returns:
            Aggregated AgentResponse carrying the coder's result and confidence

        Raises:
            AgentError: NO_IMPLEMENTER if no coder agent is registered
            Any error raised by an agent, after the agentError event is emitted
        """
        data = dict(data or {})
        coder = self.get_agent(AgentType.coder.value)
        if coder is None:
            pipeline_runs_total.labels(status="failed").inc()
            raise AgentError("No implementer agent registered", code="NO_IMPLEMENTER")

        steps: List[Tuple[BaseAgent, AgentResponse]] = []
        try:
            response = await self._run_pipeline(prompt, data, coder, steps)
        except Exception as e:
            failed_after = [agent.name for agent, _ in steps]
            self.history.record(
                DecisionType.alert,
                summary=f"Request failed: {prompt}",
                agent=self.name,
                status=DecisionStatus.resolved,
                details={"error": str(e), "code": getattr(e, "code", None), "completed_agents": failed_after},
            )
            pipeline_runs_total.labels(status="failed").inc()
            logger.warning(f"Pipeline failed after {failed_after or 'no agents'}: {e}")
            raise

        record = self.history.record(
            DecisionType.decision,
            summary=f"Processed request: {prompt}",
            agent=self.name,
            details={
                "agents": [agent.name for agent, _ in steps],
                "confidence": response.confidence,
            },
        )
        self.events.emit(
            LifecycleEventName.suggestion_generated,
            SuggestionLifecycleEvent(
                id=record.id,
                agent=coder.name,
                code=response.result,
                data={"reasoning": response.reasoning, "confidence": response.confidence},
            ),
        )
        pipeline_runs_total.labels(status="completed").inc()
        return response

    async def _run_pipeline(
        self,
        prompt: str,
        data: Dict[str, Any],
        coder: BaseAgent,
        steps: List[Tuple[BaseAgent, AgentResponse]],
    ) -> AgentResponse:
        context: Optional[str] = None
        context_agent = self.get_agent(AgentType.context.value)
        if context_agent is not None:
            context_response = await self._run_agent(context_agent, AgentRequest(prompt=prompt, data=data))
            steps.append((context_agent, context_response))
            context = context_response.result or None

        architecture = None
        architect = self.get_agent(AgentType.architect.value)
        if architect is not None and needs_architecture(prompt):
            request = AgentRequest(prompt=prompt, context=context, data=data)
            steps.append((architect, await self._run_agent(architect, request)))
            architecture = await architect.analyze_project()

        coder_data = dict(data)
        if architecture is not None:
            coder_data["architecture"] = architecture
        coder_response = await self._run_agent(
            coder, AgentRequest(prompt=prompt, context=context, data=coder_data)
        )
        steps.append((coder, coder_response))

        reviewer = self.get_agent(AgentType.reviewer.value)
        if reviewer is not None:
            review_request = AgentRequest(
                prompt=f"Review this code:\n{coder_response.result}",
                context=context,
                data={**data, "code": coder_response.result, "request": prompt},
            )
            steps.append((reviewer, await self._run_agent(reviewer, review_request)))

        reasoning = "\n".join(f"{agent.role_label}: {resp.reasoning}" for agent, resp in steps)
        return AgentResponse(
            result=coder_response.result,
            reasoning=reasoning,
            confidence=coder_response.confidence,
            alternatives=coder_response.alternatives,
        )

    async def _run_agent(self, agent: BaseAgent, request: AgentRequest) -> AgentResponse:
        """Execute one agent with start / complete|error / state-changed events."""
        self.events.emit(
            LifecycleEventName.agent_activated,
            AgentLifecycleEvent(agent=agent.name, data={"prompt": request.prompt}),
        )
        try:
            response = await agent.execute(request)
        except Exception as e:
            logger.error(f"Agent {agent.name} failed: {e}", exc_info=True)
            self.events.emit(
                LifecycleEventName.agent_error,
                AgentLifecycleEvent(agent=agent.name, data={"error": str(e), "code": getattr(e, "code", None)}),
            )
            self._emit_state(agent)
            raise

        self.events.emit(
            LifecycleEventName.agent_complete,
            AgentLifecycleEvent(agent=agent.name, data={"response": response.model_dump()}),
        )
        self._emit_state(agent)
        return response

    def _emit_state(self, agent: BaseAgent) -> None:
        self.events.emit(
            LifecycleEventName.agent_state_changed,
            AgentStateChangedEvent(agent=agent.name, state=agent.get_state()),
        )

    def accept_suggestion(self, suggestion_id: str) -> DecisionRecord:
        return self._resolve_suggestion(suggestion_id, accepted=True)

    def reject_suggestion(self, suggestion_id: str) -> DecisionRecord:
        return self._resolve_suggestion(suggestion_id, accepted=False)

    def _resolve_suggestion(self, suggestion_id: str, accepted: bool) -> DecisionRecord:
        original = self.history.get(suggestion_id)
        if original is None:
            raise AgentError(
                f"Suggestion {suggestion_id} not found",
                code="SUGGESTION_NOT_FOUND",
                data={"suggestion_id": suggestion_id},
            )

        status = DecisionStatus.accepted if accepted else DecisionStatus.rejected
        record = self.history.record(
            DecisionType.suggestion,
            summary=f"Suggestion {status.value}: {original.summary}",
            agent=AgentType.coder.value,
            status=status,
            details={"suggestion_id": suggestion_id},
        )
        event = LifecycleEventName.suggestion_accepted if accepted else LifecycleEventName.suggestion_rejected
        self.events.emit(
            event,
            SuggestionLifecycleEvent(id=suggestion_id, agent=AgentType.coder.value, data={"record_id": record.id}),
        )
        return record
