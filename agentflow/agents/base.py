"""Agent contract and state machine shared by every concrete agent."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from ..errors import AgentError
from ..metrics import agent_execution_duration_seconds, agent_executions_total
from ..models import AgentRequest, AgentResponse, AgentState, AgentStatus, AgentType, CompletionOptions


logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """
    One pipeline step.

    Subclasses implement ``_execute``; ``execute`` owns the state transitions
    ``-> thinking -> success | error``. Agents may set ``working`` while they
    wait on the LLM. State is diagnostic only and last-write-wins under
    concurrent requests.
    """

    name: str
    display_name: str
    icon: str = ""
    agent_type: AgentType

    def __init__(self):
        self.llm = None
        self._state = AgentState()

    @property
    def role_label(self) -> str:
        """Prefix used for this agent's line in the aggregated reasoning."""
        return self.display_name.split()[0]

    def initialize(self, llm_manager) -> None:
        """Attach the provider manager used for LLM calls."""
        self.llm = llm_manager
        logger.debug(f"Agent {self.name} initialized")

    def get_state(self) -> AgentState:
        return self._state

    def _update_state(self, status: AgentStatus, current_task: Optional[str] = None) -> None:
        self._state = AgentState(status=status, current_task=current_task)

    def _require_llm(self):
        if self.llm is None:
            raise AgentError(
                f"Agent {self.name} has not been initialized with a provider manager",
                code="AGENT_NOT_INITIALIZED",
                agent=self.name,
            )
        return self.llm

    async def _call_llm(self, prompt: str, request: AgentRequest) -> str:
        """Call the LLM for this agent, marking the agent as working meanwhile."""
        llm = self._require_llm()
        options = request.options or CompletionOptions()
        if options.context is None and request.context:
            options = options.model_copy(update={"context": request.context})
        self._update_state(AgentStatus.working, self._state.current_task)
        response = await llm.call_llm(self.name, prompt, options)
        return response.text

    async def execute(self, request: AgentRequest) -> AgentResponse:
        """
        Run the agent on one request.

        Args:
            request: Prompt, optional context and extra data

        Returns:
            AgentResponse produced by the concrete agent

        Raises:
            Whatever the concrete agent raises, after moving to the error state
        """
        self._update_state(AgentStatus.thinking, request.prompt[:100])
        start = time.time()
        try:
            response = await self._execute(request)
        except Exception as e:
            self._update_state(AgentStatus.error, str(e)[:200])
            agent_executions_total.labels(agent=self.name, status="error").inc()
            raise
        finally:
            agent_execution_duration_seconds.labels(agent=self.name).observe(time.time() - start)

        self._update_state(AgentStatus.success)
        agent_executions_total.labels(agent=self.name, status="success").inc()
        return response

    @abstractmethod
    async def _execute(self, request: AgentRequest) -> AgentResponse:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} [{self._state.status.value}]>"
