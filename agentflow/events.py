"""
Lifecycle event bus.

Subscribers register per event name; ``emit`` never runs callbacks in the
caller's stack frame. Each emission is dispatched on a separate asyncio task
and every callback runs in isolation, so a failing subscriber is logged and
never reaches the emitter or its siblings.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from pydantic import BaseModel, Field

from .errors import ConfigurationError
from .models import AgentState, utcnow


logger = logging.getLogger(__name__)


class LifecycleEventName(str, Enum):
    """Event names; values match the names used by editor integrations."""
    agent_activated = "agentActivated"
    agent_complete = "agentComplete"
    agent_error = "agentError"
    agent_state_changed = "agentStateChanged"
    suggestion_generated = "suggestionGenerated"
    suggestion_accepted = "suggestionAccepted"
    suggestion_rejected = "suggestionRejected"


# Payloads
class LifecycleEvent(BaseModel):
    timestamp: datetime = Field(default_factory=utcnow)


class AgentLifecycleEvent(LifecycleEvent):
    agent: str
    data: Dict[str, Any] = Field(default_factory=dict)


class AgentStateChangedEvent(AgentLifecycleEvent):
    state: AgentState


class SuggestionLifecycleEvent(LifecycleEvent):
    id: str
    agent: str
    code: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


Callback = Callable[[Any], Any]


class LifecycleEventManager:
    """Pub/sub with deferred, fault-isolated dispatch."""

    def __init__(self):
        # dict keys act as an ordered set of callbacks per event
        self._listeners: Dict[LifecycleEventName, Dict[Callback, None]] = {}
        self._pending: Set[asyncio.Task] = set()

    @staticmethod
    def _resolve(event: str) -> LifecycleEventName:
        try:
            return LifecycleEventName(event)
        except ValueError:
            raise ConfigurationError(f"Unknown lifecycle event: {event}", data={"event": str(event)}) from None

    def on(self, event: str, callback: Callback) -> Callable[[], None]:
        """
        Subscribe to an event.

        Args:
            event: Event name (e.g. "agentActivated")
            callback: Sync or async callable receiving the payload

        Returns:
            Function that removes this subscription
        """
        name = self._resolve(event)
        self._listeners.setdefault(name, {})[callback] = None

        def unsubscribe() -> None:
            listeners = self._listeners.get(name)
            if listeners is not None:
                listeners.pop(callback, None)

        return unsubscribe

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(self._resolve(event), {}))

    def emit(self, event: str, payload: Any) -> None:
        """Schedule delivery of ``payload`` to every subscriber of ``event``."""
        name = self._resolve(event)
        if not self._listeners.get(name):
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping {name.value} event")
            return

        task = loop.create_task(self._dispatch(name, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dispatch(self, name: LifecycleEventName, payload: Any) -> None:
        listeners = list(self._listeners.get(name, {}))
        await asyncio.gather(*(self._invoke(name, cb, payload) for cb in listeners))

    async def _invoke(self, name: LifecycleEventName, callback: Callback, payload: Any) -> None:
        try:
            result = callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error in {name.value} event listener {callback!r}: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait until every scheduled dispatch has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def clear(self) -> None:
        self._listeners.clear()
