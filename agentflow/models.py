"""Pydantic models for agent requests, responses and project analysis."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class AgentType(str, Enum):
    """Agent roles known to the orchestrator."""
    context = "context"
    architect = "architect"
    coder = "coder"
    reviewer = "reviewer"


class AgentStatus(str, Enum):
    """Agent state machine values."""
    idle = "idle"
    thinking = "thinking"
    working = "working"
    success = "success"
    error = "error"


# Agent I/O
class AgentRequest(BaseModel):
    """Input for one agent invocation."""
    prompt: str
    context: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    options: Optional["CompletionOptions"] = None


class AgentResponse(BaseModel):
    """Result of one agent invocation. Immutable once produced."""
    model_config = ConfigDict(frozen=True)

    result: str
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    alternatives: List[str] = Field(default_factory=list)


class AgentState(BaseModel):
    """Snapshot of an agent's display state."""
    model_config = ConfigDict(frozen=True)

    status: AgentStatus = AgentStatus.idle
    current_task: Optional[str] = None
    last_update: datetime = Field(default_factory=utcnow)


# Project architecture
class TechStack(BaseModel):
    frontend: Optional[str] = None
    backend: Optional[str] = None
    build: Optional[str] = None
    testing: Optional[str] = None


class ArchitecturePatterns(BaseModel):
    state_management: List[str] = Field(default_factory=list)
    api_style: List[str] = Field(default_factory=list)


class Conventions(BaseModel):
    naming: str = "camelCase"
    test_location: str = "co-located"


class ProjectArchitecture(BaseModel):
    """Detected stack, patterns and conventions of the workspace."""
    tech_stack: TechStack = Field(default_factory=TechStack)
    patterns: ArchitecturePatterns = Field(default_factory=ArchitecturePatterns)
    conventions: Conventions = Field(default_factory=Conventions)
    timestamp: datetime = Field(default_factory=utcnow)


# LLM completion types
class CompletionOptions(BaseModel):
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout: Optional[float] = None
    context: Optional[str] = None  # only used for cache keying


class TokenUsage(BaseModel):
    prompt: int = 0
    completion: int = 0
    total: int = 0


class CompletionResponse(BaseModel):
    text: str
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    model: str
    finish_reason: Optional[str] = None
    cost: float = 0.0


class ModelInfo(BaseModel):
    id: str
    name: str
    context_window: int


AgentRequest.model_rebuild()
