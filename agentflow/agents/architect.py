"""
Architect Agent: project architecture analysis.

Scans the workspace manifests and file tree once per session and keeps the
result in an explicit cache cell, so repeated ``analyze_project`` calls
return the same object without rescanning.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import AgentRequest, AgentResponse, AgentStatus, AgentType, ProjectArchitecture
from ..storage import KeyValueStore
from .base import BaseAgent
from .pattern_detector import ManifestReader, ProjectPatternDetector
from .prompts import build_phase_section


logger = logging.getLogger(__name__)

FINGERPRINT_KEY = "architect:manifest_fingerprint"

# (substring(s) that must all appear in the context, pattern name)
CONTEXT_PATTERNS = [
    (("import React",), "React Component Pattern"),
    (("from 'react'",), "React Component Pattern"),
    (("class ", "(ABC)"), "Abstract Base Class Pattern"),
    (("@abstractmethod",), "Interface implementation (Adapter/Interface Pattern)"),
    (("implements ",), "Interface implementation (Adapter/Interface Pattern)"),
    (("_instance = None", "def get_instance"), "Singleton Pattern"),
    (("getInstance()",), "Singleton Pattern"),
    (("@dataclass",), "Dataclass Model Pattern"),
    (("BaseModel",), "Pydantic Model Pattern"),
    (("async def ", "await "), "Async I/O Pattern"),
    (("class ", "(Exception)"), "Custom Error Handling Pattern"),
]


def detect_context_patterns(context: str) -> List[str]:
    """Patterns visible in the loaded context, in rule order, without duplicates."""
    found: List[str] = []
    for needles, pattern in CONTEXT_PATTERNS:
        if pattern not in found and all(n in context for n in needles):
            found.append(pattern)
    return found


class ArchitectAgent(BaseAgent):
    """Identifies project stack, patterns and conventions."""

    name = "architect"
    display_name = "Architect Agent"
    icon = "🏛️"
    agent_type = AgentType.architect

    def __init__(
        self,
        workspace_root: Optional[str] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        store: Optional[KeyValueStore] = None,
        detector: Optional[ProjectPatternDetector] = None,
    ):
        from ..core.config import settings
        super().__init__()
        self.workspace_root = Path(workspace_root or settings.WORKSPACE_ROOT).resolve()
        self.overrides = overrides if overrides is not None else (settings.ARCHITECTURE_OVERRIDES or {})
        self.store = store
        self.detector = detector or ProjectPatternDetector()
        self.manifests = ManifestReader(self.workspace_root)
        self._cached_architecture: Optional[ProjectArchitecture] = None
        self.scan_count = 0
        self._scan_lock = asyncio.Lock()

    @property
    def is_cached(self) -> bool:
        return self._cached_architecture is not None

    async def analyze_project(self) -> ProjectArchitecture:
        """
        Return the project architecture, scanning only on a cache miss.

        Returns:
            The cached ProjectArchitecture (same object until invalidated)
        """
        if self._cached_architecture is not None:
            logger.debug("Project architecture served from cache")
            return self._cached_architecture

        # concurrent callers wait for the one scan in progress
        async with self._scan_lock:
            if self._cached_architecture is not None:
                return self._cached_architecture

            architecture = await asyncio.to_thread(self._scan)
            self._cached_architecture = architecture
            self.scan_count += 1

            if self.store is not None:
                fingerprint = await asyncio.to_thread(self.manifests.fingerprint)
                await self.store.set(FINGERPRINT_KEY, fingerprint)

        logger.info(
            f"Analyzed project at {self.workspace_root}: "
            f"frontend={architecture.tech_stack.frontend}, backend={architecture.tech_stack.backend}"
        )
        return architecture

    def _scan(self) -> ProjectArchitecture:
        deps = self.manifests.read_dependencies()
        architecture = self.detector.detect_tech_stack(deps)
        architecture.conventions = self.detector.detect_file_structure(self.workspace_root)
        return self._apply_overrides(architecture)

    def _apply_overrides(self, architecture: ProjectArchitecture) -> ProjectArchitecture:
        if not self.overrides:
            return architecture
        update = {}
        for field in ("tech_stack", "patterns", "conventions"):
            override = self.overrides.get(field)
            if override:
                current = getattr(architecture, field)
                update[field] = current.model_validate({**current.model_dump(), **override})
        return architecture.model_copy(update=update)

    def invalidate_cache(self) -> None:
        """Drop the cached architecture; the next analyze_project rescans."""
        if self._cached_architecture is not None:
            logger.info("Project architecture cache invalidated")
        self._cached_architecture = None

    async def invalidate_if_stale(self) -> bool:
        """
        Invalidate when the manifests changed since the last scan.

        Returns:
            True if the cache was invalidated
        """
        if self.store is None or self._cached_architecture is None:
            return False
        stored = await self.store.get(FINGERPRINT_KEY)
        current = await asyncio.to_thread(self.manifests.fingerprint)
        if stored == current:
            return False
        self.invalidate_cache()
        return True

    async def _execute(self, request: AgentRequest) -> AgentResponse:
        architecture = await self.analyze_project()
        self._update_state(AgentStatus.thinking, "Analyzing project patterns")

        patterns = detect_context_patterns(request.context or "")
        stack = architecture.tech_stack
        if stack.frontend and stack.frontend != "unknown":
            patterns.append(f"Project Stack: {stack.frontend}")
        if stack.backend and stack.backend != "none":
            patterns.append(f"Project Backend: {stack.backend}")

        if patterns:
            result = (
                "Detected Patterns:\n- " + "\n- ".join(patterns)
                + "\n\nRecommendation: When generating code, follow these established "
                "project conventions to ensure consistency and maintainability."
            )
        else:
            result = (
                "No clear architectural patterns detected in the current context. "
                "Applying generic clean code principles."
            )

        phase = build_phase_section(request.data.get("current_phase"))
        if phase:
            result += f"\n\n{phase}"

        return AgentResponse(
            result=result,
            reasoning=(
                "Analyzed the provided context and overall project architecture. "
                f"Identified {len(patterns)} distinct patterns."
            ),
            confidence=0.9,
        )
