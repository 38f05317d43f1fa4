"""
Pipeline agents.

Agents:
- Context: loads relevant workspace files
- Architect: detects project stack, patterns and conventions (cached)
- Coder: implements the request
- Reviewer: advisory review of the generated code
- Orchestrator: runs the pipeline
"""

from .architect import ArchitectAgent
from .base import BaseAgent
from .coder import CoderAgent, parse_code_output
from .context import ContextAgent, FileLoader, TokenOptimizer
from .orchestrator import ARCHITECTURE_KEYWORDS, AgentOrchestrator, needs_architecture
from .pattern_detector import ManifestReader, ProjectPatternDetector
from .reviewer import ReviewerAgent, analyze_code_quality, parse_review_output


__all__ = [
    "AgentOrchestrator",
    "ARCHITECTURE_KEYWORDS",
    "ArchitectAgent",
    "BaseAgent",
    "CoderAgent",
    "ContextAgent",
    "FileLoader",
    "ManifestReader",
    "ProjectPatternDetector",
    "ReviewerAgent",
    "TokenOptimizer",
    "analyze_code_quality",
    "needs_architecture",
    "parse_code_output",
    "parse_review_output",
]
