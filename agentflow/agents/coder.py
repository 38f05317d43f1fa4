"""
Coder Agent: generates code for the user's request.

The LLM is asked for three tagged sections; ``parse_code_output`` pulls them
apart and falls back to treating the whole reply as code.
"""

import logging
import re
from typing import Any, Dict, Optional

from ..models import AgentRequest, AgentResponse, AgentType, ProjectArchitecture
from .base import BaseAgent
from .prompts import build_architecture_section, build_phase_section


logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert software engineer.
Write clean, working, well-structured code for the request below.

Respond using exactly these sections:
[REASONING]
Why you chose this approach.
[CODE]
The code.
[ALTERNATIVES]
Other approaches worth considering, one per line (optional)."""

_SECTION = re.compile(
    r"\[(REASONING|CODE|ALTERNATIVES)\]\s*(.*?)(?=\n?\[(?:REASONING|CODE|ALTERNATIVES)\]|\Z)",
    re.DOTALL,
)
_FENCE = re.compile(r"^```[\w+-]*\n(.*?)\n?```$", re.DOTALL)


def parse_code_output(output: str) -> Dict[str, Any]:
    """
    Parse coder LLM output into structured format.

    Args:
        output: Raw LLM text

    Returns:
        Dict with code, reasoning and alternatives
    """
    sections = {name: body.strip() for name, body in _SECTION.findall(output or "")}
    if "CODE" not in sections:
        return {
            "code": (output or "").strip(),
            "reasoning": "Generated code from the request (response had no structured sections).",
            "alternatives": [],
        }

    code = sections["CODE"]
    fenced = _FENCE.match(code)
    if fenced:
        code = fenced.group(1)

    alternatives = [
        line.lstrip("-*• ").strip()
        for line in sections.get("ALTERNATIVES", "").splitlines()
        if line.strip()
    ]
    return {
        "code": code,
        "reasoning": sections.get("REASONING") or "Generated code from the request.",
        "alternatives": alternatives,
    }


def _as_architecture(value: Any) -> Optional[ProjectArchitecture]:
    if value is None:
        return None
    if isinstance(value, ProjectArchitecture):
        return value
    return ProjectArchitecture.model_validate(value)


class CoderAgent(BaseAgent):
    """Implementer: turns the request plus context into code."""

    name = "coder"
    display_name = "Coder Agent"
    icon = "💻"
    agent_type = AgentType.coder

    def build_prompt(self, request: AgentRequest) -> str:
        parts = [SYSTEM_PROMPT]

        architecture = _as_architecture(request.data.get("architecture"))
        if architecture is not None:
            parts.append(build_architecture_section(architecture))

        phase = build_phase_section(request.data.get("current_phase"))
        if phase:
            parts.append(phase)

        if request.context:
            parts.append(f"[CONTEXT]\n{request.context}")

        parts.append(f"[REQUEST]\n{request.prompt}")
        return "\n\n".join(parts)

    async def _execute(self, request: AgentRequest) -> AgentResponse:
        prompt = self.build_prompt(request)
        text = await self._call_llm(prompt, request)
        parsed = parse_code_output(text)
        logger.info(f"Coder produced {len(parsed['code'].splitlines())} lines")

        return AgentResponse(
            result=parsed["code"],
            reasoning=parsed["reasoning"],
            confidence=0.85,
            alternatives=parsed["alternatives"],
        )
