"""
Reviewer Agent: advisory code review.

Static quality checks always run. When the agent has a provider manager it
also asks the LLM for an OWASP-oriented review and parses the JSON block in
the reply, falling back to the APPROVED/FEEDBACK/ISSUES/SUGGESTIONS text
format.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from ..models import AgentRequest, AgentResponse, AgentType
from .base import BaseAgent
from .prompts import build_review_prompt


logger = logging.getLogger(__name__)

MAX_LINE_LENGTH = 120
DANGEROUS_PATTERNS = ['eval(', 'exec(', 'os.system(', '__import__']

_JSON_BLOCK = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


def analyze_code_quality(code: str, language: str = "python") -> Dict[str, Any]:
    """
    Analyze code for quality issues.

    Args:
        code: The code to analyze
        language: Programming language

    Returns:
        Dictionary with quality analysis
    """
    issues = []
    score = 100
    lines = code.split('\n')

    for i, line in enumerate(lines):
        if len(line) > MAX_LINE_LENGTH:
            issues.append({
                "line": i + 1,
                "severity": "minor",
                "message": f"Line too long ({len(line)} > {MAX_LINE_LENGTH} characters)"
            })
            score -= 2

    if language == "python":
        if "def " in code or "class " in code:
            if '"""' not in code and "'''" not in code:
                issues.append({
                    "line": 1,
                    "severity": "moderate",
                    "message": "Missing docstrings for functions/classes"
                })
                score -= 10

    for pattern in DANGEROUS_PATTERNS:
        if pattern in code:
            issues.append({
                "line": 0,
                "severity": "critical",
                "message": f"Potential security issue: use of {pattern}"
            })
            score -= 25

    return {
        "quality_score": max(0, score),
        "issues": issues,
        "total_lines": len(lines),
    }


def _bullets(text: str) -> List[str]:
    items = []
    for line in text.split('\n'):
        line = line.strip()
        if line and line[0] in "-•*":
            items.append(line[1:].strip())
    return items


def parse_review_output(output: str) -> Dict[str, Any]:
    """
    Parse a text review into structured data.

    Args:
        output: Raw review text

    Returns:
        Dict with approved, feedback, issues, suggestions
    """
    result = {
        "approved": False,
        "feedback": "",
        "issues": [],
        "suggestions": []
    }
    output_lower = output.lower()

    if "approved: yes" in output_lower:
        result["approved"] = True
    elif "approved: no" in output_lower:
        result["approved"] = False
    elif "critical" not in output_lower and "fail" not in output_lower:
        result["approved"] = True

    if "FEEDBACK:" in output:
        start = output.index("FEEDBACK:") + len("FEEDBACK:")
        end = output.find("\n\n", start)
        if end == -1:
            end = output.find("ISSUES:", start)
        if end == -1:
            end = len(output)
        result["feedback"] = output[start:end].strip()
    else:
        result["feedback"] = output[:300].strip()

    if "ISSUES:" in output:
        start = output.index("ISSUES:") + len("ISSUES:")
        end = output.find("SUGGESTIONS:", start)
        result["issues"] = _bullets(output[start:end if end != -1 else len(output)])

    if "SUGGESTIONS:" in output:
        start = output.index("SUGGESTIONS:") + len("SUGGESTIONS:")
        result["suggestions"] = _bullets(output[start:])

    return result


def parse_review_json(output: str) -> Optional[Dict[str, Any]]:
    """Extract the JSON review block (fenced or bare), or None."""
    candidates = _JSON_BLOCK.findall(output)
    if not candidates:
        start, end = output.find("{"), output.rfind("}")
        if start != -1 and end > start:
            candidates = [output[start:end + 1]]
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and "status" in data:
            for key in ("securityIssues", "edgeCases"):
                if not isinstance(data.get(key), list):
                    data[key] = []
            return data
    return None


def _security_finding(item: Any) -> Optional[str]:
    """One findings line for a securityIssues entry (object or plain string)."""
    if isinstance(item, str):
        return f"[critical] {item}"
    if isinstance(item, dict):
        return f"[{item.get('severity', 'critical')}] {item.get('description', item.get('type', 'security issue'))}"
    return None


def _edge_case_finding(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return f"[edge case] {item}"
    if isinstance(item, dict):
        return f"[edge case] {item.get('description', '')}"
    return None


class ReviewerAgent(BaseAgent):
    """Reviews the coder's output; never overrides it."""

    name = "reviewer"
    display_name = "Reviewer Agent"
    icon = "🔎"
    agent_type = AgentType.reviewer

    async def _execute(self, request: AgentRequest) -> AgentResponse:
        code = request.data.get("code") or request.prompt
        language = request.data.get("language", "python")
        quality = analyze_code_quality(code, language)
        findings = [issue["message"] for issue in quality["issues"]]

        review: Optional[Dict[str, Any]] = None
        if self.llm is not None:
            text = await self._call_llm(build_review_prompt(code, request.data.get("request", "")), request)
            review = parse_review_json(text)
            if review is not None:
                findings += [line for line in map(_security_finding, review["securityIssues"]) if line]
                findings += [line for line in map(_edge_case_finding, review["edgeCases"]) if line]
                approved = str(review.get("status", "")).upper() == "PASS"
                summary = review.get("risks") or review.get("recommendations") or ""
            else:
                parsed = parse_review_output(text)
                findings += parsed["issues"]
                approved = parsed["approved"]
                summary = parsed["feedback"]
        else:
            approved = not any(i["severity"] == "critical" for i in quality["issues"])
            summary = ""

        if findings:
            reasoning = f"Found {len(findings)} issue(s): " + "; ".join(findings)
        else:
            reasoning = "No issues found; the code looks fine."
        if summary:
            reasoning += f" {summary}"

        result = json.dumps({
            "approved": approved,
            "quality_score": quality["quality_score"],
            "issues": findings,
            "review": review,
        })
        return AgentResponse(
            result=result,
            reasoning=reasoning,
            confidence=round(quality["quality_score"] / 100, 2),
        )
