"""Prompt sections shared by the architect, coder and reviewer agents."""

from typing import Optional

from ..models import ProjectArchitecture


DEVELOPMENT_PHASES = ("prototype", "debug", "production")

PHASE_INSTRUCTIONS = {
    "debug": """[DEBUG PHASE ACTIVE]
Prioritize diagnostic capabilities and runtime visibility:
- Include comprehensive logging (debug/trace levels).
- Catch errors with detailed context.
- Add diagnostic output or state inspection hooks.
- Help the developer follow execution flow and state transitions.""",

    "production": """[PRODUCTION PHASE ACTIVE]
Prioritize reliability, security and maintainability:
- Enforce strict typing and exhaustive error handling for edge cases.
- Focus on performance and resource efficiency.
- Validate input and follow least privilege.
- Document public functions and classes.""",

    "prototype": """[PROTOTYPE PHASE ACTIVE]
Prioritize development velocity and quick functional validation:
- Implement the happy path concisely.
- Use common scaffolding and boilerplate where appropriate.
- Prefer simple, readable solutions over heavily optimized ones.""",
}


def build_phase_section(phase: Optional[str]) -> str:
    """Instructions for the current development phase, or "" for unknown phases."""
    if not phase:
        return ""
    return PHASE_INSTRUCTIONS.get(phase.lower(), "")


def build_architecture_section(architecture: ProjectArchitecture) -> str:
    """
    Format a project architecture as a prompt section.

    Args:
        architecture: Detected project architecture

    Returns:
        Section text ending with the instruction to follow the conventions
    """
    lines = ["[PROJECT ARCHITECTURE & PATTERNS]"]

    stack = architecture.tech_stack
    for label, value in (
        ("Frontend", stack.frontend),
        ("Backend", stack.backend),
        ("Build", stack.build),
        ("Testing", stack.testing),
    ):
        if value and value not in ("unknown", "none"):
            lines.append(f"- {label}: {value}")

    patterns = architecture.patterns
    if patterns.state_management:
        lines.append(f"- State Management: {', '.join(patterns.state_management)}")
    if patterns.api_style:
        lines.append(f"- API Style: {', '.join(patterns.api_style)}")

    conventions = architecture.conventions
    if conventions.naming:
        lines.append(f"- Naming Convention: {conventions.naming}")
    if conventions.test_location:
        lines.append(f"- Test Location: {conventions.test_location}")

    lines.append("")
    lines.append("CRITICAL INSTRUCTION: All generated code MUST strictly follow the above patterns and conventions.")
    return "\n".join(lines)


SECURITY_CRITERIA = """### SECURITY ANALYSIS (OWASP Top 10)

Analyze the code for security vulnerabilities using the OWASP Top 10 as a baseline:

1. SQL Injection - unsanitized queries, string concatenation in SQL.
2. XSS - unescaped user input rendered as HTML.
3. Command Injection - user input executed through a shell.
4. Hardcoded Secrets - API keys, passwords or private keys in code.
5. Insecure Cryptography - MD5/SHA1/DES, hardcoded keys, non-cryptographic randomness.
6. CSRF & Auth Weaknesses - missing CSRF tokens or authorization checks.
7. Auth Bypass - logic flaws allowing privilege escalation."""

EDGE_CASE_CRITERIA = """### EDGE CASE ANALYSIS

Also check for:
- null/None handling before attribute access
- unhandled errors in async code
- boundary values (empty collections, zero, negative, very large)
- missing input validation
- race conditions (check-then-act)"""

REVIEW_JSON_FORMAT = """{
  "status": "PASS" | "FAIL",
  "risks": "Summary string...",
  "recommendations": "Summary string...",
  "securityIssues": [
    {
      "id": "sec-1",
      "type": "sql_injection" | "xss" | "command_injection" | "hardcoded_secret" | "insecure_cryptography" | "csrf" | "auth_bypass",
      "description": "...",
      "exploitScenario": "...",
      "secureFix": "...",
      "severity": "critical" | "urgent",
      "lineAnchor": 0
    }
  ],
  "edgeCases": [
    {"id": "ec-1", "type": "...", "description": "...", "fix": "...", "severity": "warning" | "critical"}
  ]
}"""


def build_review_prompt(code: str, request_prompt: str = "") -> str:
    """Full reviewer prompt: criteria, JSON output contract and the code under review."""
    return f"""You are a senior code reviewer.

{SECURITY_CRITERIA}

{EDGE_CASE_CRITERIA}

### JSON OUTPUT FORMAT

Return the results as JSON embedded in your response:
```json
{REVIEW_JSON_FORMAT}
```
If nothing is found, return empty "securityIssues" and "edgeCases" arrays.

Original request: {request_prompt}

CODE TO REVIEW:
{code}
"""
