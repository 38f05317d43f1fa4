"""
Context Agent: loads relevant workspace files and fits them into a token budget.

Files are discovered in priority order (explicit context files, the active
file, its relative imports, open files, siblings of the active file) and
then packed by ``TokenOptimizer`` into ``--- FILE: <path> ---`` blocks.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import litellm

from ..models import AgentRequest, AgentResponse, AgentType
from .base import BaseAgent


logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "# ... (truncated for token limit)"

_IMPORT_PATTERNS = [
    re.compile(r"""(?:import|from|require\()\s*['"](\.{1,2}/[^'"]+)['"]"""),  # JS/TS relative
    re.compile(r"^\s*from\s+(\.+[\w.]*)\s+import\s", re.MULTILINE),            # Python relative
]
_JS_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".json")
_STRUCTURAL_PREFIXES = (
    "import ", "from ", "def ", "async def ", "class ", "@",
    "export ", "function ", "interface ", "type ",
)


@dataclass
class LoadedFile:
    path: str
    content: str
    tokens: int = 0


def count_tokens(text: str) -> int:
    """Token count with litellm's default tokenizer, ~4 chars/token if unavailable."""
    if not text:
        return 0
    try:
        return litellm.token_counter(text=text)
    except Exception:
        return (len(text) + 3) // 4


class FileLoader:
    """Discovers and reads files relevant to the current editing context."""

    def __init__(self, workspace_root: Optional[str] = None, max_files: Optional[int] = None):
        from ..core.config import settings
        self.workspace_root = Path(workspace_root or settings.WORKSPACE_ROOT).resolve()
        self.max_files = max_files if max_files is not None else settings.CONTEXT_MAX_FILES
        self.context_files: List[Path] = []

    def add_context_file(self, path: str) -> None:
        """Pin a file so it is always loaded first."""
        resolved = self._resolve(path)
        if resolved not in self.context_files:
            self.context_files.append(resolved)

    def clear_context_files(self) -> None:
        self.context_files.clear()

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.workspace_root / p
        return p.resolve()

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable file {path}: {e}")
            return None

    def discover_and_load(
        self,
        active_file: Optional[str] = None,
        open_files: Optional[Iterable[str]] = None,
    ) -> List[LoadedFile]:
        """
        Load files in priority order, up to ``max_files``.

        Args:
            active_file: File currently being edited
            open_files: Other files open in the editor

        Returns:
            Loaded files, highest priority first, without duplicates
        """
        loaded: List[LoadedFile] = []
        seen = set()

        def add(path: Path, content: Optional[str] = None) -> None:
            if len(loaded) >= self.max_files or path in seen:
                return
            content = content if content is not None else self._read(path)
            if content is None:
                return
            seen.add(path)
            loaded.append(LoadedFile(path=str(path), content=content))

        for path in self.context_files:
            add(path)

        active = self._resolve(active_file) if active_file else None
        active_content = self._read(active) if active else None
        if active is not None and active_content is not None:
            add(active, active_content)
            for dep in self.find_imports(active, active_content):
                add(dep)

        for path in open_files or []:
            add(self._resolve(path))

        if active is not None:
            for sibling in self.find_similar_files(active):
                add(sibling)

        return loaded

    def find_imports(self, path: Path, content: str) -> List[Path]:
        """Resolve relative imports (JS/TS and Python) to existing files."""
        found: List[Path] = []
        for pattern in _IMPORT_PATTERNS:
            for spec in pattern.findall(content):
                resolved = self._resolve_import(path, spec)
                if resolved is not None and resolved not in found:
                    found.append(resolved)
        return found

    def _resolve_import(self, path: Path, spec: str) -> Optional[Path]:
        base = path.parent
        if spec.startswith("./") or spec.startswith("../"):
            target = (base / spec).resolve()
            candidates = [target] + [Path(f"{target}{ext}") for ext in _JS_EXTENSIONS]
            candidates += [target / f"index{ext}" for ext in _JS_EXTENSIONS]
        else:
            # Python: one leading dot is the current package, each extra dot goes up
            dots = len(spec) - len(spec.lstrip("."))
            for _ in range(dots - 1):
                base = base.parent
            module = spec[dots:]
            target = base.joinpath(*module.split(".")) if module else base
            candidates = [Path(f"{target}.py"), target / "__init__.py"]

        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def find_similar_files(self, path: Path, limit: int = 5) -> List[Path]:
        """Files with the same extension in the same directory."""
        try:
            siblings = sorted(
                p for p in path.parent.iterdir()
                if p.is_file() and p != path and p.suffix == path.suffix
            )
        except OSError:
            return []
        return siblings[:limit]


class TokenOptimizer:
    """Packs loaded files into a token budget."""

    def __init__(
        self,
        max_tokens: Optional[int] = None,
        estimate_tokens: Optional[Callable[[str], int]] = None,
    ):
        from ..core.config import settings
        self.max_tokens = max_tokens if max_tokens is not None else settings.CONTEXT_MAX_TOKENS
        self.estimate_tokens = estimate_tokens or count_tokens

    def optimize(self, files: List[LoadedFile], active_file: Optional[str] = None) -> str:
        """
        Fit files into the budget.

        The active file goes first, then smaller files before larger ones. The
        first file that does not fit is truncated to its structural lines when
        more than 100 tokens remain; nothing after it is included.

        Args:
            files: Loaded files
            active_file: Path of the active file, if any

        Returns:
            Formatted context string
        """
        if not files:
            return ""

        for f in files:
            f.tokens = self.estimate_tokens(f.content)
        ordered = sorted(files, key=lambda f: (f.path != active_file, f.tokens))

        total = 0
        kept: List[LoadedFile] = []
        for f in ordered:
            if total + f.tokens <= self.max_tokens:
                kept.append(f)
                total += f.tokens
                continue

            remaining = self.max_tokens - total
            if remaining > 100:
                truncated = self.truncate(f.content, remaining)
                if truncated:
                    kept.append(LoadedFile(path=f.path, content=truncated))
            break

        return self.format(kept)

    def truncate(self, content: str, max_tokens: int) -> str:
        """Keep structural lines (imports, defs, classes); fall back to a prefix cut."""
        kept: List[str] = []
        used = 0
        for line in content.split("\n"):
            stripped = line.strip()
            if not stripped.startswith(_STRUCTURAL_PREFIXES):
                continue
            cost = self.estimate_tokens(line + "\n")
            if used + cost > max_tokens:
                break
            kept.append(line)
            used += cost

        if kept:
            return "\n".join(kept) + "\n\n" + TRUNCATION_MARKER

        max_chars = max_tokens * 4
        if len(content) <= max_chars:
            return content
        return content[:max_chars] + "\n\n" + TRUNCATION_MARKER

    @staticmethod
    def format(files: List[LoadedFile]) -> str:
        return "\n".join(f"--- FILE: {f.path} ---\n{f.content}\n" for f in files)

    def fits(self, content: str) -> bool:
        return self.estimate_tokens(content) <= self.max_tokens


class ContextAgent(BaseAgent):
    """Loads project files for downstream agents."""

    name = "context"
    display_name = "Context Agent"
    icon = "🔍"
    agent_type = AgentType.context

    def __init__(self, file_loader: Optional[FileLoader] = None, optimizer: Optional[TokenOptimizer] = None):
        super().__init__()
        self.file_loader = file_loader or FileLoader()
        self.optimizer = optimizer or TokenOptimizer()
        self._loaded_files: List[str] = []

    def get_loaded_files(self) -> List[str]:
        return list(self._loaded_files)

    async def _execute(self, request: AgentRequest) -> AgentResponse:
        active_file = request.data.get("active_file")
        open_files = request.data.get("open_files") or []

        files = await asyncio.to_thread(self.file_loader.discover_and_load, active_file, open_files)
        self._loaded_files = [f.path for f in files]

        active_path = str(self.file_loader._resolve(active_file)) if active_file else None
        context = self.optimizer.optimize(files, active_path)

        if not files:
            reasoning = "No relevant files found in the workspace."
        else:
            reasoning = (
                f"Found {len(files)} relevant files and optimized their content "
                f"to fit within {self.optimizer.max_tokens} tokens."
            )
        logger.info(f"Context agent loaded {len(files)} files")

        return AgentResponse(result=context, reasoning=reasoning, confidence=1.0)
