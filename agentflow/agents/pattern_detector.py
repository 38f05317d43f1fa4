"""Project manifest reading and tech-stack / convention detection."""

import hashlib
import json
import logging
import re
import tomllib
from collections import Counter
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from ..models import ArchitecturePatterns, Conventions, ProjectArchitecture, TechStack


logger = logging.getLogger(__name__)

MANIFEST_FILES = ("package.json", "requirements.txt", "pyproject.toml")

# First match wins; order here is the tie-break, not dependency file order.
Rule = Tuple[str, Sequence[str]]

FRONTEND_RULES: List[Rule] = [
    ("react", ["react"]),
    ("vue", ["vue"]),
    ("angular", ["@angular/core"]),
    ("svelte", ["svelte"]),
]
BACKEND_RULES: List[Rule] = [
    ("express", ["express"]),
    ("nest", ["@nestjs/core"]),
    ("fastify", ["fastify"]),
    ("fastapi", ["fastapi"]),
    ("django", ["django"]),
    ("flask", ["flask"]),
]
BUILD_RULES: List[Rule] = [
    ("vite", ["vite"]),
    ("webpack", ["webpack"]),
    ("esbuild", ["esbuild"]),
    ("rollup", ["rollup"]),
]
TESTING_RULES: List[Rule] = [
    ("jest", ["jest"]),
    ("mocha", ["mocha"]),
    ("vitest", ["vitest"]),
    ("pytest", ["pytest"]),
]
STATE_MANAGEMENT_RULES: List[Rule] = [
    ("redux", ["redux", "@reduxjs/toolkit"]),
    ("mobx", ["mobx"]),
    ("recoil", ["recoil"]),
    ("zustand", ["zustand"]),
]
API_STYLE_RULES: List[Rule] = [
    ("graphql", ["graphql", "@apollo/client"]),
    ("trpc", ["@trpc/server"]),
]
REST_CLIENTS = ("axios", "node-fetch", "requests", "httpx")

_SOURCE_SUFFIXES = {".py", ".ts", ".tsx", ".js", ".jsx"}
_SKIP_DIRS = {"node_modules", "__pycache__", "dist", "build", "venv", ".venv", "site-packages"}
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def _requirement_name(line: str) -> Optional[str]:
    line = line.split("#", 1)[0].strip()
    if not line or line.startswith("-"):
        return None
    match = _REQUIREMENT_NAME.match(line)
    return match.group(1).lower() if match else None


class ManifestReader:
    """Reads dependency names from the manifests at the workspace root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def read_dependencies(self) -> Dict[str, str]:
        """
        Merge dependencies from every manifest present.

        Returns:
            Mapping of dependency name to version spec ("" when unknown)
        """
        deps: Dict[str, str] = {}
        deps.update(self._package_json())
        deps.update(self._requirements_txt())
        deps.update(self._pyproject())
        return deps

    def _package_json(self) -> Dict[str, str]:
        path = self.root / "package.json"
        if not path.is_file():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable package.json: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring package.json without a top-level object")
            return {}
        deps: Dict[str, str] = {}
        for key in ("dependencies", "devDependencies"):
            section = data.get(key)
            if isinstance(section, dict):
                deps.update(section)
        return deps

    def _requirements_txt(self) -> Dict[str, str]:
        path = self.root / "requirements.txt"
        if not path.is_file():
            return {}
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Ignoring unreadable requirements.txt: {e}")
            return {}
        return {name: "" for name in map(_requirement_name, lines) if name}

    def _pyproject(self) -> Dict[str, str]:
        path = self.root / "pyproject.toml"
        if not path.is_file():
            return {}
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Ignoring unreadable pyproject.toml: {e}")
            return {}
        project = data.get("project") or {}
        requirements = list(project.get("dependencies") or [])
        for extra in (project.get("optional-dependencies") or {}).values():
            requirements.extend(extra)
        return {name: "" for name in map(_requirement_name, requirements) if name}

    def fingerprint(self) -> str:
        """Hash of all manifest contents; changes whenever a manifest changes."""
        digest = hashlib.sha256()
        for name in MANIFEST_FILES:
            path = self.root / name
            digest.update(name.encode())
            if path.is_file():
                digest.update(path.read_bytes())
        return digest.hexdigest()


def _first_match(rules: List[Rule], deps: Dict[str, str], default: Optional[str]) -> Optional[str]:
    for label, keys in rules:
        if any(key in deps for key in keys):
            return label
    return default


def _all_matches(rules: List[Rule], deps: Dict[str, str]) -> List[str]:
    return [label for label, keys in rules if any(key in deps for key in keys)]


class ProjectPatternDetector:
    """Heuristic tech-stack, pattern and convention detection."""

    def detect_tech_stack(self, deps: Dict[str, str]) -> ProjectArchitecture:
        """
        Classify the project from its dependency names.

        Args:
            deps: Merged dependency mapping from ManifestReader

        Returns:
            ProjectArchitecture with default conventions
        """
        tech_stack = TechStack(
            frontend=_first_match(FRONTEND_RULES, deps, "unknown"),
            backend=_first_match(BACKEND_RULES, deps, "none"),
            build=_first_match(BUILD_RULES, deps, "unknown"),
            testing=_first_match(TESTING_RULES, deps, "none"),
        )

        api_style = _all_matches(API_STYLE_RULES, deps)
        if not api_style and any(client in deps for client in REST_CLIENTS):
            api_style.append("rest")

        return ProjectArchitecture(
            tech_stack=tech_stack,
            patterns=ArchitecturePatterns(
                state_management=_all_matches(STATE_MANAGEMENT_RULES, deps),
                api_style=api_style,
            ),
            conventions=Conventions(),
        )

    def detect_file_structure(self, root: Path, max_files: int = 2000) -> Conventions:
        """Infer file naming and test location from the source tree."""
        root = Path(root)
        naming = Counter()
        co_located_tests = 0

        for path in self._iter_sources(root, max_files):
            stem = path.stem
            if _is_test_file(path):
                co_located_tests += 1
                continue
            style = classify_name(stem)
            if style:
                naming[style] += 1

        separate = any((root / d).is_dir() for d in ("tests", "test"))
        if separate:
            test_location = "separate-folder"
        else:
            test_location = "co-located"

        conventions = Conventions(test_location=test_location)
        if naming:
            conventions.naming = naming.most_common(1)[0][0]
        logger.debug(f"Detected conventions {conventions} ({co_located_tests} test files next to sources)")
        return conventions

    @staticmethod
    def _iter_sources(root: Path, max_files: int) -> Iterator[Path]:
        count = 0
        stack = [root]
        while stack and count < max_files:
            current = stack.pop()
            try:
                entries = sorted(current.iterdir())
            except OSError:
                continue
            for entry in entries:
                if entry.name.startswith(".") or entry.name in _SKIP_DIRS:
                    continue
                if entry.is_dir():
                    # top-level test folders are judged by name, not contents
                    if current == root and entry.name in ("tests", "test"):
                        continue
                    stack.append(entry)
                elif entry.suffix in _SOURCE_SUFFIXES:
                    count += 1
                    yield entry
                    if count >= max_files:
                        return


def _is_test_file(path: Path) -> bool:
    name = path.name
    return (
        name.startswith("test_")
        or path.stem.endswith("_test")
        or ".test." in name
        or ".spec." in name
        or path.parent.name == "__tests__"
    )


def classify_name(stem: str) -> Optional[str]:
    """Naming style of a file stem, or None for single-word names."""
    stem = stem.split(".")[0]
    if "-" in stem:
        return "kebab-case"
    if "_" in stem.strip("_"):
        return "snake_case"
    if re.match(r"^[a-z]+[A-Z]", stem):
        return "camelCase"
    if re.match(r"^[A-Z][a-z0-9]+[A-Z]", stem):
        return "PascalCase"
    return None
