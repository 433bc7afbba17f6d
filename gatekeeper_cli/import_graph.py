"""Import graph built from ``from '<path>'`` statements."""

from __future__ import annotations

import logging
import posixpath
import re
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .config import DEFAULT_EXTENSION
from .models import ImportEdge, SourceFile

logger = logging.getLogger(__name__)

FROM_PATTERN = re.compile(r"""from\s+['"]([^'"]+)['"]""")
REQUIRE_PATTERN = re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)""")

# A target ending in one of these is taken as-is
KNOWN_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".json", ".css")


def resolve_relative(importer: str, target: str, default_extension: str = DEFAULT_EXTENSION) -> Optional[str]:
    """Resolve a relative import target against the importing file.

    Plain string joining: ``./x`` becomes ``x.ts``, ``./x.js`` stays ``x.js``
    and ``./dir`` becomes ``dir.ts`` (never ``dir/index.ts``).

    Returns:
        Root-relative POSIX path, or None if the target escapes the root
    """
    joined = posixpath.normpath(posixpath.join(posixpath.dirname(importer), target))
    if joined == ".." or joined.startswith("../"):
        return None
    if not joined.endswith(KNOWN_EXTENSIONS):
        joined += default_extension
    return joined


def package_name(target: str) -> str:
    """``@scope/pkg/sub`` -> ``@scope/pkg``; ``pkg/sub`` -> ``pkg``."""
    parts = target.split("/")
    if target.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


class ImportGraph:
    """Directed adjacency over corpus files plus per-file package usage."""

    def __init__(self):
        self.files: Set[str] = set()
        self._adjacency: Dict[str, Set[str]] = defaultdict(set)
        self._statements: Dict[str, List[Tuple[int, str]]] = defaultdict(list)
        self._packages: Dict[str, Set[str]] = defaultdict(set)
        self.resolved_targets: Set[str] = set()

    def imports_of(self, path: str) -> Set[str]:
        return set(self._adjacency.get(path, ()))

    def statements_of(self, path: str) -> List[Tuple[int, str]]:
        return list(self._statements.get(path, ()))

    def packages_of(self, path: str) -> Set[str]:
        return set(self._packages.get(path, ()))

    def all_packages(self) -> Set[str]:
        found: Set[str] = set()
        for names in self._packages.values():
            found |= names
        return found

    @property
    def edges(self) -> List[ImportEdge]:
        return sorted(
            ImportEdge(source, target)
            for source, targets in self._adjacency.items()
            for target in targets
        )

    def mutual_pairs(self) -> List[Tuple[str, str]]:
        """Pairs of files importing each other, each pair once as ``(a, b)`` with ``a < b``.

        Longer cycles are not reported.
        """
        pairs = []
        for source in sorted(self._adjacency):
            for target in sorted(self._adjacency[source]):
                if source < target and source in self._adjacency.get(target, ()):
                    pairs.append((source, target))
        return pairs


class ImportGraphBuilder:
    """Builds an :class:`ImportGraph` from scanned files."""

    def __init__(self, default_extension: str = DEFAULT_EXTENSION):
        self.default_extension = default_extension

    def build(self, files: Iterable[SourceFile]) -> ImportGraph:
        files = list(files)
        graph = ImportGraph()
        graph.files = {f.path for f in files}

        for source_file in files:
            for match in FROM_PATTERN.finditer(source_file.content):
                target = match.group(1)
                line = source_file.line_of(match.start())
                graph._statements[source_file.path].append((line, target))

                if not target.startswith("."):
                    graph._packages[source_file.path].add(package_name(target))
                    continue

                resolved = resolve_relative(source_file.path, target, self.default_extension)
                if resolved is None:
                    logger.debug("Import %s in %s escapes the root", target, source_file.path)
                    continue
                graph.resolved_targets.add(resolved)
                if resolved in graph.files and resolved != source_file.path:
                    graph._adjacency[source_file.path].add(resolved)

            for match in REQUIRE_PATTERN.finditer(source_file.content):
                target = match.group(1)
                if not target.startswith("."):
                    graph._packages[source_file.path].add(package_name(target))

        logger.debug("Import graph: %d files, %d edges", len(graph.files), len(graph.edges))
        return graph
