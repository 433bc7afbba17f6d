"""Architecture and layering pass."""

from __future__ import annotations

import logging
import posixpath
import re
from collections import defaultdict
from typing import Dict, List, Optional

from ..config import LAYER_ORDER, PROHIBITED_DIRS, REQUIRED_DIRS
from ..import_graph import ImportGraph, resolve_relative
from ..models import Severity, SourceFile
from ..rules import Rule, is_comment_line, line_rule, path_under
from .base import Validator

logger = logging.getLogger(__name__)

# Presentation code must not reach into data access
PRESENTATION_DENYLIST = [
    re.compile(r"""from\s+['"](\.\./)+services/"""),
    re.compile(r"""from\s+['"](\.\./)+controllers/"""),
    re.compile(r"""from\s+['"](\.\./)+app/"""),
    re.compile(r"""import.*\b(supabaseService|prismaClient|dbClient)\b.*from"""),
]

DATA_CLIENT_IMPORT = re.compile(
    r"""from\s+['"](@supabase/supabase-js|@prisma/client|pg|mysql2?|mongodb)['"]"""
)


class ArchitectureValidator(Validator):
    """Layer dependencies, directory structure, boundaries, cycles and file size."""

    name = "Architecture"
    key = "architecture"
    description = "Layer table, prohibited directories, boundaries and two-node cycles"

    def classify(self, path: str) -> Optional[str]:
        """Layer of a root-relative path, by directory prefix."""
        for layer in LAYER_ORDER:
            prefix = self.config.layout.get(layer)
            if prefix and (path + "/").startswith(prefix.rstrip("/") + "/"):
                return layer
        return None

    def rules(self) -> List[Rule]:
        presentation = path_under(self.layout("frontend"))
        controllers = path_under(self.layout("controllers"))
        rules = [
            Rule(
                "presentation-data-access",
                "Presentation files must not import data-access modules",
                Severity.HIGH,
                "boundaries",
                self._match_denylist,
                presentation,
            ),
            line_rule(
                "controller-data-client",
                "Controllers must go through a service instead of the data client",
                Severity.HIGH,
                "boundaries",
                DATA_CLIENT_IMPORT,
                "Controller imports the data client directly: {line}",
                scope=controllers,
            ),
        ]
        return rules

    @staticmethod
    def _match_denylist(source_file: SourceFile):
        for number, text in enumerate(source_file.lines, start=1):
            if is_comment_line(text):
                continue
            if any(p.search(text) for p in PRESENTATION_DENYLIST):
                yield number, f"Presentation file imports data-access code: {text.strip()}"

    def run(self) -> None:
        files = self.source_files()
        graph = self.build_graph(files)

        self._check_directories()
        self._check_duplicate_basenames(files)
        self._check_layers(graph)

        for rule in self.rules():
            for source_file in files:
                self.collect(rule.match(source_file))

        self._check_controllers_and_routes(files)

        for a, b in graph.mutual_pairs():
            self.emit(
                Severity.HIGH,
                "cycles",
                f"Circular dependency between {a} and {b}",
                file=a,
                rule="two-node-cycle",
            )

        self._check_metrics(files)

    def _check_directories(self) -> None:
        for rel in PROHIBITED_DIRS:
            if (self.root / rel).is_dir():
                self.emit(Severity.HIGH, "structure", f"Prohibited directory {rel} found", file=rel)
        for key in REQUIRED_DIRS:
            rel = self.config.layout.get(key)
            if rel and not (self.root / rel).is_dir():
                self.emit(Severity.LOW, "structure", f"Required directory {rel} ({key}) is missing", file=rel)

    def _check_duplicate_basenames(self, files: List[SourceFile]) -> None:
        by_name: Dict[str, List[str]] = defaultdict(list)
        for source_file in files:
            by_name[posixpath.basename(source_file.path)].append(source_file.path)
        for basename in sorted(by_name):
            paths = by_name[basename]
            if len(paths) > 1:
                self.emit(
                    Severity.MEDIUM,
                    "structure",
                    f"Duplicate file name '{basename}': {', '.join(paths)}",
                    file=paths[0],
                )

    def _check_layers(self, graph: ImportGraph) -> None:
        for edge in graph.edges:
            source_layer = self.classify(edge.source)
            target_layer = self.classify(edge.target)
            if source_layer is None or target_layer is None or source_layer == target_layer:
                continue
            logger.debug("Layer edge %s: %s -> %s", edge, source_layer, target_layer)
            allowed = self.config.layers.get(source_layer, [])
            if target_layer not in allowed:
                line = next(
                    (
                        n
                        for n, target in graph.statements_of(edge.source)
                        if resolve_relative(edge.source, target, self.config.default_extension) == edge.target
                    ),
                    None,
                )
                self.emit(
                    Severity.HIGH,
                    "layering",
                    f"Layer violation: {source_layer} ({edge.source}) depends on {target_layer} ({edge.target})",
                    file=edge.source,
                    line=line,
                    rule="layer-table",
                )

    def _check_controllers_and_routes(self, files: List[SourceFile]) -> None:
        controllers = path_under(self.layout("controllers"))
        routes = path_under(self.layout("routes"))
        for source_file in files:
            lowered = source_file.content.lower()
            if controllers(source_file) and "service" not in lowered:
                self.emit(
                    Severity.LOW,
                    "boundaries",
                    "Controller does not use any service",
                    file=source_file.path,
                )
            elif routes(source_file) and "controller" not in lowered:
                self.emit(
                    Severity.LOW,
                    "boundaries",
                    "Route file does not delegate to a controller",
                    file=source_file.path,
                )

    def _check_metrics(self, files: List[SourceFile]) -> None:
        max_lines = self.config.threshold("max_file_lines")
        max_imports = self.config.threshold("max_import_lines")
        max_exports = self.config.threshold("max_export_lines")
        for source_file in files:
            lines = source_file.lines
            imports = sum(1 for l in lines if l.lstrip().startswith("import "))
            exports = sum(1 for l in lines if l.lstrip().startswith("export "))
            if len(lines) > max_lines:
                self.emit(
                    Severity.MEDIUM,
                    "metrics",
                    f"File has {len(lines)} lines (max {max_lines:g})",
                    file=source_file.path,
                )
            if imports > max_imports:
                self.emit(
                    Severity.LOW,
                    "metrics",
                    f"File has {imports} import lines (max {max_imports:g})",
                    file=source_file.path,
                )
            if exports > max_exports:
                self.emit(
                    Severity.LOW,
                    "metrics",
                    f"File has {exports} export lines (max {max_exports:g})",
                    file=source_file.path,
                )
