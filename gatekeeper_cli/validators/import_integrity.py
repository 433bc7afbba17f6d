"""Relative imports whose target does not exist on disk."""

from __future__ import annotations

import logging

from ..import_graph import resolve_relative
from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)


class ImportIntegrityValidator(Validator):
    name = "Import Integrity"
    key = "imports"
    description = "Relative import targets exist"

    def target_exists(self, resolved: str) -> bool:
        if (self.root / resolved).is_file():
            return True
        # ESM sources import compiled names: './x.js' for 'x.ts'
        if resolved.endswith(".js"):
            return (self.root / (resolved[:-3] + ".ts")).is_file()
        return False

    def run(self) -> None:
        files = self.source_files(base=".")
        graph = self.build_graph(files)
        for source_file in files:
            for line, target in graph.statements_of(source_file.path):
                if not target.startswith("."):
                    continue
                resolved = resolve_relative(source_file.path, target, self.config.default_extension)
                logger.debug("%s:%d %s -> %s", source_file.path, line, target, resolved)
                if resolved is None:
                    self.emit(Severity.HIGH, "imports", f"Import {target} points outside the project",
                              file=source_file.path, line=line, rule="broken-import")
                elif not self.target_exists(resolved):
                    self.emit(Severity.HIGH, "imports", f"Import {target} resolves to missing file {resolved}",
                              file=source_file.path, line=line, rule="broken-import")
