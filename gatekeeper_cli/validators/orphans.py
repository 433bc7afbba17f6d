"""Source files nothing links to."""

from __future__ import annotations

import logging
import posixpath

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)


class OrphanFileValidator(Validator):
    name = "Orphan Files"
    key = "orphans"
    description = "Source files never targeted by a relative import"

    def run(self) -> None:
        files = self.source_files()
        graph = self.build_graph(files)
        entry_points = set(self.config.entry_points)
        logger.debug("%d resolved relative target(s)", len(graph.resolved_targets))

        for source_file in files:
            if source_file.extension != ".ts" or source_file.path.endswith(".d.ts"):
                continue
            if posixpath.basename(source_file.path) in entry_points:
                continue
            if source_file.path not in graph.resolved_targets:
                self.emit(Severity.LOW, "orphans", "File is not imported anywhere",
                          file=source_file.path, rule="orphan-file")
