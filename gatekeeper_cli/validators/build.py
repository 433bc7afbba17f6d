"""Build output completeness. The build itself is never executed."""

from __future__ import annotations

import logging
import posixpath

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)


class BuildOutputValidator(Validator):
    name = "Build Output"
    key = "build"
    description = "Every compiled source file has a counterpart in the build output"

    def run(self) -> None:
        source = self.layout("source").rstrip("/")
        output = self.layout("build_output").rstrip("/")
        if not (self.root / output).is_dir():
            self.emit(Severity.HIGH, "build", f"Build output directory {output} is missing",
                      file=output, rule="build-output-missing")
            return

        for path in self.scanner.list_paths(source, (".ts",)):
            rel = self.scanner.relative(path)
            if rel.endswith(".d.ts"):
                continue
            inner = posixpath.relpath(rel, source)
            expected = posixpath.join(output, inner[:-len(".ts")] + ".js")
            logger.debug("Expecting %s for %s", expected, rel)
            if not (self.root / expected).is_file():
                self.emit(Severity.MEDIUM, "build", f"Compiled file {expected} is missing",
                          file=rel, rule="build-output-file")
