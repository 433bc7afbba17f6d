"""Compiler configuration: output directory, include patterns and strict mode."""

from __future__ import annotations

import logging

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)


class CompilerConfigValidator(Validator):
    name = "Compiler Config"
    key = "compiler"
    description = "tsconfig.json declares outDir, valid include patterns and strict mode"

    def run(self) -> None:
        rel = self.layout("compiler_config")
        data = self.read_json(rel)
        if data is None:
            self.emit(Severity.MEDIUM, "compiler", f"{rel} not found", file=rel, rule="compiler-config")
            return

        options = data.get("compilerOptions") or {}
        if not options.get("outDir"):
            self.emit(Severity.MEDIUM, "compiler", "compilerOptions.outDir is not set",
                      file=rel, rule="compiler-out-dir")
        if options.get("strict") is not True:
            self.emit(Severity.MEDIUM, "compiler", "compilerOptions.strict is not enabled",
                      file=rel, rule="compiler-strict")

        include = data.get("include")
        if not include:
            self.emit(Severity.LOW, "compiler", "No include patterns declared", file=rel, rule="compiler-include")
            return
        logger.debug("Include patterns in %s: %s", rel, include)
        for pattern in include:
            base = str(pattern).split("*", 1)[0].rstrip("/") or "."
            if not (self.root / base).exists():
                self.emit(Severity.LOW, "compiler", f"Include pattern {pattern} matches no directory",
                          file=rel, rule="compiler-include")
