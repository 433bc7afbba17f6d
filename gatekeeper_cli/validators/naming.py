"""Naming convention pass."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import List

from ..models import Severity, SourceFile
from ..rules import Rule, run_rules
from .base import Validator

logger = logging.getLogger(__name__)

PASCAL_CASE = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
CAMEL_CASE = re.compile(r"^[a-z][a-zA-Z0-9]*$")
KEBAB_CASE = re.compile(r"^[a-z][a-z0-9\-]*[a-z0-9]$")

TYPE_DECLARATION = re.compile(r"^(export\s+)?(class|interface)\s+(\w+)")
FUNCTION_DECLARATION = re.compile(r"^(export\s+)?function\s+(\w+)")


def _declarations(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        line = text.strip()
        match = TYPE_DECLARATION.match(line)
        if match and not PASCAL_CASE.match(match.group(3)):
            kind = match.group(2).capitalize()
            yield number, f"{kind} '{match.group(3)}' should be PascalCase"
        match = FUNCTION_DECLARATION.match(line)
        if match and not CAMEL_CASE.match(match.group(2)):
            yield number, f"Function '{match.group(2)}' should be camelCase"


class NamingValidator(Validator):
    """PascalCase types, camelCase functions, kebab-case page and stylesheet names."""

    name = "Naming"
    key = "naming"
    description = "Class, interface, function and asset file naming conventions"

    def rules(self) -> List[Rule]:
        return [
            Rule("identifier-case", "Types are PascalCase and functions camelCase",
                 Severity.LOW, "naming", _declarations),
        ]

    def run(self) -> None:
        rules = self.rules()
        for source_file in self.source_files(extensions=(".ts", ".tsx")):
            self.collect(run_rules(rules, source_file))

        for path in self.scanner.list_paths(".", (".html", ".css")):
            rel = self.scanner.relative(path)
            stem = posixpath.splitext(posixpath.basename(rel))[0]
            logger.debug("Asset %s has stem %s", rel, stem)
            if not KEBAB_CASE.match(stem):
                self.emit(Severity.LOW, "naming", f"File name should be kebab-case: {stem}",
                          file=rel, line=1, rule="file-kebab-case")
