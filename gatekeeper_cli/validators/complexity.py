"""Cyclomatic complexity pass."""

from __future__ import annotations

import logging
import re
from typing import List, Tuple

from ..models import Severity, SourceFile
from .base import Validator

logger = logging.getLogger(__name__)

FUNCTION_DECLARATION = re.compile(r"^(export\s+)?(async\s+)?function\s+(\w+)")
BRANCH_KEYWORDS = re.compile(r"\b(if|for|while|case|catch)\b")
BRANCH_OPERATORS = ("&&", "||")


def complexity_of(body: str) -> int:
    """``1 + count(if, for, while, case, catch, &&, ||)``."""
    count = len(BRANCH_KEYWORDS.findall(body))
    count += sum(body.count(op) for op in BRANCH_OPERATORS)
    return 1 + count


def find_functions(lines: List[str]) -> List[Tuple[int, str, str]]:
    """Return ``(line, name, body)`` for each ``function name`` declaration.

    The body runs from the declaration line until braces balance again.
    Functions nested in a found body are not reported separately.
    """
    found = []
    index = 0
    while index < len(lines):
        match = FUNCTION_DECLARATION.match(lines[index].strip())
        if not match:
            index += 1
            continue
        depth = 0
        opened = False
        cursor = index
        for cursor in range(index, len(lines)):
            text = lines[cursor]
            depth += text.count("{") - text.count("}")
            opened = opened or "{" in text
            if opened and depth <= 0:
                break
            if not opened and text.rstrip().endswith(";"):
                # overload signature without a body
                break
        found.append((index + 1, match.group(3), "\n".join(lines[index:cursor + 1])))
        index = cursor + 1
    return found


class ComplexityValidator(Validator):
    name = "Complexity"
    key = "complexity"
    description = "Cyclomatic complexity of function declarations"

    def run(self) -> None:
        medium = self.config.threshold("complexity_medium")
        high = self.config.threshold("complexity_high")
        for source_file in self.source_files(extensions=(".ts", ".tsx", ".js")):
            self._check_file(source_file, medium, high)

    def _check_file(self, source_file: SourceFile, medium: float, high: float) -> None:
        for line, name, body in find_functions(source_file.lines):
            score = complexity_of(body)
            logger.debug("%s:%d %s complexity %d", source_file.path, line, name, score)
            if score > high:
                severity = Severity.HIGH
            elif score > medium:
                severity = Severity.MEDIUM
            else:
                continue
            self.emit(severity, "complexity",
                      f"Function '{name}' has cyclomatic complexity {score}",
                      file=source_file.path, line=line, rule="cyclomatic-complexity")
