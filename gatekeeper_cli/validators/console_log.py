"""Debug output left in production code."""

from __future__ import annotations

import posixpath
import re
from typing import List

from ..models import Severity, SourceFile
from ..rules import Rule, line_rule, run_rules
from .base import Validator

CONSOLE_CALL = re.compile(r"\bconsole\.(log|warn|error|debug|info)\b")


def _not_a_logger(source_file: SourceFile) -> bool:
    name = posixpath.basename(source_file.path).lower()
    return "logger" not in name and "debug" not in name


class ConsoleLogValidator(Validator):
    name = "Debug Output"
    key = "console"
    description = "console.* calls outside logger modules"

    def rules(self) -> List[Rule]:
        return [
            line_rule("console-call", "Use the project logger instead of console output",
                      Severity.LOW, "debug-output", CONSOLE_CALL, "Console output: {line}",
                      scope=_not_a_logger),
        ]

    def run(self) -> None:
        rules = self.rules()
        for source_file in self.source_files():
            self.collect(run_rules(rules, source_file))
