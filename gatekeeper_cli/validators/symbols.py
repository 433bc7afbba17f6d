"""Duplicate class and interface declarations across source files."""

from __future__ import annotations

import logging
import re
from typing import Dict, Tuple

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)

DECLARATION = re.compile(r"^(export\s+)?(?:(?:abstract|declare)\s+)?(class|interface)\s+(\w+)")


class DuplicateSymbolValidator(Validator):
    name = "Duplicate Symbols"
    key = "symbols"
    description = "Classes and interfaces declared more than once"

    def run(self) -> None:
        first_seen: Dict[Tuple[str, str], Tuple[str, int]] = {}
        for source_file in self.source_files(extensions=(".ts", ".tsx")):
            for number, text in enumerate(source_file.lines, start=1):
                match = DECLARATION.match(text.strip())
                if not match:
                    continue
                kind, symbol = match.group(2), match.group(3)
                seen = first_seen.get((kind, symbol))
                if seen is None:
                    first_seen[(kind, symbol)] = (source_file.path, number)
                    continue
                if seen[0] == source_file.path:
                    # declaration merging inside one file
                    continue
                self.emit(
                    Severity.HIGH,
                    "symbols",
                    f"{kind} {symbol} declared in {seen[0]}:{seen[1]} and {source_file.path}:{number}",
                    file=source_file.path,
                    line=number,
                    rule="duplicate-symbol",
                )
        logger.debug("%d distinct declaration(s)", len(first_seen))
