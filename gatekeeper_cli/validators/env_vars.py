"""Declared versus used environment variables."""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from typing import Dict, List, Tuple

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)

ENV_FILES = (".env", ".env.example", ".env.local")
ENV_READS = [
    re.compile(r"process\.env\.([A-Z_][A-Z0-9_]*)"),
    re.compile(r"""process\.env\[\s*['"]([A-Z_][A-Z0-9_]*)['"]\s*\]"""),
    re.compile(r"import\.meta\.env\.([A-Z_][A-Z0-9_]*)"),
]


def parse_env_names(text: str) -> List[str]:
    """Variable names declared in dotenv text; values are never kept."""
    names = []
    for raw in text.split("\n"):
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        name = line.split("=", 1)[0].strip()
        if name.startswith("export "):
            name = name[len("export "):].strip()
        if name:
            names.append(name)
    return names


class EnvVariableValidator(Validator):
    name = "Environment Variables"
    key = "env"
    description = "Variables declared in .env files versus variables read in code"

    def declared(self) -> Dict[str, str]:
        """Declared name -> first env file declaring it."""
        names: Dict[str, str] = OrderedDict()
        for env_file in ENV_FILES:
            text = self.read_optional(env_file)
            if text is None:
                continue
            for name in parse_env_names(text):
                names.setdefault(name, env_file)
        return names

    def used(self) -> Dict[str, Tuple[str, int]]:
        """Used name -> first (file, line) reading it."""
        names: Dict[str, Tuple[str, int]] = OrderedDict()
        for source_file in self.source_files(base="."):
            for pattern in ENV_READS:
                for match in pattern.finditer(source_file.content):
                    names.setdefault(match.group(1), (source_file.path, source_file.line_of(match.start())))
        return names

    def run(self) -> None:
        declared = self.declared()
        used = self.used()
        logger.debug("%d declared, %d used environment variable(s)", len(declared), len(used))

        for name, env_file in declared.items():
            if name not in used:
                self.emit(Severity.LOW, "env", f"Environment variable {name} is declared but never used",
                          file=env_file, rule="unused-env")
        for name, (path, line) in used.items():
            if name not in declared:
                self.emit(Severity.MEDIUM, "env", f"Environment variable {name} is used but not declared",
                          file=path, line=line, rule="undeclared-env")
