"""Manifest dependencies that no source file imports."""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)

ALWAYS_USED = ("typescript",)


def _declared(manifest: Dict) -> List[str]:
    names: List[str] = []
    for section in ("dependencies", "devDependencies"):
        block = manifest.get(section) or {}
        if not isinstance(block, dict):
            raise ValueError(f"'{section}' must be an object")
        names.extend(n for n in block if n not in names)
    return names


def _mentioned(name: str, scripts: str) -> bool:
    return re.search(r"(?<![\w@/.-])" + re.escape(name) + r"(?![\w-])", scripts) is not None


class UnusedDependencyValidator(Validator):
    name = "Unused Dependencies"
    key = "dependencies"
    description = "Declared packages never imported, required or run from scripts"

    def run(self) -> None:
        manifest = self.read_manifest()
        if manifest is None:
            logger.debug("No manifest; nothing declared")
            return

        graph = self.build_graph(self.source_files(base="."))
        imported = graph.all_packages()
        scripts = " ".join(str(v) for v in (manifest.get("scripts") or {}).values())
        manifest_path = self.layout("manifest")

        for name in _declared(manifest):
            if name in ALWAYS_USED or name.startswith("@types/"):
                continue
            if name in imported or _mentioned(name, scripts):
                continue
            self.emit(Severity.LOW, "dependencies", f"Dependency {name} is never used",
                      file=manifest_path, rule="unused-dependency")
