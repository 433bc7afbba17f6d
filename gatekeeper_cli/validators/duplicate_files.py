"""Source files with identical content."""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from typing import Dict, List

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)


class DuplicateFileValidator(Validator):
    name = "Duplicate Files"
    key = "duplicates"
    description = "Source files whose bytes are identical"

    def run(self) -> None:
        by_hash: Dict[str, List[str]] = OrderedDict()
        for path in self.scanner.list_paths(self.layout("source"), self.config.extensions):
            digest = hashlib.sha256(path.read_bytes()).hexdigest()
            by_hash.setdefault(digest, []).append(self.scanner.relative(path))
        logger.debug("%d distinct content hash(es)", len(by_hash))

        for paths in by_hash.values():
            first = paths[0]
            for duplicate in paths[1:]:
                self.emit(Severity.MEDIUM, "duplicates", f"Identical content to {first}",
                          file=duplicate, rule="duplicate-content")
