"""Validator contract shared by every analysis pass."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..config_manager import ProjectConfig
from ..import_graph import ImportGraph, ImportGraphBuilder
from ..models import Finding, Severity, SourceFile, ValidatorResult
from ..scanner import SourceCorpusScanner
from ..scoring import ScoringEngine

logger = logging.getLogger(__name__)


class Validator(ABC):
    """Base class for analysis passes.

    Subclasses implement :meth:`run`, reporting through :meth:`emit` and
    :meth:`collect`. Scored passes also set ``metrics``, ``score`` and
    ``grade``.
    """

    name: str = ""
    key: str = ""
    description: str = ""

    def __init__(
        self,
        root: Path,
        config: Optional[ProjectConfig] = None,
        scanner: Optional[SourceCorpusScanner] = None,
    ):
        self.root = Path(root)
        self.config = config or ProjectConfig()
        self.scanner = scanner or SourceCorpusScanner(self.root, self.config.excluded_dirs)
        self._sink: List[Finding] = []
        self._start = 0
        self.metrics: Optional[Dict[str, Any]] = None
        self.score: Optional[float] = None
        self.grade: Optional[str] = None

    def validate(self, findings: Optional[List[Finding]] = None) -> ValidatorResult:
        """Run the pass, appending every finding to ``findings``.

        Exceptions raised by the pass propagate; findings appended before
        the failure stay in ``findings``.
        """
        self._sink = findings if findings is not None else []
        self._start = len(self._sink)
        self.metrics, self.score, self.grade = None, None, None

        logger.info("Running %s", self.name)
        self.run()
        own = self.own_findings()
        logger.info("%s finished with %d finding(s)", self.name, len(own))

        return ValidatorResult(
            has_errors=bool(own),
            details=list(own),
            metrics=self.metrics,
            score=self.score,
            grade=self.grade,
        )

    @abstractmethod
    def run(self) -> None:
        """Analyze the project."""

    # ── reporting ────────────────────────────────────────────
    def emit(
        self,
        severity: Severity,
        category: str,
        message: str,
        file: Optional[str] = None,
        line: Optional[int] = None,
        rule: Optional[str] = None,
    ) -> Finding:
        finding = Finding(
            severity=severity,
            category=category,
            message=message,
            validator=self.name,
            file=file,
            line=line,
            rule=rule,
        )
        self._sink.append(finding)
        return finding

    def collect(self, findings: Iterable[Finding]) -> List[Finding]:
        """Append rule findings, stamping this pass as their origin."""
        added = []
        for finding in findings:
            finding.validator = self.name
            self._sink.append(finding)
            added.append(finding)
        return added

    # ── project access ───────────────────────────────────────
    def layout(self, key: str) -> str:
        return self.config.layout[key]

    def path_of(self, rel: str) -> Path:
        return self.root / rel

    def exists(self, rel: str) -> bool:
        return (self.root / rel).exists()

    def source_files(self, base: Optional[str] = None, extensions: Optional[Iterable[str]] = None) -> List[SourceFile]:
        return self.scanner.scan(
            base if base is not None else self.layout("source"),
            list(extensions) if extensions is not None else self.config.extensions,
        )

    def build_graph(self, files: Iterable[SourceFile]) -> ImportGraph:
        return ImportGraphBuilder(self.config.default_extension).build(files)

    def read_optional(self, rel: str) -> Optional[str]:
        """Read an optional input; absent or unreadable files yield None."""
        path = self.root / rel
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None

    def read_json(self, rel: str) -> Optional[Dict[str, Any]]:
        """Parse a JSON input. Absent yields None; malformed content raises."""
        text = self.read_optional(rel)
        if text is None:
            return None
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"{rel} must contain a JSON object")
        return data

    def read_manifest(self) -> Optional[Dict[str, Any]]:
        return self.read_json(self.layout("manifest"))

    def own_findings(self) -> List[Finding]:
        """Findings this pass appended during the current run."""
        return self._sink[self._start:]


class ScoredValidator(Validator):
    """A pass whose findings feed a :class:`ScoringEngine`."""

    categories: Dict[str, str] = {}
    k: float = 10

    def scoring_engine(self) -> ScoringEngine:
        engine = ScoringEngine(self.categories, self.k)
        engine.extend(self.own_findings())
        return engine
