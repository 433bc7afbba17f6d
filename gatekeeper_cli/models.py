"""Data models shared by the scanner, the passes and the report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple


class Severity(str, Enum):
    """Finding severity, ordered from most to least serious."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self]

    def __str__(self) -> str:
        return self.value


SEVERITY_WEIGHTS: Dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

SEVERITY_ICONS: Dict[Severity, str] = {
    Severity.CRITICAL: "🔴",
    Severity.HIGH: "🟠",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🔵",
}


@dataclass
class SourceFile:
    """One file of the scanned corpus."""
    path: str  # POSIX, relative to the project root
    abs_path: Path
    content: str
    extension: str

    @property
    def name(self) -> str:
        return self.abs_path.name

    @property
    def lines(self) -> List[str]:
        return self.content.split("\n")

    def line_of(self, offset: int) -> int:
        """1-based line number of a character offset."""
        return self.content.count("\n", 0, offset) + 1


@dataclass(frozen=True, order=True)
class ImportEdge:
    """Relative linkage from one corpus file to another."""
    source: str
    target: str

    def __str__(self) -> str:
        return f"{self.source} -> {self.target}"


@dataclass
class Finding:
    """A single reported issue."""
    severity: Severity
    category: str
    message: str
    validator: str = ""
    file: Optional[str] = None
    line: Optional[int] = None
    rule: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.severity, Severity):
            self.severity = Severity(self.severity)
        if not self.category:
            raise ValueError("Finding requires a category")

    @property
    def location(self) -> str:
        if self.file is None:
            return ""
        if self.line is None:
            return self.file
        return f"{self.file}:{self.line}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "validator": self.validator,
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
            "file": self.file,
            "line": self.line,
            "rule": self.rule,
        }

    def __str__(self) -> str:
        where = f" ({self.location})" if self.location else ""
        return f"[{self.severity.value}] {self.message}{where}"


@dataclass
class CategoryScore:
    """Weighted score of one category inside a scored pass."""
    category: str
    label: str
    raw: int
    normalized: float
    grade: str
    issues: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "label": self.label,
            "raw": self.raw,
            "normalized": self.normalized,
            "grade": self.grade,
            "issues": self.issues,
        }


@dataclass
class ValidatorResult:
    """Outcome of one pass."""
    has_errors: bool
    details: List[Finding] = field(default_factory=list)
    metrics: Optional[Dict[str, Any]] = None
    score: Optional[float] = None
    grade: Optional[str] = None

    def __str__(self) -> str:
        if not self.has_errors:
            return "✅ Passed"
        return f"❌ {len(self.details)} finding(s)"


@dataclass
class ValidationReport:
    """Everything one run produced, in run order."""
    timestamp: str
    outcomes: List[Tuple[str, ValidatorResult]] = field(default_factory=list)

    @property
    def validators_run(self) -> int:
        return len(self.outcomes)

    @property
    def validators_failed(self) -> int:
        return sum(1 for _, result in self.outcomes if result.has_errors)

    @property
    def validators_passed(self) -> int:
        return self.validators_run - self.validators_failed

    @property
    def findings(self) -> List[Finding]:
        return [f for _, result in self.outcomes for f in result.details]

    def entries(self) -> List[Tuple[str, bool, List[Finding]]]:
        return [(name, result.has_errors, result.details) for name, result in self.outcomes]

    def scores(self) -> List[Tuple[str, float, str]]:
        return [
            (name, result.score, result.grade)
            for name, result in self.outcomes
            if result.score is not None and result.grade is not None
        ]


@dataclass
class FileChange:
    """Represents changes to a single file."""
    file_path: str
    change_type: Literal["create", "modify"]
    original_content: Optional[str] = None
    new_content: Optional[str] = None
    rules: List[str] = field(default_factory=list)
    diff: str = ""

    def __post_init__(self):
        """Validate change type constraints."""
        if self.change_type == "create" and self.original_content is not None:
            raise ValueError("Create changes should not have original_content")
        if self.change_type == "modify" and (self.original_content is None or self.new_content is None):
            raise ValueError("Modify changes must have both original and new content")


@dataclass
class RemediationPlan:
    """Changes proposed by the remediation analyze phase."""
    description: str
    changes: List[FileChange] = field(default_factory=list)

    @property
    def num_files_created(self) -> int:
        return sum(1 for c in self.changes if c.change_type == "create")

    @property
    def num_files_modified(self) -> int:
        return sum(1 for c in self.changes if c.change_type == "modify")

    @property
    def is_empty(self) -> bool:
        return not self.changes


@dataclass
class ApplyResult:
    """Result of applying changes."""
    success: bool
    files_changed: List[str]
    backup_id: Optional[str] = None
    error: Optional[str] = None

    def __str__(self) -> str:
        if self.success:
            return f"✅ Applied changes to {len(self.files_changed)} files"
        return f"❌ Failed: {self.error}"
