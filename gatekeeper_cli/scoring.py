"""Severity-weighted scoring and letter grades."""

from __future__ import annotations

import math
from collections import OrderedDict
from typing import Dict, Iterable, List, Mapping, Optional

from .models import SEVERITY_WEIGHTS, CategoryScore, Finding, Severity

GRADE_BANDS = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (45, "D+"),
    (40, "D"),
)


def weight(severity: Severity) -> int:
    return SEVERITY_WEIGHTS[Severity(severity)]


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores."""
    return int(math.floor(value + 0.5))


def normalize(raw: float, k: float = 10) -> float:
    """``clamp(100 - raw * k, 0, 100)``."""
    return clamp(100 - raw * k)


def grade(score: float) -> str:
    for threshold, letter in GRADE_BANDS:
        if score >= threshold:
            return letter
    return "F"


def blend(scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted sum of ``scores`` over the keys of ``weights``."""
    return sum(scores[name] * w for name, w in weights.items())


class ScoringEngine:
    """Accumulates findings per category for one scored pass run."""

    def __init__(self, categories: Mapping[str, str], k: float = 10):
        """
        Args:
            categories: Ordered mapping of category key to display label
            k: Default normalization factor
        """
        self.labels: Dict[str, str] = OrderedDict(categories)
        self.k = k
        self._findings: Dict[str, List[Finding]] = OrderedDict((c, []) for c in categories)

    def add(self, finding: Finding) -> None:
        if finding.category not in self._findings:
            self.labels[finding.category] = finding.category
            self._findings[finding.category] = []
        self._findings[finding.category].append(finding)

    def extend(self, findings: Iterable[Finding]) -> None:
        for finding in findings:
            self.add(finding)

    def findings(self, category: str) -> List[Finding]:
        return list(self._findings.get(category, ()))

    def raw_score(self, category: str) -> int:
        return sum(weight(f.severity) for f in self._findings.get(category, ()))

    def total_raw(self) -> int:
        return sum(self.raw_score(c) for c in self._findings)

    def category_score(self, category: str, k: Optional[float] = None) -> CategoryScore:
        raw = self.raw_score(category)
        normalized = normalize(raw, self.k if k is None else k)
        return CategoryScore(
            category=category,
            label=self.labels.get(category, category),
            raw=raw,
            normalized=normalized,
            grade=grade(normalized),
            issues=len(self._findings.get(category, ())),
        )

    def category_scores(self, k: Optional[float] = None) -> List[CategoryScore]:
        return [self.category_score(c, k) for c in self._findings]

    def severity_counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in Severity}
        for findings in self._findings.values():
            for f in findings:
                counts[f.severity.value] += 1
        return counts
