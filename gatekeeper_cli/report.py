"""Markdown governance report."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .models import SEVERITY_ICONS, Finding

logger = logging.getLogger(__name__)

Entry = Tuple[str, bool, Sequence[Finding]]
ScoreRow = Tuple[str, float, str]

TITLE = "# 🏭 Governance Report"


def _summary(entries: Sequence[Entry], timestamp: str) -> List[str]:
    total = len(entries)
    failed = sum(1 for _, has_errors, _ in entries if has_errors)
    lines = [
        TITLE,
        "",
        f"**Date:** {timestamp}",
        "",
        "## 📊 Executive Summary",
        "",
        "| Validators run | Passed | Failed |",
        "|----------------|--------|--------|",
        f"| {total} | {total - failed} | {failed} |",
        "",
    ]
    if failed:
        lines += ["## ❌ Issues Detected", ""]
        for name, has_errors, details in entries:
            if has_errors:
                lines.append(f"- **{name}**: {len(details)} issue(s)")
        lines += ["", "> 💡 Review the detailed sections below and fix the findings.", ""]
    else:
        lines += [
            "## ✅ All Clear",
            "",
            "Every validator passed. The project meets its quality and maintainability standards.",
            "",
        ]
    return lines


def _scores(scores: Sequence[ScoreRow]) -> List[str]:
    lines = ["## 🏆 Scores", "", "| Area | Score | Grade |", "|------|-------|-------|"]
    for name, score, letter in scores:
        lines.append(f"| {name} | {score:g}/100 | {letter} |")
    lines.append("")
    return lines


def _bullet(finding: Finding) -> str:
    icon = SEVERITY_ICONS[finding.severity]
    if finding.file is None:
        return f"- {icon} {finding.message}"
    line = finding.line if finding.line is not None else ""
    return f"- {icon} `{finding.file}`:{line} → {finding.message}"


def _section(name: str, details: Sequence[Finding]) -> List[str]:
    lines = [f"## 🔍 {name}", "", f"{len(details)} issue(s) found:", ""]
    lines += [_bullet(f) for f in details]
    lines += ["", "---", ""]
    return lines


def render(entries: Sequence[Entry], timestamp: str, scores: Optional[Sequence[ScoreRow]] = None) -> str:
    """Render the report for ordered ``(name, has_errors, details)`` entries.

    Only failing validators get a detail section. Output depends on the
    arguments alone.
    """
    lines = _summary(entries, timestamp)
    if scores:
        lines += _scores(scores)
    for name, has_errors, details in entries:
        if has_errors:
            lines += _section(name, details)
    return "\n".join(lines).rstrip("\n") + "\n"


def write(path: Path, text: str) -> Path:
    """Write the report, replacing any previous one."""
    path = Path(path)
    path.write_text(text, encoding="utf-8")
    logger.info("Report written to %s", path)
    return path
