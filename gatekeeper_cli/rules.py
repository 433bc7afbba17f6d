"""Named, independently testable rules used by the analysis passes."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from .models import Finding, Severity, SourceFile

# A matcher yields (line or None, message) pairs for one file
Matcher = Callable[[SourceFile], Iterable[Tuple[Optional[int], str]]]
Scope = Callable[[SourceFile], bool]


def is_comment_line(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(("//", "/*", "*"))


def _compile(pattern: Union[str, Pattern]) -> Pattern:
    return re.compile(pattern) if isinstance(pattern, str) else pattern


@dataclass(frozen=True)
class Rule:
    """A named predicate producing findings for a single file."""
    id: str
    description: str
    severity: Severity
    category: str
    matcher: Matcher
    scope: Optional[Scope] = None

    def applies_to(self, source_file: SourceFile) -> bool:
        return self.scope is None or self.scope(source_file)

    def match(self, source_file: SourceFile) -> List[Finding]:
        if not self.applies_to(source_file):
            return []
        return [
            Finding(
                severity=self.severity,
                category=self.category,
                message=message,
                file=source_file.path,
                line=line,
                rule=self.id,
            )
            for line, message in self.matcher(source_file)
        ]


def line_rule(
    rule_id: str,
    description: str,
    severity: Severity,
    category: str,
    pattern: Union[str, Pattern],
    message: str,
    exclude: Optional[Union[str, Pattern]] = None,
    scope: Optional[Scope] = None,
    skip_comments: bool = True,
) -> Rule:
    """Rule that fires once per line matching ``pattern``.

    ``message`` may use ``{line}`` (the stripped source line) and ``{match}``.
    Lines matching ``exclude`` are ignored.
    """
    compiled = _compile(pattern)
    excluded = _compile(exclude) if exclude is not None else None

    def matcher(source_file: SourceFile):
        for number, text in enumerate(source_file.lines, start=1):
            if skip_comments and is_comment_line(text):
                continue
            found = compiled.search(text)
            if not found:
                continue
            if excluded is not None and excluded.search(text):
                continue
            yield number, message.format(line=text.strip(), match=found.group(0))

    return Rule(rule_id, description, severity, category, matcher, scope)


def file_rule(
    rule_id: str,
    description: str,
    severity: Severity,
    category: str,
    predicate: Callable[[str], bool],
    message: str,
    scope: Optional[Scope] = None,
) -> Rule:
    """Rule that fires at most once per file when ``predicate(content)`` holds."""

    def matcher(source_file: SourceFile):
        if predicate(source_file.content):
            yield None, message

    return Rule(rule_id, description, severity, category, matcher, scope)


def contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda content: any(n in content for n in needles)


def lacks_all(*needles: str) -> Callable[[str], bool]:
    return lambda content: not any(n in content for n in needles)


def path_under(*prefixes: str) -> Scope:
    """Scope: file path starts with one of the directory prefixes."""
    normalized = tuple(p.rstrip("/") + "/" for p in prefixes if p)
    return lambda source_file: source_file.path.startswith(normalized)


def path_contains(*fragments: str) -> Scope:
    return lambda source_file: any(f in source_file.path for f in fragments)


def all_of(*scopes: Scope) -> Scope:
    return lambda source_file: all(s(source_file) for s in scopes)


def run_rules(rules: Sequence[Rule], source_file: SourceFile) -> List[Finding]:
    findings: List[Finding] = []
    for rule in rules:
        findings.extend(rule.match(source_file))
    return findings
