"""Type-looseness pass: explicit ``any`` and other weak typing."""

from __future__ import annotations

import re
from typing import List

from ..models import Severity, SourceFile
from ..rules import Rule, is_comment_line, line_rule, run_rules
from .base import Validator

ANY_PATTERNS = [
    re.compile(r":\s*any\b"),
    re.compile(r"\bas\s+any\b"),
    re.compile(r"<any>"),
    re.compile(r"Array<any>"),
    re.compile(r"Promise<any>"),
]
ESLINT_DISABLE = re.compile(r"eslint-disable|@typescript-eslint/no-explicit-any")
PRIMITIVE_ASSERTION = re.compile(r"\bas\s+(string|number|boolean)\b")
UNCONSTRAINED_GENERIC = re.compile(r"<[TKV]>")
UNSAFE_ACCESS = re.compile(r"\.(data|body|params|query)\.")
NULL_CHECK_MARKERS = ("if (", "?.", "null", "undefined")
ASSERTION = re.compile(r"\bas\s+\w+")


def _explicit_any(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        if is_comment_line(text) or ESLINT_DISABLE.search(text):
            continue
        if any(p.search(text) for p in ANY_PATTERNS):
            yield number, f"Explicit 'any': {text.strip()}"


def _unsafe_access(source_file: SourceFile):
    lines = source_file.lines
    for index, text in enumerate(lines):
        if is_comment_line(text) or not UNSAFE_ACCESS.search(text):
            continue
        window = lines[max(0, index - 3):index + 4]
        if not any(marker in l for l in window for marker in NULL_CHECK_MARKERS):
            yield index + 1, f"Property chain without a null check: {text.strip()}"


class TypeSafetyValidator(Validator):
    """Flags loose typing in TypeScript sources."""

    name = "Type Safety"
    key = "type-safety"
    description = "Explicit any, primitive assertions, unconstrained generics"

    def rules(self) -> List[Rule]:
        max_assertions = self.config.threshold("max_type_assertions")

        def assertion_overuse(source_file: SourceFile):
            count = len(ASSERTION.findall(source_file.content))
            if count > max_assertions:
                yield None, f"{count} type assertions in one file (max {max_assertions:g})"

        return [
            Rule("explicit-any", "No explicit any", Severity.MEDIUM, "type-safety", _explicit_any),
            line_rule(
                "primitive-assertion",
                "Assertions to primitives hide conversions",
                Severity.LOW,
                "type-safety",
                PRIMITIVE_ASSERTION,
                "Assertion to a primitive type: {line}",
            ),
            line_rule(
                "unconstrained-generic",
                "Generic parameters should carry a constraint",
                Severity.LOW,
                "type-safety",
                UNCONSTRAINED_GENERIC,
                "Generic without constraint: {line}",
            ),
            Rule(
                "unchecked-property-chain",
                "Request/response chains need a null check nearby",
                Severity.LOW,
                "type-safety",
                _unsafe_access,
            ),
            Rule(
                "assertion-overuse",
                "Too many type assertions in one file",
                Severity.LOW,
                "type-safety",
                assertion_overuse,
            ),
        ]

    def run(self) -> None:
        rules = self.rules()
        for source_file in self.source_files(extensions=(".ts", ".tsx")):
            if source_file.path.endswith(".d.ts"):
                continue
            self.collect(run_rules(rules, source_file))
