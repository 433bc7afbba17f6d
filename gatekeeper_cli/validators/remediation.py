"""Remediation pass.

Analyzing is read-only: every rule is run in memory and the resulting
edits are kept as a :class:`RemediationPlan`. Writing happens only when
the plan is handed to :class:`~gatekeeper_cli.diff_engine.DiffEngine`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..config_manager import ProjectConfig
from ..diff_engine import DiffEngine, read_exact
from ..models import FileChange, RemediationPlan, Severity
from ..rules import is_comment_line
from ..scanner import SourceCorpusScanner
from .base import Validator

logger = logging.getLogger(__name__)

REMEDIATION_EXTENSIONS = (".ts", ".js")

# Strings and comments, which no code rule may touch
CODE_TOKENS = re.compile(
    r"""//[^\n]*|/\*.*?\*/|'(?:\\.|[^'\\\n])*'|"(?:\\.|[^"\\\n])*"|`(?:\\.|[^`\\])*`""",
    re.DOTALL,
)
SENTINEL = re.compile(r"\x00(\d+)\x00")


def on_code(content: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to ``content`` with strings and comments masked out."""
    tokens: List[str] = []

    def mask(match):
        tokens.append(match.group(0))
        return f"\x00{len(tokens) - 1}\x00"

    masked = CODE_TOKENS.sub(mask, content)
    return SENTINEL.sub(lambda m: tokens[int(m.group(1))], transform(masked))


# ── organize-imports ─────────────────────────────────────────
GROUP_HEADERS = ("// External imports", "// Internal imports", "// Type imports")
IMPORT_LINE = re.compile(r"^import\s")
SINGLE_LINE_IMPORT = re.compile(r"""^import\s.*\bfrom\s+['"][^'"]+['"]|^import\s+['"][^'"]+['"]""")
INTERNAL_TARGET = re.compile(r"""(?:from\s+|^import\s+)['"]\.""")


def _import_sort_key(line: str) -> str:
    # stable under the formatting rule
    return re.sub(r",\s*", ", ", line).rstrip()


def organize_imports(content: str) -> str:
    """Group top-level imports into external, internal and type blocks.

    A leading comment block stays on top. Files with a multi-line import
    statement are left alone.
    """
    lines = content.split("\n")
    if not any(IMPORT_LINE.match(l) for l in lines):
        return content
    if any(IMPORT_LINE.match(l) and not SINGLE_LINE_IMPORT.match(l) for l in lines):
        return content

    index = 0
    prefix: List[str] = []
    while index < len(lines):
        line = lines[index]
        if line.strip() in GROUP_HEADERS:
            break
        if not (line.startswith("#!") or is_comment_line(line)):
            break
        prefix.append(line)
        index += 1

    rest = lines[index:]
    imports = [l for l in rest if IMPORT_LINE.match(l)]
    body = [l for l in rest if not IMPORT_LINE.match(l) and l.strip() not in GROUP_HEADERS]
    while body and not body[0].strip():
        body.pop(0)

    groups: Dict[str, List[str]] = {header: [] for header in GROUP_HEADERS}
    for line in imports:
        if line.startswith("import type "):
            groups["// Type imports"].append(line)
        elif INTERNAL_TARGET.search(line):
            groups["// Internal imports"].append(line)
        else:
            groups["// External imports"].append(line)

    organized = list(prefix)
    if prefix:
        organized.append("")
    for header in GROUP_HEADERS:
        if groups[header]:
            organized.append(header)
            organized.extend(sorted(groups[header], key=_import_sort_key))
            organized.append("")
    organized.extend(body)
    return "\n".join(organized)


# ── strict-types ─────────────────────────────────────────────
def strict_types(content: str) -> str:
    def transform(code: str) -> str:
        code = re.sub(r":\s*any\b", ": unknown", code)
        return re.sub(r"\bas\s+any\b", "as unknown", code)
    return on_code(content, transform)


# ── formatting ───────────────────────────────────────────────
COMPARISON = re.compile(r"(?<=[^\s<>=!&|])[ \t]*(===|!==|==|!=|<=|>=|&&|\|\|)(?!=)[ \t]*(?=\S)")
ASSIGNMENT = re.compile(r"(?<=[\w)\]])[ \t]*=(?![=>])[ \t]*(?=\S)")
COMMA = re.compile(r",(?=[^\s,)\]])")
BEFORE_CLOSING = re.compile(r"(?<=\S)[ \t]+(?=[)\]])")
TRAILING = re.compile(r"[ \t]+(?=\n)")


def formatting(content: str) -> str:
    """Normalize spacing around operators, after commas and before ``)``/``]``."""
    def transform(code: str) -> str:
        code = COMPARISON.sub(r" \1 ", code)
        code = ASSIGNMENT.sub(" = ", code)
        code = COMMA.sub(", ", code)
        code = BEFORE_CLOSING.sub("", code)
        code = TRAILING.sub("", code)
        return re.sub(r"[ \t]+\Z", "", code)
    return on_code(content, transform)


# ── default-export ───────────────────────────────────────────
NAMED_EXPORT = re.compile(
    r"^export\s+(?:abstract\s+)?(?:async\s+)?(?:class|function|const)\s+(\w+)", re.MULTILINE
)


def default_export(content: str) -> str:
    if re.search(r"^\s*export\s+default\b", content, re.MULTILINE):
        return content
    names = NAMED_EXPORT.findall(content)
    if len(names) != 1:
        return content
    return content.rstrip("\n") + f"\n\nexport default {names[0]};\n"


# ── constant-naming ──────────────────────────────────────────
PRIMITIVE_CONST = re.compile(
    r"""^const\s+([a-z][a-zA-Z0-9]*)\s*(?::\s*\w+\s*)?=\s*"""
    r"""(-?\d+(?:\.\d+)?|'[^'\\\n]*'|"[^"\\\n]*"|true|false|null)\s*;?\s*$"""
)


def upper_snake(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name).upper()


def _enclosing_bracket(code: str, index: int) -> Optional[str]:
    """Innermost unclosed bracket before ``index``, or None at top level."""
    closed: List[str] = []
    for char in reversed(code[:index]):
        if char in ")]}":
            closed.append(char)
        elif char in "([{":
            if not closed:
                return char
            closed.pop()
    return None


def _rename_binding(code: str, name: str, new_name: str) -> str:
    """Rename ``name`` everywhere except object keys; shorthand properties keep their key."""
    def replace(match):
        before = code[:match.start()].rstrip()[-1:]
        after = code[match.end():].lstrip()[:1]
        if before in ("{", ",") and _enclosing_bracket(code, match.start()) == "{":
            if after == ":":
                return name
            if after in (",", "}"):
                return f"{name}: {new_name}"
        return new_name
    return re.sub(rf"(?<![\w.$]){name}(?![\w$])", replace, code)


def _interpolated(name: str, content: str) -> bool:
    templates = [t for t in CODE_TOKENS.findall(content) if t.startswith("`")]
    return any(re.search(rf"\$\{{[^}}]*(?<![\w.$]){name}(?![\w$])", t) for t in templates)


def constant_naming(content: str) -> str:
    """Rename top-level non-exported primitive constants to UPPER_SNAKE_CASE."""
    renames: Dict[str, str] = {}
    for line in content.split("\n"):
        match = PRIMITIVE_CONST.match(line)
        if not match:
            continue
        name = match.group(1)
        new_name = upper_snake(name)
        if len(name) <= 3 or re.search(rf"\b{new_name}\b", content):
            continue
        if _interpolated(name, content):
            # names inside template interpolations are masked from the rename
            continue
        renames[name] = new_name
    if not renames:
        return content

    def transform(code: str) -> str:
        for name, new_name in renames.items():
            code = _rename_binding(code, name, new_name)
        return code
    return on_code(content, transform)


# ── console-to-logger ────────────────────────────────────────
CONSOLE_TO_LOGGER = {
    "log": "info",
    "error": "error",
    "warn": "warn",
    "info": "info",
    "debug": "debug",
}
CONSOLE_CALL = re.compile(r"(?<![\w.$])console\.(log|error|warn|info|debug)\(")


def console_to_logger(content: str) -> str:
    if "logger" in content:
        return content
    return on_code(content, lambda code: CONSOLE_CALL.sub(
        lambda m: f"logger.{CONSOLE_TO_LOGGER[m.group(1)]}(", code))


# ── config-files ─────────────────────────────────────────────
PRETTIER_DEFAULTS = {
    "semi": True,
    "trailingComma": "es5",
    "singleQuote": True,
    "printWidth": 80,
    "tabWidth": 2,
    "useTabs": False,
}
ESLINT_IGNORE = ["dist/", "node_modules/", "coverage/", "*.min.js", "*.config.js"]

CONFIG_FILES = {
    ".prettierrc": json.dumps(PRETTIER_DEFAULTS, indent=2) + "\n",
    ".eslintignore": "\n".join(ESLINT_IGNORE) + "\n",
}


@dataclass(frozen=True)
class FixRule:
    """A content rewrite; ``transform`` must be idempotent."""
    id: str
    description: str
    transform: Optional[Callable[[str], str]] = None


FIX_RULES: List[FixRule] = [
    FixRule("organize-imports", "Imports can be grouped into external, internal and type blocks", organize_imports),
    FixRule("strict-types", "'any' can be replaced with 'unknown'", strict_types),
    FixRule("formatting", "Operator, comma and bracket spacing can be normalized", formatting),
    FixRule("default-export", "Single export can also be the default export", default_export),
    FixRule("constant-naming", "Primitive constants can be renamed to UPPER_SNAKE_CASE", constant_naming),
    FixRule("console-to-logger", "console output can be routed through the logger", console_to_logger),
    FixRule("config-files", "Formatter and linter-ignore configuration can be created"),
]
FIX_RULE_IDS = [rule.id for rule in FIX_RULES]


class RemediationValidator(Validator):
    """Reports what each fix rule would change, without writing anything."""

    name = "Remediation"
    key = "remediation"
    description = "Automatic fixes available (analysis only)"

    def __init__(
        self,
        root: Path,
        config: Optional[ProjectConfig] = None,
        scanner: Optional[SourceCorpusScanner] = None,
        rules: Optional[Sequence[str]] = None,
    ):
        super().__init__(root, config, scanner)
        unknown = [r for r in rules or () if r not in FIX_RULE_IDS]
        if unknown:
            raise ValueError(f"Unknown fix rule(s): {', '.join(unknown)}")
        self.selected = list(rules) if rules else list(FIX_RULE_IDS)
        self.diff_engine = DiffEngine(self.root)
        self.plan = RemediationPlan(description="No changes")

    def active_rules(self) -> List[FixRule]:
        return [rule for rule in FIX_RULES if rule.id in self.selected]

    def run(self) -> None:
        self.plan = self.analyze()

    def read_sources(self) -> List[Tuple[str, str]]:
        """``(path, content)`` for remediable files, read byte-exact.

        Files that are not valid UTF-8 are skipped so they are never rewritten.
        """
        sources = []
        for path in self.scanner.list_paths(self.layout("source"), REMEDIATION_EXTENSIONS):
            rel = self.scanner.relative(path)
            try:
                sources.append((rel, read_exact(path)))
            except UnicodeDecodeError as exc:
                logger.warning("Skipping %s: not valid UTF-8 (%s)", rel, exc.reason)
        return sources

    def analyze(self) -> RemediationPlan:
        """Build the plan and emit one finding per (file, rule) that would change."""
        changes: List[FileChange] = []
        content_rules = [r for r in self.active_rules() if r.transform is not None]

        for rel, original in self.read_sources():
            # rules see LF text; uniformly CRLF files get CRLF back
            crlf = "\r\n" in original and original.count("\r\n") == original.count("\n")
            current = original.replace("\r\n", "\n") if crlf else original
            applied = []
            for rule in content_rules:
                updated = rule.transform(current)
                if updated == current:
                    continue
                applied.append(rule.id)
                self.emit(Severity.LOW, "remediation", rule.description, file=rel, rule=rule.id)
                current = updated
            if applied:
                new_content = current.replace("\n", "\r\n") if crlf else current
                changes.append(FileChange(
                    file_path=rel,
                    change_type="modify",
                    original_content=original,
                    new_content=new_content,
                    rules=applied,
                    diff=self.diff_engine.create_diff(original, new_content, rel),
                ))

        if "config-files" in self.selected:
            for name, content in CONFIG_FILES.items():
                if self.exists(name):
                    continue
                self.emit(Severity.LOW, "remediation", f"{name} can be created", file=name, rule="config-files")
                changes.append(FileChange(file_path=name, change_type="create",
                                          new_content=content, rules=["config-files"]))

        description = f"{len(changes)} file(s) with available fixes" if changes else "No changes"
        logger.debug("Remediation plan: %s", description)
        return RemediationPlan(description=description, changes=changes)
