"""Performance posture pass: web vitals plus memory, network, database, frontend and backend."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Tuple

from ..models import Severity, SourceFile
from ..rules import Rule, contains_any, file_rule, line_rule, path_under, run_rules
from ..scoring import blend, grade, round_half_up
from .base import ScoredValidator

logger = logging.getLogger(__name__)

WEB_VITALS: Dict[str, str] = {
    "lcp": "Largest Contentful Paint",
    "fid": "First Input Delay",
    "cls": "Cumulative Layout Shift",
    "fcp": "First Contentful Paint",
    "ttfb": "Time to First Byte",
}
BUCKETS: Dict[str, str] = {
    "memory": "Memory",
    "network": "Network",
    "database": "Database",
    "frontend": "Frontend bundle",
    "backend": "Backend",
}
WEIGHTS = {"web_vitals": 0.25, "memory": 0.15, "network": 0.15, "database": 0.15, "frontend": 0.15, "backend": 0.15}

IMG_WITHOUT_LOADING = re.compile(r"<img\b(?![^>]*\bloading=)", re.IGNORECASE)
CLICK_LISTENER = re.compile(r"addEventListener\(\s*['\"]click['\"]")
HEAVY_HANDLER_WORK = ("await ", "fetch(", "querySelectorAll")
DYNAMIC_DOM = ("innerHTML", "appendChild", "insertAdjacentHTML")
LARGE_ARRAY = re.compile(r"new Array\(\s*(\d+)\s*\)")
MODULE_COLLECTION = re.compile(r"^(?:export\s+)?(?:const|let|var)\s+(\w+)\s*(?::[^=]+)?=\s*new\s+(Map|Set)\b")
ASYNC_FOREACH = re.compile(r"\.forEach\(\s*async\b")
LOOP_START = re.compile(r"\bfor\s*\(|\bwhile\s*\(|\.forEach\(|\.map\(")
QUERY_CALL = re.compile(r"\.(select|insert|update|delete|upsert|rpc|query)\(|await\s+\w*[Ss]ervice\.")
SELECT_ALL = re.compile(r"""\.select\(\s*(['"`]\*['"`])?\s*\)""")

KB = 1024


def _click_handlers(source_file: SourceFile):
    lines = source_file.lines
    for index, text in enumerate(lines):
        if CLICK_LISTENER.search(text):
            window = "\n".join(lines[index:index + 5])
            if any(work in window for work in HEAVY_HANDLER_WORK):
                yield index + 1, "Click handler does heavy work (await, fetch or querySelectorAll)"


def _growing_collections(source_file: SourceFile):
    content = source_file.content
    for number, text in enumerate(source_file.lines, start=1):
        match = MODULE_COLLECTION.match(text)
        if not match:
            continue
        name, kind = match.groups()
        grows = f"{name}.set(" in content or f"{name}.add(" in content
        shrinks = f"{name}.delete(" in content or f"{name}.clear(" in content
        if grows and not shrinks:
            yield number, f"Module-level {kind} '{name}' grows without delete or clear"


def _large_arrays(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        match = LARGE_ARRAY.search(text)
        if match and int(match.group(1)) >= 1000:
            yield number, f"Large preallocated array ({match.group(1)} elements)"


def find_loop_queries(lines: List[str]) -> List[Tuple[int, int]]:
    """Return ``(loop_line, query_line)`` for loops whose body contains a query call.

    Loop bodies are delimited by brace counting. Each loop is reported
    once; loops nested inside a reported loop are skipped.
    """
    hits = []
    index = 0
    while index < len(lines):
        if not LOOP_START.search(lines[index]):
            index += 1
            continue

        depth = 0
        opened = False
        end = index
        found: Optional[int] = None
        for cursor in range(index, len(lines)):
            text = lines[cursor]
            if found is None and QUERY_CALL.search(text):
                found = cursor
            depth += text.count("{") - text.count("}")
            if "{" in text:
                opened = True
            end = cursor
            if opened and depth <= 0:
                break
            if not opened and cursor > index:
                # brace-less body: the loop line and the next one
                break

        if found is not None:
            hits.append((index + 1, found + 1))
            index = end + 1
        else:
            index += 1
    return hits


def _n_plus_one(source_file: SourceFile):
    for loop_line, query_line in find_loop_queries(source_file.lines):
        yield loop_line, f"Possible N+1 query: query call on line {query_line} inside a loop"


class PerformanceValidator(ScoredValidator):
    """Static performance heuristics with a weighted score."""

    name = "Performance"
    key = "performance"
    description = "Web vitals, memory, network, database, bundle and backend heuristics"
    categories = {**WEB_VITALS, **BUCKETS}
    k = 10

    def rules(self) -> List[Rule]:
        services = path_under(self.layout("services"))
        max_fetch = self.config.threshold("max_fetch_calls")
        max_selects = self.config.threshold("max_service_selects")

        def many_fetches(source_file: SourceFile):
            count = source_file.content.count("fetch(")
            if count > max_fetch:
                yield None, f"{count} fetch calls in one file (max {max_fetch:g})"

        def many_selects(source_file: SourceFile):
            count = source_file.content.count(".select(")
            if count > max_selects:
                yield None, f"{count} individual selects in one service (max {max_selects:g}); consider batching"

        return [
            line_rule("image-lazy-loading", "Images should declare a loading strategy",
                      Severity.MEDIUM, "lcp", IMG_WITHOUT_LOADING, "Image without loading attribute: {line}",
                      skip_comments=False),
            Rule("heavy-click-handler", "Click handlers should stay light",
                 Severity.MEDIUM, "fid", _click_handlers),
            file_rule("dynamic-dom-insertion", "Dynamic DOM insertion shifts layout",
                      Severity.MEDIUM, "cls", contains_any(*DYNAMIC_DOM),
                      "Dynamic DOM insertion without reserved dimensions"),
            file_rule("listener-cleanup", "Listeners need removal",
                      Severity.HIGH, "memory",
                      lambda c: "addEventListener" in c and "removeEventListener" not in c,
                      "Event listeners are never removed"),
            file_rule("interval-cleanup", "Intervals need clearing",
                      Severity.HIGH, "memory",
                      lambda c: "setInterval" in c and "clearInterval" not in c,
                      "setInterval without clearInterval"),
            Rule("large-array", "Avoid large preallocated arrays",
                 Severity.MEDIUM, "memory", _large_arrays),
            Rule("unbounded-collection", "Module-level collections must be pruned",
                 Severity.MEDIUM, "memory", _growing_collections),
            line_rule("await-in-foreach", "forEach does not wait for async callbacks",
                      Severity.MEDIUM, "memory", ASYNC_FOREACH, "await inside forEach: {line}"),
            Rule("many-fetches", "Batch network requests",
                 Severity.MEDIUM, "network", many_fetches),
            file_rule("fetch-error-handling", "Network calls need error handling",
                      Severity.MEDIUM, "network",
                      lambda c: "fetch(" in c and "catch" not in c,
                      "fetch without error handling"),
            Rule("many-selects", "Batch database reads",
                 Severity.HIGH, "database", many_selects, services),
            Rule("n-plus-one", "No queries inside loops",
                 Severity.HIGH, "database", _n_plus_one, services),
            file_rule("select-all", "Select explicit columns",
                      Severity.MEDIUM, "database", lambda c: bool(SELECT_ALL.search(c)),
                      "select('*') fetches every column", services),
            file_rule("unbounded-select", "Queries need a limit",
                      Severity.LOW, "database",
                      lambda c: ".select(" in c and "limit(" not in c and "range(" not in c,
                      "select without limit() or range()", services),
        ]

    def run(self) -> None:
        rules = self.rules()
        for source_file in self.source_files():
            self.collect(run_rules(rules, source_file))

        self._check_server()
        self._check_stylesheets()
        self._check_static_files()
        bundle_kb = self._check_bundle()
        self._score(bundle_kb)

    def _check_server(self) -> None:
        entry = self.layout("server_entry")
        content = self.read_optional(entry)
        if content is None:
            logger.debug("Server entry %s absent; skipping server checks", entry)
            return
        checks = [
            ("compression" not in content, Severity.MEDIUM, "ttfb", "No response compression"),
            ("helmet" not in content, Severity.LOW, "ttfb", "No security headers middleware"),
            ("cache" not in content.lower(), Severity.MEDIUM, "network", "No caching strategy"),
            ("database" in content.lower() and "pool" not in content.lower(),
             Severity.HIGH, "backend", "Database configured without connection pooling"),
            ("rateLimit" not in content and "rate-limit" not in content,
             Severity.MEDIUM, "backend", "No rate limiting"),
            ("metrics" not in content and "monitoring" not in content,
             Severity.LOW, "backend", "No monitoring"),
        ]
        for failed, severity, category, message in checks:
            if failed:
                self.emit(severity, category, message, file=entry)

    def _check_stylesheets(self) -> None:
        css_dir = f"{self.layout('public')}/css"
        max_total = self.config.threshold("max_public_css_kb")
        max_each = self.config.threshold("max_stylesheet_kb")
        total = 0.0
        for path in self.scanner.list_paths(css_dir, (".css",), recursive=False):
            size_kb = path.stat().st_size / KB
            total += size_kb
            if size_kb > max_each:
                self.emit(Severity.MEDIUM, "frontend", f"Large stylesheet ({size_kb:.1f}KB)",
                          file=self.scanner.relative(path))
        if total > max_total:
            self.emit(Severity.HIGH, "fcp", f"Render-blocking CSS is {total:.1f}KB (max {max_total:g}KB)",
                      file=css_dir)

    def _check_static_files(self) -> None:
        public = self.layout("public")
        count = len(self.scanner.list_paths(public))
        limit = self.config.threshold("max_static_files")
        if count > limit:
            self.emit(Severity.MEDIUM, "network",
                      f"{count} static files under {public}; consider a CDN", file=public)

    def _check_bundle(self) -> float:
        output = self.layout("build_output")
        if not (self.root / output).is_dir():
            self.emit(Severity.LOW, "frontend", f"Build output {output} missing; bundle size not analyzed",
                      file=output)
            return 0.0

        max_file = self.config.threshold("max_bundle_file_kb")
        max_total = self.config.threshold("max_bundle_total_kb")
        total = 0.0
        for path in self.scanner.list_paths(output, (".js",), exclude=False):
            size_kb = path.stat().st_size / KB
            total += size_kb
            if size_kb > max_file:
                self.emit(Severity.HIGH, "frontend", f"Large bundle ({size_kb:.1f}KB)",
                          file=self.scanner.relative(path))
        if total > max_total:
            self.emit(Severity.CRITICAL, "frontend", f"Total bundle size {total / KB:.1f}MB", file=output)
        return total

    def _score(self, bundle_kb: float) -> None:
        engine = self.scoring_engine()
        vitals = {name: engine.category_score(name, k=20) for name in WEB_VITALS}
        buckets = {name: engine.category_score(name, k=10) for name in BUCKETS}

        web_vitals = sum(s.normalized for s in vitals.values()) / len(vitals)
        parts = {"web_vitals": web_vitals}
        parts.update({name: s.normalized for name, s in buckets.items()})
        overall = blend(parts, WEIGHTS)

        self.score = round_half_up(overall)
        self.grade = grade(overall)
        self.metrics = {
            "web_vitals": {
                "score": web_vitals,
                "categories": [s.to_dict() for s in vitals.values()],
            },
            "categories": [s.to_dict() for s in buckets.values()],
            "bundle_size_kb": round(bundle_kb, 1),
            "severity_counts": engine.severity_counts(),
        }
        logger.debug("Performance score %d (%s)", self.score, self.grade)
