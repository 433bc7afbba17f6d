"""Testing posture pass: coverage, test quality and test infrastructure."""

from __future__ import annotations

import logging
import posixpath
import re
from typing import Any, Iterator, List

import yaml

from ..models import Severity, SourceFile
from ..rules import Rule, contains_any, file_rule, lacks_all, run_rules
from ..scoring import blend, grade, round_half_up
from .base import ScoredValidator

logger = logging.getLogger(__name__)

CATEGORIES = {
    "coverage": "Coverage",
    "quality": "Quality",
    "structure": "Structure",
}
WEIGHTS = {"coverage": 0.4, "quality": 0.3, "structure": 0.3}

TEST_FILE = re.compile(r"\.(test|spec)\.[cm]?[jt]sx?$")
TEST_BLOCK = re.compile(r"\b(it|test)\(")
TEST_NAME = re.compile(r"""\b(?:it|test)\(\s*['"`]([^'"`]+)['"`]""")
RUNNER_CONFIGS = (
    "vitest.config.ts", "vitest.config.js", "vitest.config.mjs",
    "jest.config.ts", "jest.config.js", "jest.config.cjs", "jest.config.mjs",
)
HARDCODED_TEST_DATA = ("test@example.com", "123456", "password123")
GLOBAL_STATE = ("global.", "window.", "process.env")
ERROR_PATH_MARKERS = ("error", "Error", "throw")
EDGE_CASE_MARKERS = ("null", "undefined", "empty", "invalid")
REQUIRED_SCRIPTS = (
    ("test", Severity.HIGH),
    ("test:coverage", Severity.MEDIUM),
    ("test:watch", Severity.LOW),
)


def is_test_file(path: str) -> bool:
    return bool(TEST_FILE.search(path))


def _long_test_bodies(max_lines: float):
    def matcher(source_file: SourceFile):
        lines = source_file.lines
        for index, text in enumerate(lines):
            if not TEST_BLOCK.search(text):
                continue
            depth = 0
            opened = False
            for cursor in range(index, len(lines)):
                depth += lines[cursor].count("{") - lines[cursor].count("}")
                opened = opened or "{" in lines[cursor]
                if opened and depth <= 0:
                    break
            length = cursor - index + 1
            if length > max_lines:
                yield index + 1, f"Test body is {length} lines long (max {max_lines:g})"
    return matcher


def _short_names(source_file: SourceFile):
    for match in TEST_NAME.finditer(source_file.content):
        name = match.group(1)
        if len(name) < 10:
            yield source_file.line_of(match.start()), f"Test name is not descriptive: '{name}'"


def _strings_in(node: Any) -> Iterator[str]:
    if isinstance(node, str):
        yield node
    elif isinstance(node, dict):
        for key, value in node.items():
            yield str(key)
            yield from _strings_in(value)
    elif isinstance(node, list):
        for item in node:
            yield from _strings_in(item)


class TestingValidator(ScoredValidator):
    """Test ratio, per-test-file checks, scripts and CI workflows."""

    __test__ = False  # not a pytest class

    name = "Testing"
    key = "testing"
    description = "Test coverage, test quality and CI integration"
    categories = CATEGORIES
    k = 10

    def test_file_rules(self) -> List[Rule]:
        max_body = self.config.threshold("max_test_body_lines")
        return [
            file_rule("no-test-blocks", "Test files must contain tests",
                      Severity.HIGH, "structure", lambda c: not TEST_BLOCK.search(c),
                      "Test file has no test blocks"),
            file_rule("no-describe", "Group tests with describe",
                      Severity.MEDIUM, "structure", lambda c: "describe(" not in c,
                      "Test file has no describe block"),
            file_rule("no-assertions", "Tests must assert",
                      Severity.MEDIUM, "structure", lacks_all("expect", "assert"),
                      "Test file has no assertions"),
            Rule("long-test-body", "Keep tests short",
                 Severity.MEDIUM, "quality", _long_test_bodies(max_body)),
            file_rule("hardcoded-test-data", "Use factories instead of literal credentials",
                      Severity.MEDIUM, "quality", contains_any(*HARDCODED_TEST_DATA),
                      "Hard-coded credential-looking test data"),
            file_rule("setup-without-teardown", "Setup needs matching teardown",
                      Severity.MEDIUM, "quality",
                      lambda c: contains_any("beforeEach", "beforeAll")(c) and lacks_all("afterEach", "afterAll")(c),
                      "Setup without teardown"),
            Rule("short-test-name", "Test names should describe behavior",
                 Severity.LOW, "quality", _short_names),
            file_rule("global-state", "Tests must not mutate global state",
                      Severity.MEDIUM, "quality", contains_any(*GLOBAL_STATE),
                      "Test mutates global state (global, window or process.env)"),
        ]

    def run(self) -> None:
        tests_dir = self.layout("tests")
        test_files = [
            f for f in self.scanner.scan(tests_dir, self.config.extensions)
            if is_test_file(f.path)
        ]
        source_files = self.source_files(extensions=(".ts", ".js"))

        ratio = self._check_coverage(test_files, source_files)
        self._check_runner_config()

        rules = self.test_file_rules()
        for test_file in test_files:
            self.collect(run_rules(rules, test_file))

        self._check_scripts()
        self._check_workflows()
        self._score(len(test_files), len(source_files), ratio)

    def _check_coverage(self, test_files: List[SourceFile], source_files: List[SourceFile]) -> float:
        ratio = len(test_files) / len(source_files) if source_files else 1.0
        minimum = self.config.threshold("min_test_ratio")
        if ratio < minimum:
            self.emit(Severity.HIGH, "coverage",
                      f"Low test coverage: {ratio:.2f} test files per source file (min {minimum:g})",
                      rule="test-ratio")

        test_names = {posixpath.basename(f.path) for f in test_files}
        untested = []
        for source_file in source_files:
            stem = posixpath.basename(source_file.path).rsplit(".", 1)[0]
            if stem.endswith(".d"):
                continue
            if "index" in stem or "types" in stem:
                continue
            if not any(name.startswith((f"{stem}.test.", f"{stem}.spec.")) for name in test_names):
                untested.append(source_file.path)
        if untested:
            listed = ", ".join(untested[:5])
            more = f" and {len(untested) - 5} more" if len(untested) > 5 else ""
            self.emit(Severity.MEDIUM, "coverage",
                      f"{len(untested)} source file(s) without tests: {listed}{more}",
                      rule="untested-files")

        contents = [f.content for f in test_files]
        if not any(m in c for c in contents for m in ERROR_PATH_MARKERS):
            self.emit(Severity.HIGH, "coverage", "No error-path tests", rule="error-path-tests")
        if not any(m in c for c in contents for m in EDGE_CASE_MARKERS):
            self.emit(Severity.MEDIUM, "coverage", "No edge-case tests", rule="edge-case-tests")
        return ratio

    def _check_runner_config(self) -> None:
        for name in RUNNER_CONFIGS:
            content = self.read_optional(name)
            if content is None:
                continue
            if "coverage" not in content:
                self.emit(Severity.MEDIUM, "coverage", f"No coverage configuration in {name}",
                          file=name, rule="coverage-config")
            if "thresholds" not in content and "coverageThreshold" not in content:
                self.emit(Severity.LOW, "coverage", f"No coverage thresholds in {name}",
                          file=name, rule="coverage-thresholds")
            return
        self.emit(Severity.MEDIUM, "coverage", "No test runner configuration found", rule="coverage-config")

    def _check_scripts(self) -> None:
        manifest = self.read_manifest()
        if manifest is None:
            return
        scripts = manifest.get("scripts") or {}
        for script, severity in REQUIRED_SCRIPTS:
            if script not in scripts:
                self.emit(severity, "structure", f"No '{script}' script in {self.layout('manifest')}",
                          file=self.layout("manifest"), rule="test-scripts")

    def _check_workflows(self) -> None:
        workflows_dir = self.layout("workflows")
        workflows = self.scanner.list_paths(workflows_dir, (".yml", ".yaml"), recursive=False)
        if not workflows:
            self.emit(Severity.MEDIUM, "structure", "No CI workflow runs the tests", rule="ci-workflow")
            return
        for path in workflows:
            rel = self.scanner.relative(path)
            document = yaml.safe_load(path.read_text(encoding="utf-8"))
            text = "\n".join(_strings_in(document)).lower()
            if "test" not in text:
                self.emit(Severity.MEDIUM, "structure", "Workflow has no test step", file=rel, rule="ci-tests")
            if "coverage" not in text:
                self.emit(Severity.LOW, "structure", "Workflow does not report coverage", file=rel, rule="ci-coverage")

    def _score(self, test_count: int, source_count: int, ratio: float) -> None:
        engine = self.scoring_engine()
        scores = {name: engine.category_score(name) for name in CATEGORIES}
        overall = blend({name: s.normalized for name, s in scores.items()}, WEIGHTS)

        self.score = round_half_up(overall)
        self.grade = grade(overall)
        self.metrics = {
            "test_files": test_count,
            "source_files": source_count,
            "ratio": round(ratio, 2),
            "categories": [s.to_dict() for s in scores.values()],
            "severity_counts": engine.severity_counts(),
        }
        logger.debug("Testing score %d (%s)", self.score, self.grade)
