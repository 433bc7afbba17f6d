"""Tests for the remediation pass and the diff engine that applies its plan."""

import json

import pytest

from gatekeeper_cli.diff_engine import DiffEngine, atomic_write
from gatekeeper_cli.models import FileChange, RemediationPlan, Severity
from gatekeeper_cli.validators.remediation import (
    CONFIG_FILES,
    FIX_RULE_IDS,
    RemediationValidator,
    console_to_logger,
    constant_naming,
    default_export,
    formatting,
    organize_imports,
    strict_types,
    upper_snake,
)

CAP_SOURCE = (
    "const maxItems = 10;\n"
    "export function cap(n: any) {\n"
    "  console.log(n);\n"
    "  return Math.min(n,maxItems);\n"
    "}\n"
)
CAP_FIXED = (
    "const MAX_ITEMS = 10;\n"
    "export function cap(n: unknown) {\n"
    "  logger.info(n);\n"
    "  return Math.min(n, MAX_ITEMS);\n"
    "}\n"
    "\n"
    "export default cap;\n"
)


class TestOrganizeImports:
    """Import grouping."""

    def test_groups_and_keeps_header(self):
        content = (
            "// header\n"
            "import { b } from './b';\n"
            "import express from 'express';\n"
            "import type { T } from './types';\n"
            "\n"
            "const x = 1;\n"
        )
        expected = (
            "// header\n"
            "\n"
            "// External imports\n"
            "import express from 'express';\n"
            "\n"
            "// Internal imports\n"
            "import { b } from './b';\n"
            "\n"
            "// Type imports\n"
            "import type { T } from './types';\n"
            "\n"
            "const x = 1;\n"
        )
        assert organize_imports(content) == expected
        assert organize_imports(expected) == expected

    def test_multiline_import_left_alone(self):
        content = "import {\n  a,\n} from 'x';\nimport b from 'b';\n"
        assert organize_imports(content) == content

    def test_no_imports(self):
        assert organize_imports("const a = 1;\n") == "const a = 1;\n"


class TestCodeRules:
    """Rewrites that must not touch strings or comments."""

    def test_strict_types(self):
        content = "function f(a: any): any {\n  return a as any; // any stays\n}\nconst s = 'x: any';\n"
        expected = "function f(a: unknown): unknown {\n  return a as unknown; // any stays\n}\nconst s = 'x: any';\n"
        assert strict_types(content) == expected
        assert strict_types(expected) == expected

    def test_formatting(self):
        content = "if (a===b&&c) {\n  x=1;\n  f(a,b );\n}\nconst s = 'a,b';\n"
        expected = "if (a === b && c) {\n  x = 1;\n  f(a, b);\n}\nconst s = 'a,b';\n"
        assert formatting(content) == expected
        assert formatting(expected) == expected

    def test_formatting_strips_trailing_whitespace(self):
        assert formatting("const a = 1;   \nconst b = 2;\t\n") == "const a = 1;\nconst b = 2;\n"

    def test_default_export(self):
        assert default_export("export class Cart {}\n") == "export class Cart {}\n\nexport default Cart;\n"

    def test_default_export_needs_exactly_one_export(self):
        two = "export class Cart {}\nexport function total() {}\n"
        existing = "export class Cart {}\nexport default Cart;\n"
        assert default_export(two) == two
        assert default_export(existing) == existing

    def test_upper_snake(self):
        assert upper_snake("maxItems") == "MAX_ITEMS"
        assert upper_snake("retry2Count") == "RETRY2_COUNT"

    def test_constant_naming(self):
        content = (
            "const maxItems = 10;\n"
            "export function cap(n) {\n"
            "  return Math.min(n, maxItems);\n"
            "}\n"
            "const log = 'maxItems';\n"
        )
        expected = (
            "const MAX_ITEMS = 10;\n"
            "export function cap(n) {\n"
            "  return Math.min(n, MAX_ITEMS);\n"
            "}\n"
            "const log = 'maxItems';\n"
        )
        assert constant_naming(content) == expected
        assert constant_naming(expected) == expected

    def test_constant_naming_skips_collisions(self):
        content = "const maxItems = 10;\nconst MAX_ITEMS = 20;\n"
        assert constant_naming(content) == content

    def test_constant_naming_keeps_object_keys(self):
        """Keys stay put and shorthand properties expand to keep their key."""
        content = (
            "const maxRetries = 3;\n"
            "export const config = { maxRetries, other: 1 };\n"
            "const opts = { maxRetries: maxRetries };\n"
        )
        expected = (
            "const MAX_RETRIES = 3;\n"
            "export const config = { maxRetries: MAX_RETRIES, other: 1 };\n"
            "const opts = { maxRetries: MAX_RETRIES };\n"
        )
        assert constant_naming(content) == expected
        assert constant_naming(expected) == expected

    def test_constant_naming_renames_call_arguments(self):
        content = "const maxRetries = 3;\nretry(task, maxRetries);\n"
        expected = "const MAX_RETRIES = 3;\nretry(task, MAX_RETRIES);\n"
        assert constant_naming(content) == expected

    def test_constant_naming_skips_template_interpolations(self):
        content = "const maxRetries = 3;\nconst label = `${maxRetries} tries`;\n"
        assert constant_naming(content) == content

    def test_console_to_logger(self):
        content = "console.log('hi');\nconsole.warn(x);\nconst s = 'console.log(';\n"
        expected = "logger.info('hi');\nlogger.warn(x);\nconst s = 'console.log(';\n"
        assert console_to_logger(content) == expected
        assert console_to_logger(expected) == expected

    def test_console_to_logger_skips_files_with_logger(self):
        content = "import { logger } from './logger';\nconsole.log('x');\n"
        assert console_to_logger(content) == content


class TestRemediationValidator:
    """Test RemediationValidator functionality."""

    def test_unknown_rule(self, temp_dir):
        with pytest.raises(ValueError, match="no-such-rule"):
            RemediationValidator(temp_dir, rules=["no-such-rule"])

    def test_rule_order(self):
        assert FIX_RULE_IDS == [
            "organize-imports", "strict-types", "formatting", "default-export",
            "constant-naming", "console-to-logger", "config-files",
        ]

    def test_analyze_is_read_only(self, make_project):
        """Analysis reports findings and a plan without touching the tree."""
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root)
        result = remediation.validate()

        assert (root / "src/cap.ts").read_text() == CAP_SOURCE
        assert not (root / ".prettierrc").exists()
        assert all(f.severity == Severity.LOW and f.category == "remediation" for f in result.details)

        plan = remediation.plan
        assert plan.num_files_modified == 1
        assert plan.num_files_created == 2
        change = plan.changes[0]
        assert change.new_content == CAP_FIXED
        assert change.rules == [
            "strict-types", "formatting", "default-export", "constant-naming", "console-to-logger",
        ]

    def test_selected_rules_only(self, make_project):
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root, rules=["strict-types"])
        result = remediation.validate()

        assert {f.rule for f in result.details} == {"strict-types"}
        assert [c.file_path for c in remediation.plan.changes] == ["src/cap.ts"]

    def test_apply_then_reanalyze_is_empty(self, make_project):
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root)
        remediation.validate()

        result = DiffEngine(root).apply_changes(remediation.plan)

        assert result.success
        assert (root / "src/cap.ts").read_text() == CAP_FIXED
        assert (root / ".prettierrc").read_text() == CONFIG_FILES[".prettierrc"]
        assert json.loads((root / ".prettierrc").read_text())["singleQuote"] is True

        again = RemediationValidator(root)
        assert again.validate().details == []
        assert again.plan.is_empty

    def test_non_remediable_extensions_ignored(self, make_project):
        root = make_project({"src/view.tsx": "const a: any = 1;\n", ".prettierrc": "{}", ".eslintignore": ""})
        assert RemediationValidator(root).validate().details == []

    def test_non_utf8_file_is_skipped(self, make_project):
        """A Latin-1 file is neither planned nor rewritten."""
        raw = "// Canción de prueba\r\nconsole.log('ñ');\r\n".encode("latin-1")
        root = make_project({"src/ok.ts": "console.log('x');\n"})
        (root / "src/song.ts").write_bytes(raw)
        remediation = RemediationValidator(root, rules=["console-to-logger"])
        remediation.validate()

        assert [c.file_path for c in remediation.plan.changes] == ["src/ok.ts"]
        assert DiffEngine(root).apply_changes(remediation.plan).success
        assert (root / "src/song.ts").read_bytes() == raw

    def test_crlf_line_endings_survive_apply(self, make_project):
        root = make_project({})
        (root / "src").mkdir()
        (root / "src/song.ts").write_bytes("// Canción de prueba\r\nconsole.log('ñ');\r\n".encode("utf-8"))
        remediation = RemediationValidator(root, rules=["console-to-logger"])
        remediation.validate()

        assert DiffEngine(root).apply_changes(remediation.plan).success
        assert (root / "src/song.ts").read_bytes() == "// Canción de prueba\r\nlogger.info('ñ');\r\n".encode("utf-8")


class TestDiffEngine:
    """Test DiffEngine functionality."""

    def test_create_diff(self, temp_dir):
        diff = DiffEngine(temp_dir).create_diff("a\nb\n", "a\nc\n", "x.ts")
        assert "--- a/x.ts" in diff
        assert "+++ b/x.ts" in diff
        assert "-b" in diff
        assert "+c" in diff

    def test_preview_lists_changes(self, make_project):
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root)
        remediation.validate()
        preview = DiffEngine(root).preview_changes(remediation.plan)

        assert "[MODIFY] src/cap.ts" in preview
        assert "[CREATE] .prettierrc (config-files)" in preview
        assert "+export default cap;" in preview

    def test_dry_run_writes_nothing(self, make_project):
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root)
        remediation.validate()
        result = DiffEngine(root).apply_changes(remediation.plan, dry_run=True)

        assert result.success
        assert "src/cap.ts" in result.files_changed
        assert (root / "src/cap.ts").read_text() == CAP_SOURCE
        assert not (root / ".gatekeeper").exists()

    def test_refuses_stale_plan(self, make_project):
        """A file edited after analysis aborts the apply."""
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root)
        remediation.validate()
        (root / "src/cap.ts").write_text("// edited\n")

        result = DiffEngine(root).apply_changes(remediation.plan)

        assert not result.success
        assert "changed since analysis" in result.error
        assert result.files_changed == []
        assert (root / "src/cap.ts").read_text() == "// edited\n"
        assert not (root / ".prettierrc").exists()

    def test_failure_rolls_back_written_files(self, make_project):
        root = make_project({"src/a.ts": "old\n", "existing.txt": "keep\n"})
        plan = RemediationPlan(description="test", changes=[
            FileChange(file_path="src/a.ts", change_type="modify", original_content="old\n", new_content="new\n"),
            FileChange(file_path="existing.txt", change_type="create", new_content="other\n"),
        ])
        result = DiffEngine(root).apply_changes(plan)

        assert not result.success
        assert "already exists" in result.error
        assert (root / "src/a.ts").read_text() == "old\n"
        assert (root / "existing.txt").read_text() == "keep\n"

    def test_rollback_after_success(self, make_project):
        root = make_project({"src/cap.ts": CAP_SOURCE})
        remediation = RemediationValidator(root)
        remediation.validate()
        engine = DiffEngine(root)
        result = engine.apply_changes(remediation.plan)

        assert engine.rollback(result.backup_id)
        assert (root / "src/cap.ts").read_text() == CAP_SOURCE
        assert not (root / ".prettierrc").exists()
        assert [b["backup_id"] for b in engine.list_backups()] == [result.backup_id]

    def test_refuses_file_that_is_no_longer_utf8(self, make_project):
        root = make_project({"src/a.ts": "old\n"})
        plan = RemediationPlan(description="test", changes=[
            FileChange(file_path="src/a.ts", change_type="modify", original_content="old\n", new_content="new\n"),
        ])
        (root / "src/a.ts").write_bytes("viejo ñ\n".encode("latin-1"))
        result = DiffEngine(root).apply_changes(plan)

        assert not result.success
        assert (root / "src/a.ts").read_bytes() == "viejo ñ\n".encode("latin-1")

    def test_rollback_unknown_backup(self, temp_dir):
        assert DiffEngine(temp_dir).rollback("missing") is False

    def test_atomic_write_replaces_content(self, temp_dir):
        target = temp_dir / "nested" / "file.ts"
        atomic_write(target, "one\n")
        atomic_write(target, "two\n")

        assert target.read_text() == "two\n"
        assert [p.name for p in target.parent.iterdir()] == ["file.ts"]
