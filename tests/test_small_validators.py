"""Tests for the single-concern passes."""

import json

import pytest

from gatekeeper_cli.models import Severity
from gatekeeper_cli.validators.api_routes import ApiRouteValidator, route_matches
from gatekeeper_cli.validators.build import BuildOutputValidator
from gatekeeper_cli.validators.compiler_config import CompilerConfigValidator
from gatekeeper_cli.validators.complexity import ComplexityValidator, complexity_of, find_functions
from gatekeeper_cli.validators.console_log import ConsoleLogValidator
from gatekeeper_cli.validators.dependencies import UnusedDependencyValidator
from gatekeeper_cli.validators.duplicate_files import DuplicateFileValidator
from gatekeeper_cli.validators.env_vars import EnvVariableValidator, parse_env_names
from gatekeeper_cli.validators.html_refs import HtmlReferenceValidator
from gatekeeper_cli.validators.import_integrity import ImportIntegrityValidator
from gatekeeper_cli.validators.naming import NamingValidator
from gatekeeper_cli.validators.orphans import OrphanFileValidator
from gatekeeper_cli.validators.symbols import DuplicateSymbolValidator


def _branchy(name, branches):
    return f"function {name}(x) {{\n" + "  if (x) { x++; }\n" * branches + "}\n"


@pytest.mark.parametrize("validator_cls", [
    ApiRouteValidator,
    CompilerConfigValidator,
    ComplexityValidator,
    ConsoleLogValidator,
    DuplicateFileValidator,
    DuplicateSymbolValidator,
    EnvVariableValidator,
    HtmlReferenceValidator,
    ImportIntegrityValidator,
    NamingValidator,
    UnusedDependencyValidator,
])
def test_healthy_project_passes(healthy_project, validator_cls):
    result = validator_cls(healthy_project).validate()
    assert result.details == []
    assert not result.has_errors


class TestNamingValidator:
    def test_identifier_case(self, make_project):
        root = make_project({
            "src/models.ts": (
                "export class cart {}\n"
                "export interface Item {}\n"
                "export function Total() {}\n"
                "function fine() {}\n"
            ),
        })
        findings = NamingValidator(root).validate().details

        assert [(f.line, f.message) for f in findings] == [
            (1, "Class 'cart' should be PascalCase"),
            (3, "Function 'Total' should be camelCase"),
        ]
        assert all(f.severity == Severity.LOW for f in findings)

    def test_asset_file_names(self, make_project):
        root = make_project({
            "public/Home_Page.html": "<html></html>",
            "public/css/site-main.css": "body {}",
        })
        findings = NamingValidator(root).validate().details

        assert len(findings) == 1
        assert findings[0].file == "public/Home_Page.html"
        assert findings[0].rule == "file-kebab-case"


class TestComplexityValidator:
    """Cyclomatic complexity thresholds."""

    def test_complexity_of(self):
        assert complexity_of("if (a && b || c) {} catch (e) {}") == 5
        assert complexity_of("return 1;") == 1

    def test_find_functions_skips_overloads(self):
        lines = [
            "export function parse(a: string): number;",
            "export function parse(a) {",
            "  if (a) { return 1; }",
            "}",
        ]
        found = find_functions(lines)

        assert [(line, name) for line, name, _ in found] == [(1, "parse"), (2, "parse")]
        assert complexity_of(found[1][2]) == 2

    def test_thresholds(self, make_project):
        root = make_project({
            "src/a.ts": _branchy("calm", 3) + _branchy("busy", 11) + _branchy("tangled", 21),
        })
        findings = ComplexityValidator(root).validate().details

        assert [(f.message, f.severity) for f in findings] == [
            ("Function 'busy' has cyclomatic complexity 12", Severity.MEDIUM),
            ("Function 'tangled' has cyclomatic complexity 22", Severity.HIGH),
        ]


class TestDuplicateSymbolValidator:
    def test_reports_cross_file_duplicates_once(self, make_project):
        """Repeats inside one file are declaration merging, not duplicates."""
        root = make_project({
            "src/a.ts": "export class Cart {}\ninterface Item {}\ninterface Item { extra: string }\n",
            "src/b.ts": "export class Cart {}\n",
        })
        findings = DuplicateSymbolValidator(root).validate().details

        assert len(findings) == 1
        assert findings[0].message == "class Cart declared in src/a.ts:1 and src/b.ts:1"
        assert findings[0].file == "src/b.ts"
        assert findings[0].severity == Severity.HIGH


class TestConsoleLogValidator:
    def test_console_calls(self, make_project):
        root = make_project({
            "src/app.ts": "console.log('x');\n// console.log('y');\n",
            "src/utils/logger.ts": "console.info('x');\n",
        })
        findings = ConsoleLogValidator(root).validate().details

        assert [(f.file, f.line) for f in findings] == [("src/app.ts", 1)]
        assert findings[0].category == "debug-output"


class TestOrphanFileValidator:
    def test_unimported_files(self, make_project):
        root = make_project({
            "src/server.ts": "import { util } from './util';\n",
            "src/util.ts": "export const util = 1;\n",
            "src/lonely.ts": "export const lonely = 1;\n",
            "src/types.d.ts": "declare const x: number;\n",
        })
        findings = OrphanFileValidator(root).validate().details

        assert [f.file for f in findings] == ["src/lonely.ts"]


class TestEnvVariableValidator:
    def test_parse_env_names(self):
        text = "export A=1\n# comment\nB = 2\n\nnoequals\n"
        assert parse_env_names(text) == ["A", "B"]

    def test_declared_versus_used(self, make_project):
        root = make_project({
            ".env": "export API_KEY=abc\n# comment\nUNUSED=1\n",
            "src/app.ts": (
                "const k = process.env.API_KEY;\n"
                "const u = import.meta.env.VITE_URL;\n"
                "const p = process.env['PORT'];\n"
            ),
        })
        findings = EnvVariableValidator(root).validate().details
        by_rule = {(f.rule, f.message.split()[2], f.file, f.line) for f in findings}

        assert by_rule == {
            ("unused-env", "UNUSED", ".env", None),
            ("undeclared-env", "VITE_URL", "src/app.ts", 2),
            ("undeclared-env", "PORT", "src/app.ts", 3),
        }

    def test_values_never_reported(self, make_project):
        root = make_project({".env": "SECRET_TOKEN=hunter2\n"})
        findings = EnvVariableValidator(root).validate().details
        assert all("hunter2" not in f.message for f in findings)


class TestUnusedDependencyValidator:
    def test_unused_packages(self, make_project):
        root = make_project({
            "package.json": {
                "scripts": {"lint": "eslint ."},
                "dependencies": {"express": "1", "left-pad": "1", "@scope/pkg": "1"},
                "devDependencies": {"typescript": "1", "@types/node": "1", "eslint": "1", "vitest": "1"},
            },
            "src/app.ts": "import express from 'express';\nimport { x } from '@scope/pkg/sub';\n",
        })
        findings = UnusedDependencyValidator(root).validate().details

        assert [f.message for f in findings] == [
            "Dependency left-pad is never used",
            "Dependency vitest is never used",
        ]
        assert all(f.file == "package.json" for f in findings)

    def test_no_manifest(self, temp_dir):
        assert UnusedDependencyValidator(temp_dir).validate().details == []

    def test_malformed_section_raises(self, make_project):
        root = make_project({"package.json": {"dependencies": "express"}})
        with pytest.raises(ValueError, match="dependencies"):
            UnusedDependencyValidator(root).validate()


class TestBuildOutputValidator:
    def test_missing_output_directory(self, make_project):
        root = make_project({"src/a.ts": "export const a = 1;\n"})
        findings = BuildOutputValidator(root).validate().details

        assert len(findings) == 1
        assert findings[0].rule == "build-output-missing"
        assert findings[0].severity == Severity.HIGH

    def test_missing_compiled_files(self, make_project):
        root = make_project({
            "src/a.ts": "",
            "src/nested/b.ts": "",
            "src/types.d.ts": "",
            "dist/a.js": "",
        })
        findings = BuildOutputValidator(root).validate().details

        assert [(f.file, f.message) for f in findings] == [
            ("src/nested/b.ts", "Compiled file dist/nested/b.js is missing"),
        ]


class TestHtmlReferenceValidator:
    def test_absolute_references(self, make_project):
        root = make_project({
            "public/index.html": (
                '<script src="/app.js?v=2"></script>\n'
                '<link rel="stylesheet" href="/css/missing.css">\n'
                '<script src="https://cdn.example.com/y.js"></script>\n'
                '<script src="//cdn.example.com/z.js"></script>\n'
            ),
            "dist/app.js": "",
        })
        findings = HtmlReferenceValidator(root).validate().details

        assert [(f.line, f.message) for f in findings] == [
            (2, 'link "/css/missing.css" does not exist in dist/'),
        ]


class TestApiRouteValidator:
    @pytest.mark.parametrize("url,route,expected", [
        ("/api/products/${id}", "/products/:id", True),
        ("/api/products?x=1", "/api/products", True),
        ("http://host/api/orders", "/products", False),
        ("/api/products", "/api/products/:id", False),
    ])
    def test_route_matches(self, url, route, expected):
        assert route_matches(url, route) is expected

    def test_undeclared_call(self, make_project):
        root = make_project({
            "src/routes/r.ts": "router.get('/api/products', h);\n",
            "src/frontend/f.ts": "fetch('/api/products');\naxios.post('/api/orders', {});\n",
        })
        findings = ApiRouteValidator(root).validate().details

        assert [(f.line, f.message) for f in findings] == [(2, "API call to undeclared route /api/orders")]


class TestImportIntegrityValidator:
    def test_broken_imports(self, make_project):
        root = make_project({
            "src/a.ts": (
                "import { b } from './b.js';\n"
                "import { c } from './missing';\n"
                "import x from '../../outside';\n"
                "import y from 'express';\n"
            ),
            "src/b.ts": "export const b = 1;\n",
        })
        findings = ImportIntegrityValidator(root).validate().details

        assert [(f.line, f.message) for f in findings] == [
            (2, "Import ./missing resolves to missing file src/missing.ts"),
            (3, "Import ../../outside points outside the project"),
        ]


class TestDuplicateFileValidator:
    def test_identical_content(self, make_project):
        root = make_project({"src/a.ts": "x", "src/b.ts": "x", "src/c.ts": "y"})
        findings = DuplicateFileValidator(root).validate().details

        assert [(f.file, f.message) for f in findings] == [("src/b.ts", "Identical content to src/a.ts")]


class TestCompilerConfigValidator:
    def test_missing_config(self, temp_dir):
        findings = CompilerConfigValidator(temp_dir).validate().details
        assert [f.rule for f in findings] == ["compiler-config"]

    def test_incomplete_config(self, make_project):
        root = make_project({"tsconfig.json": {"compilerOptions": {}, "include": ["lib/**/*"]}})
        findings = CompilerConfigValidator(root).validate().details

        assert [f.rule for f in findings] == ["compiler-out-dir", "compiler-strict", "compiler-include"]
        assert [f.severity for f in findings] == [Severity.MEDIUM, Severity.MEDIUM, Severity.LOW]

    def test_comments_are_not_json(self, make_project):
        root = make_project({"tsconfig.json": "{ // comment\n}\n"})
        with pytest.raises(json.JSONDecodeError):
            CompilerConfigValidator(root).validate()
