"""Security posture pass modeled on the OWASP top-10 categories."""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from ..models import Finding, Severity, SourceFile
from ..rules import (
    Rule,
    all_of,
    contains_any,
    file_rule,
    is_comment_line,
    lacks_all,
    line_rule,
    path_contains,
    path_under,
    run_rules,
)
from ..scoring import clamp, grade
from .base import ScoredValidator

logger = logging.getLogger(__name__)

CATEGORIES: Dict[str, str] = {
    "access_control": "A01 Broken Access Control",
    "cryptography": "A02 Cryptographic Failures",
    "injection": "A03 Injection",
    "insecure_design": "A04 Insecure Design",
    "misconfiguration": "A05 Security Misconfiguration",
    "vulnerable_components": "A06 Vulnerable Components",
    "authentication": "A07 Authentication Failures",
    "integrity": "A08 Software Integrity Failures",
    "logging": "A09 Security Logging Failures",
    "request_forgery": "A10 Server-Side Request Forgery",
}

SECRET_ASSIGNMENT = re.compile(
    r"""(?:password|passwd|pwd|secret|token|api[_-]?key|private[_-]?key|jwt_secret)\w*\s*[:=]\s*['"]([^'"]+)['"]""",
    re.IGNORECASE,
)
PLACEHOLDER_MARKERS = ("xxx", "example", "placeholder", "your_", "your-", "changeme", "dummy", "test", "<")

CREDENTIAL_KEY_NAME = re.compile(r"api[_-]?key|x-api-key|authorization.*bearer", re.IGNORECASE)
ENV_READ = re.compile(r"process\.env|import\.meta\.env|getenv")
WEAK_HASH = re.compile(r"\b(md5|sha1)\b", re.IGNORECASE)
PLAIN_HTTP = re.compile(r"http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0)")
SQL_KEYWORD = re.compile(r"\b(SELECT|INSERT|UPDATE|DELETE)\b")
SQL_CONCAT = re.compile(r"""\$\{|["']\s*\+|\+\s*["']""")
SHELL_EXEC = re.compile(r"(?<![\w.])(exec|execSync|spawn|spawnSync|eval)\s*\(|child_process")
DOM_SINK = re.compile(r"innerHTML|outerHTML|document\.write")
EXTERNAL_SCRIPT = re.compile(r"""<script[^>]+src=["']https?://""", re.IGNORECASE)
OUTBOUND_CALL = ("fetch(", "request(", "axios")
URL_LITERAL = re.compile(r"https?://")
REQUEST_INPUT = re.compile(r"\$\{|req\.|user")
MUTATING_ROUTE = re.compile(r"\.(post|put|patch|delete)\s*\(")

AUTH_MARKERS = ("auth", "Auth", "authenticate", "protect")
VALIDATION_MARKERS = ("validationResult", "body(", "param(", "query(", "validate(", "schema")
CRITICAL_DEPENDENCIES = ("express", "jsonwebtoken", "bcrypt", "helmet", "cors")
VULNERABLE_PACKAGES = {
    "lodash": "<4.17.21",
    "moment": "<2.29.0",
    "serialize-javascript": "<3.1.0",
}

# (markers, severity, message) checked against the server entry file
SERVER_MIDDLEWARE = [
    (("helmet",), Severity.HIGH, "Helmet security headers are not configured"),
    (("cors",), Severity.MEDIUM, "CORS is not configured"),
    (("rateLimit", "express-rate-limit"), Severity.MEDIUM, "Rate limiting is not configured"),
    (("csrf", "csurf"), Severity.MEDIUM, "No CSRF protection"),
]


def _is_placeholder(value: str) -> bool:
    lowered = value.lower()
    return len(value) < 4 or any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def _hardcoded_secrets(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        if is_comment_line(text):
            continue
        match = SECRET_ASSIGNMENT.search(text)
        if match and not _is_placeholder(match.group(1)):
            yield number, f"Hard-coded secret: {text.strip()}"


def _credential_key_names(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        if is_comment_line(text) or ENV_READ.search(text):
            continue
        if CREDENTIAL_KEY_NAME.search(text) and ("=" in text or ":" in text):
            yield number, f"Credential-looking key in source: {text.strip()}"


def _sql_injection(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        if SQL_KEYWORD.search(text) and SQL_CONCAT.search(text):
            yield number, f"SQL built by string concatenation: {text.strip()}"


def _request_forgery(source_file: SourceFile):
    if not any(call in source_file.content for call in OUTBOUND_CALL):
        return
    for number, text in enumerate(source_file.lines, start=1):
        if is_comment_line(text):
            continue
        if URL_LITERAL.search(text) and REQUEST_INPUT.search(text):
            yield number, f"Outbound request built from user input: {text.strip()}"


def _external_scripts(source_file: SourceFile):
    for number, text in enumerate(source_file.lines, start=1):
        if EXTERNAL_SCRIPT.search(text) and "integrity=" not in text:
            yield number, f"External script without subresource integrity: {text.strip()}"


def _lacks_auth(content: str) -> bool:
    return not any(marker in content for marker in AUTH_MARKERS)


class SecurityValidator(ScoredValidator):
    """Pattern checks grouped into ten risk categories."""

    name = "Security"
    key = "security"
    description = "Secrets, injection, middleware, auth and request-forgery checks"
    categories = CATEGORIES
    k = 10

    def rules(self) -> List[Rule]:
        services = path_under(self.layout("services"))
        controllers = path_under(self.layout("controllers"))
        routes = path_under(self.layout("routes"))
        admin_routes = all_of(routes, path_contains("admin", "dashboard"))

        def public_routes(source_file: SourceFile) -> bool:
            return routes(source_file) and not admin_routes(source_file)

        return [
            Rule("hardcoded-secret", "Secrets must come from the environment",
                 Severity.CRITICAL, "cryptography", _hardcoded_secrets),
            Rule("credential-key-name", "Credential-looking keys must not be embedded",
                 Severity.HIGH, "cryptography", _credential_key_names),
            line_rule("weak-hash", "md5/sha1 are not acceptable hashes",
                      Severity.HIGH, "cryptography", WEAK_HASH, "Weak hash function: {line}"),
            line_rule("plain-http", "Remote endpoints must use HTTPS",
                      Severity.MEDIUM, "cryptography", PLAIN_HTTP, "Plain HTTP URL: {line}"),
            Rule("sql-injection", "SQL must not be built by concatenation",
                 Severity.CRITICAL, "injection", _sql_injection, services),
            line_rule("shell-execution", "No shell execution or eval",
                      Severity.HIGH, "injection", SHELL_EXEC, "Shell execution or eval: {line}"),
            line_rule("dom-injection", "No raw HTML sinks",
                      Severity.HIGH, "injection", DOM_SINK, "DOM injection sink: {line}"),
            file_rule("rpc-interpolation", "Remote procedure calls must use parameters",
                      Severity.HIGH, "injection",
                      lambda c: ".rpc(" in c and "${" in c,
                      "Remote procedure call with string interpolation", services),
            file_rule("unvalidated-input", "Controllers must validate request input",
                      Severity.MEDIUM, "insecure_design",
                      lambda c: contains_any("req.body", "req.params", "req.query")(c)
                      and lacks_all(*VALIDATION_MARKERS)(c),
                      "Request input is read without validation", controllers),
            file_rule("admin-route-auth", "Admin routes require authentication",
                      Severity.HIGH, "access_control", _lacks_auth,
                      "Admin route without authentication", admin_routes),
            file_rule("mutating-route-auth", "Mutating routes require authentication",
                      Severity.MEDIUM, "access_control",
                      lambda c: bool(MUTATING_ROUTE.search(c)) and _lacks_auth(c),
                      "POST/PUT/PATCH/DELETE route without authentication", public_routes),
            file_rule("role-check", "Access to req.user needs a role check",
                      Severity.MEDIUM, "access_control",
                      lambda c: "req.user" in c and "role" not in c and "admin" not in c,
                      "req.user is used without a role check", routes),
            file_rule("sign-without-verify", "Token signing needs verification somewhere",
                      Severity.MEDIUM, "authentication",
                      lambda c: "jwt.sign" in c and "jwt.verify" not in c,
                      "Tokens are signed but never verified", routes),
            Rule("request-forgery", "Outbound URLs must not embed user input",
                 Severity.HIGH, "request_forgery", _request_forgery),
        ]

    def auth_rules(self) -> List[Rule]:
        """Rules for authentication middleware files."""
        return [
            file_rule("token-config", "Token signing needs expiry and algorithm",
                      Severity.HIGH, "authentication",
                      lambda c: "jwt" in c and ("expiresIn" not in c or "algorithm" not in c),
                      "Token configuration lacks expiresIn or algorithm"),
            file_rule("symmetric-token-key", "Prefer asymmetric token signing",
                      Severity.MEDIUM, "authentication",
                      lambda c: "jwt" in c and "HS256" in c and "secret" in c,
                      "Tokens are signed with a symmetric key (HS256)"),
            file_rule("session-handling", "Auth middleware must handle sessions or tokens",
                      Severity.MEDIUM, "authentication",
                      lacks_all("session", "token"),
                      "No session or token handling"),
            file_rule("cookie-flags", "Cookies need secure and httpOnly",
                      Severity.MEDIUM, "authentication",
                      lambda c: contains_any("cookie", "session")(c) and ("secure" not in c or "httpOnly" not in c),
                      "Cookies are missing secure or httpOnly"),
            file_rule("cookie-samesite", "Cookies need sameSite",
                      Severity.LOW, "authentication",
                      lambda c: contains_any("cookie", "session")(c) and "sameSite" not in c,
                      "Cookies are missing sameSite"),
        ]

    def run(self) -> None:
        files = self.source_files()
        seen: Set[Tuple[str, Optional[int], str]] = set()

        def keep(finding: Finding) -> bool:
            # one finding per line and category
            if finding.line is None:
                return True
            key = (finding.file or "", finding.line, finding.category)
            if key in seen:
                return False
            seen.add(key)
            return True

        rules = self.rules()
        for source_file in files:
            self.collect(f for f in run_rules(rules, source_file) if keep(f))

        self._check_auth_middleware()
        self._check_server_entry()
        self._check_env_file()
        self._check_uploads(files)
        self._check_manifest()
        self._check_public_html()
        self._check_security_logging(files)

        self._score()

    def _check_auth_middleware(self) -> None:
        middleware = self.layout("middleware")
        auth_files = self.scanner.scan(middleware, self.config.extensions, name_pattern="auth*")
        if not auth_files:
            self.emit(Severity.MEDIUM, "authentication",
                      f"No authentication middleware found under {middleware}", rule="auth-middleware")
            return

        rules = self.auth_rules()
        for source_file in auth_files:
            self.collect(run_rules(rules, source_file))
        if not any("verify" in f.content for f in auth_files):
            self.emit(Severity.MEDIUM, "authentication",
                      "Authentication middleware does not verify tokens",
                      file=auth_files[0].path, rule="auth-middleware")

    def _check_server_entry(self) -> None:
        entry = self.layout("server_entry")
        content = self.read_optional(entry)
        if content is None:
            self.emit(Severity.LOW, "misconfiguration",
                      f"Server entry file {entry} not found; middleware could not be verified",
                      file=entry, rule="server-middleware")
            return
        for markers, severity, message in SERVER_MIDDLEWARE:
            if not any(m in content for m in markers):
                self.emit(severity, "misconfiguration", message, file=entry, rule="server-middleware")

    def _check_env_file(self) -> None:
        if (self.root / ".env").is_file():
            self.emit(Severity.CRITICAL, "misconfiguration",
                      ".env file is present in the project tree", file=".env", rule="committed-env")

    def _check_uploads(self, files: List[SourceFile]) -> None:
        for source_file in files:
            if "upload" not in source_file.name.lower():
                continue
            content = source_file.content
            if "upload" not in content and "multer" not in content:
                continue
            if "mimetype" not in content and "fileType" not in content:
                self.emit(Severity.HIGH, "misconfiguration", "File upload without type validation",
                          file=source_file.path, rule="upload-type")
            if "limits" not in content and "fileSize" not in content:
                self.emit(Severity.MEDIUM, "misconfiguration", "File upload without size limit",
                          file=source_file.path, rule="upload-size")

    def _check_manifest(self) -> None:
        manifest = self.read_manifest()
        if manifest is None:
            return
        name = self.layout("manifest")
        dependencies = manifest.get("dependencies") or {}
        for dep in CRITICAL_DEPENDENCIES:
            version = dependencies.get(dep)
            if isinstance(version, str) and ("^" in version or "~" in version):
                self.emit(Severity.MEDIUM, "misconfiguration",
                          f"Critical dependency {dep} uses a flexible version: {version}",
                          file=name, rule="flexible-version")
        for dep, affected in VULNERABLE_PACKAGES.items():
            if dep in dependencies:
                self.emit(Severity.HIGH, "vulnerable_components",
                          f"Dependency {dep} has known vulnerabilities ({affected})",
                          file=name, rule="vulnerable-package")

    def _check_public_html(self) -> None:
        rule = Rule("script-integrity", "External scripts need subresource integrity",
                    Severity.MEDIUM, "integrity", _external_scripts)
        for page in self.scanner.scan(self.layout("public"), (".html",)):
            self.collect(rule.match(page))

    def _check_security_logging(self, files: List[SourceFile]) -> None:
        for source_file in files:
            if "logger" in source_file.name.lower() and contains_any("auth", "login", "security")(source_file.content):
                return
        self.emit(Severity.MEDIUM, "logging", "No security event logging found", rule="security-logging")

    def _score(self) -> None:
        engine = self.scoring_engine()
        scores = engine.category_scores()
        total_raw = engine.total_raw()
        total_possible = len(CATEGORIES) * 4
        overall = clamp(100 - total_raw / total_possible * 100)

        self.score = overall
        self.grade = grade(overall)
        self.metrics = {
            "categories": [s.to_dict() for s in scores],
            "severity_counts": engine.severity_counts(),
            "total_issues": sum(s.issues for s in scores),
            "total_raw": total_raw,
        }
        logger.debug("Security score %.1f (%s)", overall, self.grade)
