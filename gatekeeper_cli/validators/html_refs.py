"""Absolute script and stylesheet references in public HTML."""

from __future__ import annotations

import logging
import re

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)

REFERENCES = [
    ("script", re.compile(r"""<script[^>]*\bsrc\s*=\s*["']([^"']*)["'][^>]*>""", re.IGNORECASE)),
    ("link", re.compile(r"""<link[^>]*\bhref\s*=\s*["']([^"']*)["'][^>]*>""", re.IGNORECASE)),
]


class HtmlReferenceValidator(Validator):
    name = "HTML References"
    key = "html"
    description = "Absolute <script src> and <link href> targets exist in the build output"

    def run(self) -> None:
        output = self.layout("build_output").rstrip("/")
        for page in self.source_files(base=self.layout("public"), extensions=(".html",)):
            logger.debug("Checking references in %s", page.path)
            for number, text in enumerate(page.lines, start=1):
                for kind, pattern in REFERENCES:
                    for match in pattern.finditer(text):
                        ref = match.group(1)
                        if not ref.startswith("/") or ref.startswith("//"):
                            continue
                        target = re.split(r"[?#]", ref, maxsplit=1)[0].lstrip("/")
                        if (self.root / output / target).exists():
                            continue
                        self.emit(Severity.HIGH, "references",
                                  f'{kind} "{ref}" does not exist in {output}/',
                                  file=page.path, line=number, rule="html-reference")
