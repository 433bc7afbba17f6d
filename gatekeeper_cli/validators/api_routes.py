"""Front-end API calls matched against declared back-end routes."""

from __future__ import annotations

import logging
import re
from typing import List

from ..models import Severity
from .base import Validator

logger = logging.getLogger(__name__)

FETCH_URL = re.compile(r"""fetch\s*\(\s*['"`]([^'"`]*/api/[^'"`]*)['"`]""")
AXIOS_URL = re.compile(r"""axios\.(?:get|post|put|patch|delete)\s*\(\s*['"`]([^'"`]*/api/[^'"`]*)['"`]""")
ROUTE_DECLARATION = re.compile(
    r"""\b(?:app|router)\.(?:get|post|put|patch|delete|all|use)\s*\(\s*['"`]([^'"`]+)['"`]"""
)


def _segments(path: str) -> List[str]:
    return [s for s in path.split("/") if s]


def route_matches(url: str, route: str) -> bool:
    """True when ``url`` ends with ``route``.

    ``:param`` route segments and ``${...}`` URL segments match any segment.
    """
    url_parts = _segments(re.split(r"[?#]", url, maxsplit=1)[0])
    route_parts = _segments(route)
    if not route_parts or len(route_parts) > len(url_parts):
        return False
    tail = url_parts[len(url_parts) - len(route_parts):]
    for actual, declared in zip(tail, route_parts):
        if declared.startswith(":") or "${" in actual:
            continue
        if actual != declared:
            return False
    return True


class ApiRouteValidator(Validator):
    name = "API Routes"
    key = "api-routes"
    description = "Front-end /api/ calls resolve to a declared route"

    def declared_routes(self) -> List[str]:
        routes: List[str] = []
        for source_file in self.source_files(base=self.layout("routes")):
            for match in ROUTE_DECLARATION.finditer(source_file.content):
                if match.group(1) not in routes:
                    routes.append(match.group(1))
        return routes

    def run(self) -> None:
        routes = self.declared_routes()
        logger.debug("%d declared route(s)", len(routes))
        for source_file in self.source_files(base=self.layout("frontend")):
            for pattern in (FETCH_URL, AXIOS_URL):
                for match in pattern.finditer(source_file.content):
                    url = match.group(1)
                    if any(route_matches(url, route) for route in routes):
                        continue
                    self.emit(Severity.HIGH, "api", f"API call to undeclared route {url}",
                              file=source_file.path, line=source_file.line_of(match.start()),
                              rule="undeclared-route")
