"""Default settings for the Gatekeeper governance engine."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

CONFIG_FILE_NAME = ".gatekeeper.toml"
REPORT_FILE = "GOVERNANCE_REPORT.md"
BACKUP_DIR_NAME = ".gatekeeper/backups"

# Directories never descended into by the scanner (matched by exact name)
EXCLUDED_DIRS = ("node_modules", "dist", "build", "coverage", ".git", ".gatekeeper")

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
DEFAULT_EXTENSION = ".ts"

# Files that are reachable without anyone importing them
ENTRY_POINTS = ("server.ts", "main.ts", "admin.ts")

DEFAULT_LAYOUT: Dict[str, str] = {
    "source": "src",
    "controllers": "src/controllers",
    "services": "src/services",
    "routes": "src/routes",
    "middleware": "src/middleware",
    "frontend": "src/frontend",
    "admin": "src/frontend/admin",
    "shared": "src/shared",
    "types": "src/types",
    "public": "public",
    "tests": "tests",
    "build_output": "dist",
    "server_entry": "src/server.ts",
    "manifest": "package.json",
    "compiler_config": "tsconfig.json",
    "workflows": ".github/workflows",
}

# Layer -> layers it may import from (same-layer imports are always allowed)
LAYER_RULES: Dict[str, List[str]] = {
    "controllers": ["services", "shared"],
    "services": ["shared", "types"],
    "routes": ["controllers", "middleware", "shared"],
    "middleware": ["shared"],
    "frontend": ["shared"],
    "admin": ["frontend", "shared"],
    "shared": ["types"],
    "types": ["shared"],
}

# Classification order matters: admin lives inside frontend
LAYER_ORDER = ("admin", "controllers", "services", "routes", "middleware", "frontend", "shared", "types")

PROHIBITED_DIRS = ("src/backend", "src/client", "app", "backend", "frontend")
REQUIRED_DIRS = ("source", "services", "controllers", "routes", "frontend", "public")

DEFAULT_THRESHOLDS: Dict[str, float] = {
    "max_file_lines": 500,
    "max_import_lines": 15,
    "max_export_lines": 20,
    "complexity_medium": 10,
    "complexity_high": 20,
    "min_test_ratio": 0.3,
    "max_test_body_lines": 50,
    "max_bundle_file_kb": 500,
    "max_bundle_total_kb": 2000,
    "max_stylesheet_kb": 200,
    "max_public_css_kb": 100,
    "max_static_files": 50,
    "max_service_selects": 5,
    "max_fetch_calls": 3,
    "max_type_assertions": 10,
}

DEFAULT_ENGINE: Dict[str, object] = {
    "report_file": REPORT_FILE,
    "excluded_dirs": list(EXCLUDED_DIRS),
    "extensions": list(SOURCE_EXTENSIONS),
    "default_extension": DEFAULT_EXTENSION,
    "entry_points": list(ENTRY_POINTS),
}


def config_path_for(root: Path) -> Path:
    """Return the config file for ``root``, honouring ``GATEKEEPER_CONFIG``."""
    override: Optional[str] = os.environ.get("GATEKEEPER_CONFIG")
    if override:
        return Path(override).expanduser()
    return root / CONFIG_FILE_NAME
