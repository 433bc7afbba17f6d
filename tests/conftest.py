"""Pytest configuration and fixtures for Gatekeeper tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from gatekeeper_cli.config_manager import ProjectConfig
from gatekeeper_cli.scanner import SourceCorpusScanner


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep the caller's environment out of config lookup and timestamps."""
    monkeypatch.delenv("GATEKEEPER_CONFIG", raising=False)
    monkeypatch.delenv("SOURCE_DATE_EPOCH", raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


def write_tree(root: Path, files: Dict[str, object]) -> Path:
    """Write ``{relative path: content}`` below ``root``; dicts are dumped as JSON."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, (dict, list)):
            content = json.dumps(content, indent=2)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[[Dict[str, object]], Path]:
    """Factory writing a throw-away project tree and returning its root."""
    def _make(files: Dict[str, object]) -> Path:
        return write_tree(temp_dir, files)
    return _make


@pytest.fixture
def project_config() -> ProjectConfig:
    return ProjectConfig()


@pytest.fixture
def scanner(temp_dir: Path) -> SourceCorpusScanner:
    return SourceCorpusScanner(temp_dir)


@pytest.fixture
def healthy_project(make_project) -> Path:
    """A small project laid out the conventional way."""
    return make_project({
        "package.json": {
            "name": "shop",
            "scripts": {"test": "vitest run", "test:coverage": "vitest run --coverage", "test:watch": "vitest"},
            "dependencies": {"express": "4.18.2"},
            "devDependencies": {"typescript": "5.4.0", "vitest": "1.6.0"},
        },
        "tsconfig.json": {
            "compilerOptions": {"outDir": "dist", "strict": True},
            "include": ["src/**/*"],
        },
        "src/server.ts": (
            "import express from 'express';\n"
            "import { listProducts } from './controllers/productController';\n"
            "\n"
            "const app = express();\n"
            "app.get('/api/products', listProducts);\n"
        ),
        "src/controllers/productController.ts": (
            "import { productService } from '../services/productService';\n"
            "\n"
            "export function listProducts(req, res) {\n"
            "  res.json(productService.all());\n"
            "}\n"
        ),
        "src/services/productService.ts": (
            "export const productService = {\n"
            "  all() {\n"
            "    return [];\n"
            "  },\n"
            "};\n"
        ),
        "src/routes/productRoutes.ts": (
            "import { listProducts } from '../controllers/productController';\n"
            "\n"
            "router.get('/api/products', listProducts);\n"
        ),
        "src/frontend/catalog.ts": (
            "export async function loadCatalog() {\n"
            "  return fetch('/api/products');\n"
            "}\n"
        ),
        "public/index.html": "<html><body><script src=\"/app.js\"></script></body></html>\n",
        "dist/app.js": "console.log('built');\n",
    })
