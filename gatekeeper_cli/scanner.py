"""Source corpus scanner: depth-first walk of the project tree."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .config import EXCLUDED_DIRS
from .models import SourceFile

logger = logging.getLogger(__name__)


class SourceCorpusScanner:
    """Enumerate and read project files.

    Every call re-walks the tree; nothing is cached between calls.
    Directory errors (e.g. permission denied) propagate to the caller.
    """

    def __init__(self, root: Path, excluded_dirs: Iterable[str] = EXCLUDED_DIRS):
        self.root = Path(root)
        self.excluded_dirs = frozenset(excluded_dirs)

    def _walk(self, directory: Path, recursive: bool, exclude: bool) -> Iterator[Path]:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if not recursive:
                    continue
                if exclude and entry.name in self.excluded_dirs:
                    logger.debug("Skipping excluded directory %s", entry.path)
                    continue
                yield from self._walk(Path(entry.path), recursive, exclude)
            elif entry.is_file():
                yield Path(entry.path)

    def list_paths(
        self,
        base: str = ".",
        extensions: Optional[Sequence[str]] = None,
        recursive: bool = True,
        name_pattern: Optional[str] = None,
        exclude: bool = True,
    ) -> List[Path]:
        """List files below ``base`` without reading them.

        Args:
            base: Directory relative to the project root
            extensions: Keep only files ending with one of these suffixes
            recursive: Descend into subdirectories
            name_pattern: Optional ``fnmatch`` pattern on the file name
            exclude: Skip the excluded directory names

        Returns:
            Absolute paths in depth-first, name-sorted order
        """
        start = self.root / base
        if not start.is_dir():
            return []

        paths = []
        for path in self._walk(start, recursive, exclude):
            if extensions and not path.name.endswith(tuple(extensions)):
                continue
            if name_pattern and not fnmatch.fnmatch(path.name, name_pattern):
                continue
            paths.append(path)
        return paths

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def read(self, path: Path) -> SourceFile:
        content = path.read_text(encoding="utf-8", errors="replace")
        return SourceFile(
            path=self.relative(path),
            abs_path=path,
            content=content,
            extension=path.suffix,
        )

    def scan(
        self,
        base: str = ".",
        extensions: Optional[Sequence[str]] = None,
        recursive: bool = True,
        name_pattern: Optional[str] = None,
    ) -> List[SourceFile]:
        """Read every matching file below ``base``."""
        files = [
            self.read(path)
            for path in self.list_paths(base, extensions, recursive, name_pattern)
        ]
        logger.debug("Scanned %d file(s) under %s", len(files), base)
        return files
