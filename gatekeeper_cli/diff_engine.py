"""DiffEngine for previewing and applying remediation changes."""

from __future__ import annotations

import difflib
import json
import logging
import os
import shutil
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .config import BACKUP_DIR_NAME
from .models import ApplyResult, FileChange, RemediationPlan

logger = logging.getLogger(__name__)


def read_exact(path: Path) -> str:
    """Read UTF-8 text keeping line endings as they are on disk.

    Raises:
        UnicodeDecodeError: If the file is not valid UTF-8
    """
    with open(path, "r", encoding="utf-8", newline="") as handle:
        return handle.read()


def atomic_write(path: Path, content: str) -> None:
    """Write ``content`` to a temporary sibling, then rename it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class DiffEngine:
    """Handles previewing and applying remediation changes safely."""

    def __init__(self, root: Path, backup_dir: Optional[Path] = None):
        """Initialize DiffEngine.

        Args:
            root: Project root that change paths are relative to
            backup_dir: Directory to store backups. Defaults to <root>/.gatekeeper/backups/
        """
        self.root = Path(root)
        self.backup_dir = backup_dir or self.root / BACKUP_DIR_NAME

    def create_diff(self, original: str, modified: str, filename: str = "file") -> str:
        """Create unified diff between two versions.

        Args:
            original: Original content
            modified: Modified content
            filename: Name of file for diff header

        Returns:
            Unified diff string
        """
        diff = difflib.unified_diff(
            original.splitlines(),
            modified.splitlines(),
            fromfile=f"a/{filename}",
            tofile=f"b/{filename}",
            lineterm="",
        )
        return "\n".join(diff)

    def preview_changes(self, plan: RemediationPlan) -> str:
        """Generate preview of all changes in a plan."""
        lines = [f"📝 Proposed Changes: {plan.description}", ""]

        if plan.num_files_created > 0:
            lines.append(f"   [NEW] {plan.num_files_created} file(s)")
        if plan.num_files_modified > 0:
            lines.append(f"   [MODIFY] {plan.num_files_modified} file(s)")
        lines.append("")

        for change in plan.changes:
            lines.append("=" * 60)
            lines.append(f"[{change.change_type.upper()}] {change.file_path} ({', '.join(change.rules)})")
            lines.append("=" * 60)
            if change.change_type == "create":
                lines.append(change.new_content or "")
            else:
                lines.append(change.diff or self.create_diff(
                    change.original_content or "",
                    change.new_content or "",
                    change.file_path,
                ))
            lines.append("")

        return "\n".join(lines)

    def apply_changes(
        self,
        plan: RemediationPlan,
        backup: bool = True,
        dry_run: bool = False,
    ) -> ApplyResult:
        """Apply changes from a plan to the filesystem.

        Each file is written through a temporary file and an atomic rename.
        On the first failure every file already written is restored from the
        backup.

        Args:
            plan: Remediation plan to apply
            backup: Whether to create backups before applying
            dry_run: If True, don't actually apply changes

        Returns:
            ApplyResult with success status and details
        """
        if dry_run:
            return ApplyResult(
                success=True,
                files_changed=[c.file_path for c in plan.changes],
                backup_id=None,
            )

        backup_id = self._create_backup(plan) if backup else None
        files_changed: List[str] = []

        try:
            for change in plan.changes:
                self._apply_one(change)
                files_changed.append(change.file_path)
                logger.debug("Applied %s to %s", ", ".join(change.rules), change.file_path)
        except (OSError, ValueError) as exc:
            logger.error("Applying remediation failed on %s: %s", change.file_path, exc)
            if backup_id:
                self.rollback(backup_id, files=files_changed)
            return ApplyResult(success=False, files_changed=[], backup_id=backup_id, error=str(exc))

        logger.info("Applied remediation to %d file(s)", len(files_changed))
        return ApplyResult(success=True, files_changed=files_changed, backup_id=backup_id)

    def _apply_one(self, change: FileChange) -> None:
        path = self.root / change.file_path
        if change.change_type == "create":
            if path.exists():
                raise ValueError(f"File already exists: {change.file_path}")
        else:
            if not path.exists():
                raise FileNotFoundError(f"File not found: {change.file_path}")
            current = read_exact(path)
            if current != change.original_content:
                raise ValueError(f"File changed since analysis: {change.file_path}")
        atomic_write(path, change.new_content or "")

    def _create_backup(self, plan: RemediationPlan) -> str:
        """Create backup of files before applying changes.

        Returns:
            Backup ID for rollback
        """
        backup_id = f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        backup_path = self.backup_dir / backup_id
        backup_path.mkdir(parents=True, exist_ok=True)

        metadata: Dict = {
            "description": plan.description,
            "timestamp": datetime.now().isoformat(),
            "files": [],
        }

        for change in plan.changes:
            original = self.root / change.file_path
            entry = {"original": change.file_path, "change_type": change.change_type, "backup": None}
            if change.change_type == "modify" and original.exists():
                backup_file = backup_path / "files" / change.file_path
                backup_file.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(original, backup_file)
                entry["backup"] = str(backup_file.relative_to(backup_path))
            metadata["files"].append(entry)

        (backup_path / "metadata.json").write_text(json.dumps(metadata, indent=2), encoding="utf-8")
        return backup_id

    def rollback(self, backup_id: str, files: Optional[List[str]] = None) -> bool:
        """Rollback changes using a backup.

        Modified files are restored and created files removed. ``files``
        limits the rollback to those paths.

        Returns:
            True if successful, False otherwise
        """
        backup_path = self.backup_dir / backup_id
        metadata_file = backup_path / "metadata.json"
        if not metadata_file.exists():
            return False

        try:
            metadata = json.loads(metadata_file.read_text(encoding="utf-8"))
            for file_info in metadata["files"]:
                if files is not None and file_info["original"] not in files:
                    continue
                original = self.root / file_info["original"]
                if file_info["change_type"] == "create":
                    if original.exists():
                        original.unlink()
                elif file_info["backup"]:
                    shutil.copy2(backup_path / file_info["backup"], original)
        except (OSError, ValueError, KeyError) as exc:
            logger.error("Rollback of %s failed: %s", backup_id, exc)
            return False

        logger.info("Rolled back %s", backup_id)
        return True

    def list_backups(self) -> List[Dict]:
        """List all available backups, newest first."""
        if not self.backup_dir.is_dir():
            return []

        backups = []
        for backup_dir in self.backup_dir.iterdir():
            metadata_file = backup_dir / "metadata.json"
            if backup_dir.is_dir() and metadata_file.exists():
                metadata = json.loads(metadata_file.read_text(encoding="utf-8"))
                metadata["backup_id"] = backup_dir.name
                backups.append(metadata)

        return sorted(backups, key=lambda x: x["timestamp"], reverse=True)
