"""Integration tests for CLI commands."""

from pathlib import Path

from typer.testing import CliRunner

from gatekeeper_cli import __version__
from gatekeeper_cli.cli import app
from gatekeeper_cli.config import CONFIG_FILE_NAME
from gatekeeper_cli.config_manager import load_config
from gatekeeper_cli.diff_engine import DiffEngine

runner = CliRunner()

ANY_SOURCE = "export const total: any = 1;\n"


class TestVersionAndList:
    """Tests for '--version' and 'gk list'."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"Gatekeeper CLI v{__version__}" in result.output

    def test_list(self):
        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "compiler" in result.output
        assert "orphans" in result.output


class TestRunCommand:
    """Tests for 'gk run'."""

    def test_run_writes_report(self, healthy_project: Path):
        result = runner.invoke(app, ["run", str(healthy_project), "--only", "compiler"])

        assert result.exit_code == 0
        assert "Report written to" in result.output
        report = (healthy_project / "GOVERNANCE_REPORT.md").read_text(encoding="utf-8")
        assert report.startswith("# 🏭 Governance Report")
        assert "## ✅ All Clear" in report

    def test_custom_output(self, healthy_project: Path):
        result = runner.invoke(app, ["run", str(healthy_project), "--only", "compiler", "--output", "out/report.md"])

        assert result.exit_code == 0
        assert (healthy_project / "out" / "report.md").exists()

    def test_findings_do_not_fail_by_default(self, healthy_project: Path):
        """Without --strict a failing pass still exits 0."""
        result = runner.invoke(app, ["run", str(healthy_project), "--only", "build"])
        assert result.exit_code == 0

    def test_strict_exits_non_zero(self, healthy_project: Path):
        result = runner.invoke(app, ["run", str(healthy_project), "--only", "build", "--strict"])
        assert result.exit_code == 1

    def test_unknown_validator(self, healthy_project: Path):
        result = runner.invoke(app, ["run", str(healthy_project), "--only", "nope"])

        assert result.exit_code != 0
        assert not (healthy_project / "GOVERNANCE_REPORT.md").exists()

    def test_bad_config(self, healthy_project: Path):
        (healthy_project / CONFIG_FILE_NAME).write_text("[bogus]\n")
        result = runner.invoke(app, ["run", str(healthy_project)])

        assert result.exit_code != 0

    def test_nonexistent_path(self):
        result = runner.invoke(app, ["run", "/nonexistent/path"])
        assert result.exit_code != 0


class TestFixCommand:
    """Tests for 'gk fix'."""

    def test_diff_is_analysis_only(self, make_project):
        root = make_project({"src/total.ts": ANY_SOURCE})
        result = runner.invoke(app, ["fix", str(root), "--rule", "strict-types", "--diff"])

        assert result.exit_code == 0
        assert "[MODIFY] src/total.ts" in result.output
        assert "+export const total: unknown = 1;" in result.output
        assert "Analysis only" in result.output
        assert (root / "src/total.ts").read_text() == ANY_SOURCE

    def test_apply(self, make_project):
        root = make_project({"src/total.ts": ANY_SOURCE})
        result = runner.invoke(app, ["fix", str(root), "--rule", "strict-types", "--apply"])

        assert result.exit_code == 0
        assert "Applied changes to 1 files" in result.output
        assert (root / "src/total.ts").read_text() == "export const total: unknown = 1;\n"

    def test_nothing_to_fix(self, healthy_project: Path):
        result = runner.invoke(app, ["fix", str(healthy_project), "--rule", "strict-types"])

        assert result.exit_code == 0
        assert "Nothing to fix." in result.output

    def test_unknown_rule(self, healthy_project: Path):
        result = runner.invoke(app, ["fix", str(healthy_project), "--rule", "nope"])
        assert result.exit_code != 0


class TestBackupCommands:
    """Tests for 'gk backups' and 'gk rollback'."""

    def test_no_backups(self, healthy_project: Path):
        result = runner.invoke(app, ["backups", str(healthy_project)])

        assert result.exit_code == 0
        assert "No backups found." in result.output

    def test_apply_list_and_rollback(self, make_project):
        root = make_project({"src/total.ts": ANY_SOURCE})
        runner.invoke(app, ["fix", str(root), "--rule", "strict-types", "--apply"])
        backup_id = DiffEngine(root).list_backups()[0]["backup_id"]

        listed = runner.invoke(app, ["backups", str(root)])
        assert listed.exit_code == 0
        assert backup_id in listed.output

        result = runner.invoke(app, ["rollback", backup_id, "--path", str(root)])
        assert result.exit_code == 0
        assert f"Rolled back {backup_id}" in result.output
        assert (root / "src/total.ts").read_text() == ANY_SOURCE

    def test_rollback_unknown_backup(self, temp_dir: Path):
        result = runner.invoke(app, ["rollback", "missing", "--path", str(temp_dir)])

        assert result.exit_code == 1
        assert "Backup not found: missing" in result.output


class TestInitCommand:
    """Tests for 'gk init'."""

    def test_init_writes_defaults(self, temp_dir: Path):
        result = runner.invoke(app, ["init", str(temp_dir)])

        assert result.exit_code == 0
        assert (temp_dir / CONFIG_FILE_NAME).exists()
        assert load_config(temp_dir).layout["source"] == "src"

    def test_init_refuses_to_overwrite(self, temp_dir: Path):
        (temp_dir / CONFIG_FILE_NAME).write_text("# mine\n")

        assert runner.invoke(app, ["init", str(temp_dir)]).exit_code == 1
        assert (temp_dir / CONFIG_FILE_NAME).read_text() == "# mine\n"
        assert runner.invoke(app, ["init", str(temp_dir), "--force"]).exit_code == 0


class TestScoreCommand:
    """Tests for 'gk score'."""

    def test_score_dashboard(self, healthy_project: Path):
        result = runner.invoke(app, ["score", str(healthy_project)])

        assert result.exit_code == 0
        assert "Overall Governance Score" in result.output
        assert "Security" in result.output
