"""ValidationEngine: runs the passes in order and isolates their failures."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from . import report
from .config_manager import ProjectConfig
from .models import Finding, Severity, ValidationReport, ValidatorResult
from .scanner import SourceCorpusScanner
from .validators import VALIDATORS, Validator, build_default_validators

logger = logging.getLogger(__name__)

ENGINE_CATEGORY = "engine"


def report_timestamp() -> str:
    """ISO-8601 UTC timestamp, taken from ``SOURCE_DATE_EPOCH`` when set."""
    epoch = os.environ.get("SOURCE_DATE_EPOCH")
    if epoch:
        moment = datetime.fromtimestamp(int(epoch), tz=timezone.utc)
    else:
        moment = datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class ValidationEngine:
    """Runs every registered pass and aggregates the results.

    A pass that raises contributes the findings it appended before the
    failure plus one critical ``engine`` finding; the run continues.
    """

    def __init__(
        self,
        root: Path,
        config: Optional[ProjectConfig] = None,
        validators: Optional[List[Validator]] = None,
    ):
        self.root = Path(root)
        self.config = config or ProjectConfig()
        self.scanner = SourceCorpusScanner(self.root, self.config.excluded_dirs)
        self.validators = (
            validators if validators is not None
            else build_default_validators(self.root, self.config, self.scanner)
        )

    def select(self, only: Optional[Iterable[str]] = None, skip: Optional[Iterable[str]] = None) -> List[Validator]:
        """Filter the registry by pass key, keeping run order."""
        only = list(only or [])
        skip = list(skip or [])
        unknown = [k for k in only + skip if k not in VALIDATORS]
        if unknown:
            raise ValueError(f"Unknown validator(s): {', '.join(unknown)}")
        return [
            v for v in self.validators
            if (not only or v.key in only) and v.key not in skip
        ]

    def run_validator(self, validator: Validator) -> ValidatorResult:
        """Run one pass; an exception becomes one extra critical finding."""
        findings: List[Finding] = []
        try:
            return validator.validate(findings)
        except Exception as exc:
            logger.error("%s failed: %s: %s", validator.name, type(exc).__name__, exc)
            findings.append(Finding(
                severity=Severity.CRITICAL,
                category=ENGINE_CATEGORY,
                message=f"{validator.name} failed: {type(exc).__name__}: {exc}",
                validator=validator.name,
            ))
            return ValidatorResult(has_errors=True, details=findings)

    def run(self, only: Optional[Iterable[str]] = None, skip: Optional[Iterable[str]] = None) -> ValidationReport:
        selected = self.select(only, skip)
        result = ValidationReport(timestamp=report_timestamp())
        for validator in selected:
            result.outcomes.append((validator.name, self.run_validator(validator)))
        logger.info(
            "%d validator(s) run, %d passed, %d failed",
            result.validators_run, result.validators_passed, result.validators_failed,
        )
        return result

    def report_path(self, output: Optional[Path] = None) -> Path:
        if output is None:
            return self.root / self.config.report_file
        output = Path(output)
        return output if output.is_absolute() else self.root / output

    def write_report(self, result: ValidationReport, output: Optional[Path] = None) -> Path:
        text = report.render(result.entries(), result.timestamp, result.scores())
        return report.write(self.report_path(output), text)
