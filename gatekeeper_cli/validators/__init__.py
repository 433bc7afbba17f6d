"""Analysis passes and the ordered registry the engine runs."""

from __future__ import annotations

from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Type

from ..config_manager import ProjectConfig
from ..scanner import SourceCorpusScanner
from .api_routes import ApiRouteValidator
from .architecture import ArchitectureValidator
from .base import ScoredValidator, Validator
from .build import BuildOutputValidator
from .compiler_config import CompilerConfigValidator
from .complexity import ComplexityValidator
from .console_log import ConsoleLogValidator
from .dependencies import UnusedDependencyValidator
from .duplicate_files import DuplicateFileValidator
from .env_vars import EnvVariableValidator
from .html_refs import HtmlReferenceValidator
from .import_integrity import ImportIntegrityValidator
from .naming import NamingValidator
from .orphans import OrphanFileValidator
from .performance import PerformanceValidator
from .remediation import RemediationValidator
from .security import SecurityValidator
from .symbols import DuplicateSymbolValidator
from .testing import TestingValidator
from .type_safety import TypeSafetyValidator

# Run order is fixed; report sections follow it
VALIDATOR_CLASSES: List[Type[Validator]] = [
    CompilerConfigValidator,
    DuplicateFileValidator,
    ImportIntegrityValidator,
    DuplicateSymbolValidator,
    NamingValidator,
    ComplexityValidator,
    ConsoleLogValidator,
    TypeSafetyValidator,
    ArchitectureValidator,
    SecurityValidator,
    PerformanceValidator,
    TestingValidator,
    RemediationValidator,
    BuildOutputValidator,
    HtmlReferenceValidator,
    EnvVariableValidator,
    ApiRouteValidator,
    UnusedDependencyValidator,
    OrphanFileValidator,
]

VALIDATORS: Dict[str, Type[Validator]] = OrderedDict((cls.key, cls) for cls in VALIDATOR_CLASSES)


def build_default_validators(
    root: Path,
    config: Optional[ProjectConfig] = None,
    scanner: Optional[SourceCorpusScanner] = None,
) -> List[Validator]:
    """Instantiate every registered pass, in run order, sharing one scanner."""
    config = config or ProjectConfig()
    scanner = scanner or SourceCorpusScanner(root, config.excluded_dirs)
    return [cls(root, config, scanner) for cls in VALIDATOR_CLASSES]


__all__ = [
    "ScoredValidator",
    "VALIDATORS",
    "VALIDATOR_CLASSES",
    "Validator",
    "build_default_validators",
]
