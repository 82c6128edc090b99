"""Project checks run by the validation pipeline."""

from typing import List

from .base import (
    Check,
    CheckContext,
    FunctionCheck,
    MetadataError,
    check,
    parse_json_output,
    safe_load_json,
)
from .docker import DOCKER_CHECKS
from .quality import QUALITY_CHECKS
from .security import SECURITY_CHECKS
from .testing import TEST_CHECKS


def default_checks() -> List[Check]:
    """The default check list in report order."""
    return [*SECURITY_CHECKS, *QUALITY_CHECKS, *DOCKER_CHECKS, *TEST_CHECKS]


__all__ = [
    "Check",
    "CheckContext",
    "FunctionCheck",
    "MetadataError",
    "check",
    "default_checks",
    "parse_json_output",
    "safe_load_json",
]
