"""
RepoGuard: local static analysis for project security and hygiene

RepoGuard inspects a project's source tree and dependency metadata:
- Walks the tree with path containment, depth and cycle guards
- Scans source files for hardcoded secrets with bounded patterns
- Runs npm tooling through a sandboxed process runner
- Aggregates concurrent checks into one validation report

Usage:
    from repoguard import ValidationPipeline

    report = await ValidationPipeline().execute("path/to/project")
"""

__version__ = "0.3.0"

# Core functionality
from .config import get_settings
from .logging import get_logger, setup_logging

# Main pipeline classes for programmatic use
from .orchestrator.pipeline import CheckOrchestrator, ValidationPipeline, run_validation

__all__ = [
    "CheckOrchestrator",
    "ValidationPipeline",
    "get_logger",
    "get_settings",
    "run_validation",
    "setup_logging",
    "__version__",
]
