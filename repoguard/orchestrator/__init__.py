"""Check orchestration for RepoGuard."""

from .pipeline import CheckOrchestrator, ValidationPipeline, detect_project_type, run_validation

__all__ = ["CheckOrchestrator", "ValidationPipeline", "detect_project_type", "run_validation"]
