"""Configuration management for RepoGuard."""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

AuditLevel = Literal['info', 'low', 'moderate', 'high', 'critical']


class Settings(BaseSettings):
    """RepoGuard configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="REPOGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format: json, console"
    )

    # Traversal limits
    max_walk_depth: int = Field(
        default=10,
        ge=0,
        description="Deepest directory level entered below the scan root"
    )
    max_file_size: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Files larger than this many bytes are skipped unread"
    )
    max_json_size: int = Field(
        default=1024 * 1024,
        gt=0,
        description="Largest metadata JSON file (package.json, patterns) accepted"
    )

    # External processes
    process_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-command timeout in seconds"
    )
    process_max_buffer: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Per-stream stdout/stderr cap in bytes"
    )
    audit_retry_attempts: int = Field(
        default=2,
        ge=1,
        description="Attempts for npm audit when it exits with an unexpected code"
    )

    # Check configuration
    audit_level: AuditLevel = Field(
        default="moderate",
        description="Lowest npm audit severity that fails the check"
    )
    pattern_file: Optional[Path] = Field(
        default=None,
        description="Secret pattern file (default: <root>/config/patterns.json)"
    )
    check_secrets: bool = Field(default=True, description="Run the secrets scan")
    allowed_licenses: List[str] = Field(
        default_factory=list,
        description="Licenses accepted by the license check; empty disables it"
    )
    publish_dry_run: bool = Field(
        default=False,
        description="Run 'npm pack --dry-run'"
    )
    generate_sbom: bool = Field(
        default=False,
        description="Write an 'npm ls' SBOM to reports/"
    )
    run_tests_check: bool = Field(
        default=True,
        description="Look for a test script and test files"
    )

    # Dependency quality
    check_unused_dependencies: bool = Field(
        default=True,
        description="Report declared dependencies never imported under src/"
    )
    allowed_unused_dependencies: List[str] = Field(
        default_factory=lambda: ["@types/*"],
        description="Glob patterns of package names the unused check ignores"
    )
    check_duplicate_dependencies: bool = Field(
        default=True,
        description="Report packages installed at more than one version"
    )
    check_peer_dependencies: bool = Field(
        default=True,
        description="Report unmet peer dependencies"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (for testing)."""
    global _settings
    _settings = None
