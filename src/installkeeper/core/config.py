"""
installkeeper.core.config - Configuration Management
======================================================

This module provides the configuration system for installkeeper.
Configuration can be loaded from multiple sources with the following
priority (highest first):

    1. Explicit constructor arguments
    2. Environment variables (prefixed with INSTALLKEEPER_)
    3. YAML configuration file (installkeeper.yaml)
    4. Default values defined in the models below

Architecture Context:
    The top-level KeeperConfig is created once by the caller. Its nested
    SessionConfig is handed explicitly to every ResolutionSession; nothing
    reads resolution settings from process-wide state.

        KeeperConfig
            ├── SessionConfig  → ResolutionSession, ExecutionOptions
            └── (other)        → InstallationMetadata, ArtifactCacheExporter

Usage:
    # Load from environment variables:
    config = KeeperConfig()

    # Load from YAML file:
    config = load_config("installkeeper.yaml")

    # Explicit overrides:
    config = KeeperConfig(session=SessionConfig(offline=True))

Environment Variables:
    INSTALLKEEPER_LOG_LEVEL=DEBUG
    INSTALLKEEPER_SESSION__OFFLINE=true
    INSTALLKEEPER_SESSION__LOCAL_REPOSITORY=/var/cache/m2
    INSTALLKEEPER_CACHE_CONTENT=false
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from installkeeper.core.exceptions import ConfigurationError


def _default_local_repository() -> Path:
    return Path.home() / ".m2" / "repository"


# =============================================================================
# Session Configuration
# =============================================================================
# Settings shared by a resolution session and the provisioning executor:
# where the local artifact repository lives and whether remote repositories
# may be consulted at all.
# =============================================================================
class SessionConfig(BaseModel):
    """Configuration for one resolution session.

    Attributes:
        local_repository: Local Maven-layout repository. Always consulted,
            also in offline mode.
        offline: When True, only local (file://) repositories and the local
            repository are searched.
        provisioning_repo: Directory the provisioning executor may use for
            artifacts it downloads. Defaults to ``local_repository``.
    """

    local_repository: Path = Field(
        default_factory=_default_local_repository,
        description="Local Maven-layout artifact repository",
    )
    offline: bool = Field(
        default=False,
        description="Restrict resolution to local repositories",
    )
    provisioning_repo: Optional[Path] = Field(
        default=None,
        description="Repository used by the provisioning executor",
    )

    @property
    def effective_provisioning_repo(self) -> Path:
        return (self.provisioning_repo or self.local_repository).absolute()


# =============================================================================
# Main Configuration
# =============================================================================
# Environment Variable Mapping:
#   INSTALLKEEPER_LOG_LEVEL               → config.log_level
#   INSTALLKEEPER_METADATA_DIR            → config.metadata_dir
#   INSTALLKEEPER_SESSION__OFFLINE        → config.session.offline
# =============================================================================
class KeeperConfig(BaseSettings):
    """Top-level configuration for installkeeper.

    Attributes:
        log_level: Logging level for structlog output.
        metadata_dir: Name of the metadata directory inside an installation.
        cache_dir: Artifact cache location, relative to the metadata directory.
        cache_content: Copy artifact binaries into the cache, not just
            their coordinates.
        session: Resolution session settings (see SessionConfig).

    Example:
        >>> config = KeeperConfig(session=SessionConfig(offline=True))
    """

    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    metadata_dir: str = Field(
        default=".installation",
        description="Metadata directory name inside an installation",
    )
    cache_dir: str = Field(
        default=".cache",
        description="Artifact cache directory, relative to metadata_dir",
    )
    cache_content: bool = Field(
        default=True,
        description="Copy artifact content into the cache when it is available locally",
    )

    session: SessionConfig = Field(
        default_factory=SessionConfig,
        description="Resolution session configuration",
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------
    #   - env_prefix: All env vars start with "INSTALLKEEPER_"
    #   - env_nested_delimiter: "__" reaches into nested configs
    #     (INSTALLKEEPER_SESSION__OFFLINE maps to config.session.offline)
    # -------------------------------------------------------------------------
    model_config = {
        "env_prefix": "INSTALLKEEPER_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    def metadata_path(self, install_dir: Path) -> Path:
        return Path(install_dir) / self.metadata_dir

    def cache_path(self, install_dir: Path) -> Path:
        return self.metadata_path(install_dir) / self.cache_dir


# =============================================================================
# Configuration Loader
# =============================================================================
def load_config(path: Optional[str] = None) -> KeeperConfig:
    """Load installkeeper configuration from a YAML file and/or environment.

    Args:
        path: Path to a YAML configuration file. If None, looks for
            'installkeeper.yaml' in the current directory, falling back to
            defaults + environment variables.

    Returns:
        A fully validated KeeperConfig instance.

    Raises:
        FileNotFoundError: If an explicit path is provided but doesn't exist.
        ConfigurationError: If the file is not valid YAML or fails validation.
    """
    if path is None:
        default_path = Path("installkeeper.yaml")
        if default_path.exists():
            path = str(default_path)

    yaml_data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(config_path) as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                message=f"Configuration file is not valid YAML: {path}",
                error_code="CONFIG_INVALID_YAML",
                details={"path": path, "error": str(e)},
            ) from e

        if raw_data is not None and not isinstance(raw_data, dict):
            raise ConfigurationError(
                message=f"Configuration file must contain a mapping: {path}",
                error_code="CONFIG_INVALID",
                details={"path": path},
            )
        yaml_data = raw_data or {}

    try:
        return KeeperConfig(**yaml_data)
    except ValidationError as e:
        raise ConfigurationError(
            message="Invalid installkeeper configuration",
            error_code="CONFIG_VALIDATION_FAILED",
            details={"path": path, "errors": e.errors(include_url=False)},
        ) from e
