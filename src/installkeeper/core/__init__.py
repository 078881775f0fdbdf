"""
installkeeper.core - Foundation Layer
=======================================

This module contains the building blocks every other module in
installkeeper depends on:

    - config:      Configuration management (KeeperConfig, SessionConfig)
    - enums:       Type-safe enumerations (UpdateState, NoStreamStrategy, ...)
    - models:      Pydantic data models (Channel, ManagedArtifact, UpdateSet, ...)
    - exceptions:  Custom exception hierarchy for structured error handling

Dependency Rule:
    core/ depends on NOTHING else in the installkeeper package.
    Every other package depends on core/.
"""

from installkeeper.core.config import KeeperConfig, SessionConfig, load_config
from installkeeper.core.enums import NoStreamStrategy, ProvisionKind, UpdateState
from installkeeper.core.exceptions import (
    ArtifactResolutionError,
    CacheExportError,
    ConfigurationError,
    KeeperError,
    MetadataError,
    ProvisioningError,
    UnresolvedArtifactError,
)
from installkeeper.core.models import (
    ArtifactChange,
    ArtifactKey,
    Channel,
    ChannelStream,
    InstalledManifest,
    ManagedArtifact,
    ProvisioningConfig,
    ProvisionRecord,
    Repository,
    ResolutionConfig,
    UpdateSet,
)

__all__ = [
    # Config
    "KeeperConfig",
    "SessionConfig",
    "load_config",
    # Enums
    "UpdateState",
    "NoStreamStrategy",
    "ProvisionKind",
    # Models
    "Repository",
    "ChannelStream",
    "Channel",
    "ResolutionConfig",
    "ArtifactKey",
    "ManagedArtifact",
    "InstalledManifest",
    "ArtifactChange",
    "UpdateSet",
    "ProvisioningConfig",
    "ProvisionRecord",
    # Exceptions
    "KeeperError",
    "ConfigurationError",
    "MetadataError",
    "ProvisioningError",
    "UnresolvedArtifactError",
    "ArtifactResolutionError",
    "CacheExportError",
]
