"""
installkeeper - In-Place Installation Updates
===============================================

installkeeper updates a provisioned installation whose composition is
described by channels: named resolution scopes pairing artifact
repositories with version rules.

    Installed manifest  →  Update set  →  Provisioning  →  Commit  →  Cache
    (what is there)        (what changed)  (lay out files)  (manifest)  (reproducibility)

Architecture Layers (top to bottom):
    1. Orchestration Layer  - UpdateAction
    2. Update Layer         - UpdateFinder, repository overrides
    3. Resolution Layer     - ResolutionSession, repository indexes
    4. Boundary Layer       - InstallationMetadata, ProvisioningExecutor,
                              ArtifactCacheExporter

Quick Start:
    >>> from installkeeper import UpdateAction
    >>> with UpdateAction(install_dir, executor) as action:
    ...     action.perform_update()
"""

# =============================================================================
# Package Version
# =============================================================================
__version__ = "0.1.0"

# =============================================================================
# Package-Level Exports
# =============================================================================
# UpdateAction is the main entry point. For specific components, import from
# submodules directly:
#   from installkeeper.core.config import KeeperConfig
#   from installkeeper.installation import FileInstallationMetadata
# =============================================================================
from installkeeper.orchestration.update_action import UpdateAction

__all__ = ["UpdateAction", "__version__"]
