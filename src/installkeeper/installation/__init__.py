"""
installkeeper.installation - Installed-State Store
====================================================

Components:
    - InstallationMetadata (ABC):     load / stage / commit protocol
    - InMemoryInstallationMetadata:   in-memory store for development/testing
    - FileInstallationMetadata:       YAML files under <install>/.installation

Usage:
    from installkeeper.installation import FileInstallationMetadata
"""

from installkeeper.installation.metadata import (
    FileInstallationMetadata,
    InMemoryInstallationMetadata,
    InstallationMetadata,
)

__all__ = [
    "InstallationMetadata",
    "InMemoryInstallationMetadata",
    "FileInstallationMetadata",
]
