"""
installkeeper.resolution - Artifact Resolution Layer
======================================================

Resolves artifact versions under a set of channels.

Components:
    - ResolutionSession (ABC):       scoped resolver used by finder and executor
    - RepositoryResolutionSession:   session backed by repository indexes
    - RepositoryIndex (ABC):         contents of one kind of repository
    - InMemoryRepositoryIndex:       dict-backed index for development/testing
    - LocalRepositoryIndex:          Maven-layout directory on disk
    - versions:                      tolerant version comparator
"""

from installkeeper.resolution.index import (
    InMemoryRepositoryIndex,
    LocalRepositoryIndex,
    RepositoryIndex,
)
from installkeeper.resolution.session import (
    RepositoryResolutionSession,
    ResolutionSession,
)
from installkeeper.resolution.versions import compare_versions, latest_version

__all__ = [
    "RepositoryIndex",
    "InMemoryRepositoryIndex",
    "LocalRepositoryIndex",
    "ResolutionSession",
    "RepositoryResolutionSession",
    "compare_versions",
    "latest_version",
]
