"""
installkeeper.resolution.index - Repository Indexes
=====================================================

A RepositoryIndex answers two questions about one repository: which versions
of an artifact does it hold, and where is the content of a given version.
Resolution sessions combine several indexes; they never talk to a
repository directly.

    ┌────────────────────┐   list_versions()   ┌─────────────────────────┐
    │  ResolutionSession  │ ──────────────────→ │  RepositoryIndex (ABC)   │
    │                    │   locate()          │    ├── InMemory...       │
    └────────────────────┘                     │    └── LocalRepository.. │
                                               └─────────────────────────┘

Implementations:
    - InMemoryRepositoryIndex: dict-backed catalogue for tests and development
    - LocalRepositoryIndex:    Maven-layout directory on the local filesystem
      (``<root>/<group/as/path>/<artifactId>/<version>/<file>``)

Remote protocols (maven-metadata.xml over HTTP, ...) are outside
installkeeper; plug them in by implementing RepositoryIndex.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import unquote, urlparse

import structlog

from installkeeper.core.models import ArtifactKey, ManagedArtifact, Repository


logger = structlog.get_logger()


class RepositoryIndex(ABC):
    """Abstract view over the contents of artifact repositories."""

    @abstractmethod
    def list_versions(self, repository: Repository, key: ArtifactKey) -> list[str]:
        """Versions of ``key`` available in ``repository`` (any order)."""

    @abstractmethod
    def locate(self, repository: Repository, artifact: ManagedArtifact) -> Optional[Path]:
        """Local path of ``artifact``'s content, or None if not available."""


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryRepositoryIndex(RepositoryIndex):
    """In-memory repository catalogue for development and testing.

    Example:
        >>> index = InMemoryRepositoryIndex()
        >>> index.publish("central", ManagedArtifact(
        ...     group_id="org.example", artifact_id="foo", version="1.1.0"))
        >>> index.list_versions(central, ArtifactKey.parse("org.example:foo"))
        ['1.1.0']
    """

    def __init__(self) -> None:
        # repository id -> artifact key -> versions
        self._catalogue: dict[str, dict[ArtifactKey, list[str]]] = {}
        self._content: dict[tuple[str, str], Path] = {}

    def publish(
        self,
        repository_id: str,
        artifact: ManagedArtifact,
        content: Optional[Path] = None,
    ) -> None:
        """Make ``artifact`` available in the repository ``repository_id``."""
        versions = self._catalogue.setdefault(repository_id, {}).setdefault(artifact.key, [])
        if artifact.version not in versions:
            versions.append(artifact.version)
        if content is not None:
            self._content[(repository_id, artifact.coordinate)] = content

    def publish_all(self, repository_id: str, artifacts: Iterable[ManagedArtifact]) -> None:
        for artifact in artifacts:
            self.publish(repository_id, artifact)

    def list_versions(self, repository: Repository, key: ArtifactKey) -> list[str]:
        return list(self._catalogue.get(repository.id, {}).get(key, []))

    def locate(self, repository: Repository, artifact: ManagedArtifact) -> Optional[Path]:
        return self._content.get((repository.id, artifact.coordinate))


# =============================================================================
# Local Maven-Layout Implementation
# =============================================================================
class LocalRepositoryIndex(RepositoryIndex):
    """Maven-layout repository on the local filesystem.

    The root is either given explicitly (the session's local repository) or
    taken from a ``file://`` repository URL.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self._root = Path(root) if root is not None else None
        self._logger = logger.bind(component="local_repository_index")

    @staticmethod
    def path_from_url(url: str) -> Path:
        """Filesystem path of a ``file://`` URL."""
        return Path(unquote(urlparse(url).path))

    def _root_for(self, repository: Repository) -> Optional[Path]:
        if self._root is not None:
            return self._root
        if repository.is_local:
            return self.path_from_url(repository.url)
        return None

    @staticmethod
    def _artifact_dir(root: Path, group_id: str, artifact_id: str) -> Path:
        return root.joinpath(*group_id.split(".")) / artifact_id

    def list_versions(self, repository: Repository, key: ArtifactKey) -> list[str]:
        root = self._root_for(repository)
        if root is None:
            return []
        artifact_dir = self._artifact_dir(root, key.group_id, key.artifact_id)
        if not artifact_dir.is_dir():
            return []

        versions = []
        for version_dir in sorted(artifact_dir.iterdir()):
            if not version_dir.is_dir():
                continue
            candidate = ManagedArtifact.of(key, version_dir.name)
            # A version directory only counts if it holds a file for this
            # classifier; any extension will do.
            prefix = candidate.file_name.rsplit(".", 1)[0] + "."
            if any(
                f.name.startswith(prefix) and not f.name.endswith((".sha1", ".md5", ".pom"))
                for f in version_dir.iterdir()
            ):
                versions.append(version_dir.name)
        self._logger.debug(
            "local_versions_listed",
            repository=repository.id,
            artifact=str(key),
            count=len(versions),
        )
        return versions

    def locate(self, repository: Repository, artifact: ManagedArtifact) -> Optional[Path]:
        root = self._root_for(repository)
        if root is None:
            return None
        path = (
            self._artifact_dir(root, artifact.group_id, artifact.artifact_id)
            / artifact.version
            / artifact.file_name
        )
        return path if path.is_file() else None
