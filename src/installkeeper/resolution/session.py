"""
installkeeper.resolution.session - Resolution Sessions
========================================================

A ResolutionSession answers "what is the latest version of this artifact
under these channels?" and remembers every artifact it resolved for
provisioning, so the exact result can be recorded afterwards.

Architecture Context:

    ┌─────────────────┐  resolve_latest_version()  ┌────────────────────┐
    │  UpdateFinder    │ ─────────────────────────→ │                    │
    └─────────────────┘                            │  ResolutionSession  │
    ┌─────────────────┐  resolve()                 │                    │
    │  Provisioning    │ ─────────────────────────→ │  channels          │
    │  Executor        │                            │  SessionConfig     │
    └─────────────────┘                            └─────────┬──────────┘
    ┌─────────────────┐  resolved_channel()                  │
    │  UpdateAction    │ ←────────────────────────────────────┘
    └─────────────────┘                                      │ list_versions()
                                                  ┌──────────▼──────────┐
                                                  │  RepositoryIndex     │
                                                  └─────────────────────┘

Resolution Rules (RepositoryResolutionSession):
    1. The governing channel of an artifact is the first channel with a
       stream matching it, else the first channel whose no_stream_strategy
       is LATEST. No governing channel means "not found".
    2. Candidates are the versions held by the governing channel's
       repositories plus the session's local repository. Offline sessions
       skip every non-file:// repository.
    3. The stream's rule filters candidates; the highest remaining wins.

The session configuration is always passed in explicitly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import structlog

from installkeeper.core.config import SessionConfig
from installkeeper.core.exceptions import KeeperError, UnresolvedArtifactError
from installkeeper.core.models import (
    ArtifactKey,
    Channel,
    InstalledManifest,
    ManagedArtifact,
    Repository,
    ResolutionConfig,
)
from installkeeper.resolution.index import LocalRepositoryIndex, RepositoryIndex
from installkeeper.resolution.versions import latest_version


logger = structlog.get_logger()


# =============================================================================
# Abstract Base Class
# =============================================================================
class ResolutionSession(ABC):
    """Resolves artifact versions under a fixed set of channels.

    A session is a scoped resource: open at construction, released by
    ``close()`` (or by leaving a ``with`` block). Using a closed session
    raises KeeperError with error_code "SESSION_CLOSED".

    Subclasses implement ``resolve_latest_version`` and ``locate``; the base
    class provides recording, ``resolved_channel`` and the lifecycle.
    """

    def __init__(self, channels: Iterable[Channel], config: SessionConfig) -> None:
        self._resolution_config = ResolutionConfig(channels=tuple(channels))
        self._config = config
        self._resolved: dict[ArtifactKey, ManagedArtifact] = {}
        self._closed = False

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------
    @property
    def channels(self) -> tuple[Channel, ...]:
        return self._resolution_config.channels

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def offline(self) -> bool:
        return self._config.offline

    @property
    def closed(self) -> bool:
        return self._closed

    def repositories(self) -> list[Repository]:
        """Every repository this session can consult."""
        return self._resolution_config.list_all_repositories()

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------
    @abstractmethod
    def resolve_latest_version(self, key: ArtifactKey) -> Optional[str]:
        """Latest version of ``key`` allowed by the channels, or None."""

    @abstractmethod
    def locate(self, artifact: ManagedArtifact) -> Optional[Path]:
        """Local path of ``artifact``'s content, or None."""

    def resolve(self, key: ArtifactKey, extension: str = "jar") -> ManagedArtifact:
        """Resolve ``key`` and record the result for ``resolved_channel()``.

        Raises:
            UnresolvedArtifactError: If no version of ``key`` can be found.
        """
        version = self.resolve_latest_version(key)
        if version is None:
            raise UnresolvedArtifactError([key])
        artifact = ManagedArtifact.of(key, version, extension=extension)
        self._resolved[key] = artifact
        return artifact

    def resolved_channel(self, name: str = "installation") -> InstalledManifest:
        """Every artifact resolved through ``resolve()`` so far."""
        self._ensure_open()
        return InstalledManifest(name=name, artifacts=list(self._resolved.values()))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def close(self) -> None:
        """Release the session. Safe to call more than once."""
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise KeeperError(
                message="Resolution session has been closed",
                error_code="SESSION_CLOSED",
            )

    def __enter__(self) -> ResolutionSession:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


# =============================================================================
# Repository-Backed Implementation
# =============================================================================
class RepositoryResolutionSession(ResolutionSession):
    """Resolution session backed by repository indexes.

    Attributes:
        _indexes: Per-repository-id index overrides. Repositories without an
            override use a LocalRepositoryIndex when they are file:// URLs and
            ``remote_index`` otherwise.
        _remote_index: Index for non-local repositories, if any.
        _local_index: The session's local repository, always consulted.

    Example:
        >>> session = RepositoryResolutionSession(
        ...     channels, SessionConfig(offline=True),
        ... )
        >>> session.resolve_latest_version(ArtifactKey.parse("org.example:foo"))
        '1.1.0'
    """

    LOCAL_REPOSITORY_ID = "local"

    def __init__(
        self,
        channels: Iterable[Channel],
        config: SessionConfig,
        indexes: Optional[Mapping[str, RepositoryIndex]] = None,
        remote_index: Optional[RepositoryIndex] = None,
    ) -> None:
        super().__init__(channels, config)
        self._indexes = dict(indexes or {})
        self._remote_index = remote_index
        self._file_index = LocalRepositoryIndex()
        self._local_index = LocalRepositoryIndex(config.local_repository)
        self._local_repository = Repository(
            id=self.LOCAL_REPOSITORY_ID,
            url=config.local_repository.absolute().as_uri(),
        )
        self._logger = logger.bind(
            component="resolution_session",
            offline=config.offline,
            channels=[c.name for c in self.channels],
        )

    def governing_channel(self, key: ArtifactKey) -> Optional[Channel]:
        """The channel responsible for ``key``, or None."""
        for channel in self.channels:
            if channel.stream_for(key) is not None:
                return channel
        for channel in self.channels:
            if channel.governs(key):
                return channel
        return None

    def _index_for(self, repository: Repository) -> Optional[RepositoryIndex]:
        if repository.id in self._indexes:
            return self._indexes[repository.id]
        if repository.is_local:
            return self._file_index
        return self._remote_index

    def _searchable(self, channel: Channel) -> list[tuple[Repository, RepositoryIndex]]:
        result: list[tuple[Repository, RepositoryIndex]] = []
        for repository in channel.repositories:
            if self.offline and not repository.is_local:
                continue
            index = self._index_for(repository)
            if index is None:
                self._logger.debug("repository_without_index", repository=repository.id)
                continue
            result.append((repository, index))
        result.append((self._local_repository, self._local_index))
        return result

    def resolve_latest_version(self, key: ArtifactKey) -> Optional[str]:
        self._ensure_open()
        channel = self.governing_channel(key)
        if channel is None:
            self._logger.debug("artifact_not_governed", artifact=str(key))
            return None

        candidates: list[str] = []
        for repository, index in self._searchable(channel):
            for version in index.list_versions(repository, key):
                if version not in candidates:
                    candidates.append(version)

        stream = channel.stream_for(key)
        if stream is not None:
            candidates = [v for v in candidates if stream.accepts(v)]

        version = latest_version(candidates)
        self._logger.debug(
            "artifact_resolved" if version else "artifact_not_found",
            artifact=str(key),
            channel=channel.name,
            version=version,
            candidates=len(candidates),
        )
        return version

    def locate(self, artifact: ManagedArtifact) -> Optional[Path]:
        self._ensure_open()
        channel = self.governing_channel(artifact.key)
        searchable = (
            self._searchable(channel)
            if channel is not None
            else [(self._local_repository, self._local_index)]
        )
        for repository, index in searchable:
            path = index.locate(repository, artifact)
            if path is not None:
                return path
        return None
