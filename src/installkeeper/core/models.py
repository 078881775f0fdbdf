"""
installkeeper.core.models - Core Data Models
==============================================

This module defines the Pydantic data models that flow through every layer
of installkeeper. Every component speaks in terms of these types.

Model Hierarchy:
    Repository         → Where artifacts come from (id + url)
    ChannelStream      → One version rule inside a channel
    Channel            → Named resolution scope: repositories + rules
    ResolutionConfig   → The installation's ordered channel list
    ArtifactKey        → groupId + artifactId (+ classifier), stable across versions
    ManagedArtifact    → An ArtifactKey pinned to a version
    InstalledManifest  → The artifacts recorded for an installation
    ArtifactChange     → One entry of an update set (current → new)
    UpdateSet          → Diff between installed and resolvable versions
    ProvisioningConfig → Opaque layout description owned by the executor
    ProvisionRecord    → One entry of the installation's history

Data Flow Through Architecture:
    ┌──────────────────┐  InstalledManifest   ┌──────────────────┐
    │  Installation     │ ──────────────────→ │  UpdateFinder     │
    │  Metadata         │  ResolutionConfig    │                  │
    │                  │                      │  → UpdateSet     │
    └──────────────────┘                      └──────────────────┘
            ↑                                          │
            │ InstalledManifest (resolved)             ↓
    ┌──────────────────┐  ProvisioningConfig  ┌──────────────────┐
    │  UpdateAction     │ ──────────────────→ │  Provisioning    │
    │                  │                      │  Executor        │
    └──────────────────┘                      └──────────────────┘

Design Principles:
    1. Immutable where the data model says so: frozen models are copied, never
       edited in place (Channel, ResolutionConfig, Repository, ManagedArtifact)
    2. Self-validating: Pydantic enforces type/value constraints at creation
    3. Serializable: all models round-trip through YAML via model_dump()
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from installkeeper.core.enums import NoStreamStrategy, ProvisionKind


def _now() -> datetime:
    """Get the current UTC timestamp."""
    return datetime.now(timezone.utc)


# =============================================================================
# Repository
# =============================================================================
class Repository(BaseModel):
    """One artifact source.

    Attributes:
        id: Repository identifier, unique within a channel.
        url: Repository URL. ``file://`` URLs are local repositories and are
            the only ones consulted in offline mode.

    Example:
        >>> Repository(id="central", url="https://repo1.maven.org/maven2/")
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Repository identifier")
    url: str = Field(description="Repository URL (file:// for local repositories)")

    @property
    def is_local(self) -> bool:
        """True for repositories on the local filesystem."""
        return self.url.startswith("file:")


# =============================================================================
# Artifact Identity
# =============================================================================
# groupId + artifactId (+ classifier). Two ManagedArtifacts with the same key
# are "the same artifact at different versions".
# =============================================================================
class ArtifactKey(BaseModel):
    """Version-independent identity of an artifact.

    Example:
        >>> key = ArtifactKey(group_id="org.example", artifact_id="foo")
        >>> str(key)
        'org.example:foo'
        >>> ArtifactKey.parse("org.example:foo:tests").classifier
        'tests'
    """

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(min_length=1, description="Maven groupId")
    artifact_id: str = Field(min_length=1, description="Maven artifactId")
    classifier: str = Field(default="", description="Optional classifier ('' = none)")

    @classmethod
    def parse(cls, text: str) -> ArtifactKey:
        """Parse ``group:artifact[:classifier]``."""
        parts = text.strip().split(":")
        if len(parts) not in (2, 3) or not all(parts[:2]):
            raise ValueError(f"Invalid artifact key: {text!r}")
        return cls(
            group_id=parts[0],
            artifact_id=parts[1],
            classifier=parts[2] if len(parts) == 3 else "",
        )

    def __str__(self) -> str:
        base = f"{self.group_id}:{self.artifact_id}"
        return f"{base}:{self.classifier}" if self.classifier else base


class ManagedArtifact(BaseModel):
    """An artifact pinned to a version.

    Attributes:
        group_id: Maven groupId.
        artifact_id: Maven artifactId.
        version: The pinned version.
        classifier: Optional classifier ('' = none).
        extension: File extension, used when locating and caching content.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(min_length=1, description="Maven groupId")
    artifact_id: str = Field(min_length=1, description="Maven artifactId")
    version: str = Field(min_length=1, description="Pinned version")
    classifier: str = Field(default="", description="Optional classifier")
    extension: str = Field(default="jar", description="Artifact file extension")

    @property
    def key(self) -> ArtifactKey:
        """The version-independent identity of this artifact."""
        return ArtifactKey(
            group_id=self.group_id,
            artifact_id=self.artifact_id,
            classifier=self.classifier,
        )

    @property
    def coordinate(self) -> str:
        """``group:artifact:extension[:classifier]:version``."""
        parts = [self.group_id, self.artifact_id, self.extension]
        if self.classifier:
            parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    @property
    def file_name(self) -> str:
        """Maven file name: ``artifact-version[-classifier].extension``."""
        suffix = f"-{self.classifier}" if self.classifier else ""
        return f"{self.artifact_id}-{self.version}{suffix}.{self.extension}"

    def with_version(self, version: str) -> ManagedArtifact:
        return self.model_copy(update={"version": version})

    @classmethod
    def of(cls, key: ArtifactKey, version: str, extension: str = "jar") -> ManagedArtifact:
        return cls(
            group_id=key.group_id,
            artifact_id=key.artifact_id,
            classifier=key.classifier,
            version=version,
            extension=extension,
        )

    def __str__(self) -> str:
        return f"{self.key}@{self.version}"


# =============================================================================
# Channel
# =============================================================================
# A channel pairs an ordered repository list with version rules (streams).
# Channels are owned by the installation's configuration and are never
# edited in place: an override produces a copy.
# =============================================================================
class ChannelStream(BaseModel):
    """One version rule of a channel.

    A stream matches artifacts by groupId and artifactId (``"*"`` matches
    every artifact of the group). It then either pins a fixed ``version``,
    restricts candidates with ``version_pattern`` (a regular expression that
    must match the whole version), or, with neither, allows the latest.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(description="groupId this stream applies to")
    artifact_id: str = Field(description="artifactId, or '*' for the whole group")
    version: Optional[str] = Field(default=None, description="Fixed version")
    version_pattern: Optional[str] = Field(
        default=None,
        description="Regex a candidate version must fully match",
    )

    @model_validator(mode="after")
    def _check_exclusive(self) -> ChannelStream:
        if self.version is not None and self.version_pattern is not None:
            raise ValueError("A stream can't declare both version and version_pattern")
        if self.version_pattern is not None:
            re.compile(self.version_pattern)
        return self

    def matches(self, key: ArtifactKey) -> bool:
        return self.group_id == key.group_id and self.artifact_id in ("*", key.artifact_id)

    def accepts(self, version: str) -> bool:
        """Does ``version`` satisfy this stream's rule?"""
        if self.version is not None:
            return version == self.version
        if self.version_pattern is not None:
            return re.fullmatch(self.version_pattern, version) is not None
        return True


class Channel(BaseModel):
    """Named resolution scope.

    Attributes:
        name: Channel name.
        repositories: Ordered repositories the channel resolves from.
        streams: Version rules. The first stream matching an artifact applies;
            an exact artifactId match wins over a ``"*"`` stream.
        no_stream_strategy: What happens to artifacts no stream matches.

    Example:
        >>> channel = Channel(
        ...     name="server",
        ...     repositories=[Repository(id="central", url="https://repo1/")],
        ...     streams=[ChannelStream(group_id="org.example", artifact_id="*")],
        ... )
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Channel name")
    repositories: tuple[Repository, ...] = Field(
        default=(),
        description="Ordered repositories this channel resolves from",
    )
    streams: tuple[ChannelStream, ...] = Field(
        default=(),
        description="Version resolution rules",
    )
    no_stream_strategy: NoStreamStrategy = Field(
        default=NoStreamStrategy.NONE,
        description="Handling of artifacts no stream matches",
    )

    def stream_for(self, key: ArtifactKey) -> Optional[ChannelStream]:
        """Find the stream governing ``key``, preferring exact matches."""
        wildcard: Optional[ChannelStream] = None
        for stream in self.streams:
            if not stream.matches(key):
                continue
            if stream.artifact_id == key.artifact_id:
                return stream
            if wildcard is None:
                wildcard = stream
        return wildcard

    def governs(self, key: ArtifactKey) -> bool:
        return (
            self.stream_for(key) is not None
            or self.no_stream_strategy == NoStreamStrategy.LATEST
        )

    def with_repositories(self, repositories: Iterable[Repository]) -> Channel:
        """Return a copy of this channel with its repository list replaced."""
        return self.model_copy(update={"repositories": tuple(repositories)})


class ResolutionConfig(BaseModel):
    """The installation's channel configuration.

    Only ever replaced as a whole: ``with_channels`` returns a new config,
    which is how repository overrides get an operation-scoped view without
    touching the persisted copy.
    """

    model_config = ConfigDict(frozen=True)

    channels: tuple[Channel, ...] = Field(
        default=(),
        description="Ordered channels used to resolve the installation",
    )

    def with_channels(self, channels: Iterable[Channel]) -> ResolutionConfig:
        return ResolutionConfig(channels=tuple(channels))

    def list_all_repositories(self) -> list[Repository]:
        """Every repository of every channel, de-duplicated by id (first wins)."""
        seen: set[str] = set()
        result: list[Repository] = []
        for channel in self.channels:
            for repository in channel.repositories:
                if repository.id in seen:
                    continue
                seen.add(repository.id)
                result.append(repository)
        return result


# =============================================================================
# Installed Manifest
# =============================================================================
class InstalledManifest(BaseModel):
    """The artifacts recorded for an installation.

    Attributes:
        name: Manifest name (usually the installation's name).
        artifacts: Recorded artifacts, in recording order.
    """

    name: str = Field(default="installation", description="Manifest name")
    artifacts: list[ManagedArtifact] = Field(
        default_factory=list,
        description="Artifacts currently recorded for the installation",
    )

    def find(self, key: ArtifactKey) -> Optional[ManagedArtifact]:
        for artifact in self.artifacts:
            if artifact.key == key:
                return artifact
        return None

    def keys(self) -> list[ArtifactKey]:
        return [artifact.key for artifact in self.artifacts]


# =============================================================================
# Update Set
# =============================================================================
# Created fresh per find_updates() call, discarded after use. Never holds an
# entry whose two versions are equal; an empty set means "nothing to do".
# =============================================================================
class ArtifactChange(BaseModel):
    """One artifact whose resolvable version differs from the installed one."""

    model_config = ConfigDict(frozen=True)

    key: ArtifactKey = Field(description="Identity of the changed artifact")
    current_version: str = Field(description="Installed version")
    new_version: str = Field(description="Version the session resolves to")

    @model_validator(mode="after")
    def _check_differs(self) -> ArtifactChange:
        if self.current_version == self.new_version:
            raise ValueError(
                f"{self.key}: current and new version are both {self.current_version}"
            )
        return self

    def __str__(self) -> str:
        return f"{self.key}: {self.current_version} -> {self.new_version}"


class UpdateSet(BaseModel):
    """Diff between installed and currently-resolvable artifact versions.

    Iterates in the order the installed artifacts were scanned.

    Example:
        >>> updates = finder.find_updates(installed)
        >>> if not updates.is_empty():
        ...     for change in updates:
        ...         print(change)
        org.example:foo: 1.0.0 -> 1.1.0
    """

    changes: list[ArtifactChange] = Field(
        default_factory=list,
        description="Changed artifacts in scan order",
    )

    def is_empty(self) -> bool:
        return not self.changes

    def get(self, key: ArtifactKey) -> Optional[ArtifactChange]:
        for change in self.changes:
            if change.key == key:
                return change
        return None

    def summary(self) -> list[str]:
        return [str(change) for change in self.changes]

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[ArtifactChange]:  # type: ignore[override]
        return iter(self.changes)

    def __contains__(self, key: object) -> bool:
        return any(change.key == key for change in self.changes)


# =============================================================================
# Provisioning Config
# =============================================================================
class ProvisioningConfig(BaseModel):
    """Description of the feature layout to install.

    Owned by the provisioning executor; installkeeper only reads it before
    provisioning and hands it back unchanged.

    Attributes:
        feature_packs: Feature pack artifacts the layout is built from.
            Versions here are whatever the executor last used; the session
            re-resolves them during provisioning.
        options: Executor-specific provisioning options.
    """

    feature_packs: list[ManagedArtifact] = Field(
        default_factory=list,
        description="Feature packs making up the installation",
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Executor-specific options",
    )


# =============================================================================
# Provision Record
# =============================================================================
class ProvisionRecord(BaseModel):
    """One entry of an installation's provisioning history."""

    kind: ProvisionKind = Field(description="Why the installation was provisioned")
    full_reprovision: bool = Field(
        default=False,
        description="True when the whole installation was laid out from scratch",
    )
    recorded_at: datetime = Field(
        default_factory=_now,
        description="When the record was written (UTC)",
    )
    artifacts: list[ManagedArtifact] = Field(
        default_factory=list,
        description="Manifest contents at the time of the record",
    )
    channels: list[str] = Field(
        default_factory=list,
        description="Names of the channels in effect",
    )
