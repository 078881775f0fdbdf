"""
installkeeper.cache.exporter - Artifact Cache Exporter
========================================================

After a successful provisioning run, the exporter records the exact
artifacts that were used inside the installation, so it can later be
reproduced, or re-provisioned offline.

Architecture Context:

    ┌──────────────┐  cache_artifacts()   ┌──────────────────────┐
    │  UpdateAction │ ──────────────────→ │  ArtifactCacheExporter│
    └──────────────┘                      └──────────┬───────────┘
                                                     │ resolved_channel()
                                                     │ locate()
                                                     ▼
                                             ResolutionSession

Cache Layout:
    <install_dir>/.installation/.cache/
        artifacts.yaml                              → index of CachedArtifact
        org/example/foo/1.1.0/foo-1.1.0.jar         → content (Maven layout)

What Gets Cached:
    - every feature pack of the provisioning config
    - every artifact the session resolved while provisioning
    Content is copied only when the session can locate it locally; the
    coordinate (and its checksum, when content exists) is always recorded.

Files from a previous export that are no longer referenced are removed.
"""

from __future__ import annotations

import hashlib
import os
import shutil
from pathlib import Path
from typing import Iterable, Optional, Union

import structlog
import yaml
from pydantic import BaseModel, Field

from installkeeper.core.config import SessionConfig
from installkeeper.core.exceptions import CacheExportError
from installkeeper.core.models import (
    Channel,
    ManagedArtifact,
    ProvisioningConfig,
)
from installkeeper.resolution.session import ResolutionSession


logger = structlog.get_logger()

INDEX_FILE = "artifacts.yaml"


# =============================================================================
# Cached Artifact Model
# =============================================================================
class CachedArtifact(BaseModel):
    """One entry of the artifact cache index.

    Attributes:
        artifact: The resolved artifact.
        sha1: Checksum of the cached content, None if only the coordinate
            was recorded.
        path: Location of the cached content relative to the installation,
            None if only the coordinate was recorded.
    """

    artifact: ManagedArtifact = Field(description="Resolved artifact")
    sha1: Optional[str] = Field(default=None, description="SHA-1 of cached content")
    path: Optional[str] = Field(default=None, description="Cached file, relative to install dir")


class ArtifactCacheExporter:
    """Writes the resolved artifacts of a provisioning run into the
    installation's artifact cache.

    Example:
        >>> exporter = ArtifactCacheExporter()
        >>> entries = exporter.cache_artifacts(
        ...     channels, session_config, install_dir, provisioning_config, session,
        ... )
    """

    def __init__(
        self,
        cache_dir: Union[str, Path] = ".installation/.cache",
        copy_content: bool = True,
    ) -> None:
        """Create an exporter.

        Args:
            cache_dir: Cache root, relative to the installation or absolute.
            copy_content: Copy locatable content, not just coordinates.
        """
        self._cache_dir = cache_dir
        self._copy_content = copy_content
        self._logger = logger.bind(component="artifact_cache_exporter")

    def cache_path(self, install_dir: Path) -> Path:
        return Path(install_dir) / self._cache_dir

    def cache_artifacts(
        self,
        channels: Iterable[Channel],
        session_config: SessionConfig,
        install_dir: Path,
        provisioning_config: ProvisioningConfig,
        session: ResolutionSession,
    ) -> list[CachedArtifact]:
        """Record the artifacts of the last provisioning run.

        Returns:
            The entries written to the cache index.

        Raises:
            CacheExportError: On any failure.
        """
        channel_names = [c.name for c in channels]
        try:
            return self._export(channel_names, session_config, Path(install_dir), provisioning_config, session)
        except CacheExportError:
            raise
        except Exception as e:
            raise CacheExportError(
                message=f"Unable to cache resolved artifacts: {e}",
                details={
                    "install_dir": str(install_dir),
                    "error_type": type(e).__name__,
                },
            ) from e

    def load_index(self, install_dir: Path) -> list[CachedArtifact]:
        """Entries of the current cache index (empty when there is none)."""
        index = self.cache_path(install_dir) / INDEX_FILE
        if not index.exists():
            return []
        with open(index) as f:
            data = yaml.safe_load(f) or {}
        return [CachedArtifact.model_validate(e) for e in data.get("artifacts", [])]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------
    def _collect(
        self,
        provisioning_config: ProvisioningConfig,
        session: ResolutionSession,
    ) -> list[ManagedArtifact]:
        resolved = session.resolved_channel()
        artifacts: dict[str, ManagedArtifact] = {}

        for pack in provisioning_config.feature_packs:
            found = resolved.find(pack.key)
            if found is None:
                version = session.resolve_latest_version(pack.key)
                if version is None:
                    raise CacheExportError(
                        message=f"Feature pack can't be resolved for caching: {pack.key}",
                        error_code="CACHE_FEATURE_PACK_UNRESOLVED",
                        details={"feature_pack": str(pack.key)},
                    )
                found = pack.with_version(version)
            artifacts[found.coordinate] = found

        for artifact in resolved.artifacts:
            artifacts.setdefault(artifact.coordinate, artifact)
        return list(artifacts.values())

    def _export(
        self,
        channel_names: list[str],
        session_config: SessionConfig,
        install_dir: Path,
        provisioning_config: ProvisioningConfig,
        session: ResolutionSession,
    ) -> list[CachedArtifact]:
        cache = self.cache_path(install_dir)
        cache.mkdir(parents=True, exist_ok=True)

        entries: list[CachedArtifact] = []
        kept: set[Path] = set()
        for artifact in self._collect(provisioning_config, session):
            source = session.locate(artifact) if self._copy_content else None
            if source is None:
                entries.append(CachedArtifact(artifact=artifact))
                continue

            target = (
                cache.joinpath(*artifact.group_id.split("."))
                / artifact.artifact_id
                / artifact.version
                / artifact.file_name
            )
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            kept.add(target)
            entries.append(
                CachedArtifact(
                    artifact=artifact,
                    sha1=_sha1(target),
                    path=Path(os.path.relpath(target, install_dir)).as_posix(),
                )
            )

        self._prune(cache, kept)
        with open(cache / INDEX_FILE, "w") as f:
            yaml.safe_dump(
                {
                    "channels": channel_names,
                    "offline": session_config.offline,
                    "artifacts": [e.model_dump(mode="json") for e in entries],
                },
                f,
                sort_keys=False,
            )

        self._logger.info(
            "artifacts_cached",
            install_dir=str(install_dir),
            artifacts=len(entries),
            with_content=len(kept),
        )
        return entries

    def _prune(self, cache: Path, kept: set[Path]) -> None:
        for path in sorted(cache.rglob("*"), reverse=True):
            if path.is_file() and path.name != INDEX_FILE and path not in kept:
                path.unlink()
            elif path.is_dir() and not any(path.iterdir()):
                path.rmdir()


def _sha1(path: Path) -> str:
    digest = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()
