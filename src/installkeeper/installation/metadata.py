"""
installkeeper.installation.metadata - Installed-State Store
=============================================================

This module implements the installed-state store: the record of which
artifacts an installation holds, which channels produced them, and the
history of every provisioning run.

Architecture:

    ┌──────────────┐   load()             ┌────────────────────────────┐
    │  UpdateAction │ ──────────────────→ │                            │
    │               │ ←────────────────── │  InstallationMetadata (ABC) │
    │               │  manifest, config    │    ├── InMemory...          │
    │               │                      │    └── File... (YAML)       │
    │               │   set_manifest()     │                            │
    │               │   record_provision() │                            │
    └──────────────┘ ──────────────────→ └────────────────────────────┘

Commit Protocol:
    set_manifest() only stages the resolved manifest. record_provision() is
    the durable commit point: it persists the staged manifest together with
    the installation's own channel configuration and appends a history
    record. The channel configuration written back is always the one that
    was loaded; operation-scoped repository overrides never reach the store.

On-Disk Layout (FileInstallationMetadata):
    <install_dir>/.installation/
        manifest.yaml              → InstalledManifest
        installer-channels.yaml    → ResolutionConfig
        history.yaml               → list[ProvisionRecord]

    A commit writes installer-channels.yaml, then history.yaml, then
    manifest.yaml. The manifest replacement is the commit point; if it
    fails, the previous history is written back.
"""

from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from pydantic import ValidationError

from installkeeper.core.enums import ProvisionKind
from installkeeper.core.exceptions import MetadataError
from installkeeper.core.models import (
    InstalledManifest,
    ManagedArtifact,
    ProvisionRecord,
    ResolutionConfig,
)


logger = structlog.get_logger()

SCHEMA_VERSION = "1.0.0"


# =============================================================================
# Abstract Base Class
# =============================================================================
class InstallationMetadata(ABC):
    """Abstract installed-state store for one installation.

    Subclasses implement the storage primitives (``_read``, ``_write``,
    ``history``); the base class owns the load/stage/commit protocol and the
    lifecycle.

    Lifecycle:
        1. ``load()``                       → manifest + resolution config
        2. ``set_manifest(resolved)``       → stage the new manifest
        3. ``record_provision(False)``      → commit
        4. ``close()``                      → release

    Example:
        >>> with FileInstallationMetadata(install_dir) as metadata:
        ...     manifest, config = metadata.load()
    """

    def __init__(self) -> None:
        self._manifest: Optional[InstalledManifest] = None
        self._resolution_config: Optional[ResolutionConfig] = None
        self._staged: Optional[InstalledManifest] = None
        self._closed = False
        self._logger = logger.bind(component=self._component_name())

    def _component_name(self) -> str:
        return "installation_metadata"

    # -------------------------------------------------------------------------
    # Storage Primitives
    # -------------------------------------------------------------------------
    @abstractmethod
    def _read(self) -> tuple[InstalledManifest, ResolutionConfig]:
        """Read manifest and channel configuration from storage.

        Raises:
            MetadataError: If either can't be read.
        """

    @abstractmethod
    def _write(
        self,
        manifest: InstalledManifest,
        resolution_config: ResolutionConfig,
        record: ProvisionRecord,
    ) -> None:
        """Persist manifest and configuration and append ``record``.

        Raises:
            MetadataError: If anything can't be written.
        """

    @abstractmethod
    def history(self) -> list[ProvisionRecord]:
        """Provisioning history, oldest first."""

    # -------------------------------------------------------------------------
    # Load / Stage / Commit
    # -------------------------------------------------------------------------
    def load(self) -> tuple[InstalledManifest, ResolutionConfig]:
        """Load the installed manifest and the resolution config.

        Raises:
            MetadataError: If the store is closed or can't be read.
        """
        self._ensure_open()
        manifest, resolution_config = self._read()
        self._manifest = manifest
        self._resolution_config = resolution_config
        self._logger.info(
            "installation_metadata_loaded",
            artifacts=len(manifest.artifacts),
            channels=[c.name for c in resolution_config.channels],
        )
        return manifest, resolution_config

    @property
    def manifest(self) -> InstalledManifest:
        self._ensure_loaded()
        assert self._manifest is not None
        return self._manifest

    @property
    def artifacts(self) -> list[ManagedArtifact]:
        return list(self.manifest.artifacts)

    @property
    def resolution_config(self) -> ResolutionConfig:
        self._ensure_loaded()
        assert self._resolution_config is not None
        return self._resolution_config

    def set_manifest(self, resolved: InstalledManifest) -> None:
        """Stage ``resolved`` as the new manifest. Nothing is written yet."""
        self._ensure_loaded()
        self._staged = resolved
        self._logger.debug("manifest_staged", artifacts=len(resolved.artifacts))

    def record_provision(
        self,
        full_reprovision: bool,
        kind: ProvisionKind = ProvisionKind.UPDATE,
    ) -> ProvisionRecord:
        """Commit the staged manifest and append a history record.

        Without a staged manifest the current one is recorded again.

        Args:
            full_reprovision: True when the installation was laid out from
                scratch rather than updated in place.
            kind: Why the installation was provisioned.

        Returns:
            The history record that was written.

        Raises:
            MetadataError: If the commit can't be written.
        """
        self._ensure_loaded()
        manifest = self._staged if self._staged is not None else self.manifest
        record = ProvisionRecord(
            kind=kind,
            full_reprovision=full_reprovision,
            artifacts=list(manifest.artifacts),
            channels=[c.name for c in self.resolution_config.channels],
        )
        self._write(manifest, self.resolution_config, record)
        self._manifest = manifest
        self._staged = None
        self._logger.info(
            "provision_recorded",
            kind=kind.value,
            full_reprovision=full_reprovision,
            artifacts=len(manifest.artifacts),
        )
        return record

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def close(self) -> None:
        """Release the store. Safe to call more than once."""
        if not self._closed:
            self._closed = True
            self._logger.debug("installation_metadata_closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise MetadataError(
                message="Installation metadata has been closed",
                error_code="METADATA_CLOSED",
            )

    def _ensure_loaded(self) -> None:
        self._ensure_open()
        if self._manifest is None or self._resolution_config is None:
            raise MetadataError(
                message="Installation metadata has not been loaded",
                error_code="METADATA_NOT_LOADED",
            )

    def __enter__(self) -> InstallationMetadata:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryInstallationMetadata(InstallationMetadata):
    """In-memory installed-state store for development and testing.

    Tracks every commit so tests can assert on what was (not) written.

    Example:
        >>> metadata = InMemoryInstallationMetadata(manifest, config)
        >>> metadata.load()
        >>> metadata.write_count
        0
    """

    def __init__(
        self,
        manifest: Optional[InstalledManifest] = None,
        resolution_config: Optional[ResolutionConfig] = None,
    ) -> None:
        super().__init__()
        self._stored_manifest = manifest or InstalledManifest()
        self._stored_config = resolution_config or ResolutionConfig()
        self._records: list[ProvisionRecord] = []
        self.write_count = 0

    def _component_name(self) -> str:
        return "in_memory_installation_metadata"

    @property
    def stored_manifest(self) -> InstalledManifest:
        """What a fresh load() would return."""
        return self._stored_manifest

    @property
    def stored_config(self) -> ResolutionConfig:
        return self._stored_config

    def _read(self) -> tuple[InstalledManifest, ResolutionConfig]:
        return self._stored_manifest, self._stored_config

    def _write(
        self,
        manifest: InstalledManifest,
        resolution_config: ResolutionConfig,
        record: ProvisionRecord,
    ) -> None:
        self._stored_manifest = manifest
        self._stored_config = resolution_config
        self._records.append(record)
        self.write_count += 1

    def history(self) -> list[ProvisionRecord]:
        return list(self._records)


# =============================================================================
# File Implementation
# =============================================================================
class FileInstallationMetadata(InstallationMetadata):
    """Installed-state store kept as YAML files inside the installation.

    Attributes:
        install_dir: Root of the installation.
        metadata_path: ``<install_dir>/<metadata_dir>``.
    """

    MANIFEST_FILE = "manifest.yaml"
    CHANNELS_FILE = "installer-channels.yaml"
    HISTORY_FILE = "history.yaml"

    def __init__(self, install_dir: Path, metadata_dir: str = ".installation") -> None:
        super().__init__()
        self.install_dir = Path(install_dir)
        self.metadata_path = self.install_dir / metadata_dir
        self._records: Optional[list[ProvisionRecord]] = None

    def _component_name(self) -> str:
        return "file_installation_metadata"

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        install_dir: Path,
        manifest: InstalledManifest,
        resolution_config: ResolutionConfig,
        metadata_dir: str = ".installation",
    ) -> FileInstallationMetadata:
        """Write the metadata of a freshly provisioned installation.

        Returns:
            An unloaded store for ``install_dir``.
        """
        store = cls(install_dir, metadata_dir)
        store.metadata_path.mkdir(parents=True, exist_ok=True)
        record = ProvisionRecord(
            kind=ProvisionKind.INSTALL,
            full_reprovision=True,
            artifacts=list(manifest.artifacts),
            channels=[c.name for c in resolution_config.channels],
        )
        store._write(manifest, resolution_config, record)
        return store

    # -------------------------------------------------------------------------
    # Storage Primitives
    # -------------------------------------------------------------------------
    def _read(self) -> tuple[InstalledManifest, ResolutionConfig]:
        if not self.metadata_path.is_dir():
            raise MetadataError(
                message=f"{self.install_dir} is not an installation: metadata directory missing",
                path=str(self.metadata_path),
                error_code="NOT_AN_INSTALLATION",
            )

        manifest_data = self._read_yaml(self.MANIFEST_FILE)
        channels_data = self._read_yaml(self.CHANNELS_FILE)
        try:
            manifest = InstalledManifest.model_validate(
                {k: v for k, v in manifest_data.items() if k != "schema_version"}
            )
            resolution_config = ResolutionConfig.model_validate(
                {k: v for k, v in channels_data.items() if k != "schema_version"}
            )
        except ValidationError as e:
            raise MetadataError(
                message="Installation metadata is malformed",
                path=str(self.metadata_path),
                error_code="METADATA_MALFORMED",
                details={"errors": e.errors(include_url=False)},
            ) from e
        # The history is rewritten on every commit, so it has to be sound now
        self._records = self._read_history()
        return manifest, resolution_config

    def _write(
        self,
        manifest: InstalledManifest,
        resolution_config: ResolutionConfig,
        record: ProvisionRecord,
    ) -> None:
        previous = self._records if self._records is not None else self._read_history()
        records = [*previous, record]

        self._write_yaml(
            self.CHANNELS_FILE,
            {"schema_version": SCHEMA_VERSION, **resolution_config.model_dump(mode="json")},
        )
        self._write_history(records)
        # Replacing manifest.yaml is the commit point
        try:
            self._write_yaml(
                self.MANIFEST_FILE,
                {"schema_version": SCHEMA_VERSION, **manifest.model_dump(mode="json")},
            )
        except MetadataError:
            self._write_history(previous)
            raise
        self._records = records

    def history(self) -> list[ProvisionRecord]:
        if self._records is not None:
            return list(self._records)
        return self._read_history()

    def _read_history(self) -> list[ProvisionRecord]:
        path = self.metadata_path / self.HISTORY_FILE
        if not path.exists():
            return []
        records = self._read_yaml(self.HISTORY_FILE).get("records", [])
        if not isinstance(records, list):
            raise MetadataError(
                message="Provisioning history must hold a list of records",
                path=str(path),
                error_code="HISTORY_MALFORMED",
                details={"records_type": type(records).__name__},
            )
        try:
            return [ProvisionRecord.model_validate(r) for r in records]
        except ValidationError as e:
            raise MetadataError(
                message="Provisioning history is malformed",
                path=str(path),
                error_code="HISTORY_MALFORMED",
                details={"errors": e.errors(include_url=False)},
            ) from e

    def _write_history(self, records: list[ProvisionRecord]) -> None:
        self._write_yaml(
            self.HISTORY_FILE,
            {
                "schema_version": SCHEMA_VERSION,
                "records": [r.model_dump(mode="json") for r in records],
            },
        )

    # -------------------------------------------------------------------------
    # YAML Helpers
    # -------------------------------------------------------------------------
    def _read_yaml(self, name: str) -> dict[str, Any]:
        path = self.metadata_path / name
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise MetadataError(
                message=f"Installation metadata file missing: {name}",
                path=str(path),
                error_code="METADATA_FILE_MISSING",
            ) from e
        except (OSError, yaml.YAMLError) as e:
            raise MetadataError(
                message=f"Unable to read installation metadata file: {name}",
                path=str(path),
                error_code="METADATA_UNREADABLE",
                details={"error": str(e)},
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise MetadataError(
                message=f"Installation metadata file must contain a mapping: {name}",
                path=str(path),
                error_code="METADATA_MALFORMED",
            )
        return data

    def _write_yaml(self, name: str, data: dict[str, Any]) -> None:
        path = self.metadata_path / name
        try:
            fd, tmp = tempfile.mkstemp(prefix=f".{name}.", dir=self.metadata_path)
            try:
                with os.fdopen(fd, "w") as f:
                    yaml.safe_dump(data, f, sort_keys=False)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise MetadataError(
                message=f"Unable to write installation metadata file: {name}",
                path=str(path),
                error_code="METADATA_WRITE_FAILED",
                details={"error": str(e)},
            ) from e
        self._logger.debug("metadata_file_written", file=name)
