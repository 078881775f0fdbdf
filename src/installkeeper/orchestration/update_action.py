"""
installkeeper.orchestration.update_action - Update Orchestrator
=================================================================

This module implements UpdateAction, the top-level orchestrator that
updates an installation in place. It is the entry point for applications.

Architecture Context:

    ┌──────────────────────────────────────────────────────────────────┐
    │                          UpdateAction                             │
    │                                                                  │
    │  1. InstallationMetadata.load()     → manifest, channels         │
    │  2. override_repositories()         → effective channels         │
    │  3. ResolutionSession(channels)     + provisioning config        │
    │  4. UpdateFinder.find_updates()     → UpdateSet                  │
    │        └── empty? ──→ NO_OP, nothing written                     │
    │  5. execute_provisioning()          → files on disk              │
    │  6. set_manifest + record_provision → durable commit point       │
    │  7. ArtifactCacheExporter           → cache (failure = warning)  │
    └──────────────────────────────────────────────────────────────────┘

    Every step runs only if the previous one succeeded.

State Machine:
    INITIALIZED → UPDATES_COMPUTED → NO_OP
                                   ↘ APPLYING → APPLIED

Failure Semantics:
    - Construction failures (metadata, provisioning config) release whatever
      was already opened and propagate. No half-built action is returned.
    - An artifact the provisioning engine can't resolve is re-raised as
      ArtifactResolutionError with every repository of the effective
      channels and the offline flag. Nothing is committed.
    - A cache export failure after the commit is logged as a warning and
      kept in ``cache_error``. The update itself stands.
    - The installed file tree is never rolled back here; that is up to the
      provisioning engine.

Usage:
    >>> with UpdateAction(install_dir, executor, [mirror]) as action:
    ...     updates = action.find_updates()      # dry run
    ...     action.perform_update()              # apply
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

import structlog

from installkeeper.cache.exporter import ArtifactCacheExporter
from installkeeper.core.config import KeeperConfig, SessionConfig
from installkeeper.core.enums import UpdateState
from installkeeper.core.exceptions import (
    ArtifactResolutionError,
    CacheExportError,
    KeeperError,
    ProvisioningError,
    UnresolvedArtifactError,
)
from installkeeper.core.models import (
    Channel,
    ProvisioningConfig,
    Repository,
    ResolutionConfig,
    UpdateSet,
)
from installkeeper.installation.metadata import (
    FileInstallationMetadata,
    InstallationMetadata,
)
from installkeeper.provisioning.executor import (
    ExecutionOptions,
    ProvisioningExecutor,
    execute_provisioning,
)
from installkeeper.resolution.session import (
    RepositoryResolutionSession,
    ResolutionSession,
)
from installkeeper.updates.finder import UpdateFinder
from installkeeper.updates.repositories import override_repositories


logger = structlog.get_logger()

SessionFactory = Callable[[Sequence[Channel], SessionConfig], ResolutionSession]


class UpdateAction:
    """Finds and applies updates to one installation.

    The action owns two scoped resources, the installation metadata and the
    resolution session. Both are released by ``close()``, which the context
    manager calls on every exit path.

    Attributes:
        _install_dir: Root of the installation.
        _config: installkeeper configuration (session settings included).
        _metadata: Installed-state store, loaded at construction.
        _resolution_config: Effective channels (overrides applied).
        _session: Resolution session over the effective channels.
        _executor: Provisioning engine, bound to the session.
        _exporter: Artifact cache exporter.
        _provisioning_config: Read once, reused unchanged.
        _state: Current UpdateState.
        _cache_error: Cache export failure of the last update, if any.

    Example:
        >>> executor = MockProvisioningExecutor(provisioning_config)
        >>> with UpdateAction(Path("/opt/server"), executor) as action:
        ...     action.perform_update()
        ...     action.state
        <UpdateState.APPLIED: 'applied'>
    """

    def __init__(
        self,
        install_dir: Path,
        executor: ProvisioningExecutor,
        override_repositories: Iterable[Repository] = (),
        *,
        config: Optional[KeeperConfig] = None,
        metadata: Optional[InstallationMetadata] = None,
        session_factory: Optional[SessionFactory] = None,
        exporter: Optional[ArtifactCacheExporter] = None,
    ) -> None:
        """Open the installation and prepare everything an update needs.

        Args:
            install_dir: Root of the installation.
            executor: Provisioning engine to drive.
            override_repositories: Temporary repositories replacing every
                channel's repositories for this action only.
            config: installkeeper configuration. Defaults to KeeperConfig().
            metadata: Installed-state store. Defaults to
                FileInstallationMetadata for ``install_dir``.
            session_factory: Builds the resolution session from the effective
                channels. Defaults to RepositoryResolutionSession.
            exporter: Artifact cache exporter. Defaults to one writing under
                the installation's metadata directory.

        Raises:
            MetadataError: If the installation metadata can't be loaded.
            ProvisioningError: If the provisioning config can't be read.
        """
        self._install_dir = Path(install_dir)
        self._config = config or KeeperConfig()
        self._executor = executor
        self._exporter = exporter or ArtifactCacheExporter(
            cache_dir=self._config.cache_path(self._install_dir.absolute()),
            copy_content=self._config.cache_content,
        )
        self._metadata = metadata or FileInstallationMetadata(
            self._install_dir, self._config.metadata_dir
        )
        self._session: Optional[ResolutionSession] = None
        self._state = UpdateState.INITIALIZED
        self._cache_error: Optional[CacheExportError] = None
        self._closed = False
        self._logger = logger.bind(
            component="update_action",
            install_dir=str(self._install_dir),
        )

        try:
            self._metadata.load()
            self._resolution_config = self._add_temporary_repositories(
                list(override_repositories)
            )
            factory = session_factory or RepositoryResolutionSession
            self._session = factory(
                list(self._resolution_config.channels), self._config.session
            )
            self._executor.bind(self._session)
            self._provisioning_config = self._read_provisioning_config()
        except BaseException:
            self.close()
            raise

        self._logger.info(
            "update_action_initialized",
            channels=[c.name for c in self._resolution_config.channels],
            offline=self._config.session.offline,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> UpdateState:
        return self._state

    @property
    def resolution_config(self) -> ResolutionConfig:
        """The effective channel configuration, overrides applied."""
        return self._resolution_config

    @property
    def provisioning_config(self) -> ProvisioningConfig:
        return self._provisioning_config

    @property
    def cache_error(self) -> Optional[CacheExportError]:
        """Cache export failure of the last applied update, if any."""
        return self._cache_error

    # =========================================================================
    # Operations
    # =========================================================================

    def find_updates(self) -> UpdateSet:
        """Compute the update set without applying it.

        Raises:
            ArtifactResolutionError: If an installed artifact can't be resolved.
        """
        session = self._require_session()
        with UpdateFinder(session, owns_session=False) as finder:
            updates = finder.find_updates(self._metadata.artifacts)
        self._state = UpdateState.UPDATES_COMPUTED
        return updates

    def perform_update(self) -> None:
        """Find updates and, if there are any, apply and record them.

        Returns normally on success, including when there was nothing to do.

        Raises:
            ArtifactResolutionError: An artifact could not be resolved while
                finding updates or while provisioning.
            ProvisioningError: The provisioning engine failed.
            MetadataError: The new manifest could not be committed.
        """
        updates = self.find_updates()
        if updates.is_empty():
            self._state = UpdateState.NO_OP
            self._logger.info("no_updates_available")
            return

        self._logger.info("updates_available", updates=updates.summary())
        self._apply_updates()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Release the session and the metadata. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._session is not None:
                self._session.close()
        finally:
            self._metadata.close()
            self._logger.debug("update_action_closed", state=self._state.value)

    def __enter__(self) -> UpdateAction:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _add_temporary_repositories(
        self, repositories: Sequence[Repository]
    ) -> ResolutionConfig:
        persisted = self._metadata.resolution_config
        channels = override_repositories(persisted.channels, repositories)
        return persisted.with_channels(channels)

    def _read_provisioning_config(self) -> ProvisioningConfig:
        try:
            return self._executor.get_provisioning_config()
        except KeeperError:
            raise
        except Exception as e:
            raise ProvisioningError(
                message=f"Unable to read provisioning config: {e}",
                error_code="PROVISIONING_CONFIG_UNREADABLE",
                details={"install_dir": str(self._install_dir)},
            ) from e

    def _apply_updates(self) -> None:
        session = self._require_session()
        self._state = UpdateState.APPLYING

        options = ExecutionOptions(
            install_dir=self._install_dir,
            provisioning_repo=self._config.session.effective_provisioning_repo,
            offline=self._config.session.offline,
        )
        try:
            execute_provisioning(self._executor, self._provisioning_config, options)
        except UnresolvedArtifactError as e:
            self._logger.error(
                "provisioning_artifact_unresolved",
                artifacts=[str(a) for a in e.artifacts],
            )
            raise ArtifactResolutionError.from_unresolved(
                e,
                self._resolution_config.list_all_repositories(),
                self._config.session.offline,
            ) from e

        self._metadata.set_manifest(
            session.resolved_channel(name=self._metadata.manifest.name)
        )
        self._metadata.record_provision(False)
        self._state = UpdateState.APPLIED
        self._logger.info("update_applied")

        self._cache_artifacts(session)

    def _cache_artifacts(self, session: ResolutionSession) -> None:
        self._cache_error = None
        try:
            self._exporter.cache_artifacts(
                self._resolution_config.channels,
                self._config.session,
                self._install_dir,
                self._provisioning_config,
                session,
            )
        except CacheExportError as e:
            self._cache_error = e
            self._logger.warning(
                "artifact_cache_export_failed",
                error_code=e.error_code,
                error=e.message,
            )

    def _require_session(self) -> ResolutionSession:
        if self._closed or self._session is None:
            raise KeeperError(
                message="Update action has been closed",
                error_code="ACTION_CLOSED",
            )
        return self._session
