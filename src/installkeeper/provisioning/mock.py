"""
installkeeper.provisioning.mock - Mock Provisioning Executor
==============================================================

A provisioning executor that lays nothing out on disk. It is the executor
used by the test suite and for dry runs against real repositories.

How It Works:
    On provision(), the mock resolves through the bound session:
        1. every feature pack of the provisioning config, then
        2. every key passed as ``artifacts`` (the artifacts the feature packs
           "contain").
    An artifact the session can't resolve raises UnresolvedArtifactError,
    exactly like a real engine would. The resolved set is therefore what
    session.resolved_channel() reports afterwards.

Usage:
    >>> executor = MockProvisioningExecutor(
    ...     ProvisioningConfig(feature_packs=[server_pack]),
    ...     artifacts=[ArtifactKey.parse("org.example:foo")],
    ... )
    >>> executor.fail_with(ProvisioningError("disk full"))
    >>> len(executor.call_history)
    0
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import structlog

from installkeeper.core.exceptions import KeeperError
from installkeeper.core.models import ArtifactKey, ProvisioningConfig
from installkeeper.provisioning.executor import ExecutionOptions, ProvisioningExecutor
from installkeeper.resolution.session import ResolutionSession


logger = structlog.get_logger()


class MockProvisioningExecutor(ProvisioningExecutor):
    """Provisioning executor that only resolves, with call tracking.

    Attributes:
        _config: Provisioning config returned by get_provisioning_config().
        _artifacts: Keys resolved on every provision() call.
        _call_history: One entry per provision() call.
        _failure: Exception raised by the next provision() calls, if set.
        _config_failure: Exception raised by get_provisioning_config(), if set.
    """

    def __init__(
        self,
        config: Optional[ProvisioningConfig] = None,
        artifacts: Iterable[ArtifactKey] = (),
    ) -> None:
        self._config = config or ProvisioningConfig()
        self._artifacts = list(artifacts)
        self._session: Optional[ResolutionSession] = None
        self._call_history: list[dict[str, Any]] = []
        self._failure: Optional[BaseException] = None
        self._config_failure: Optional[BaseException] = None
        self._logger = logger.bind(component="mock_provisioning_executor")

    # =========================================================================
    # Test Controls
    # =========================================================================

    @property
    def call_history(self) -> list[dict[str, Any]]:
        """Every provision() call: {"config", "options", "resolved"}."""
        return list(self._call_history)

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    def fail_with(self, error: Optional[BaseException]) -> None:
        """Make provision() raise ``error`` (None restores normal behavior)."""
        self._failure = error

    def fail_config_with(self, error: Optional[BaseException]) -> None:
        """Make get_provisioning_config() raise ``error``."""
        self._config_failure = error

    # =========================================================================
    # ProvisioningExecutor
    # =========================================================================

    def bind(self, session: ResolutionSession) -> None:
        self._session = session

    def get_provisioning_config(self) -> ProvisioningConfig:
        if self._config_failure is not None:
            raise self._config_failure
        return self._config

    def provision(self, config: ProvisioningConfig, options: ExecutionOptions) -> None:
        if self._session is None:
            raise KeeperError(
                message="Provisioning executor is not bound to a resolution session",
                error_code="EXECUTOR_NOT_BOUND",
            )

        call: dict[str, Any] = {"config": config, "options": options, "resolved": []}
        self._call_history.append(call)

        if self._failure is not None:
            raise self._failure

        for pack in config.feature_packs:
            resolved = self._session.resolve(pack.key, extension=pack.extension)
            call["resolved"].append(resolved)
        for key in self._artifacts:
            call["resolved"].append(self._session.resolve(key))

        self._logger.debug(
            "mock_provisioned",
            install_dir=str(options.install_dir),
            resolved=[str(a) for a in call["resolved"]],
        )
