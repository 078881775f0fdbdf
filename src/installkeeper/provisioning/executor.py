"""
installkeeper.provisioning.executor - Provisioning Executor Interface
=======================================================================

The provisioning executor is the external engine that actually lays out
feature packs and their artifacts on disk. installkeeper only drives it:
it reads the provisioning config, hands it back unchanged with execution
options, and treats the call as all-or-nothing.

    ┌──────────────┐  get_provisioning_config()  ┌──────────────────────┐
    │  UpdateAction │ ─────────────────────────→ │                      │
    │               │  execute_provisioning()     │  ProvisioningExecutor │
    │               │ ─────────────────────────→ │  (ABC)                │
    └──────────────┘                             └──────────┬───────────┘
                                                            │ resolve()
                                                            ▼
                                                    ResolutionSession

Failures:
    - UnresolvedArtifactError: an artifact could not be resolved; passed
      through for the orchestrator to re-wrap with repository context.
    - ProvisioningError: structural failure.
    - Anything else is wrapped into ProvisioningError by
      execute_provisioning(), the translation boundary around the call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field

from installkeeper.core.exceptions import KeeperError, ProvisioningError
from installkeeper.core.models import ProvisioningConfig
from installkeeper.resolution.session import ResolutionSession


logger = structlog.get_logger()


class ExecutionOptions(BaseModel):
    """Options for one provisioning run.

    Attributes:
        install_dir: Installation being provisioned.
        provisioning_repo: Repository the executor may download into.
        offline: Whether the executor may reach remote repositories.
        extra: Executor-specific options.
    """

    install_dir: Path = Field(description="Installation root")
    provisioning_repo: Path = Field(description="Executor download repository")
    offline: bool = Field(default=False, description="Restrict to local repositories")
    extra: dict[str, Any] = Field(default_factory=dict, description="Executor-specific options")


class ProvisioningExecutor(ABC):
    """Abstract interface to a provisioning engine.

    The executor resolves artifacts through the session it was bound to, so
    that ``session.resolved_channel()`` reflects exactly what was laid out.
    """

    @abstractmethod
    def bind(self, session: ResolutionSession) -> None:
        """Use ``session`` for all artifact resolution."""

    @abstractmethod
    def get_provisioning_config(self) -> ProvisioningConfig:
        """Read the installation's provisioning config.

        Raises:
            ProvisioningError: If the config can't be read.
        """

    @abstractmethod
    def provision(self, config: ProvisioningConfig, options: ExecutionOptions) -> None:
        """Lay out ``config`` under ``options.install_dir``.

        Raises:
            UnresolvedArtifactError: If an artifact can't be resolved.
            ProvisioningError: On any other failure.
        """


def execute_provisioning(
    executor: ProvisioningExecutor,
    config: ProvisioningConfig,
    options: ExecutionOptions,
) -> None:
    """Run ``executor.provision`` and normalize its failures.

    Raises:
        UnresolvedArtifactError: Passed through unchanged.
        KeeperError: installkeeper errors (ProvisioningError, ...) pass through.
        ProvisioningError: Wraps any other exception.
    """
    log = logger.bind(component="provisioning", install_dir=str(options.install_dir))
    log.info(
        "provisioning_started",
        feature_packs=[str(fp.key) for fp in config.feature_packs],
        offline=options.offline,
    )
    try:
        executor.provision(config, options)
    except KeeperError:
        raise
    except Exception as e:
        raise ProvisioningError(
            message=f"Provisioning failed: {e}",
            error_code="PROVISIONING_FAILED",
            details={
                "install_dir": str(options.install_dir),
                "error_type": type(e).__name__,
            },
        ) from e
    log.info("provisioning_completed")
