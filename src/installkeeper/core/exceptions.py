"""
installkeeper.core.exceptions - Custom Exception Hierarchy
============================================================

This module defines a structured exception hierarchy for installkeeper.
Instead of catching generic Exception everywhere, components raise and catch
specific exception types that carry contextual information.

Exception Hierarchy:
    KeeperError (base)
        ├── ConfigurationError        - Invalid config, missing required values
        ├── MetadataError             - Installation metadata can't be read/written
        ├── ProvisioningError         - Structural failure in the provisioning engine
        ├── UnresolvedArtifactError   - Collaborator-level "artifact not found"
        ├── ArtifactResolutionError   - Domain error: artifact not in any repository
        └── CacheExportError          - Resolved artifacts could not be cached

Two Resolution Errors:
    UnresolvedArtifactError is what the collaborators (resolution session,
    provisioning executor) raise. It only knows the artifact. The update
    orchestrator catches it and re-raises ArtifactResolutionError, attaching
    the repositories that were consulted and whether the session was offline,
    so callers can say "add a repository" or "you are offline".

Usage:
    >>> from installkeeper.core.exceptions import MetadataError
    >>> raise MetadataError(
    ...     message="Installation manifest is missing",
    ...     error_code="MANIFEST_NOT_FOUND",
    ...     details={"path": "/opt/server/.installation/manifest.yaml"},
    ... )
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from installkeeper.core.models import ArtifactKey, Repository


# =============================================================================
# Base Exception
# =============================================================================
# All installkeeper exceptions inherit from this base class. This allows
# catching all framework-specific errors with a single except clause:
#
#   try:
#       action.perform_update()
#   except KeeperError as e:
#       logger.error(e.message, error_code=e.error_code, details=e.details)
# =============================================================================
class KeeperError(Exception):
    """Base exception for all installkeeper errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code for programmatic handling.
            Convention: UPPER_SNAKE_CASE (e.g., "MANIFEST_NOT_FOUND").
        details: Arbitrary dict with additional debugging context.

    Example:
        >>> try:
        ...     do_something()
        ... except KeeperError as e:
        ...     print(f"[{e.error_code}] {e.message}")
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize this exception to a dictionary.

        Returns:
            Dictionary with error_type, message, error_code, and details.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


# =============================================================================
# Configuration Error
# =============================================================================
class ConfigurationError(KeeperError):
    """Raised when installkeeper configuration is invalid or missing.

    Example:
        >>> raise ConfigurationError(
        ...     message="Configuration file is not a mapping",
        ...     error_code="CONFIG_INVALID",
        ...     details={"path": "installkeeper.yaml"},
        ... )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Metadata Error
# =============================================================================
# Raised by the installation metadata store. Fatal to UpdateAction
# construction: an installation we can't read can't be updated.
# =============================================================================
class MetadataError(KeeperError):
    """Raised when the installed-state store can't be read or written.

    Common Causes:
        - The directory is not an installation (no metadata directory)
        - manifest.yaml / installer-channels.yaml is malformed
        - The metadata directory is not writable

    Attributes:
        path: The metadata file or directory involved, if known.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        error_code: str = "METADATA_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        enriched_details = details or {}
        if path is not None:
            enriched_details["path"] = path

        super().__init__(message=message, error_code=error_code, details=enriched_details)

        self.path = path


# =============================================================================
# Provisioning Error
# =============================================================================
class ProvisioningError(KeeperError):
    """Raised when the provisioning engine fails for a reason other than
    artifact resolution (bad provisioning config, I/O failure, ...).

    Nothing is committed to the installation metadata when this is raised.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "PROVISIONING_ERROR",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)


# =============================================================================
# Unresolved Artifact Error
# =============================================================================
# The collaborator-level failure. Resolution sessions and provisioning
# executors raise this when an artifact can't be found; it is translated
# into ArtifactResolutionError at the orchestrator boundary.
# =============================================================================
class UnresolvedArtifactError(KeeperError):
    """Raised by a resolution session or provisioning executor when one or
    more artifacts can't be found.

    Attributes:
        artifacts: Keys of the artifacts that could not be resolved.
    """

    def __init__(
        self,
        artifacts: Iterable["ArtifactKey"],
        message: Optional[str] = None,
        error_code: str = "ARTIFACT_UNRESOLVED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.artifacts = list(artifacts)
        names = ", ".join(str(a) for a in self.artifacts)

        enriched_details = details or {}
        enriched_details["artifacts"] = [str(a) for a in self.artifacts]

        super().__init__(
            message=message or f"Unable to resolve artifacts: {names}",
            error_code=error_code,
            details=enriched_details,
        )


# =============================================================================
# Artifact Resolution Error
# =============================================================================
class ArtifactResolutionError(KeeperError):
    """Raised when an artifact can't be found in any configured repository,
    during update finding or during provisioning.

    Carries everything a caller needs to render an actionable message.

    Attributes:
        artifacts: Keys of the unresolvable artifacts.
        repositories: Every repository that was consulted.
        offline: Whether resolution was restricted to local sources.

    Example:
        >>> raise ArtifactResolutionError(
        ...     artifacts=[ArtifactKey(group_id="org.example", artifact_id="bar")],
        ...     repositories=[Repository(id="central", url="https://repo1/")],
        ...     offline=False,
        ... )
    """

    def __init__(
        self,
        artifacts: Iterable["ArtifactKey"],
        repositories: Iterable["Repository"],
        offline: bool,
        message: Optional[str] = None,
        error_code: str = "ARTIFACT_RESOLUTION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.artifacts = list(artifacts)
        self.repositories = list(repositories)
        self.offline = offline

        if message is None:
            names = ", ".join(str(a) for a in self.artifacts)
            message = f"Unable to resolve artifacts: {names}"
            if offline:
                message += " (offline mode, only local repositories were searched)"

        enriched_details = details or {}
        enriched_details["artifacts"] = [str(a) for a in self.artifacts]
        enriched_details["repositories"] = [
            {"id": r.id, "url": r.url} for r in self.repositories
        ]
        enriched_details["offline"] = offline

        super().__init__(message=message, error_code=error_code, details=enriched_details)

    @classmethod
    def from_unresolved(
        cls,
        error: UnresolvedArtifactError,
        repositories: Iterable["Repository"],
        offline: bool,
    ) -> "ArtifactResolutionError":
        """Wrap a collaborator-level UnresolvedArtifactError."""
        return cls(error.artifacts, repositories, offline)


# =============================================================================
# Cache Export Error
# =============================================================================
class CacheExportError(KeeperError):
    """Raised when resolved artifacts can't be written to the local cache.

    Raised after the manifest commit, so the update itself already happened.
    The orchestrator reports it as a warning instead of propagating it.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "CACHE_EXPORT_FAILED",
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, error_code=error_code, details=details)
