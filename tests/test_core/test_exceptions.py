"""
Tests for installkeeper.core.exceptions
=========================================

These tests verify the exception hierarchy: every error carries a message,
an error code and details, and the resolution errors expose the artifacts,
repositories and offline flag callers need for an actionable message.
"""

import pytest

from installkeeper.core.exceptions import (
    ArtifactResolutionError,
    CacheExportError,
    ConfigurationError,
    KeeperError,
    MetadataError,
    ProvisioningError,
    UnresolvedArtifactError,
)
from installkeeper.core.models import ArtifactKey, Repository


BAR = ArtifactKey(group_id="org.example", artifact_id="bar")
CENTRAL = Repository(id="central", url="https://repo.example.org/maven2/")


class TestKeeperError:
    """Tests for the base exception."""

    def test_defaults(self) -> None:
        error = KeeperError("boom")
        assert str(error) == "boom"
        assert error.error_code == "UNKNOWN_ERROR"
        assert error.details == {}

    def test_to_dict(self) -> None:
        error = KeeperError("boom", error_code="BOOM", details={"k": "v"})
        assert error.to_dict() == {
            "error_type": "KeeperError",
            "message": "boom",
            "error_code": "BOOM",
            "details": {"k": "v"},
        }

    def test_repr_names_subclass(self) -> None:
        assert repr(ProvisioningError("bad")).startswith("ProvisioningError(")

    @pytest.mark.parametrize(
        "error_type, code",
        [
            (ConfigurationError, "CONFIG_ERROR"),
            (MetadataError, "METADATA_ERROR"),
            (ProvisioningError, "PROVISIONING_ERROR"),
            (CacheExportError, "CACHE_EXPORT_FAILED"),
        ],
    )
    def test_subclasses_have_default_codes(self, error_type, code) -> None:
        error = error_type("message")
        assert isinstance(error, KeeperError)
        assert error.error_code == code


class TestMetadataError:
    """MetadataError records the path involved."""

    def test_path_is_added_to_details(self) -> None:
        error = MetadataError("missing", path="/opt/server/.installation")
        assert error.path == "/opt/server/.installation"
        assert error.details["path"] == "/opt/server/.installation"


class TestResolutionErrors:
    """Tests for UnresolvedArtifactError and ArtifactResolutionError."""

    def test_unresolved_lists_artifacts(self) -> None:
        error = UnresolvedArtifactError([BAR])
        assert error.artifacts == [BAR]
        assert error.details["artifacts"] == ["org.example:bar"]
        assert "org.example:bar" in error.message

    def test_resolution_error_carries_context(self) -> None:
        error = ArtifactResolutionError([BAR], [CENTRAL], offline=False)
        assert error.artifacts == [BAR]
        assert error.repositories == [CENTRAL]
        assert error.offline is False
        assert error.error_code == "ARTIFACT_RESOLUTION_FAILED"
        assert error.details["repositories"] == [
            {"id": "central", "url": "https://repo.example.org/maven2/"}
        ]

    def test_offline_is_mentioned_in_message(self) -> None:
        error = ArtifactResolutionError([BAR], [], offline=True)
        assert "offline" in error.message
        assert error.details["offline"] is True

    def test_from_unresolved(self) -> None:
        cause = UnresolvedArtifactError([BAR])
        error = ArtifactResolutionError.from_unresolved(cause, [CENTRAL], offline=False)
        assert error.artifacts == [BAR]
        assert error.repositories == [CENTRAL]
