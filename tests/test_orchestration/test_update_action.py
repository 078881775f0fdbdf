"""
Tests for installkeeper.orchestration.update_action
=====================================================

These tests verify UpdateAction end to end against in-memory collaborators:
    - Nothing to update: no provisioning, nothing written
    - An update is provisioned, committed once, then cached
    - Resolution failures (finding or provisioning) commit nothing
    - Repository overrides are operation-scoped
    - Construction failures release what was opened
    - A cache failure does not undo the update
"""

from pathlib import Path

import pytest

from installkeeper.cache.exporter import ArtifactCacheExporter
from installkeeper.core.config import SessionConfig
from installkeeper.core.enums import UpdateState
from installkeeper.core.exceptions import (
    ArtifactResolutionError,
    CacheExportError,
    KeeperError,
    MetadataError,
    ProvisioningError,
    UnresolvedArtifactError,
)
from installkeeper.core.models import (
    ArtifactKey,
    Channel,
    ChannelStream,
    ManagedArtifact,
    ProvisioningConfig,
    ResolutionConfig,
)
from installkeeper.installation.metadata import (
    FileInstallationMetadata,
    InMemoryInstallationMetadata,
)
from installkeeper.orchestration.update_action import UpdateAction
from installkeeper.provisioning.mock import MockProvisioningExecutor


BAR = ArtifactKey(group_id="org.example", artifact_id="bar")


def _foo(version: str) -> ManagedArtifact:
    return ManagedArtifact(group_id="org.example", artifact_id="foo", version=version)


class RecordingExporter(ArtifactCacheExporter):
    """Exporter that records calls instead of writing, optionally failing."""

    def __init__(self, error=None) -> None:
        super().__init__()
        self.calls = []
        self._error = error

    def cache_artifacts(self, channels, session_config, install_dir, provisioning_config, session):
        self.calls.append(
            {
                "channels": list(channels),
                "install_dir": install_dir,
                "resolved": session.resolved_channel().artifacts,
            }
        )
        if self._error is not None:
            raise self._error
        return []


@pytest.fixture
def install_dir(tmp_path) -> Path:
    return tmp_path / "server"


@pytest.fixture
def exporter() -> RecordingExporter:
    return RecordingExporter()


@pytest.fixture
def make_action(install_dir, executor, metadata, session_factory, exporter, keeper_config):
    """Build an UpdateAction from the shared fixtures; keywords override them."""

    def _make(overrides=(), **kwargs):
        params = {
            "config": keeper_config,
            "metadata": metadata,
            "session_factory": session_factory,
            "exporter": exporter,
        }
        params.update(kwargs)
        target_executor = params.pop("executor", executor)
        return UpdateAction(install_dir, target_executor, overrides, **params)

    return _make


# =============================================================================
# Scenario: Nothing to Update
# =============================================================================
class TestNoOp:
    """An up-to-date installation is left untouched."""

    def test_no_updates_means_no_side_effects(
        self, make_action, index, executor, metadata, exporter
    ) -> None:
        index.publish("central", _foo("1.0.0"))

        with make_action() as action:
            action.perform_update()
            assert action.state == UpdateState.NO_OP

        assert executor.call_count == 0
        assert metadata.write_count == 0
        assert exporter.calls == []

    def test_find_updates_is_a_dry_run(self, make_action, index, executor, metadata) -> None:
        index.publish("central", _foo("1.1.0"))

        with make_action() as action:
            updates = action.find_updates()
            assert action.state == UpdateState.UPDATES_COMPUTED

        assert updates.summary() == ["org.example:foo: 1.0.0 -> 1.1.0"]
        assert executor.call_count == 0
        assert metadata.write_count == 0


# =============================================================================
# Scenario: Update Available
# =============================================================================
class TestUpdate:
    """An available update is provisioned, committed, then cached."""

    def test_update_is_applied_and_committed_once(
        self, make_action, index, executor, metadata, exporter, install_dir
    ) -> None:
        index.publish("central", _foo("1.1.0"))

        with make_action() as action:
            action.perform_update()
            assert action.state == UpdateState.APPLIED
            assert action.cache_error is None

        assert executor.call_count == 1
        assert metadata.write_count == 1
        assert metadata.stored_manifest.name == "server"
        assert metadata.stored_manifest.artifacts == [_foo("1.1.0")]
        assert len(exporter.calls) == 1
        assert exporter.calls[0]["install_dir"] == install_dir
        assert exporter.calls[0]["resolved"] == [_foo("1.1.0")]

    def test_executor_receives_config_and_options(
        self, make_action, index, session_config, install_dir
    ) -> None:
        index.publish("central", _foo("1.1.0"))
        pack = ManagedArtifact(group_id="org.example", artifact_id="server-pack", version="1.1.0")
        index.publish("central", pack)
        config = ProvisioningConfig(feature_packs=[pack], options={"jboss-fork-embedded": "true"})
        executor = MockProvisioningExecutor(config, artifacts=[ArtifactKey.parse("org.example:foo")])

        with make_action(executor=executor) as action:
            assert action.provisioning_config == config
            action.perform_update()

        call = executor.call_history[0]
        assert call["config"] == config
        assert call["options"].install_dir == install_dir
        assert call["options"].provisioning_repo == session_config.effective_provisioning_repo
        assert call["options"].offline is False

    def test_commit_records_history(self, make_action, index, metadata) -> None:
        index.publish("central", _foo("1.1.0"))

        with make_action() as action:
            action.perform_update()

        history = metadata.history()
        assert len(history) == 1
        assert history[0].full_reprovision is False
        assert history[0].artifacts == [_foo("1.1.0")]


# =============================================================================
# Scenario: Resolution Failures
# =============================================================================
class TestResolutionFailures:
    """Nothing is committed when an artifact can't be resolved."""

    def test_unresolvable_installed_artifact(
        self, make_action, executor, metadata, central
    ) -> None:
        with make_action() as action:
            with pytest.raises(ArtifactResolutionError) as exc_info:
                action.perform_update()

        assert exc_info.value.repositories == [central]
        assert executor.call_count == 0
        assert metadata.write_count == 0

    def test_provisioning_cannot_resolve_artifact(
        self, make_action, index, metadata, exporter, foo_key, central
    ) -> None:
        index.publish("central", _foo("1.1.0"))
        executor = MockProvisioningExecutor(ProvisioningConfig(), artifacts=[foo_key, BAR])

        with make_action(executor=executor) as action:
            with pytest.raises(ArtifactResolutionError) as exc_info:
                action.perform_update()
            assert action.state != UpdateState.APPLIED

        error = exc_info.value
        assert error.artifacts == [BAR]
        assert error.repositories == [central]
        assert error.offline is False
        assert isinstance(error.__cause__, UnresolvedArtifactError)
        assert metadata.write_count == 0
        assert metadata.stored_manifest.artifacts == [_foo("1.0.0")]
        assert exporter.calls == []

    def test_structural_provisioning_failure(
        self, make_action, index, executor, metadata, exporter
    ) -> None:
        index.publish("central", _foo("1.1.0"))
        executor.fail_with(OSError("disk full"))

        with make_action() as action:
            with pytest.raises(ProvisioningError) as exc_info:
                action.perform_update()

        assert exc_info.value.error_code == "PROVISIONING_FAILED"
        assert metadata.write_count == 0
        assert exporter.calls == []

    def test_provisioning_error_passes_through_unchanged(
        self, make_action, index, executor, metadata
    ) -> None:
        index.publish("central", _foo("1.1.0"))
        executor.fail_with(ProvisioningError("bad layout", error_code="LAYOUT_INVALID"))

        with make_action() as action:
            with pytest.raises(ProvisioningError) as exc_info:
                action.perform_update()

        assert exc_info.value.error_code == "LAYOUT_INVALID"
        assert metadata.write_count == 0


# =============================================================================
# Scenario: Repository Overrides
# =============================================================================
class TestRepositoryOverrides:
    """Overrides replace the repositories of every channel for one action."""

    @pytest.fixture
    def two_channel_config(self, central) -> ResolutionConfig:
        return ResolutionConfig(
            channels=[
                Channel(
                    name="server",
                    repositories=[central],
                    streams=[ChannelStream(group_id="org.example", artifact_id="*")],
                ),
                Channel(name="extras", repositories=[central]),
            ]
        )

    @pytest.fixture
    def two_channel_metadata(self, installed_manifest, two_channel_config):
        return InMemoryInstallationMetadata(installed_manifest, two_channel_config)

    def test_effective_channels_use_overrides(
        self, make_action, two_channel_metadata, session_factory, mirror
    ) -> None:
        with make_action([mirror], metadata=two_channel_metadata) as action:
            effective = action.resolution_config.channels

        assert [c.name for c in effective] == ["server", "extras"]
        assert [c.repositories for c in effective] == [(mirror,), (mirror,)]
        assert [c.repositories for c in session_factory.sessions[0].channels] == [
            (mirror,),
            (mirror,),
        ]

    def test_persisted_channels_are_not_changed(
        self, make_action, index, two_channel_metadata, two_channel_config, exporter, mirror
    ) -> None:
        index.publish("mirror", _foo("1.1.0"))

        with make_action([mirror], metadata=two_channel_metadata) as action:
            action.perform_update()

        assert two_channel_metadata.write_count == 1
        assert two_channel_metadata.stored_manifest.artifacts == [_foo("1.1.0")]
        assert two_channel_metadata.stored_config == two_channel_config
        assert [c.repositories for c in exporter.calls[0]["channels"]] == [(mirror,), (mirror,)]

    def test_only_override_repositories_are_searched(
        self, make_action, index, two_channel_metadata, mirror
    ) -> None:
        index.publish("central", _foo("1.1.0"))

        with make_action([mirror], metadata=two_channel_metadata) as action:
            with pytest.raises(ArtifactResolutionError) as exc_info:
                action.perform_update()

        assert exc_info.value.repositories == [mirror]

    def test_no_overrides_keeps_persisted_channels(self, make_action, metadata) -> None:
        with make_action() as action:
            assert action.resolution_config == metadata.stored_config


# =============================================================================
# Cache Export
# =============================================================================
class TestCacheExport:
    """A cache failure is reported but does not undo the update."""

    def test_cache_failure_is_downgraded(self, make_action, index, metadata) -> None:
        failure = CacheExportError("cache dir not writable")
        exporter = RecordingExporter(error=failure)
        index.publish("central", _foo("1.1.0"))

        with make_action(exporter=exporter) as action:
            action.perform_update()
            assert action.state == UpdateState.APPLIED
            assert action.cache_error is failure

        assert metadata.write_count == 1
        assert metadata.stored_manifest.artifacts == [_foo("1.1.0")]

    def test_default_exporter_writes_under_metadata_dir(
        self, install_dir, executor, metadata, session_factory, keeper_config, index
    ) -> None:
        index.publish("central", _foo("1.1.0"))

        with UpdateAction(
            install_dir,
            executor,
            config=keeper_config,
            metadata=metadata,
            session_factory=session_factory,
        ) as action:
            action.perform_update()
            assert action.cache_error is None

        assert (install_dir / ".installation" / ".cache" / "artifacts.yaml").is_file()

    def test_default_exporter_follows_configured_cache_dir(
        self, install_dir, executor, metadata, session_factory, keeper_config, index
    ) -> None:
        config = keeper_config.model_copy(update={"cache_dir": "artifact-cache"})
        index.publish("central", _foo("1.1.0"))

        with UpdateAction(
            install_dir,
            executor,
            config=config,
            metadata=metadata,
            session_factory=session_factory,
        ) as action:
            action.perform_update()
            assert action.cache_error is None

        assert (install_dir / ".installation" / "artifact-cache" / "artifacts.yaml").is_file()
        assert not (install_dir / ".installation" / ".cache").exists()

    def test_cache_outside_installation_keeps_update(
        self, make_action, index, metadata, tmp_path
    ) -> None:
        jar = tmp_path / "downloads" / "foo-1.1.0.jar"
        jar.parent.mkdir()
        jar.write_bytes(b"foo 1.1.0 bytes")
        index.publish("central", _foo("1.1.0"), content=jar)
        exporter = ArtifactCacheExporter(cache_dir=tmp_path / "shared-cache")

        with make_action(exporter=exporter) as action:
            action.perform_update()
            assert action.state == UpdateState.APPLIED
            assert action.cache_error is None

        assert metadata.write_count == 1
        assert metadata.stored_manifest.artifacts == [_foo("1.1.0")]
        assert (
            tmp_path / "shared-cache" / "org" / "example" / "foo" / "1.1.0" / "foo-1.1.0.jar"
        ).is_file()


# =============================================================================
# Construction and Lifecycle
# =============================================================================
class TestConstruction:
    """A failed construction releases everything it opened."""

    def test_unreadable_metadata(self, tmp_path, executor, session_factory, keeper_config) -> None:
        metadata = FileInstallationMetadata(tmp_path / "not-an-install")

        with pytest.raises(MetadataError) as exc_info:
            UpdateAction(
                tmp_path / "not-an-install",
                executor,
                config=keeper_config,
                metadata=metadata,
                session_factory=session_factory,
            )

        assert exc_info.value.error_code == "NOT_AN_INSTALLATION"
        assert metadata.closed
        assert session_factory.sessions == []

    def test_malformed_history_fails_before_provisioning(
        self, install_dir, executor, session_factory, keeper_config, installed_manifest, channels
    ) -> None:
        FileInstallationMetadata.create(
            install_dir, installed_manifest, ResolutionConfig(channels=channels)
        )
        (install_dir / ".installation" / "history.yaml").write_text("records: null\n")
        metadata = FileInstallationMetadata(install_dir)

        with pytest.raises(MetadataError) as exc_info:
            UpdateAction(
                install_dir,
                executor,
                config=keeper_config,
                metadata=metadata,
                session_factory=session_factory,
            )

        assert exc_info.value.error_code == "HISTORY_MALFORMED"
        assert executor.call_count == 0
        assert metadata.closed
        assert session_factory.sessions == []

    def test_unreadable_provisioning_config(
        self, make_action, executor, metadata, session_factory
    ) -> None:
        executor.fail_config_with(OSError("provisioning.xml unreadable"))

        with pytest.raises(ProvisioningError) as exc_info:
            make_action()

        assert exc_info.value.error_code == "PROVISIONING_CONFIG_UNREADABLE"
        assert metadata.closed
        assert session_factory.sessions[0].closed

    def test_keeper_error_from_provisioning_config_passes_through(
        self, make_action, executor, metadata
    ) -> None:
        executor.fail_config_with(ProvisioningError("no config", error_code="CONFIG_MISSING"))

        with pytest.raises(ProvisioningError) as exc_info:
            make_action()

        assert exc_info.value.error_code == "CONFIG_MISSING"
        assert metadata.closed

    def test_default_config(self, install_dir, executor, metadata, session_factory) -> None:
        with UpdateAction(
            install_dir, executor, metadata=metadata, session_factory=session_factory
        ) as action:
            assert action.state == UpdateState.INITIALIZED
        assert isinstance(session_factory.sessions[0].config, SessionConfig)


class TestLifecycle:
    """close() releases the session and the metadata."""

    def test_context_manager_closes_everything(self, make_action, metadata, session_factory) -> None:
        with make_action():
            pass
        assert metadata.closed
        assert session_factory.sessions[0].closed

    def test_close_is_idempotent(self, make_action) -> None:
        action = make_action()
        action.close()
        action.close()

    def test_closed_action_refuses_work(self, make_action) -> None:
        action = make_action()
        action.close()
        with pytest.raises(KeeperError) as exc_info:
            action.find_updates()
        assert exc_info.value.error_code == "ACTION_CLOSED"
