"""
Shared Test Fixtures for installkeeper
========================================

This module provides reusable pytest fixtures used across the entire
test suite. Fixtures are organized by layer:

    1. Configuration fixtures
    2. Channel / repository fixtures
    3. Resolution fixtures (index, session)
    4. Installation fixtures (manifest, metadata)
    5. Provisioning fixtures (mock executor)

Every fixture that touches disk works under pytest's ``tmp_path``; the
session's local repository never points at the real ~/.m2.
"""

from __future__ import annotations

import pytest

from installkeeper.core.config import KeeperConfig, SessionConfig
from installkeeper.core.models import (
    ArtifactKey,
    Channel,
    ChannelStream,
    InstalledManifest,
    ManagedArtifact,
    ProvisioningConfig,
    Repository,
    ResolutionConfig,
)
from installkeeper.installation.metadata import InMemoryInstallationMetadata
from installkeeper.provisioning.mock import MockProvisioningExecutor
from installkeeper.resolution.index import InMemoryRepositoryIndex
from installkeeper.resolution.session import RepositoryResolutionSession


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def session_config(tmp_path):
    """Online session with an empty local repository under tmp_path."""
    return SessionConfig(
        local_repository=tmp_path / "m2",
        provisioning_repo=tmp_path / "provisioning-repo",
    )


@pytest.fixture
def keeper_config(session_config):
    """KeeperConfig wrapping the test session config."""
    return KeeperConfig(session=session_config)


# =============================================================================
# Channels and Repositories
# =============================================================================

@pytest.fixture
def central():
    """Remote-looking repository served by the in-memory index."""
    return Repository(id="central", url="https://repo.example.org/maven2/")


@pytest.fixture
def mirror():
    """Second remote-looking repository, used as an override."""
    return Repository(id="mirror", url="https://mirror.example.org/maven2/")


@pytest.fixture
def channels(central):
    """One channel governing every org.example artifact."""
    return [
        Channel(
            name="server",
            repositories=[central],
            streams=[ChannelStream(group_id="org.example", artifact_id="*")],
        )
    ]


# =============================================================================
# Resolution
# =============================================================================

@pytest.fixture
def index():
    """Empty in-memory repository index."""
    return InMemoryRepositoryIndex()


@pytest.fixture
def session(channels, session_config, index):
    """Resolution session over ``channels`` backed by ``index``."""
    return RepositoryResolutionSession(channels, session_config, remote_index=index)


@pytest.fixture
def session_factory(index):
    """Session factory for UpdateAction; remembers the sessions it built."""

    def factory(channels, config):
        created = RepositoryResolutionSession(channels, config, remote_index=index)
        factory.sessions.append(created)
        return created

    factory.sessions = []
    return factory


# =============================================================================
# Installation
# =============================================================================

@pytest.fixture
def foo_key():
    return ArtifactKey(group_id="org.example", artifact_id="foo")


@pytest.fixture
def installed_manifest():
    """Installation holding org.example:foo@1.0.0."""
    return InstalledManifest(
        name="server",
        artifacts=[ManagedArtifact(group_id="org.example", artifact_id="foo", version="1.0.0")],
    )


@pytest.fixture
def metadata(installed_manifest, channels):
    """In-memory installed-state store for ``installed_manifest``."""
    return InMemoryInstallationMetadata(
        installed_manifest, ResolutionConfig(channels=channels)
    )


# =============================================================================
# Provisioning
# =============================================================================

@pytest.fixture
def executor(foo_key):
    """Mock executor whose layout contains org.example:foo."""
    return MockProvisioningExecutor(ProvisioningConfig(), artifacts=[foo_key])
