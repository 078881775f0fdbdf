"""
Update Example: Find and Apply Updates to an Installation
============================================================

This example builds a throwaway installation holding org.example:foo@1.0.0,
publishes foo 1.1.0 to a file:// channel repository, then runs an
UpdateAction against it twice:

    1. The first run finds and applies the update.
    2. The second run finds nothing to do (no-op).

The provisioning engine is the mock executor, so no real server files are
laid out; the installation metadata and artifact cache are real.

Usage:
    python examples/update_installation.py
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from installkeeper import UpdateAction
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
from installkeeper.installation.metadata import FileInstallationMetadata
from installkeeper.provisioning.mock import MockProvisioningExecutor


def deploy(root: Path, artifact: ManagedArtifact) -> None:
    """Put ``artifact`` into a Maven-layout repository."""
    path = (
        root.joinpath(*artifact.group_id.split("."))
        / artifact.artifact_id
        / artifact.version
        / artifact.file_name
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(f"{artifact}\n".encode())


def main() -> None:
    """Create an installation, update it, then show the result."""
    workdir = Path(tempfile.mkdtemp(prefix="installkeeper-example-"))
    repo_root = workdir / "repo"
    install_dir = workdir / "server"

    foo = ManagedArtifact(group_id="org.example", artifact_id="foo", version="1.0.0")
    deploy(repo_root, foo)

    channel = Channel(
        name="server",
        repositories=[Repository(id="releases", url=repo_root.as_uri())],
        streams=[ChannelStream(group_id="org.example", artifact_id="*")],
    )
    FileInstallationMetadata.create(
        install_dir,
        InstalledManifest(name="server", artifacts=[foo]),
        ResolutionConfig(channels=[channel]),
    )

    # A newer foo shows up in the channel repository
    deploy(repo_root, foo.with_version("1.1.0"))

    config = KeeperConfig(session=SessionConfig(local_repository=workdir / "m2"))
    executor = MockProvisioningExecutor(
        ProvisioningConfig(), artifacts=[ArtifactKey.parse("org.example:foo")]
    )

    for attempt in (1, 2):
        with UpdateAction(install_dir, executor, config=config) as action:
            updates = action.find_updates()
            action.perform_update()

            print(f"Run {attempt}")
            print("-" * 40)
            print(f"Updates : {updates.summary() or 'none'}")
            print(f"State   : {action.state.value}")
            print()

    with FileInstallationMetadata(install_dir) as metadata:
        manifest, _ = metadata.load()
        print("Installed artifacts:")
        for artifact in manifest.artifacts:
            print(f"  {artifact}")
        print(f"History : {[record.kind.value for record in metadata.history()]}")
    print(f"Cache   : {install_dir / '.installation' / '.cache'}")


if __name__ == "__main__":
    main()
