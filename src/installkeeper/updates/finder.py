"""
installkeeper.updates.finder - Update Finder
==============================================

Compares the installed artifacts against what a resolution session can
currently resolve and produces an UpdateSet.

    installed artifacts ──→ UpdateFinder ──→ UpdateSet
                                 │
                                 │ resolve_latest_version()
                                 ▼
                         ResolutionSession

Rules:
    - An artifact whose resolved version equals the installed one never
      appears in the result.
    - If any artifact can't be resolved at all, the whole lookup fails with
      ArtifactResolutionError naming every unresolvable artifact. A partial
      UpdateSet is never returned.
    - A key listed more than once is looked up each time; the entry with
      the highest new version survives (on a tie, the lowest current
      version), at the position of the key's first occurrence.

The finder is a scoped resource. By default closing it closes the session;
pass ``owns_session=False`` when the session outlives the finder.
"""

from __future__ import annotations

from typing import Any, Iterable

import structlog

from installkeeper.core.exceptions import ArtifactResolutionError
from installkeeper.core.models import (
    ArtifactChange,
    ArtifactKey,
    ManagedArtifact,
    UpdateSet,
)
from installkeeper.resolution.session import ResolutionSession
from installkeeper.resolution.versions import compare_versions


logger = structlog.get_logger()


class UpdateFinder:
    """Computes the update set of an installation.

    Example:
        >>> with UpdateFinder(session) as finder:
        ...     updates = finder.find_updates(metadata.artifacts)
    """

    def __init__(self, session: ResolutionSession, owns_session: bool = True) -> None:
        self._session = session
        self._owns_session = owns_session
        self._logger = logger.bind(component="update_finder")

    def find_updates(self, installed: Iterable[ManagedArtifact]) -> UpdateSet:
        """Diff ``installed`` against the latest resolvable versions.

        Raises:
            ArtifactResolutionError: If any artifact can't be resolved.
        """
        changes: dict[ArtifactKey, ArtifactChange] = {}
        unresolved: list[ArtifactKey] = []
        scanned = 0

        for artifact in installed:
            scanned += 1
            key = artifact.key
            latest = self._session.resolve_latest_version(key)
            if latest is None:
                if key not in unresolved:
                    unresolved.append(key)
                continue
            # Equal-comparing spellings (1.0.0 vs 1.0.0.Final) are no update
            if compare_versions(latest, artifact.version) == 0:
                continue

            change = ArtifactChange(
                key=key,
                current_version=artifact.version,
                new_version=latest,
            )
            previous = changes.get(key)
            if previous is None or _supersedes(change, previous):
                changes[key] = change

        if unresolved:
            self._logger.warning(
                "update_check_unresolved",
                artifacts=[str(k) for k in unresolved],
                offline=self._session.offline,
            )
            raise ArtifactResolutionError(
                unresolved,
                self._session.repositories(),
                self._session.offline,
            )

        updates = UpdateSet(changes=list(changes.values()))
        self._logger.info(
            "updates_found",
            scanned=scanned,
            updates=len(updates),
        )
        return updates

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> UpdateFinder:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def _supersedes(candidate: ArtifactChange, current: ArtifactChange) -> bool:
    order = compare_versions(candidate.new_version, current.new_version)
    if order != 0:
        return order > 0
    return compare_versions(candidate.current_version, current.current_version) < 0
