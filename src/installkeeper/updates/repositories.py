"""
installkeeper.updates.repositories - Temporary Repository Overrides
=====================================================================

Lets a caller point one operation at different repositories (a mirror, a
local directory holding a patch) without editing the installation's
persisted channel configuration.

    persisted channels ──→ override_repositories() ──→ effective channels
          (unchanged)          overrides=[repoA]          repositories=[repoA]

The override is a full replacement: every channel keeps its name and
streams but resolves only from the override repositories.
"""

from __future__ import annotations

from typing import Sequence

import structlog

from installkeeper.core.models import Channel, Repository


logger = structlog.get_logger()


def override_repositories(
    base_channels: Sequence[Channel],
    overrides: Sequence[Repository],
) -> list[Channel]:
    """Replace every channel's repositories with ``overrides``.

    Args:
        base_channels: The installation's channels. Not modified.
        overrides: Temporary repositories. Empty means "no override".

    Returns:
        A new list. With no overrides it holds the original channels; with
        overrides, copies whose repository list is exactly ``overrides``.

    Example:
        >>> effective = override_repositories(config.channels, [mirror])
        >>> [c.repositories for c in effective]
        [(mirror,), (mirror,)]
    """
    if not overrides:
        return list(base_channels)

    logger.debug(
        "repositories_overridden",
        channels=[c.name for c in base_channels],
        repositories=[r.id for r in overrides],
    )
    return [channel.with_repositories(overrides) for channel in base_channels]
