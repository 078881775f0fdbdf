"""
installkeeper.updates - Update Discovery
==========================================

Components:
    - override_repositories:  operation-scoped repository overrides
    - UpdateFinder:           diff installed artifacts against a session
"""

from installkeeper.updates.finder import UpdateFinder
from installkeeper.updates.repositories import override_repositories

__all__ = ["UpdateFinder", "override_repositories"]
