"""
installkeeper.orchestration - Orchestration Layer
===================================================

Sequences the lower layers into a complete in-place update:

    metadata → overrides → session → finder → provisioning → commit → cache

Components:
    - UpdateAction:  the update orchestrator (find_updates / perform_update)
"""

from installkeeper.orchestration.update_action import UpdateAction

__all__ = ["UpdateAction"]
