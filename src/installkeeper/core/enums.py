"""
installkeeper.core.enums - Type-Safe Enumerations
===================================================

This module defines the enumeration types used throughout installkeeper.

All enums inherit from both `str` and `Enum`, which means:
    - They serialize to strings in YAML/JSON (Pydantic-friendly)
    - They can be compared with plain strings: UpdateState.NO_OP == "no_op"
    - They have human-readable representations

Architecture Mapping:

    ┌─────────────────────────────────────────────────────────────────┐
    │  ORCHESTRATION LAYER                                            │
    │    UpdateState: Update orchestrator lifecycle                   │
    ├─────────────────────────────────────────────────────────────────┤
    │  RESOLUTION LAYER                                               │
    │    NoStreamStrategy: What a channel does with unlisted artifacts│
    ├─────────────────────────────────────────────────────────────────┤
    │  INSTALLATION METADATA                                          │
    │    ProvisionKind: Why a provisioning record was written         │
    └─────────────────────────────────────────────────────────────────┘
"""

from enum import Enum


# =============================================================================
# Update State Enumeration
# =============================================================================
# The state machine of one UpdateAction instance:
#
#   INITIALIZED → UPDATES_COMPUTED → NO_OP
#                                  ↘ APPLYING → APPLIED
#
# APPLYING is terminal when provisioning fails: nothing is committed and the
# action stays there until it is closed.
# =============================================================================
class UpdateState(str, Enum):
    """Lifecycle states of the update orchestrator.

    State Transitions:
        INITIALIZED → UPDATES_COMPUTED: update set computed
        UPDATES_COMPUTED → NO_OP:       nothing to update, nothing written
        UPDATES_COMPUTED → APPLYING:    provisioning started
        APPLYING → APPLIED:             provisioning succeeded, manifest committed

    Usage:
        >>> action.state == UpdateState.APPLIED
        True
    """

    INITIALIZED = "initialized"             # Metadata loaded, session and config prepared
    UPDATES_COMPUTED = "updates_computed"   # Update set computed from the session
    NO_OP = "no_op"                         # Update set was empty, nothing applied
    APPLYING = "applying"                   # Provisioning executor is (or was) running
    APPLIED = "applied"                     # Provisioning succeeded and manifest committed


# =============================================================================
# No-Stream Strategy Enumeration
# =============================================================================
class NoStreamStrategy(str, Enum):
    """What a channel does with an artifact none of its streams match.

    NONE:   the channel does not govern the artifact at all.
    LATEST: the artifact resolves to the latest version available in the
            channel's repositories.
    """

    NONE = "none"
    LATEST = "latest"


class ProvisionKind(str, Enum):
    """Reason a provisioning record was appended to the installation history."""

    INSTALL = "install"
    UPDATE = "update"
