"""
installkeeper.provisioning - Provisioning Executor Boundary
=============================================================

Components:
    - ProvisioningExecutor (ABC):  interface to the provisioning engine
    - ExecutionOptions:            options for one provisioning run
    - execute_provisioning:        error-normalizing call boundary
    - MockProvisioningExecutor:    resolving-only executor for tests/dry runs
"""

from installkeeper.provisioning.executor import (
    ExecutionOptions,
    ProvisioningExecutor,
    execute_provisioning,
)
from installkeeper.provisioning.mock import MockProvisioningExecutor

__all__ = [
    "ProvisioningExecutor",
    "ExecutionOptions",
    "execute_provisioning",
    "MockProvisioningExecutor",
]
