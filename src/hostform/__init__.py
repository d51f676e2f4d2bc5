"""hostform - declarative reconciliation of cloud hosting resources.

This package compares a declared set of VMs, disks, IP addresses,
VLANs and SSH keys with what the hosting service actually holds, and
issues the remote calls that bring the two in line.

Example:
    $ hostform plan manifest.yaml
    $ hostform apply manifest.yaml
    $ hostform state list
"""

__version__ = "0.1.0"

from hostform.core.exceptions import (
    ConfigurationError,
    HostformError,
    MonotonicViolationError,
    PartialUpdateError,
    RemoteOperationError,
    ResourceNotFoundError,
    ValidationRejectedError,
)

__all__ = [
    "ConfigurationError",
    "HostformError",
    "MonotonicViolationError",
    "PartialUpdateError",
    "RemoteOperationError",
    "ResourceNotFoundError",
    "ValidationRejectedError",
    "__version__",
]
