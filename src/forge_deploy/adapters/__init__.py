"""Adapters for the external engines: provisioning, configuration, target host, storage."""

from .ansible import AnsibleEngine
from .base import (
    ConfigurationEngine,
    HttpResponse,
    NetworkProbe,
    ProvisionOutputs,
    Provisioner,
    SnapshotStore,
    StoredObject,
    TargetHost,
)
from .network import SystemNetworkProbe
from .s3 import S3SnapshotStore
from .ssh import SSHTargetHost
from .terraform import TerraformProvisioner

__all__ = [
    "Provisioner",
    "ConfigurationEngine",
    "TargetHost",
    "SnapshotStore",
    "NetworkProbe",
    "ProvisionOutputs",
    "StoredObject",
    "HttpResponse",
    "TerraformProvisioner",
    "AnsibleEngine",
    "SSHTargetHost",
    "S3SnapshotStore",
    "SystemNetworkProbe",
]
