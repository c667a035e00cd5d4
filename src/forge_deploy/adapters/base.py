"""Adapter interfaces for the external collaborators the orchestrator drives."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from forge_deploy.utils.process import CommandResult


@dataclass
class ProvisionOutputs:
    """Facts reported by the provisioning engine's output queries."""
    instance_public_ip: str
    instance_id: str
    s3_bucket_name: Optional[str] = None
    ssh_command: Optional[str] = None


@dataclass
class StoredObject:
    """One object listed from snapshot storage."""
    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass
class HttpResponse:
    """Status and body of one HTTP request."""
    status: int
    body: str


class Provisioner(ABC):
    """Infrastructure provisioning engine."""

    @abstractmethod
    def plan(self) -> str:
        """Prepare and return a human-readable provisioning plan."""
        pass

    @abstractmethod
    def apply(self) -> None:
        """Apply the prepared plan.

        Raises:
            ExternalToolFailure: If the engine reports a failure
        """
        pass

    @abstractmethod
    def outputs(self) -> ProvisionOutputs:
        """Query the engine's outputs for the provisioned target."""
        pass

    @abstractmethod
    def destroy(self) -> None:
        """Tear down everything the engine provisioned."""
        pass


class ConfigurationEngine(ABC):
    """Configuration-management engine acting on the target."""

    @abstractmethod
    def ping(self) -> None:
        """Lightweight connectivity probe.

        Raises:
            UnreachableTarget: If the target cannot be contacted
        """
        pass

    @abstractmethod
    def run_playbook(self, playbook: str) -> None:
        """Run one playbook against the target.

        Raises:
            ExternalToolFailure: If the playbook fails
        """
        pass


class TargetHost(ABC):
    """Remote host running the application.

    Low-level access is ``run`` plus file transfer; the application-level
    operations below are what backup, rollback and health checks use.
    """

    address: str

    @abstractmethod
    def run(self, command: str) -> CommandResult:
        """Run a shell command on the host and return its result."""
        pass

    @abstractmethod
    def download(self, remote_path: str, local_path: Path) -> None:
        """Copy a file from the host to the local machine."""
        pass

    @abstractmethod
    def upload(self, local_path: Path, remote_path: str) -> None:
        """Copy a local file to the host."""
        pass

    @abstractmethod
    def probe(self) -> None:
        """Open and close a remote session. Raises UnreachableTarget on failure."""
        pass

    @abstractmethod
    def service_status(self, service: str) -> str:
        """Return the init system's status word for ``service`` (e.g. 'active')."""
        pass

    @abstractmethod
    def container_count(self) -> int:
        """Number of running containers."""
        pass

    @abstractmethod
    def disk_usage_percent(self) -> int:
        """Root filesystem utilization in percent."""
        pass

    @abstractmethod
    def memory_usage_percent(self) -> int:
        """Memory utilization in percent."""
        pass

    @abstractmethod
    def create_archive(self, root: str, paths: List[str], archive_path: str) -> None:
        """Pack ``paths`` (relative to ``root``) into a gzip tarball."""
        pass

    @abstractmethod
    def extract_archive(self, archive_path: str, dest_dir: str) -> None:
        """Create ``dest_dir`` (which must not exist) and unpack the archive into it."""
        pass

    @abstractmethod
    def stop_application(self, root: str) -> None:
        """Stop the application defined at ``root``, if it exists."""
        pass

    @abstractmethod
    def start_application(self, root: str) -> None:
        """Start the application defined at ``root``."""
        pass

    @abstractmethod
    def move(self, src: str, dst: str) -> None:
        """Rename ``src`` to ``dst`` in one step. Refuses if ``dst`` exists."""
        pass

    @abstractmethod
    def set_owner(self, path: str, owner: str) -> None:
        """Recursively hand ``path`` to ``owner``."""
        pass

    @abstractmethod
    def remove_file(self, path: str) -> None:
        """Remove a single transient file."""
        pass

    @abstractmethod
    def path_exists(self, path: str) -> bool:
        pass


class SnapshotStore(ABC):
    """Durable object storage for snapshots."""

    bucket: str

    @abstractmethod
    def upload(self, local_path: Path, key: str) -> None:
        pass

    @abstractmethod
    def download(self, key: str, local_path: Path) -> None:
        pass

    @abstractmethod
    def list_objects(self, prefix: str) -> List[StoredObject]:
        """List objects under ``prefix`` in lexicographic key order."""
        pass

    @abstractmethod
    def apply_expiration(self, prefix: str, days: int) -> None:
        """Install the storage engine's own expiration rule for ``prefix``."""
        pass


class NetworkProbe(ABC):
    """Checks made from the orchestrating machine over the network."""

    @abstractmethod
    def ping(self, address: str, timeout: int) -> bool:
        pass

    @abstractmethod
    def http_get(self, url: str, timeout: float) -> HttpResponse:
        """GET ``url``. Raises UnreachableTarget when no response arrives."""
        pass
