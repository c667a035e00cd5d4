"""In-memory and tmp_path-backed doubles for every adapter."""

import os
import shutil
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

from forge_deploy.adapters.base import (
    ConfigurationEngine,
    HttpResponse,
    NetworkProbe,
    ProvisionOutputs,
    Provisioner,
    SnapshotStore,
    StoredObject,
    TargetHost,
)
from forge_deploy.cli.services import Services
from forge_deploy.pipeline.prerequisites import PrerequisiteChecker
from forge_deploy.prompts import Prompter
from forge_deploy.utils.errors import ExternalToolFailure, UnreachableTarget
from forge_deploy.utils.process import CommandResult


class CallRecorder:
    """Records calls and raises a configured error for an operation."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}

    def _record(self, operation: str, *args):
        self.calls.append((operation,) + args)
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def operations(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeProvisioner(CallRecorder, Provisioner):

    def __init__(self, outputs: Optional[ProvisionOutputs] = None):
        super().__init__()
        self._outputs = outputs or ProvisionOutputs(
            instance_public_ip="203.0.113.10",
            instance_id="i-0abc123",
            s3_bucket_name="qr-forge-backups",
            ssh_command="ssh -i qr-forge.pem ubuntu@203.0.113.10",
        )

    def plan(self) -> str:
        self._record("plan")
        return "Plan: 4 to add, 0 to change, 0 to destroy."

    def apply(self) -> None:
        self._record("apply")

    def outputs(self) -> ProvisionOutputs:
        self._record("outputs")
        return self._outputs

    def destroy(self) -> None:
        self._record("destroy")


class FakeConfigurationEngine(CallRecorder, ConfigurationEngine):

    def ping(self) -> None:
        self._record("ping")

    def run_playbook(self, playbook: str) -> None:
        self._record("run_playbook", playbook)


class LocalTargetHost(CallRecorder, TargetHost):
    """A target host whose filesystem is a local directory.

    Remote absolute paths map below ``remote_root``; archives are real
    gzipped tarballs so restores can be compared byte for byte.
    """

    def __init__(self, remote_root: Path, address: str = "203.0.113.10"):
        super().__init__()
        self.remote_root = Path(remote_root)
        self.address = address
        self.reachable = True
        self.running = True
        self.service = "active"
        self.containers = 2
        self.disk = 40
        self.memory = 55

    def path(self, remote_path: str) -> Path:
        return self.remote_root / remote_path.lstrip("/")

    def run(self, command: str) -> CommandResult:
        self._record("run", command)
        return CommandResult(args=["ssh", self.address, command], returncode=0, stdout="", stderr="")

    def download(self, remote_path: str, local_path: Path) -> None:
        self._record("download", remote_path, str(local_path))
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(self.path(remote_path), local_path)

    def upload(self, local_path: Path, remote_path: str) -> None:
        self._record("upload", str(local_path), remote_path)
        target = self.path(remote_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(local_path, target)

    def probe(self) -> None:
        self._record("probe")
        if not self.reachable:
            raise UnreachableTarget(f"SSH connection to {self.address} failed")

    def service_status(self, service: str) -> str:
        self._record("service_status", service)
        return self.service

    def container_count(self) -> int:
        self._record("container_count")
        return self.containers if self.running else 0

    def disk_usage_percent(self) -> int:
        self._record("disk_usage_percent")
        return self.disk

    def memory_usage_percent(self) -> int:
        self._record("memory_usage_percent")
        return self.memory

    def create_archive(self, root: str, paths: List[str], archive_path: str) -> None:
        self._record("create_archive", root, tuple(paths), archive_path)
        archive = self.path(archive_path)
        archive.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(archive, "w:gz") as tar:
            for member in paths:
                tar.add(self.path(root) / member, arcname=member)

    def extract_archive(self, archive_path: str, dest_dir: str) -> None:
        self._record("extract_archive", archive_path, dest_dir)
        dest = self.path(dest_dir)
        if dest.exists():
            raise ExternalToolFailure("extract", f"{dest_dir} already exists")
        dest.mkdir(parents=True)
        with tarfile.open(self.path(archive_path), "r:gz") as tar:
            tar.extractall(dest, filter="data")

    def stop_application(self, root: str) -> None:
        self._record("stop_application", root)
        self.running = False

    def start_application(self, root: str) -> None:
        self._record("start_application", root)
        if not self.path(root).exists():
            raise ExternalToolFailure("start application", f"{root} does not exist")
        self.running = True

    def move(self, src: str, dst: str) -> None:
        self._record("move", src, dst)
        if self.path(dst).exists():
            raise ExternalToolFailure("move", f"{dst} already exists")
        os.rename(self.path(src), self.path(dst))

    def set_owner(self, path: str, owner: str) -> None:
        self._record("set_owner", path, owner)

    def remove_file(self, path: str) -> None:
        self._record("remove_file", path)
        self.path(path).unlink(missing_ok=True)

    def path_exists(self, path: str) -> bool:
        return self.path(path).exists()


class FakeSnapshotStore(CallRecorder, SnapshotStore):
    """Object storage held in a dict of key -> bytes."""

    def __init__(self, bucket: str = "qr-forge-backups"):
        super().__init__()
        self.bucket = bucket
        self.objects: Dict[str, bytes] = {}
        self.expiration_rules: List[tuple] = []

    def upload(self, local_path: Path, key: str) -> None:
        self._record("upload", str(local_path), key)
        self.objects[key] = Path(local_path).read_bytes()

    def download(self, key: str, local_path: Path) -> None:
        self._record("download", key, str(local_path))
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        Path(local_path).write_bytes(self.objects[key])

    def list_objects(self, prefix: str) -> List[StoredObject]:
        self._record("list_objects", prefix)
        return [
            StoredObject(key=key, size=len(data))
            for key, data in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    def apply_expiration(self, prefix: str, days: int) -> None:
        self._record("apply_expiration", prefix, days)
        self.expiration_rules.append((prefix, days))


class FakeNetworkProbe(CallRecorder, NetworkProbe):
    """Answers like the application would; follows the host's running flag."""

    def __init__(self, host: Optional[LocalTargetHost] = None):
        super().__init__()
        self.host = host
        self.reachable = True
        self.responses: Dict[str, HttpResponse] = {}

    def ping(self, address: str, timeout: int) -> bool:
        self._record("ping", address)
        return self.reachable

    def http_get(self, url: str, timeout: float) -> HttpResponse:
        self._record("http_get", url)
        if url in self.responses:
            return self.responses[url]
        if self.host is not None and not self.host.running:
            raise UnreachableTarget(f"No HTTP response from {url}")
        if url.endswith("/health"):
            return HttpResponse(status=200, body="healthy\n")
        return HttpResponse(status=200, body="<html>qr-forge</html>")


class ScriptedPrompter(Prompter):
    """Answers prompts from scripted lists and records what was asked."""

    def __init__(self, confirms: Optional[List[bool]] = None, choices: Optional[List[str]] = None):
        self.confirms = list(confirms or [])
        self.choices = list(choices or [])
        self.questions: List[str] = []
        self.shown: List[str] = []

    def confirm(self, message: str) -> bool:
        self.questions.append(message)
        return self.confirms.pop(0) if self.confirms else False

    def choose(self, message: str) -> str:
        self.questions.append(message)
        return self.choices.pop(0)

    def show(self, text: str) -> None:
        self.shown.append(text)


def always_found(name: str) -> str:
    return f"/usr/bin/{name}"


class FakeServices(Services):
    """Services wired to the fakes above instead of real tools and AWS."""

    def __init__(self, config, host: LocalTargetHost, store: FakeSnapshotStore):
        super().__init__(config)
        self.sleeper = lambda seconds: None
        self.fake_provisioner = FakeProvisioner()
        self.fake_configurator = FakeConfigurationEngine()
        self.fake_network = FakeNetworkProbe(host)
        self.host = host
        self.store = store
        self.credentials_ok = True

    def provisioner(self) -> Provisioner:
        return self.fake_provisioner

    def configurator(self) -> ConfigurationEngine:
        return self.fake_configurator

    def network(self) -> NetworkProbe:
        return self.fake_network

    def host_for(self, state) -> TargetHost:
        return self.host

    def store_for(self, bucket: str) -> SnapshotStore:
        return self.store

    def credentials_available(self) -> bool:
        return self.credentials_ok

    def prerequisites(self) -> PrerequisiteChecker:
        return PrerequisiteChecker(
            self.config, self.state_manager, self.credentials_available, which=always_found
        )
