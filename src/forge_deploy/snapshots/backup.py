"""Backup of the remote application tree to object storage."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, List, Tuple

from forge_deploy.adapters.base import SnapshotStore, TargetHost
from forge_deploy.config.parser import Config
from forge_deploy.state.manager import StateManager
from forge_deploy.state.models import PipelineState
from forge_deploy.utils.errors import DeploymentError, PrerequisiteMissing
from forge_deploy.utils.logging import LogContext, get_logger
from .models import SNAPSHOT_ID_FORMAT, Snapshot, snapshot_key

logger = get_logger(__name__)


@dataclass
class BackupResult:
    """Outcome of a successful backup."""
    snapshot: Snapshot
    leftovers: List[str] = field(default_factory=list)  # transient copies that could not be removed


class BackupManager:
    """Creates snapshots and lists them.

    Snapshots are never deleted here: expiry belongs to the storage
    engine's lifecycle rule, installed when the target is provisioned.
    """

    def __init__(
        self,
        config: Config,
        state_manager: StateManager,
        host_factory: Callable[[PipelineState], TargetHost],
        store_factory: Callable[[str], SnapshotStore],
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Args:
            config: Loaded configuration
            state_manager: Pipeline state store
            host_factory: Builds the TargetHost for the recorded target
            store_factory: Builds the snapshot store for a bucket name
            clock: Source of snapshot timestamps
        """
        self.config = config
        self.state_manager = state_manager
        self.host_factory = host_factory
        self.store_factory = store_factory
        self.clock = clock

    @property
    def prefix(self) -> str:
        return self.config.settings.backup.prefix

    @property
    def app_name(self) -> str:
        return self.config.settings.project.app_name

    def _target(self) -> Tuple[PipelineState, SnapshotStore]:
        state = self.state_manager.load()
        if not state.bucket_name:
            raise PrerequisiteMissing(
                "No snapshot bucket recorded in the pipeline state",
                missing=["s3_bucket_name output"],
                suggestions=["Re-run provisioning with: forge-deploy deploy --step 1"],
            )
        return state, self.store_factory(state.bucket_name)

    def list_snapshots(self) -> List[Snapshot]:
        """All snapshots of this application, oldest first."""
        _, store = self._target()
        return self._list(store)

    def _list(self, store: SnapshotStore) -> List[Snapshot]:
        retention = self.config.settings.backup.retention_days
        snapshots = []
        for obj in store.list_objects(self.prefix):
            snapshot = Snapshot.from_key(
                obj.key, store.bucket, self.prefix, self.app_name, retention, obj.size
            )
            if snapshot is not None:
                snapshots.append(snapshot)
        snapshots.sort(key=lambda s: s.id)
        return snapshots

    def _next_id(self, existing: List[Snapshot]) -> str:
        now = self.clock().replace(microsecond=0)
        if existing:
            newest = datetime.strptime(existing[-1].id, SNAPSHOT_ID_FORMAT)
            if now <= newest:
                now = newest + timedelta(seconds=1)
        return now.strftime(SNAPSHOT_ID_FORMAT)

    def create_backup(self) -> BackupResult:
        """Archive the application on the target and upload it.

        Raises:
            DeploymentError: A stage failed; transient artifacts are left in
                place for inspection
        """
        settings = self.config.settings
        state, store = self._target()
        host = self.host_factory(state)

        snapshot_id = self._next_id(self._list(store))
        key = snapshot_key(self.prefix, self.app_name, snapshot_id)
        filename = Path(key).name
        remote_archive = f"{settings.remote.transient_dir.rstrip('/')}/{filename}"
        local_archive = self.config.work_dir / filename
        local_archive.parent.mkdir(parents=True, exist_ok=True)

        with LogContext(logger, operation="backup", snapshot_id=snapshot_id):
            stage = "create"
            try:
                logger.info(f"Creating backup on {state.target_address}...")
                host.create_archive(settings.remote.app_root, settings.remote.backup_paths, remote_archive)

                stage = "transfer"
                logger.info("Downloading backup to local machine...")
                host.download(remote_archive, local_archive)

                stage = "upload"
                store.upload(local_archive, key)
            except DeploymentError as e:
                e.context.phase = e.context.phase or "backup"
                e.suggestions.append(
                    f"Transient artifacts were left for inspection: {state.target_address}:{remote_archive}"
                    f" and {local_archive}"
                )
                logger.error(f"Backup failed during {stage} stage: {e.message}")
                raise

            leftovers = self._cleanup(host, remote_archive, local_archive)

        snapshot = Snapshot.from_key(
            key,
            store.bucket,
            self.prefix,
            self.app_name,
            settings.backup.retention_days,
            local_size(local_archive),
        )
        logger.info(f"Backup uploaded: {snapshot.url}")
        return BackupResult(snapshot=snapshot, leftovers=leftovers)

    def _cleanup(self, host: TargetHost, remote_archive: str, local_archive: Path) -> List[str]:
        leftovers = []
        try:
            host.remove_file(remote_archive)
        except DeploymentError as e:
            logger.warning(f"Could not remove remote transient copy {remote_archive}: {e.message}")
            leftovers.append(f"{host.address}:{remote_archive}")
        try:
            local_archive.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove local transient copy {local_archive}: {e}")
            leftovers.append(str(local_archive))
        return leftovers


def local_size(path: Path) -> int:
    """Size of ``path`` or 0 once it has been cleaned up."""
    try:
        return path.stat().st_size
    except OSError:
        return 0
