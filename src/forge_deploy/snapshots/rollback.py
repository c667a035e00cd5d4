"""Non-destructive restore of the application tree from a snapshot."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from forge_deploy.adapters.base import SnapshotStore, TargetHost
from forge_deploy.config.parser import Config
from forge_deploy.health.aggregator import HealthAggregator
from forge_deploy.health.models import HealthReport
from forge_deploy.prompts import Prompter
from forge_deploy.state.manager import StateManager
from forge_deploy.state.models import PipelineState
from forge_deploy.utils.errors import (
    DegradedRestore,
    DeploymentError,
    ErrorContext,
    ExternalToolFailure,
    InvalidSelection,
    OperatorAbort,
)
from forge_deploy.utils.logging import LogContext, get_logger
from .backup import BackupManager
from .models import ArchivedState, Snapshot

logger = get_logger(__name__)

POST_RESTORE_CHECKS = ('http_response', 'liveness')


@dataclass
class RestoreResult:
    """Result of a completed restore."""

    snapshot: Snapshot
    archived: Optional[ArchivedState]
    report: HealthReport
    leftovers: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds


def format_size(size: int) -> str:
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024 or unit == 'GB':
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def format_listing(snapshots: List[Snapshot]) -> str:
    """Numbered listing shown before the selection prompt."""
    lines = ["Available backups:"]
    for index, snapshot in enumerate(snapshots, 1):
        created = snapshot.created_at.strftime('%Y-%m-%d %H:%M:%S')
        lines.append(f"  {index:>3}. {snapshot.filename}  {created}  {format_size(snapshot.size)}")
    return "\n".join(lines)


class RollbackManager:
    """Restores a chosen snapshot over the application tree.

    The current tree is never deleted. The snapshot is extracted into a
    staging directory first, the running tree is moved aside to
    ``<app_root>.old.<unix-timestamp>``, and only then is the staged tree
    moved into place. Anything that goes wrong after the move aside raises
    DegradedRestore naming the archive path.
    """

    def __init__(
        self,
        config: Config,
        state_manager: StateManager,
        backups: BackupManager,
        host_factory: Callable[[PipelineState], TargetHost],
        store_factory: Callable[[str], SnapshotStore],
        health: HealthAggregator,
        clock: Callable[[], float] = time.time,
        sleeper: Callable[[float], None] = time.sleep,
    ):
        """Initialize rollback manager.

        Args:
            config: Loaded configuration
            state_manager: Pipeline state store
            backups: Lists the snapshots to choose from
            host_factory: Builds the TargetHost for the recorded target
            store_factory: Builds the snapshot store for a bucket name
            health: Runs the post-restore probe
            clock: Unix time used to name the archived tree
            sleeper: Blocking wait before the post-restore probe
        """
        self.config = config
        self.state_manager = state_manager
        self.backups = backups
        self.host_factory = host_factory
        self.store_factory = store_factory
        self.health = health
        self.clock = clock
        self.sleeper = sleeper

    def list_snapshots(self) -> List[Snapshot]:
        return self.backups.list_snapshots()

    def select(self, snapshots: List[Snapshot], choice: str) -> Snapshot:
        """Resolve an operator choice (1-based index, or 'q') to a snapshot.

        Raises:
            OperatorAbort: The operator entered 'q'
            InvalidSelection: Anything else that is not a listed index
        """
        choice = (choice or "").strip()
        if choice.lower() == 'q':
            raise OperatorAbort("Rollback cancelled")
        if not choice.isdigit() or not 1 <= int(choice) <= len(snapshots):
            raise InvalidSelection(
                f"Invalid selection '{choice}': choose a number between 1 and {len(snapshots)}"
            )
        return snapshots[int(choice) - 1]

    def run_interactive(self, prompter: Prompter) -> RestoreResult:
        """List, ask for a snapshot and a confirmation, then restore.

        Raises:
            OperatorAbort: The operator quit or declined the confirmation
            InvalidSelection: No snapshots exist or the choice is invalid
        """
        snapshots = self.list_snapshots()
        if not snapshots:
            raise InvalidSelection(
                "No backups found",
                suggestions=["Create one with: forge-deploy backup"],
            )

        prompter.show(format_listing(snapshots))
        choice = prompter.choose("Enter the number of the backup to restore (or 'q' to quit)")
        snapshot = self.select(snapshots, choice)

        prompter.show(f"Selected backup: {snapshot.filename}")
        if not prompter.confirm("Are you sure you want to rollback to this backup?"):
            raise OperatorAbort("Rollback cancelled")

        return self.restore(snapshot)

    def restore(self, snapshot: Snapshot) -> RestoreResult:
        """Restore ``snapshot`` over the application tree.

        Raises:
            ExternalToolFailure: A step before the running tree was touched failed
            DegradedRestore: The tree was archived but the restore did not
                finish, or the application is not healthy afterwards
        """
        settings = self.config.settings
        remote = settings.remote
        state = self.state_manager.load()
        host = self.host_factory(state)
        store = self.store_factory(snapshot.bucket)

        start_time = datetime.utcnow()
        started = time.monotonic()
        stamp = int(self.clock())
        root = remote.app_root.rstrip('/')
        archive_path = f"{root}.old.{stamp}"
        staging_path = f"{root}.restore.{stamp}"
        remote_archive = f"{remote.transient_dir.rstrip('/')}/{snapshot.filename}"
        local_archive = self.config.work_dir / snapshot.filename
        local_archive.parent.mkdir(parents=True, exist_ok=True)

        with LogContext(logger, operation="rollback", snapshot_id=snapshot.id, target=state.target_address):
            logger.info(f"Downloading backup {snapshot.url}...")
            store.download(snapshot.key, local_archive)

            logger.info("Uploading backup to instance...")
            host.upload(local_archive, remote_archive)

            if host.path_exists(archive_path):
                raise ExternalToolFailure(
                    "restore",
                    f"archive path {archive_path} already exists",
                    context=ErrorContext(operation="rollback", target=state.target_address),
                )

            logger.info(f"Extracting backup into {staging_path}...")
            host.extract_archive(remote_archive, staging_path)

            logger.info("Stopping application...")
            try:
                host.stop_application(root)
            except DeploymentError as e:
                e.suggestions.append(f"The current tree is untouched; the staged restore is at {staging_path}")
                raise

            archived = None
            if host.path_exists(root):
                self._archive_current(host, root, archive_path, staging_path)
                archived = ArchivedState(archive_path=archive_path, original_path=root)
                logger.info(f"Archived current application to {archive_path}")
            else:
                logger.warning(f"No application tree at {root}; nothing to archive")

            self._swap_in(host, staging_path, root, archive_path if archived else None)

            leftovers = self._cleanup(host, remote_archive, local_archive)

            settle = settings.backup.restore_settle_seconds
            if settle:
                logger.info(f"Waiting {settle} seconds for the application to start...")
                self.sleeper(settle)

            report = self.health.run(state, only=POST_RESTORE_CHECKS)

        if not report.healthy:
            failed = ", ".join(r.name for r in report.failed())
            if archived:
                raise DegradedRestore(
                    f"Application unhealthy after restore ({failed})",
                    archive_path=archive_path,
                    report=report,
                )
            raise DegradedRestore(
                f"Application unhealthy after restore ({failed})",
                archive_path=root,
                report=report,
                suggestions=[
                    f"No prior tree existed; inspect the restored application at {root}",
                    "Check the application logs with the configured compose command",
                ],
            )

        logger.info(f"Rollback to {snapshot.filename} completed")
        return RestoreResult(
            snapshot=snapshot,
            archived=archived,
            report=report,
            leftovers=leftovers,
            start_time=start_time,
            end_time=datetime.utcnow(),
            duration=time.monotonic() - started,
        )

    def _archive_current(self, host: TargetHost, root: str, archive_path: str, staging_path: str) -> None:
        """Move the stopped tree aside; on failure bring the application back on it."""
        try:
            host.move(root, archive_path)
        except DeploymentError as e:
            logger.error(f"Could not archive {root}: {e.message}; restarting the current tree")
            try:
                host.start_application(root)
            except DeploymentError as restart_error:
                raise DegradedRestore(
                    f"Application is stopped: archiving {root} failed ({e.message}) "
                    f"and the restart failed ({restart_error.message})",
                    archive_path=root,
                    cause=e,
                    context=ErrorContext(operation="rollback", target=host.address),
                    suggestions=[
                        f"The current tree is intact at {root}; start the application there",
                        f"The staged restore is at {staging_path}",
                    ],
                ) from e
            e.suggestions.append(f"The application was restarted on the untouched tree at {root}")
            e.suggestions.append(f"The staged restore is left at {staging_path}")
            raise

    def _swap_in(self, host: TargetHost, staging_path: str, root: str, archive_path: Optional[str]) -> None:
        owner = self.config.settings.remote.owner
        stage = "swap"
        try:
            host.move(staging_path, root)
            stage = "ownership"
            host.set_owner(root, owner)
            stage = "start"
            logger.info("Starting application...")
            host.start_application(root)
        except DeploymentError as e:
            message = f"Restore interrupted during {stage} stage: {e.message}"
            context = ErrorContext(operation="rollback", target=host.address)
            if archive_path:
                raise DegradedRestore(message, archive_path=archive_path, cause=e, context=context) from e
            raise DegradedRestore(
                message,
                archive_path=root,
                cause=e,
                context=context,
                suggestions=[
                    "No prior tree existed, so there is nothing to recover",
                    f"Inspect {root} and {staging_path}, then start the application manually",
                ],
            ) from e

    def _cleanup(self, host: TargetHost, remote_archive: str, local_archive: Path) -> List[str]:
        leftovers = []
        try:
            host.remove_file(remote_archive)
        except DeploymentError as e:
            logger.warning(f"Could not remove {remote_archive}: {e.message}")
            leftovers.append(f"{host.address}:{remote_archive}")
        try:
            local_archive.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove {local_archive}: {e}")
            leftovers.append(str(local_archive))
        return leftovers
