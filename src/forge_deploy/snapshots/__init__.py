"""Application snapshots: backup to object storage and non-destructive rollback."""

from forge_deploy.snapshots.models import (
    SNAPSHOT_ID_FORMAT,
    ArchivedState,
    Snapshot,
    snapshot_key,
)
from forge_deploy.snapshots.backup import BackupManager, BackupResult
from forge_deploy.snapshots.rollback import (
    POST_RESTORE_CHECKS,
    RestoreResult,
    RollbackManager,
    format_listing,
)

__all__ = [
    'SNAPSHOT_ID_FORMAT',
    'ArchivedState',
    'Snapshot',
    'snapshot_key',
    'BackupManager',
    'BackupResult',
    'POST_RESTORE_CHECKS',
    'RestoreResult',
    'RollbackManager',
    'format_listing',
]
