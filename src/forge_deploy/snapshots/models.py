"""Snapshot and archived-state models."""

import re
from datetime import datetime, timedelta
from pathlib import PurePosixPath
from typing import Optional
from pydantic import BaseModel, Field

SNAPSHOT_ID_FORMAT = "%Y%m%d_%H%M%S"


def snapshot_key(prefix: str, app_name: str, snapshot_id: str) -> str:
    """Object key for a snapshot: ``<prefix><app>-<YYYYMMDD_HHMMSS>.tar.gz``."""
    return f"{prefix}{app_name}-{snapshot_id}.tar.gz"


class Snapshot(BaseModel):
    """A point-in-time capture of the application tree in object storage."""

    id: str = Field(..., pattern=r"^\d{8}_\d{6}$", description="Creation timestamp, second granularity")
    key: str = Field(..., description="Object storage key")
    bucket: str = Field(..., description="Object storage bucket")
    created_at: datetime
    expires_at: Optional[datetime] = Field(None, description="When the storage retention rule expires it")
    size: int = 0

    @property
    def filename(self) -> str:
        return PurePosixPath(self.key).name

    @property
    def url(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    @classmethod
    def from_key(
        cls,
        key: str,
        bucket: str,
        prefix: str,
        app_name: str,
        retention_days: Optional[int] = None,
        size: int = 0,
    ) -> Optional["Snapshot"]:
        """Parse a storage key; returns None for keys that are not this app's snapshots."""
        pattern = rf"^{re.escape(prefix)}{re.escape(app_name)}-(\d{{8}}_\d{{6}})\.tar\.gz$"
        match = re.match(pattern, key)
        if not match:
            return None
        snapshot_id = match.group(1)
        try:
            created_at = datetime.strptime(snapshot_id, SNAPSHOT_ID_FORMAT)
        except ValueError:
            return None
        expires_at = created_at + timedelta(days=retention_days) if retention_days else None
        return cls(
            id=snapshot_id,
            key=key,
            bucket=bucket,
            created_at=created_at,
            expires_at=expires_at,
            size=size,
        )


class ArchivedState(BaseModel):
    """The application tree moved aside by a restore, kept for manual recovery."""

    archive_path: str = Field(..., description="<app_root>.old.<unix-timestamp>")
    original_path: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
