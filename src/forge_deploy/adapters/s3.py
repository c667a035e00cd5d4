"""S3 snapshot storage."""

from pathlib import Path
from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from forge_deploy.utils.errors import ErrorContext, error_handler
from forge_deploy.utils.logging import get_logger
from .base import SnapshotStore, StoredObject

logger = get_logger(__name__)


class S3SnapshotStore(SnapshotStore):
    """Snapshot storage in one S3 bucket."""

    def __init__(self, s3_client, bucket: str):
        """
        Args:
            s3_client: Boto3 S3 client
            bucket: Bucket name
        """
        self.s3 = s3_client
        self.bucket = bucket

    def _url(self, key: str) -> str:
        return f"s3://{self.bucket}/{key}"

    def _wrap(self, operation: str, error: Exception):
        return error_handler.handle_exception(error, ErrorContext(operation=operation))

    def upload(self, local_path: Path, key: str) -> None:
        logger.info(f"Uploading to S3: {self._url(key)}")
        try:
            self.s3.upload_file(str(local_path), self.bucket, key)
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("S3 upload", e) from e

    def download(self, key: str, local_path: Path) -> None:
        Path(local_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading from S3: {self._url(key)}")
        try:
            self.s3.download_file(self.bucket, key, str(local_path))
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("S3 download", e) from e

    def list_objects(self, prefix: str) -> List[StoredObject]:
        objects = []
        try:
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for entry in page.get("Contents", []):
                    objects.append(
                        StoredObject(
                            key=entry["Key"],
                            size=entry.get("Size", 0),
                            last_modified=entry.get("LastModified"),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("S3 list", e) from e

        objects.sort(key=lambda o: o.key)
        return objects

    def _lifecycle_rules(self) -> List[dict]:
        try:
            reply = self.s3.get_bucket_lifecycle_configuration(Bucket=self.bucket)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "NoSuchLifecycleConfiguration":
                return []
            raise
        return list(reply.get("Rules", []))

    def apply_expiration(self, prefix: str, days: int) -> None:
        """Add or replace the ``expire-<prefix>`` rule, keeping the bucket's other rules."""
        rule_id = f"expire-{prefix.strip('/')}"
        logger.info(f"Setting S3 lifecycle rule {rule_id}: expire {prefix} after {days} days")
        rule = {
            "ID": rule_id,
            "Status": "Enabled",
            "Filter": {"Prefix": prefix},
            "Expiration": {"Days": days},
        }
        try:
            rules = [r for r in self._lifecycle_rules() if r.get("ID") != rule_id]
            rules.append(rule)
            self.s3.put_bucket_lifecycle_configuration(
                Bucket=self.bucket, LifecycleConfiguration={"Rules": rules}
            )
        except (ClientError, BotoCoreError) as e:
            raise self._wrap("S3 lifecycle rule", e) from e
