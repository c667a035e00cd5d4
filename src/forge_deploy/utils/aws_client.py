"""boto3 session and client cache for the snapshot bucket and credential checks."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError

from forge_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# One attempt per call: the pipeline reports failures instead of retrying them.
CLIENT_CONFIG = Config(
    retries={'mode': 'standard', 'max_attempts': 1},
    connect_timeout=10,
    read_timeout=60,
)


@dataclass(frozen=True)
class AWSCredentials:
    """Caller identity reported by STS."""
    account_id: str
    user_arn: str
    user_id: str
    region: Optional[str]
    profile: Optional[str] = None


class AWSClientManager:
    """Lazily opens one boto3 session and hands out cached clients from it."""

    def __init__(self, profile: Optional[str] = None, region: Optional[str] = None):
        self.profile = profile
        self.region = region
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}
        self._identity: Optional[AWSCredentials] = None

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            self._session = boto3.Session(profile_name=self.profile, region_name=self.region)
            logger.debug(
                f"Opened AWS session (profile={self.profile or 'default'}, "
                f"region={self._session.region_name})"
            )
        return self._session

    def get_client(self, service_name: str):
        """Return the cached client for ``service_name`` ('s3', 'sts', ...)."""
        client = self._clients.get(service_name)
        if client is None:
            client = self.session.client(service_name, config=CLIENT_CONFIG)
            self._clients[service_name] = client
        return client

    def validate_credentials(self) -> AWSCredentials:
        """Ask STS who we are; the answer is cached for the life of the manager.

        Raises:
            NoCredentialsError: Nothing configured
            PartialCredentialsError: Key id without secret or similar
            ClientError: STS rejected the credentials
        """
        if self._identity is not None:
            return self._identity

        try:
            reply = self.get_client('sts').get_caller_identity()
        except (NoCredentialsError, PartialCredentialsError) as e:
            logger.warning(f"AWS credentials unavailable: {e}")
            raise
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code', 'Unknown')
            logger.warning(f"STS rejected the AWS credentials ({code})")
            raise

        self._identity = AWSCredentials(
            account_id=reply['Account'],
            user_arn=reply['Arn'],
            user_id=reply['UserId'],
            region=self.session.region_name,
            profile=self.profile,
        )
        logger.debug(f"AWS identity {self._identity.user_arn} in account {self._identity.account_id}")
        return self._identity
