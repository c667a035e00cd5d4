"""Wires the configuration to the concrete adapters and managers."""

import time
from typing import Optional

from forge_deploy.adapters.ansible import AnsibleEngine
from forge_deploy.adapters.base import (
    ConfigurationEngine,
    NetworkProbe,
    Provisioner,
    SnapshotStore,
    TargetHost,
)
from forge_deploy.adapters.network import SystemNetworkProbe
from forge_deploy.adapters.s3 import S3SnapshotStore
from forge_deploy.adapters.ssh import SSHTargetHost
from forge_deploy.adapters.terraform import TerraformProvisioner
from forge_deploy.config.parser import Config
from forge_deploy.health.aggregator import HealthAggregator
from forge_deploy.pipeline.controller import PipelineController
from forge_deploy.pipeline.executor import StepExecutor
from forge_deploy.pipeline.prerequisites import PrerequisiteChecker, aws_credentials_available
from forge_deploy.prompts import Prompter
from forge_deploy.snapshots.backup import BackupManager
from forge_deploy.snapshots.rollback import RollbackManager
from forge_deploy.state.manager import StateManager
from forge_deploy.state.models import PipelineState
from forge_deploy.utils.aws_client import AWSClientManager


class Services:
    """Builds every component a command needs from one loaded Config.

    The adapter factory methods are the seams tests override with fakes.
    """

    def __init__(self, config: Config):
        self.config = config
        self.state_manager = StateManager(str(config.state_path))
        self.sleeper = time.sleep
        self._aws: Optional[AWSClientManager] = None
        self._network: Optional[NetworkProbe] = None

    @property
    def aws(self) -> AWSClientManager:
        if self._aws is None:
            aws = self.config.settings.aws
            self._aws = AWSClientManager(profile=aws.profile, region=aws.region)
        return self._aws

    # Adapters

    def provisioner(self) -> Provisioner:
        pipeline = self.config.settings.pipeline
        return TerraformProvisioner(
            self.config.resolve(self.config.settings.paths.terraform_dir),
            timeout=pipeline.command_timeout,
        )

    def configurator(self) -> ConfigurationEngine:
        settings = self.config.settings
        return AnsibleEngine(
            self.config.resolve(settings.paths.ansible_dir),
            self.config.inventory_path,
            group=settings.pipeline.inventory_group,
            timeout=settings.pipeline.command_timeout,
        )

    def network(self) -> NetworkProbe:
        if self._network is None:
            self._network = SystemNetworkProbe()
        return self._network

    def host_for(self, state: PipelineState) -> TargetHost:
        settings = self.config.settings
        return SSHTargetHost(
            state.target_address,
            user=settings.ssh.user,
            key_path=self.config.ssh_key_path,
            connect_timeout=settings.ssh.connect_timeout,
            compose_command=settings.remote.compose_command,
        )

    def store_for(self, bucket: str) -> SnapshotStore:
        return S3SnapshotStore(self.aws.get_client('s3'), bucket)

    def credentials_available(self) -> bool:
        return aws_credentials_available(self.aws)

    # Components

    def health(self) -> HealthAggregator:
        settings = self.config.settings
        return HealthAggregator(
            self.host_for,
            self.network(),
            config=settings.health,
            runtime_service=settings.remote.runtime_service,
        )

    def prerequisites(self) -> PrerequisiteChecker:
        return PrerequisiteChecker(self.config, self.state_manager, self.credentials_available)

    def executor(self) -> StepExecutor:
        return StepExecutor(
            self.config,
            self.state_manager,
            self.provisioner(),
            self.configurator(),
            self.health(),
            snapshot_store_factory=self.store_for,
            sleeper=self.sleeper,
        )

    def controller(self, prompter: Prompter) -> PipelineController:
        return PipelineController(
            self.executor(),
            self.prerequisites(),
            prompter,
            self.state_manager,
        )

    def backups(self) -> BackupManager:
        return BackupManager(self.config, self.state_manager, self.host_for, self.store_for)

    def rollback(self) -> RollbackManager:
        return RollbackManager(
            self.config,
            self.state_manager,
            self.backups(),
            self.host_for,
            self.store_for,
            self.health(),
            sleeper=self.sleeper,
        )
