"""Configuration loading and validation."""

from .models import (
    AWSConfig,
    BackupConfig,
    ForgeConfig,
    HealthConfig,
    PathsConfig,
    PipelineConfig,
    ProjectConfig,
    RemoteConfig,
    SSHConfig,
)
from .parser import Config, ConfigValidationError

__all__ = [
    "Config",
    "ConfigValidationError",
    "ForgeConfig",
    "ProjectConfig",
    "AWSConfig",
    "PathsConfig",
    "SSHConfig",
    "RemoteConfig",
    "PipelineConfig",
    "BackupConfig",
    "HealthConfig",
]
