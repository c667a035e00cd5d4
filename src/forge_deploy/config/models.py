"""Pydantic models for configuration schema."""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class ProjectConfig(BaseModel):
    """Project identity."""

    name: str = Field("qr-forge", description="Project name")
    app_name: str = Field(
        "qr-forge", pattern=r"^[a-z0-9][a-z0-9-]*$", description="Application name used in snapshot keys"
    )


class AWSConfig(BaseModel):
    """AWS session settings."""

    profile: Optional[str] = None
    region: Optional[str] = None


class PathsConfig(BaseModel):
    """Local paths used by the orchestrator, relative to the working directory."""

    terraform_dir: str = "terraform"
    ansible_dir: str = "ansible"
    app_source_dir: str = "app"
    state_dir: str = ".forge/state"
    work_dir: str = ".forge/tmp"
    log_dir: str = ".forge/logs"


class SSHConfig(BaseModel):
    """SSH access to the target."""

    user: str = "ubuntu"
    key_path: str = "terraform/qr-forge.pem"
    connect_timeout: int = Field(5, ge=1, le=120)


class RemoteConfig(BaseModel):
    """Layout of the application on the target host."""

    app_root: str = "/opt/qr-forge"
    backup_paths: List[str] = Field(default_factory=lambda: ["docker-compose.yml", "app"])
    owner: str = "ubuntu"
    compose_command: str = "docker-compose"
    runtime_service: str = "docker"
    transient_dir: str = "/tmp"

    @field_validator("app_root")
    @classmethod
    def validate_app_root(cls, v: str) -> str:
        """Application root must be an absolute path below /."""
        v = v.rstrip("/")
        if not v.startswith("/") or v.count("/") < 2:
            raise ValueError("app_root must be an absolute path at least two levels deep")
        return v

    @field_validator("backup_paths")
    @classmethod
    def validate_backup_paths(cls, v: List[str]) -> List[str]:
        """Backup paths are relative to app_root and must not escape it."""
        if not v:
            raise ValueError("at least one backup path is required")
        for path in v:
            if path.startswith("/") or ".." in path.split("/"):
                raise ValueError(f"backup path must be relative to app_root: {path}")
        return v


class PipelineConfig(BaseModel):
    """Pipeline phase settings."""

    settle_seconds: int = Field(60, ge=0, description="Wait after provisioning before contact")
    inventory_group: str = "qr_forge_servers"
    configure_playbooks: List[str] = Field(
        default_factory=lambda: ["playbooks/01-install-docker.yml"]
    )
    deploy_playbooks: List[str] = Field(
        default_factory=lambda: ["playbooks/03-deploy-app.yml"]
    )
    command_timeout: int = Field(3600, ge=1)


class BackupConfig(BaseModel):
    """Snapshot storage settings."""

    prefix: str = Field("backups/", pattern=r"^[A-Za-z0-9._-]+/$")
    retention_days: int = Field(30, ge=1)
    restore_settle_seconds: int = Field(10, ge=0)


class HealthConfig(BaseModel):
    """Health check settings."""

    usage_threshold: int = Field(80, ge=1, le=100, description="Unhealthy at or above this percent")
    liveness_path: str = "/health"
    liveness_body: str = "healthy"
    http_timeout: float = Field(5.0, gt=0)
    ping_timeout: int = Field(2, ge=1)


class ForgeConfig(BaseModel):
    """Complete configuration document."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
