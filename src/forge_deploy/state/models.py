"""Pipeline state data model."""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class PipelineState(BaseModel):
    """Facts identifying the current deployment, persisted across invocations."""

    version: str = Field("1.0", description="State file format version")
    target_address: str = Field(..., description="Public address of the target instance")
    instance_id: str = Field(..., description="Provider identifier of the target instance")
    bucket_name: Optional[str] = Field(None, description="Object storage bucket for snapshots")
    ssh_command: Optional[str] = Field(None, description="Operator SSH command for the target")
    last_completed_step: int = Field(
        0, ge=0, le=4, description="Highest pipeline phase completed successfully"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow, description="Last update timestamp"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional facts")

    @property
    def app_url(self) -> str:
        return f"http://{self.target_address}"

    def with_step(self, step: int) -> "PipelineState":
        """Return a copy recording ``step`` as the last completed phase."""
        return self.model_copy(
            update={"last_completed_step": int(step), "updated_at": datetime.utcnow()}
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineState":
        """Create PipelineState from dictionary."""
        return cls.model_validate(data)

    def outputs(self) -> Dict[str, str]:
        """Operator-facing outputs, keyed by provisioning output name."""
        outputs = {
            "instance_public_ip": self.target_address,
            "instance_id": self.instance_id,
            "app_url": self.app_url,
        }
        if self.bucket_name:
            outputs["s3_bucket_name"] = self.bucket_name
        if self.ssh_command:
            outputs["ssh_command"] = self.ssh_command
        return outputs
