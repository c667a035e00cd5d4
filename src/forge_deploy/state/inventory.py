"""Ansible inventory rendered from pipeline state."""

from pathlib import Path

from forge_deploy.utils.errors import StateError
from .manager import atomic_write_text
from .models import PipelineState


def render_inventory(state: PipelineState, group: str, ssh_user: str, ssh_key_path: Path) -> str:
    """Render an INI inventory with the single target in ``group``."""
    return (
        f"[{group}]\n"
        f"{state.target_address} ansible_user={ssh_user} "
        f"ansible_ssh_private_key_file={ssh_key_path}\n"
        "\n"
        f"[{group}:vars]\n"
        "ansible_python_interpreter=/usr/bin/python3\n"
        "ansible_ssh_common_args='-o StrictHostKeyChecking=no'\n"
    )


def write_inventory(
    path: Path, state: PipelineState, group: str, ssh_user: str, ssh_key_path: Path
) -> Path:
    """Write the inventory file atomically and return its path.

    Raises:
        StateError: If the file cannot be written
    """
    path = Path(path)
    try:
        atomic_write_text(path, render_inventory(state, group, ssh_user, ssh_key_path))
    except OSError as e:
        raise StateError(f"Failed to write inventory file {path}: {e}", cause=e)
    return path
