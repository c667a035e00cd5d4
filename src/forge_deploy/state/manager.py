"""State manager for loading, saving, and clearing pipeline state."""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from forge_deploy.utils.errors import StateError, StateMissing
from forge_deploy.utils.logging import get_logger
from .models import PipelineState

logger = get_logger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a temporary sibling and a rename.

    Readers see either the previous file or the complete new one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_name, path)
    except BaseException:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


class StateManager:
    """Persists the current deployment's PipelineState.

    There is no locking: a single operator per deployment is assumed and
    the state file is only touched by one process at a time.
    """

    def __init__(self, state_path: str):
        """
        Initialize StateManager.

        Args:
            state_path: Path to the state file
        """
        self.state_path = Path(state_path)
        self._current_state: Optional[PipelineState] = None

    def exists(self) -> bool:
        """Check if state file exists."""
        return self.state_path.exists()

    def load(self) -> PipelineState:
        """
        Load state from file.

        Returns:
            PipelineState object

        Raises:
            StateMissing: If state file does not exist
            StateError: If state file is corrupted or invalid
        """
        if not self.state_path.exists():
            raise StateMissing(f"No pipeline state at {self.state_path}: run phase 1 first")

        try:
            with open(self.state_path, "r") as f:
                data = json.load(f)
            self._current_state = PipelineState.from_dict(data)
            return self._current_state
        except json.JSONDecodeError as e:
            raise StateError(f"Failed to parse state file {self.state_path}: {e}", cause=e)
        except ValidationError as e:
            raise StateError(f"Invalid state file {self.state_path}: {e}", cause=e)
        except OSError as e:
            raise StateError(f"Failed to read state file {self.state_path}: {e}", cause=e)

    def load_optional(self) -> Optional[PipelineState]:
        """Load state if it exists, otherwise return None."""
        if not self.exists():
            return None
        return self.load()

    def save(self, state: PipelineState) -> None:
        """
        Save state to file atomically.

        Args:
            state: PipelineState object to save

        Raises:
            StateError: If state cannot be saved
        """
        try:
            atomic_write_text(self.state_path, json.dumps(state.to_dict(), indent=2))
        except OSError as e:
            raise StateError(f"Failed to save state file {self.state_path}: {e}", cause=e)

        self._current_state = state
        logger.debug(
            f"Saved pipeline state (last completed step {state.last_completed_step})",
            extra={'target': state.target_address},
        )

    def record_step(self, step: int) -> PipelineState:
        """Mark ``step`` as the last successfully completed phase and persist."""
        state = self.load()
        updated = state.with_step(step)
        self.save(updated)
        return updated

    def clear(self) -> bool:
        """Remove the state file. Returns True if a file was removed."""
        self._current_state = None
        if not self.state_path.exists():
            return False
        try:
            self.state_path.unlink()
        except OSError as e:
            raise StateError(f"Failed to remove state file {self.state_path}: {e}", cause=e)
        logger.info(f"Cleared pipeline state at {self.state_path}")
        return True
