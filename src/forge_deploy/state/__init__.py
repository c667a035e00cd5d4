"""State management module for tracking the deployed target."""

from .inventory import render_inventory, write_inventory
from .manager import StateManager, atomic_write_text
from .models import PipelineState

__all__ = [
    "PipelineState",
    "StateManager",
    "atomic_write_text",
    "render_inventory",
    "write_inventory",
]
