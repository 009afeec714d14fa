"""State persistence for managed resources."""

from .manager import StateManager
from .models import ResourceRecord, State

__all__ = ["ResourceRecord", "State", "StateManager"]
