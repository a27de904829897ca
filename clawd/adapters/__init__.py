"""Adapters between the agent loop and its front ends."""
from __future__ import annotations

from .events import LoopEvent, dict_to_event, event_to_dict

__all__ = ["LoopEvent", "dict_to_event", "event_to_dict"]
