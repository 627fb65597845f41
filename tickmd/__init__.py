"""Multi-agent task coordination through a shared TICK.md file."""

from tickmd.core.models import Agent, Task, TickFile
from tickmd.operations import TickProject
from tickmd.tick_file import parse_tick_file, serialize_tick_file

__all__ = [
    "Agent",
    "Task",
    "TickFile",
    "TickProject",
    "parse_tick_file",
    "serialize_tick_file",
]
