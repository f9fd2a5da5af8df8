"""
Control Toggler

Keeps track of, and changes, a remote switch-like control whose changes
are applied through an asynchronous command queue.
"""

# toggler first: the API clients build on toggler.state
from .toggler import (
    Command,
    CommandParameter,
    CommandState,
    ControlReading,
    ControlToggler,
    merge_value,
)
from .api import AuthorizationV2Builder, CommandApi, ReadingApi

__version__ = "0.3.0"

__all__ = [
    "AuthorizationV2Builder",
    "CommandApi",
    "ReadingApi",
    "Command",
    "CommandParameter",
    "CommandState",
    "ControlReading",
    "ControlToggler",
    "merge_value",
]
