"""
Control Toggler - reconciliation core

Responsibilities:
- Decide whether a desired value needs a cancel, a new command, or nothing
- Merge the latest reading and command state into one current value
- Poll the remote state at a rate that adapts to pending changes
"""

from .state import (
    ACTIVE_STATES,
    FINISHED_STATES,
    SET_CONTROL_PARAMETER_TOPIC,
    Command,
    CommandParameter,
    CommandState,
    ControlReading,
)
from .merge import coerce_number, merge_value, values_equal
from .toggler import ControlCallback, ControlToggler

__all__ = [
    "ACTIVE_STATES",
    "FINISHED_STATES",
    "SET_CONTROL_PARAMETER_TOPIC",
    "Command",
    "CommandParameter",
    "CommandState",
    "ControlReading",
    "coerce_number",
    "merge_value",
    "values_equal",
    "ControlCallback",
    "ControlToggler",
]
