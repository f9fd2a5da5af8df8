"""
Control State Dataclasses

Data structures for control readings and the commands that change them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from control_toggler.common.timestamp import parse_timestamp

# The only command topic the toggler issues or tracks
SET_CONTROL_PARAMETER_TOPIC = "SetControlParameter"


class CommandState(str, Enum):
    """Remote command lifecycle states"""
    QUEUING = "Queuing"
    QUEUED = "Queued"
    RECEIVED = "Received"
    EXECUTING = "Executing"
    COMPLETED = "Completed"
    DECLINED = "Declined"

    @classmethod
    def parse(cls, name: str | None) -> "CommandState | None":
        """Look up a state by its wire name; unknown names return None"""
        if not name:
            return None
        for state in cls:
            if state.value.lower() == str(name).lower():
                return state
        return None


# In-flight, not yet resolved
ACTIVE_STATES = frozenset({
    CommandState.QUEUING,
    CommandState.QUEUED,
    CommandState.RECEIVED,
    CommandState.EXECUTING,
})

# Terminal
FINISHED_STATES = frozenset({
    CommandState.COMPLETED,
    CommandState.DECLINED,
})


@dataclass
class CommandParameter:
    """One (name, value) command parameter"""
    name: str
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass
class Command:
    """
    A remote state-change request.

    By convention the first parameter names the control and carries the
    requested value.
    """
    id: Any
    created_at: datetime | None = None
    topic: str = SET_CONTROL_PARAMETER_TOPIC
    state: CommandState | None = None
    parameters: list[CommandParameter] = field(default_factory=list)
    device_id: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Command":
        """Load a Command from an API response object"""
        parameters = [
            CommandParameter(name=p.get("name"), value=p.get("value"))
            for p in data.get("parameters") or []
            if isinstance(p, dict)
        ]
        return cls(
            id=data.get("id"),
            created_at=parse_timestamp(data.get("created")),
            topic=data.get("topic", ""),
            state=CommandState.parse(data.get("state")),
            parameters=parameters,
            device_id=data.get("nodeId"),
        )

    @property
    def control_id(self) -> str | None:
        return self.parameters[0].name if self.parameters else None

    @property
    def value(self) -> Any:
        """The requested control value, as sent by the API"""
        return self.parameters[0].value if self.parameters else None

    @property
    def state_name(self) -> str | None:
        return self.state.value if self.state else None

    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    def is_finished(self) -> bool:
        return self.state in FINISHED_STATES

    def targets(self, control_id: str) -> bool:
        """True if this is a set-control-parameter command for control_id"""
        return (
            self.topic == SET_CONTROL_PARAMETER_TOPIC
            and self.control_id is not None
            and self.control_id == control_id
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created": self.created_at.isoformat() if self.created_at else None,
            "topic": self.topic,
            "state": self.state_name,
            "parameters": [p.to_dict() for p in self.parameters],
            "nodeId": self.device_id,
        }


@dataclass
class ControlReading:
    """A timestamped observation of a control's value"""
    created_at: datetime | None
    source_id: str
    value: Any = None
    device_id: int | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "ControlReading":
        """Load from a most-recent datum object ({created, sourceId, val, ...})"""
        properties = {
            k: v for k, v in data.items()
            if k not in ("created", "sourceId", "nodeId", "val")
        }
        return cls(
            created_at=parse_timestamp(data.get("created")),
            source_id=data.get("sourceId", ""),
            value=data.get("val"),
            device_id=data.get("nodeId"),
            properties=properties,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created_at.isoformat() if self.created_at else None,
            "sourceId": self.source_id,
            "nodeId": self.device_id,
            "val": self.value,
            **self.properties,
        }
