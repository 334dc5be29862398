"""
Data models for CloudFormation stack lifecycle operations.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class StackStatus(Enum):
    """Stack status as reported by CloudFormation."""

    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    CREATE_FAILED = "CREATE_FAILED"
    ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    DELETE_FAILED = "DELETE_FAILED"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_ROLLBACK_IN_PROGRESS = "UPDATE_ROLLBACK_IN_PROGRESS"
    UPDATE_ROLLBACK_FAILED = "UPDATE_ROLLBACK_FAILED"
    UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS = (
        "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS"
    )
    UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
    REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"
    IMPORT_COMPLETE = "IMPORT_COMPLETE"
    IMPORT_ROLLBACK_IN_PROGRESS = "IMPORT_ROLLBACK_IN_PROGRESS"
    IMPORT_ROLLBACK_FAILED = "IMPORT_ROLLBACK_FAILED"
    IMPORT_ROLLBACK_COMPLETE = "IMPORT_ROLLBACK_COMPLETE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "StackStatus":
        """Parse a provider status string, mapping anything unrecognized to UNKNOWN."""
        if raw is None:
            return cls.UNKNOWN
        try:
            return cls(raw)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class StackTemplate:
    """Template body plus ordered parameter values."""

    body: str
    parameters: Dict[str, str] = field(default_factory=dict)

    def to_parameters(self) -> Optional[List[Dict[str, str]]]:
        """Convert parameters to CloudFormation format, or None when there are none."""
        if not self.parameters:
            return None
        return [
            {"ParameterKey": key, "ParameterValue": value}
            for key, value in self.parameters.items()
        ]


@dataclass(frozen=True)
class StackSnapshot:
    """Point-in-time read of a stack."""

    name: str
    status: StackStatus
    raw_status: str
    status_reason: Optional[str] = None
    outputs: Tuple[Tuple[str, str], ...] = ()
    stack_id: Optional[str] = None

    @classmethod
    def from_response(cls, stack: Dict) -> "StackSnapshot":
        """Build a snapshot from a DescribeStacks entry."""
        raw_status = stack.get("StackStatus", "")
        return cls(
            name=stack["StackName"],
            status=StackStatus.parse(raw_status),
            raw_status=raw_status,
            status_reason=stack.get("StackStatusReason"),
            outputs=tuple(
                (output["OutputKey"], output.get("OutputValue", ""))
                for output in stack.get("Outputs", [])
            ),
            stack_id=stack.get("StackId"),
        )

    def output_map(self) -> Dict[str, str]:
        return dict(self.outputs)

    def describe(self) -> str:
        """One-line description used in progress and warning messages."""
        text = f"{self.name} [{self.raw_status}]"
        if self.status_reason:
            text += f" {self.status_reason}"
        return text


@dataclass(frozen=True)
class StackEvent:
    """A single entry from a stack's event history."""

    event_id: str
    logical_id: str
    resource_type: str
    resource_status: str
    reason: Optional[str] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_response(cls, event: Dict) -> "StackEvent":
        return cls(
            event_id=event["EventId"],
            logical_id=event.get("LogicalResourceId", ""),
            resource_type=event.get("ResourceType", ""),
            resource_status=event.get("ResourceStatus", ""),
            reason=event.get("ResourceStatusReason"),
            timestamp=event.get("Timestamp"),
        )

    def format(self) -> str:
        return f"{self.event_id} - {self.resource_status} - {self.reason}"


class Outcome(Enum):
    """Terminal state of a create or delete operation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LifecycleResult:
    """Result of a create or delete operation."""

    outcome: Outcome
    outputs: Optional[Dict[str, str]] = None
    reason: Optional[str] = None
    status: Optional[str] = None

    @property
    def success(self) -> bool:
        """Check if the operation was successful."""
        return self.outcome == Outcome.SUCCEEDED


@dataclass(frozen=True)
class WaitConfig:
    """
    How long to wait for a stack operation, in seconds.

    A timeout of 0 polls exactly once.
    """

    timeout: float
    interval: float = 10.0

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.interval}")
        if self.timeout < 0:
            raise ValueError(f"Timeout must not be negative, got {self.timeout}")
