"""
CloudFormation stack lifecycle management.
"""

from .exceptions import (
    ProviderUnavailable,
    RequestRejected,
    StackLifecycleError,
    StackNotFound,
)
from .models import (
    LifecycleResult,
    Outcome,
    StackEvent,
    StackSnapshot,
    StackStatus,
    StackTemplate,
    WaitConfig,
)
from .poller import WaitCondition, WaitResult, wait_until
from .provider import CloudFormationProvider, ProviderClient
from .stack_manager import StackLifecycleManager

__all__ = [
    "CloudFormationProvider",
    "LifecycleResult",
    "Outcome",
    "ProviderClient",
    "ProviderUnavailable",
    "RequestRejected",
    "StackEvent",
    "StackLifecycleError",
    "StackLifecycleManager",
    "StackNotFound",
    "StackSnapshot",
    "StackStatus",
    "StackTemplate",
    "WaitCondition",
    "WaitConfig",
    "WaitResult",
    "wait_until",
]
