"""
Exceptions raised by the CloudFormation provider client.
"""

from typing import Optional


class StackLifecycleError(Exception):
    """
    Base exception for stack lifecycle errors.

    Carries the stack name and the provider's reason text, so callers
    can report it verbatim.
    """

    def __init__(self, stack_name: str, reason: str, code: Optional[str] = None):
        self.stack_name = stack_name
        self.reason = reason
        self.code = code
        super().__init__(f"Stack {stack_name}: {reason}")


class RequestRejected(StackLifecycleError):
    """Raised when a create or delete request is refused by the provider."""

    pass


class ProviderUnavailable(StackLifecycleError):
    """Raised when a describe or list call fails while polling."""

    pass


class StackNotFound(StackLifecycleError):
    """Raised when the stack does not exist."""

    def __init__(self, stack_name: str, reason: Optional[str] = None):
        super().__init__(
            stack_name, reason or f"Stack {stack_name} does not exist", "ValidationError"
        )
