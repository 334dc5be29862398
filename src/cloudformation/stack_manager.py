"""
CloudFormation stack lifecycle operations.
"""

import logging
import sys
import threading
from typing import List, Optional, TextIO

from .diagnostics import status_emoji, summarize_failure
from .exceptions import RequestRejected, StackLifecycleError
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
from .provider import ProviderClient

logger = logging.getLogger(__name__)


class StackLifecycleManager:
    """
    Create and delete a stack, waiting for it to settle.

    Every call returns a LifecycleResult; provider errors are reported
    through the result rather than raised. Progress lines go to the
    ``progress`` stream, which defaults to stdout.
    """

    def __init__(self, provider: ProviderClient, progress: Optional[TextIO] = None):
        """
        Initialize lifecycle manager.

        Args:
            provider: Client for the provisioning API
            progress: Stream receiving human-readable progress lines
        """
        self.provider = provider
        self.progress = progress if progress is not None else sys.stdout

    def _emit(self, message: str) -> None:
        print(message, file=self.progress, flush=True)

    def create(
        self,
        stack_name: str,
        template: StackTemplate,
        config: WaitConfig,
        cancel: Optional[threading.Event] = None,
    ) -> LifecycleResult:
        """
        Create a stack and wait until it leaves CREATE_IN_PROGRESS.

        Args:
            stack_name: Name of the stack to create
            template: Template body and parameters
            config: Timeout and poll interval
            cancel: Event that stops the wait early when set

        Returns:
            LifecycleResult with the stack outputs on success
        """
        self._emit(f"🏗️  Creating CloudFormation stack: {stack_name}")

        try:
            self.provider.create_stack(stack_name, template)
        except RequestRejected as e:
            self._emit(f"❌ Failed to create stack: {stack_name}. Reason: {e.reason}")
            return LifecycleResult(Outcome.REJECTED, reason=e.reason)

        try:
            waited = wait_until(
                lambda: self._describe(stack_name),
                lambda snapshot: snapshot.status != StackStatus.CREATE_IN_PROGRESS,
                config,
                cancel,
            )
        except StackLifecycleError as e:
            logger.error("Polling stack %s failed: %s", stack_name, e)
            result = LifecycleResult(Outcome.FAILED, reason=e.reason)
        else:
            result = self._create_result(stack_name, waited, config)

        events = self._print_stack_events(stack_name)
        if result.outcome == Outcome.FAILED and events:
            for recommendation in summarize_failure(events):
                self._emit(f"💡 {recommendation}")

        if result.success:
            self._emit(f"✅ Successfully created stack: {stack_name}")
        else:
            self._emit(f"❌ Failed to create stack: {stack_name}. Reason: {result.reason}")
        return result

    def delete(
        self,
        stack_name: str,
        config: WaitConfig,
        cancel: Optional[threading.Event] = None,
    ) -> LifecycleResult:
        """
        Delete a stack and wait until it no longer shows up in the stack listing.

        A stack that reaches DELETE_FAILED is reported as failed straight away.
        """
        self._emit(f"🗑️  Deleting CloudFormation stack: {stack_name}")

        try:
            self.provider.delete_stack(stack_name)
        except RequestRejected as e:
            self._emit(f"❌ Failed to delete stack: {stack_name}. Reason: {e.reason}")
            return LifecycleResult(Outcome.REJECTED, reason=e.reason)

        try:
            waited = wait_until(
                lambda: self._find_in_listing(stack_name),
                lambda snapshot: snapshot is None
                or snapshot.status == StackStatus.DELETE_FAILED,
                config,
                cancel,
            )
        except StackLifecycleError as e:
            logger.error("Polling stack %s failed: %s", stack_name, e)
            result = LifecycleResult(Outcome.FAILED, reason=e.reason)
        else:
            result = self._delete_result(stack_name, waited, config)

        if result.outcome == Outcome.FAILED:
            for recommendation in summarize_failure(self._print_stack_events(stack_name)):
                self._emit(f"💡 {recommendation}")

        if result.success:
            self._emit(f"✅ CloudFormation stack: {stack_name} deleted successfully")
        else:
            self._emit(f"❌ Failed to delete stack: {stack_name}. Reason: {result.reason}")
        return result

    def _describe(self, stack_name: str) -> StackSnapshot:
        snapshot = self.provider.describe_stack(stack_name)
        self._emit(f"  {status_emoji(snapshot.raw_status)} {snapshot.describe()}")
        return snapshot

    def _find_in_listing(self, stack_name: str) -> Optional[StackSnapshot]:
        for snapshot in self.provider.list_stacks():
            if snapshot.name == stack_name:
                self._emit(f"  {status_emoji(snapshot.raw_status)} {snapshot.describe()}")
                return snapshot

        self._emit(f"  ✅ {stack_name} no longer listed")
        return None

    def _create_result(
        self,
        stack_name: str,
        waited: WaitResult[StackSnapshot],
        config: WaitConfig,
    ) -> LifecycleResult:
        snapshot = waited.value
        status = snapshot.raw_status if snapshot else None

        if waited.condition == WaitCondition.TIMEOUT:
            self._warn_left_behind(stack_name, snapshot, "did not finish creating")
            return LifecycleResult(
                Outcome.TIMED_OUT,
                reason=f"Stack {stack_name} was not created within {config.timeout:g} seconds",
                status=status,
            )

        if waited.condition == WaitCondition.CANCELLED:
            self._warn_left_behind(stack_name, snapshot, "creation was interrupted")
            return LifecycleResult(
                Outcome.CANCELLED,
                reason=f"Waiting for stack {stack_name} was cancelled",
                status=status,
            )

        if snapshot.status == StackStatus.CREATE_COMPLETE:
            return LifecycleResult(
                Outcome.SUCCEEDED, outputs=snapshot.output_map(), status=status
            )

        if snapshot.status == StackStatus.UNKNOWN:
            reason = f"Unrecognized stack status: {snapshot.raw_status}"
            if snapshot.status_reason:
                reason += f" ({snapshot.status_reason})"
        else:
            reason = snapshot.status_reason or snapshot.raw_status
        return LifecycleResult(Outcome.FAILED, reason=reason, status=status)

    def _delete_result(
        self,
        stack_name: str,
        waited: WaitResult[Optional[StackSnapshot]],
        config: WaitConfig,
    ) -> LifecycleResult:
        snapshot = waited.value

        if waited.condition == WaitCondition.TIMEOUT:
            self._warn_left_behind(stack_name, snapshot, "is still being deleted")
            return LifecycleResult(
                Outcome.TIMED_OUT,
                reason=f"Stack {stack_name} was not deleted within {config.timeout:g} seconds",
                status=snapshot.raw_status if snapshot else None,
            )

        if waited.condition == WaitCondition.CANCELLED:
            self._warn_left_behind(stack_name, snapshot, "deletion was interrupted")
            return LifecycleResult(
                Outcome.CANCELLED,
                reason=f"Waiting for stack {stack_name} was cancelled",
                status=snapshot.raw_status if snapshot else None,
            )

        if snapshot is None:
            return LifecycleResult(Outcome.SUCCEEDED)

        return LifecycleResult(
            Outcome.FAILED,
            reason=snapshot.status_reason or snapshot.raw_status,
            status=snapshot.raw_status,
        )

    def _warn_left_behind(
        self, stack_name: str, snapshot: Optional[StackSnapshot], what: str
    ) -> None:
        """Tell the operator the stack may still exist remotely."""
        message = (
            f"⚠️  Stack {stack_name} {what}. It may still exist and continue to "
            "incur cost. Check your AWS account to ensure you are not charged for it."
        )
        self._emit(message)
        if snapshot is not None:
            self._emit(f"⚠️  Stack details: {snapshot.describe()}")
        logger.warning("Stack %s %s and may still exist", stack_name, what)

    def _print_stack_events(self, stack_name: str) -> List[StackEvent]:
        """Write the stack's events to the progress stream."""
        try:
            events = self.provider.describe_stack_events(stack_name)
        except StackLifecycleError as e:
            logger.warning("Could not retrieve events for stack %s: %s", stack_name, e)
            self._emit(f"⚠️  Could not retrieve stack events: {e.reason}")
            return []

        if events:
            self._emit(f"📅 Stack events for {stack_name}:")
        for event in events:
            self._emit(event.format())
        return events
