"""
Provider client used by the lifecycle manager, with a boto3 implementation.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import ProviderUnavailable, RequestRejected, StackNotFound
from .models import StackEvent, StackSnapshot, StackStatus, StackTemplate

logger = logging.getLogger(__name__)


@runtime_checkable
class ProviderClient(Protocol):
    """
    Operations the lifecycle manager needs from the provisioning API.

    Implementations raise RequestRejected from create/delete,
    StackNotFound from describe_stack when the stack is absent, and
    ProviderUnavailable for any other describe/list failure.
    """

    def create_stack(self, stack_name: str, template: StackTemplate) -> None:
        ...

    def delete_stack(self, stack_name: str) -> None:
        ...

    def describe_stack(self, stack_name: str) -> StackSnapshot:
        ...

    def list_stacks(self) -> List[StackSnapshot]:
        ...

    def describe_stack_events(self, stack_name: str) -> List[StackEvent]:
        ...


def _error_details(error: Exception) -> Dict[str, str]:
    """Extract code and message from a botocore error."""
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return {
            "code": details.get("Code", "Unknown"),
            "message": details.get("Message", str(error)),
        }
    return {"code": type(error).__name__, "message": str(error)}


class CloudFormationProvider:
    """ProviderClient backed by the AWS CloudFormation API."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        client: Any = None,
        capabilities: Optional[List[str]] = None,
        tags: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the provider.

        Args:
            region: AWS region
            profile: AWS profile to use
            client: Pre-built CloudFormation client (skips session setup)
            capabilities: Capabilities acknowledged on create
            tags: Tags applied to created stacks
        """
        self.region = region
        self.profile = profile
        self.capabilities = capabilities or []
        self.tags = tags or {}

        if client is None:
            session_args = {}
            if region:
                session_args["region_name"] = region
            if profile:
                session_args["profile_name"] = profile

            session = boto3.Session(**session_args)
            client = session.client("cloudformation")
        self.cloudformation = client

    def create_stack(self, stack_name: str, template: StackTemplate) -> None:
        """Submit a create request."""
        request: Dict[str, Any] = {
            "StackName": stack_name,
            "TemplateBody": template.body,
        }
        parameters = template.to_parameters()
        if parameters:
            request["Parameters"] = parameters
        if self.capabilities:
            request["Capabilities"] = list(self.capabilities)
        if self.tags:
            request["Tags"] = [{"Key": k, "Value": v} for k, v in self.tags.items()]

        try:
            self.cloudformation.create_stack(**request)
        except (ClientError, BotoCoreError) as e:
            details = _error_details(e)
            raise RequestRejected(stack_name, details["message"], details["code"]) from e

    def delete_stack(self, stack_name: str) -> None:
        """Submit a delete request."""
        try:
            self.cloudformation.delete_stack(StackName=stack_name)
        except (ClientError, BotoCoreError) as e:
            details = _error_details(e)
            raise RequestRejected(stack_name, details["message"], details["code"]) from e

    def describe_stack(self, stack_name: str) -> StackSnapshot:
        """Describe a single stack by name."""
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
        except ClientError as e:
            details = _error_details(e)
            if "does not exist" in details["message"]:
                raise StackNotFound(stack_name, details["message"]) from e
            raise ProviderUnavailable(
                stack_name, details["message"], details["code"]
            ) from e
        except BotoCoreError as e:
            raise ProviderUnavailable(stack_name, str(e)) from e

        stacks = response.get("Stacks", [])
        if not stacks:
            raise StackNotFound(stack_name)
        return StackSnapshot.from_response(stacks[0])

    def list_stacks(self) -> List[StackSnapshot]:
        """List all live stacks in the account and region."""
        snapshots = []
        try:
            paginator = self.cloudformation.get_paginator("describe_stacks")
            for page in paginator.paginate():
                for stack in page.get("Stacks", []):
                    snapshot = StackSnapshot.from_response(stack)
                    # Deleted stacks can linger in the listing for a while
                    if snapshot.status != StackStatus.DELETE_COMPLETE:
                        snapshots.append(snapshot)
        except (ClientError, BotoCoreError) as e:
            details = _error_details(e)
            raise ProviderUnavailable("*", details["message"], details["code"]) from e

        return snapshots

    def describe_stack_events(self, stack_name: str) -> List[StackEvent]:
        """Get a stack's events, oldest first."""
        events = []
        try:
            paginator = self.cloudformation.get_paginator("describe_stack_events")
            for page in paginator.paginate(StackName=stack_name):
                for event in page.get("StackEvents", []):
                    events.append(StackEvent.from_response(event))
        except (ClientError, BotoCoreError) as e:
            details = _error_details(e)
            raise ProviderUnavailable(
                stack_name, details["message"], details["code"]
            ) from e

        logger.debug("Fetched %d event(s) for %s", len(events), stack_name)
        events.reverse()
        return events
