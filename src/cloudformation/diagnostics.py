"""
CloudFormation stack diagnostics and troubleshooting.
"""

from typing import Iterable, List

from .models import StackEvent


def status_emoji(status: str) -> str:
    """Get emoji for a stack or resource status."""
    if "COMPLETE" in status and "ROLLBACK" not in status:
        return "✅"
    elif "FAILED" in status:
        return "❌"
    elif "IN_PROGRESS" in status:
        return "🔄"
    elif "ROLLBACK" in status:
        return "↩️"
    else:
        return "•"


def failed_events(events: Iterable[StackEvent]) -> List[StackEvent]:
    """Events whose resource ended up in a *_FAILED state."""
    return [event for event in events if event.resource_status.endswith("_FAILED")]


def get_failure_recommendations(resource_type: str, reason: str) -> List[str]:
    """Get recommendations based on failure reason."""
    recommendations = []
    reason = reason or ""

    # S3 bucket issues
    if resource_type == "AWS::S3::Bucket":
        if "BucketNotEmpty" in reason or "not empty" in reason.lower():
            recommendations.append("Empty the S3 bucket before deleting the stack")
        elif "already exists" in reason.lower():
            recommendations.append(
                "S3 bucket name already exists. Choose a different name."
            )
    elif "already exists" in reason.lower():
        recommendations.append(
            f"A {resource_type or 'resource'} with the same name already exists"
        )

    # IAM permission issues
    if "AccessDenied" in reason or "is not authorized" in reason:
        recommendations.append("Check IAM permissions for CloudFormation")

    if "Requires capabilities" in reason:
        recommendations.append(
            "The template creates IAM resources. Acknowledge the required capabilities."
        )

    # VPC issues
    if resource_type.startswith("AWS::EC2::") and "DependencyViolation" in reason:
        recommendations.append(
            "VPC resources have dependencies. Check security groups and ENIs."
        )

    if "timeout" in reason.lower() or "timed out" in reason.lower():
        recommendations.append("Operation timed out. Check resource logs for details.")

    return recommendations


def summarize_failure(events: Iterable[StackEvent]) -> List[str]:
    """Collect de-duplicated recommendations for all failed events, in order."""
    recommendations: List[str] = []
    for event in failed_events(events):
        for recommendation in get_failure_recommendations(
            event.resource_type, event.reason or ""
        ):
            if recommendation not in recommendations:
                recommendations.append(recommendation)
    return recommendations
