"""
Human-readable reports of partially created or deleted stacks.
"""

from typing import Any, Dict, List

from ..exceptions import UpstreamFailure


def status_emoji(status: str) -> str:
    """Get emoji for resource status."""
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


def recommendations(resource_type: str, reason: str) -> List[str]:
    """Get recommendations based on failure reason."""
    tips = []

    if resource_type == "AWS::S3::Bucket" and (
        "BucketNotEmpty" in reason or "bucket is not empty" in reason.lower()
    ):
        tips.append("Empty the artifact bucket, then run apps:destroy again")

    if resource_type == "AWS::ECR::Repository" and "RepositoryNotEmpty" in reason:
        tips.append("Delete the images in the registry, then run apps:destroy again")

    if "AccessDenied" in reason or "is not authorized" in reason:
        tips.append("Check IAM permissions for CloudFormation")

    if "timeout" in reason.lower():
        tips.append("Operation timed out. Check resource logs for details.")

    return tips


def resource_report(resources: List[Dict[str, Any]]) -> List[str]:
    """One line per stack resource summary, failures followed by their reason."""
    lines = []
    for resource in resources:
        status = resource.get("ResourceStatus", "UNKNOWN")
        lines.append(
            f"  {status_emoji(status)} {resource.get('LogicalResourceId')} "
            f"({resource.get('ResourceType')}): {status}"
        )
        reason = resource.get("ResourceStatusReason")
        if reason and "FAILED" in status:
            lines.append(f"    → {reason}")
    return lines


def failure_report(error: UpstreamFailure) -> str:
    """Render an UpstreamFailure with the stack resources it carries."""
    report = [error.message]
    if error.resources:
        report.append("\nStack resources:")
        report.extend(resource_report(error.resources))

    tips: List[str] = []
    for resource in error.resources:
        for tip in recommendations(
            resource.get("ResourceType", ""), resource.get("ResourceStatusReason", "")
        ):
            if tip not in tips:
                tips.append(tip)
    if tips:
        report.append("\n💡 Recommendations:")
        report.extend(f"  {i}. {tip}" for i, tip in enumerate(tips, 1))

    return "\n".join(report)
