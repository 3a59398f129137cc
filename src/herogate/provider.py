"""
AWS API surface used by the control plane.

Every call returns plain boto3 records; botocore errors are translated into
the herogate error taxonomy here so that callers never see ClientError.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import boto3
from botocore.exceptions import ClientError, WaiterError

from .exceptions import (
    MalformedStateError,
    NotFoundError,
    TransientAbsence,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most this many keys per request
DELETE_OBJECTS_BATCH = 1000


def error_code(error: ClientError) -> str:
    """Extract the AWS error code from a ClientError."""
    return str(error.response.get("Error", {}).get("Code", ""))


def _is_stack_missing(error: ClientError) -> bool:
    return "does not exist" in str(error)


class CloudProvider:
    """Thin wrapper over the boto3 clients herogate talks to."""

    def __init__(self, region: Optional[str] = None, profile: Optional[str] = None):
        """
        Initialize the provider.

        Args:
            region: AWS region
            profile: AWS profile to use
        """
        self.region = region or "us-east-1"
        self.profile = profile

        session_args = {"region_name": self.region}
        if profile:
            session_args["profile_name"] = profile
        self._session = boto3.Session(**session_args)
        self._clients: Dict[str, Any] = {}

    def _get_client(self, service: str) -> Any:
        """Get or create AWS client for a service."""
        if service not in self._clients:
            self._clients[service] = self._session.client(service)
        return self._clients[service]

    @property
    def cloudformation(self):
        return self._get_client("cloudformation")

    @property
    def s3(self):
        return self._get_client("s3")

    @property
    def ecr(self):
        return self._get_client("ecr")

    @property
    def ecs(self):
        return self._get_client("ecs")

    @property
    def codebuild(self):
        return self._get_client("codebuild")

    @property
    def codepipeline(self):
        return self._get_client("codepipeline")

    @property
    def logs(self):
        return self._get_client("logs")

    # CloudFormation

    def describe_stack(self, stack_name: str) -> Dict[str, Any]:
        """Describe a single stack. Raises NotFoundError if it does not exist."""
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
        except ClientError as e:
            if _is_stack_missing(e):
                raise NotFoundError(
                    f"Stack {stack_name} does not exist", app_name=stack_name
                ) from e
            raise UpstreamFailure(
                f"Failed to describe stack {stack_name}: {e}", app_name=stack_name
            ) from e

        stacks = response.get("Stacks") or []
        if not stacks:
            raise NotFoundError(f"Stack {stack_name} does not exist", app_name=stack_name)
        return stacks[0]

    def list_stacks(self) -> List[Dict[str, Any]]:
        """Describe every stack in the region."""
        stacks: List[Dict[str, Any]] = []
        try:
            paginator = self.cloudformation.get_paginator("describe_stacks")
            for page in paginator.paginate():
                stacks.extend(page.get("Stacks", []))
        except ClientError as e:
            raise UpstreamFailure(f"Failed to describe stacks: {e}") from e
        return stacks

    def create_stack(
        self,
        stack_name: str,
        template_body: str,
        tags: Dict[str, str],
        timeout_minutes: int,
    ) -> None:
        try:
            self.cloudformation.create_stack(
                StackName=stack_name,
                TemplateBody=template_body,
                TimeoutInMinutes=timeout_minutes,
                Capabilities=["CAPABILITY_NAMED_IAM"],
                Tags=[{"Key": k, "Value": v} for k, v in tags.items()],
            )
        except ClientError as e:
            raise UpstreamFailure(
                f"Failed to request for creating stack: {e}", app_name=stack_name
            ) from e

    def update_stack(self, stack_name: str, template_body: str) -> bool:
        """
        Replace the stack template.

        Returns:
            False when CloudFormation reports there is nothing to update.
        """
        try:
            self.cloudformation.update_stack(
                StackName=stack_name,
                TemplateBody=template_body,
                Capabilities=["CAPABILITY_NAMED_IAM"],
            )
        except ClientError as e:
            if "No updates are to be performed" in str(e):
                logger.info(f"Stack {stack_name} is already up to date")
                return False
            if _is_stack_missing(e):
                raise NotFoundError(
                    f"Stack {stack_name} does not exist", app_name=stack_name
                ) from e
            raise UpstreamFailure(
                f"Failed to request for updating stack: {e}", app_name=stack_name
            ) from e
        return True

    def delete_stack(self, stack_name: str) -> None:
        try:
            self.cloudformation.delete_stack(StackName=stack_name)
        except ClientError as e:
            raise UpstreamFailure(
                f"Failed to request for deleting stack: {e}", app_name=stack_name
            ) from e

    def wait_for_stack(self, stack_name: str, waiter_name: str) -> bool:
        """
        Block until the stack reaches a terminal state for `waiter_name`.

        Returns:
            True if the waiter succeeded, False if the stack ended up in a
            failure state or the waiter gave up.
        """
        waiter = self.cloudformation.get_waiter(waiter_name)
        try:
            waiter.wait(
                StackName=stack_name, WaiterConfig={"Delay": 15, "MaxAttempts": 240}
            )
        except WaiterError as e:
            logger.warning(f"Waiting for {waiter_name} on {stack_name} failed: {e}")
            return False
        return True

    def get_template(self, stack_name: str) -> Union[str, Dict[str, Any]]:
        """
        Get the stack's original template body.

        boto3 hands back JSON templates already decoded, so this may be a dict.
        """
        try:
            response = self.cloudformation.get_template(
                StackName=stack_name, TemplateStage="Original"
            )
        except ClientError as e:
            if _is_stack_missing(e):
                raise NotFoundError(
                    f"Stack {stack_name} does not exist", app_name=stack_name
                ) from e
            raise UpstreamFailure(f"Failed to get stack template: {e}") from e

        if "TemplateBody" not in response:
            raise MalformedStateError(
                f"Template of {stack_name} has no body", path="TemplateBody"
            )
        return response["TemplateBody"]

    def list_stack_resources(self, stack_name: str) -> List[Dict[str, Any]]:
        """List resource summaries of a stack."""
        summaries: List[Dict[str, Any]] = []
        try:
            paginator = self.cloudformation.get_paginator("list_stack_resources")
            for page in paginator.paginate(StackName=stack_name):
                summaries.extend(page.get("StackResourceSummaries", []))
        except ClientError as e:
            if _is_stack_missing(e):
                raise NotFoundError(
                    f"Stack {stack_name} does not exist", app_name=stack_name
                ) from e
            raise UpstreamFailure(f"Failed to get stack resources: {e}") from e
        return summaries

    def get_physical_resource_id(self, stack_name: str, logical_id: str) -> str:
        """Resolve a logical resource id of a stack to its physical id."""
        try:
            response = self.cloudformation.describe_stack_resource(
                StackName=stack_name, LogicalResourceId=logical_id
            )
        except ClientError as e:
            raise NotFoundError(
                f"Resource {logical_id} not found in {stack_name}: {e}",
                app_name=stack_name,
            ) from e

        physical_id = response.get("StackResourceDetail", {}).get("PhysicalResourceId")
        if not physical_id:
            raise NotFoundError(
                f"Resource {logical_id} of {stack_name} has no physical id",
                app_name=stack_name,
            )
        return physical_id

    # S3 and ECR

    def list_object_keys(self, bucket: str) -> List[str]:
        keys: List[str] = []
        try:
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except ClientError as e:
            if error_code(e) == "NoSuchBucket":
                raise NotFoundError(f"Bucket {bucket} not found") from e
            raise UpstreamFailure(f"Failed to list S3 objects of {bucket}: {e}") from e
        return keys

    def delete_objects(self, bucket: str, keys: List[str]) -> None:
        try:
            for start in range(0, len(keys), DELETE_OBJECTS_BATCH):
                batch = keys[start:start + DELETE_OBJECTS_BATCH]
                self.s3.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in batch]},
                )
        except ClientError as e:
            raise UpstreamFailure(f"Failed to delete S3 objects of {bucket}: {e}") from e

    def delete_bucket(self, bucket: str) -> None:
        try:
            self.s3.delete_bucket(Bucket=bucket)
        except ClientError as e:
            raise UpstreamFailure(f"Failed to delete S3 bucket {bucket}: {e}") from e

    def force_delete_repository(self, repository: str) -> None:
        """Delete an ECR repository even if it still holds images."""
        try:
            self.ecr.delete_repository(repositoryName=repository, force=True)
        except ClientError as e:
            if error_code(e) == "RepositoryNotFoundException":
                raise NotFoundError(f"Repository {repository} not found") from e
            raise UpstreamFailure(
                f"Failed to delete ECR repository {repository}: {e}"
            ) from e

    # ECS

    def describe_service(self, cluster: str, service: str) -> Dict[str, Any]:
        """
        Describe an ECS service.

        A missing cluster or service is a TransientAbsence: right after
        provisioning ECS may not know about it yet.
        """
        try:
            response = self.ecs.describe_services(cluster=cluster, services=[service])
        except ClientError as e:
            if error_code(e) in (
                "ClusterNotFoundException",
                "ServiceNotFoundException",
            ):
                raise TransientAbsence(f"Service {service} not found: {e}") from e
            raise UpstreamFailure(f"Failed to get the ECS service: {e}") from e

        services = response.get("services") or []
        if not services:
            raise TransientAbsence(f"Service {service} not found in cluster {cluster}")
        return services[0]

    def describe_task_definition(self, task_definition: str) -> Dict[str, Any]:
        try:
            response = self.ecs.describe_task_definition(taskDefinition=task_definition)
        except ClientError as e:
            raise UpstreamFailure(
                f"Failed to get the ECS task definition {task_definition}: {e}"
            ) from e
        if "taskDefinition" not in response:
            raise MalformedStateError(
                f"Task definition {task_definition} missing from response",
                path="taskDefinition",
            )
        return response["taskDefinition"]

    # CodeBuild and CloudWatch Logs

    def list_build_ids(self, project: str) -> List[str]:
        """List build ids of a project, most recent first."""
        try:
            response = self.codebuild.list_builds_for_project(
                projectName=project, sortOrder="DESCENDING"
            )
        except ClientError as e:
            if error_code(e) == "ResourceNotFoundException":
                raise TransientAbsence(f"Build project {project} not found") from e
            raise UpstreamFailure(f"Failed to list builds: {e}") from e
        return list(response.get("ids", []))

    def get_build(self, build_id: str) -> Dict[str, Any]:
        try:
            response = self.codebuild.batch_get_builds(ids=[build_id])
        except ClientError as e:
            raise UpstreamFailure(f"Failed to get the build {build_id}: {e}") from e
        builds = response.get("builds") or []
        if not builds:
            raise MalformedStateError(f"Build {build_id} missing from response", path="builds")
        return builds[0]

    def get_log_events(self, group: str, stream: str) -> List[Dict[str, Any]]:
        """Fetch every buffered event of a log stream, oldest first."""
        events: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {
            "logGroupName": group,
            "logStreamName": stream,
            "startFromHead": True,
        }
        while True:
            try:
                response = self.logs.get_log_events(**params)
            except ClientError as e:
                if error_code(e) == "ResourceNotFoundException":
                    raise TransientAbsence(f"Log stream {group}/{stream} not found") from e
                raise UpstreamFailure(f"Failed to get the build logs: {e}") from e

            events.extend(response.get("events", []))
            token = response.get("nextForwardToken")
            # The same token coming back marks the end of the stream
            if not token or token == params.get("nextToken"):
                break
            params["nextToken"] = token
        return events

    # CodePipeline

    def list_pipeline_execution_ids(self, pipeline: str) -> List[str]:
        """List pipeline execution ids, most recent first."""
        try:
            response = self.codepipeline.list_pipeline_executions(pipelineName=pipeline)
        except ClientError as e:
            if error_code(e) == "PipelineNotFoundException":
                raise TransientAbsence(f"Pipeline {pipeline} not found") from e
            raise UpstreamFailure(f"Failed to get the pipeline executions: {e}") from e
        return [
            summary["pipelineExecutionId"]
            for summary in response.get("pipelineExecutionSummaries", [])
        ]

    def get_pipeline_stage_states(self, pipeline: str) -> List[Dict[str, Any]]:
        try:
            response = self.codepipeline.get_pipeline_state(name=pipeline)
        except ClientError as e:
            if error_code(e) == "PipelineNotFoundException":
                raise TransientAbsence(f"Pipeline {pipeline} not found") from e
            raise UpstreamFailure(f"Failed to get the pipeline stage states: {e}") from e
        return list(response.get("stageStates", []))
