"""
Application stack lifecycle: create, destroy, progress and queries.
"""

import logging
import re
import threading
from typing import Any, Callable, Dict, List, Optional

from ..config import HerogateConfig, get_config
from ..exceptions import (
    HerogateError,
    MalformedStateError,
    NameTakenError,
    NotFoundError,
    TransientAbsence,
    UpstreamFailure,
)
from ..models import AppInfo, Application, AppState, Container, StackStatus
from ..provider import CloudProvider
from .blueprint import PLATFORM_VERSION_TAG, Blueprint, progress_percent
from .progress import run_with_progress

logger = logging.getLogger(__name__)

APP_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z-0-9_\-]+[a-z0-9]$")

# Resources the stack cannot delete by itself while they hold data
ARTIFACT_STORE_RESOURCE = "HerogatePipelineArtifactStore"
REGISTRY_RESOURCE = "HerogateRegistry"


class StackManager:
    """Manage the CloudFormation stacks backing herogate applications."""

    def __init__(
        self,
        provider: Optional[CloudProvider] = None,
        blueprint: Optional[Blueprint] = None,
        config: Optional[HerogateConfig] = None,
    ):
        """
        Initialize stack manager.

        Args:
            provider: Cloud provider (built from config if not provided)
            blueprint: Platform blueprint (the bundled one if not provided)
            config: Client configuration (loaded if not provided)
        """
        self.config = config or get_config()
        self.provider = provider or CloudProvider(
            region=self.config.region, profile=self.config.profile
        )
        self.blueprint = blueprint or Blueprint.load()

    # Queries

    def _to_application(self, stack: Dict[str, Any]) -> Optional[Application]:
        """Build an Application from a stack, or None if it isn't a herogate stack."""
        tags = {tag["Key"]: tag["Value"] for tag in stack.get("Tags", [])}
        platform_version = tags.get(PLATFORM_VERSION_TAG, "")
        if not platform_version:
            return None

        repository = endpoint = ""
        for output in stack.get("Outputs", []):
            if output.get("OutputKey") == "Repository":
                repository = output.get("OutputValue", "")
            elif output.get("OutputKey") == "Endpoint":
                # ALB DNS names come without a scheme
                endpoint = "http://" + output.get("OutputValue", "")

        try:
            status = StackStatus(stack["StackStatus"])
        except (KeyError, ValueError) as e:
            raise MalformedStateError(
                f"Unexpected stack status for {stack.get('StackName')}",
                path="StackStatus",
            ) from e

        return Application(
            name=stack["StackName"],
            status=status,
            repository_url=repository,
            endpoint_url=endpoint,
            platform_version=platform_version,
        )

    def get_app(self, name: str) -> Application:
        """Get an application. Raises NotFoundError if there is no such app."""
        app = self._to_application(self.provider.describe_stack(name))
        if app is None:
            raise NotFoundError(f"Couldn't find that app: {name}", app_name=name)
        return app

    def list_apps(self) -> List[Application]:
        apps = []
        for stack in self.provider.list_stacks():
            app = self._to_application(stack)
            if app is not None:
                apps.append(app)
        return apps

    def get_stack_status(self, name: str) -> StackStatus:
        try:
            stack = self.provider.describe_stack(name)
        except NotFoundError:
            return StackStatus.NOT_EXISTS
        try:
            return StackStatus(stack["StackStatus"])
        except (KeyError, ValueError) as e:
            raise MalformedStateError(
                f"Unexpected stack status for {name}", path="StackStatus"
            ) from e

    def stack_exists(self, name: str) -> bool:
        return self.get_stack_status(name) != StackStatus.NOT_EXISTS

    def get_app_info(self, name: str) -> AppInfo:
        """Application details including the containers of the running task."""
        app = self.get_app(name)
        try:
            service = self.provider.describe_service(name, name)
        except TransientAbsence as e:
            logger.debug(f"Service of {name} is not available yet: {e}")
            return AppInfo(app=app, containers=[], region=self.provider.region)

        task = self.provider.describe_task_definition(self._task_definition_arn(service, name))
        running = int(service.get("runningCount", 0))
        containers = [
            Container(
                name=definition.get("name", ""),
                running_count=running,
                command=list(definition.get("command", [])),
            )
            for definition in task.get("containerDefinitions", [])
        ]
        return AppInfo(app=app, containers=containers, region=self.provider.region)

    def describe_env_vars(self, name: str) -> Dict[str, str]:
        """Environment variables of the first container of the running task definition."""
        try:
            service = self.provider.describe_service(name, name)
        except TransientAbsence as e:
            raise NotFoundError(f"Couldn't find that app: {name}", app_name=name) from e

        task = self.provider.describe_task_definition(self._task_definition_arn(service, name))
        definitions = task.get("containerDefinitions", [])
        if not definitions:
            return {}
        return {
            env["name"]: env.get("value", "")
            for env in definitions[0].get("environment", [])
        }

    @staticmethod
    def _task_definition_arn(service: Dict[str, Any], name: str) -> str:
        if not service.get("taskDefinition"):
            raise MalformedStateError(
                f"Service of {name} has no task definition", path="taskDefinition"
            )
        return service["taskDefinition"]

    # Create

    def validate_name(self, name: str) -> None:
        if not APP_NAME_PATTERN.match(name or ""):
            raise HerogateError(
                "The application name must match the pattern of "
                f"`{APP_NAME_PATTERN.pattern}`"
            )

    def create(self, name: str) -> Application:
        """
        Create the application stack and block until it settles.

        A stack that does not reach CREATE_COMPLETE is deleted again and an
        UpstreamFailure listing its resources is raised.
        """
        self.validate_name(name)
        try:
            self.provider.describe_stack(name)
        except NotFoundError:
            logger.debug(f"Stack {name} does not exist, free to create")
        else:
            raise NameTakenError(f"Name is already taken: {name}")

        logger.info(f"Creating stack {name} from blueprint {self.blueprint.version}")
        self.provider.create_stack(
            name,
            self.blueprint.template_body,
            tags={PLATFORM_VERSION_TAG: self.blueprint.version},
            timeout_minutes=self.config.stack_timeout_minutes,
        )
        completed = self.provider.wait_for_stack(name, "stack_create_complete")

        status = self.get_stack_status(name)
        if not completed or status != StackStatus.CREATE_COMPLETE:
            self._rollback_failed_create(name, status)

        return self.get_app(name)

    def _rollback_failed_create(self, name: str, status: StackStatus) -> None:
        try:
            resources = self.provider.list_stack_resources(name)
        except NotFoundError:
            resources = []

        logger.error(f"Stack creation of {name} ended in {status.value}, deleting it")
        for resource in resources:
            logger.error(
                f"  {resource.get('LogicalResourceId')}: {resource.get('ResourceStatus')}"
                f" {resource.get('ResourceStatusReason', '')}".rstrip()
            )

        if status != StackStatus.NOT_EXISTS:
            self.provider.delete_stack(name)

        raise UpstreamFailure(
            f"Failed to create the stack of {name} ({status.value})",
            app_name=name,
            resources=resources,
        )

    # Progress

    def progress(self, name: str, operation: Optional[AppState] = None) -> int:
        """
        Percentage of blueprint resources done for a stack being created or deleted.

        The state is read from the stack itself. When `operation` is given it
        must match that state; a stack that is already gone while deleting
        reports 100. Any other state raises ValueError.
        """
        state = self.get_stack_status(name).state
        if state == AppState.NOT_EXISTS and operation == AppState.DELETING:
            return 100
        if operation is not None and state != operation:
            raise ValueError(
                f"Stack {name} is {state.value}, not {operation.value}"
            )

        if state == AppState.CREATING:
            done = "CREATE_COMPLETE"
        elif state == AppState.DELETING:
            done = "DELETE_COMPLETE"
        else:
            raise ValueError(f"Progress is only defined while creating or deleting, not {state.value}")

        try:
            summaries = self.provider.list_stack_resources(name)
        except NotFoundError:
            if state == AppState.DELETING:
                return 100
            raise

        completed = sum(1 for s in summaries if s.get("ResourceStatus") == done)
        return progress_percent(completed, self.blueprint.expected_resources)

    # Destroy

    def destroy(self, name: str) -> None:
        """
        Tear down the application.

        The artifact bucket is emptied and removed and the image registry is
        force-deleted first, since the stack cannot delete them while they hold
        data. Failures in those two steps are logged and do not stop the teardown.
        """
        self.get_app(name)

        self._delete_artifact_store(name)
        self._delete_registry(name)

        logger.info(f"Deleting stack {name}")
        self.provider.delete_stack(name)
        self.provider.wait_for_stack(name, "stack_delete_complete")

        status = self.get_stack_status(name)
        if status in (StackStatus.NOT_EXISTS, StackStatus.DELETE_COMPLETE):
            return

        try:
            resources = self.provider.list_stack_resources(name)
        except NotFoundError:
            resources = []
        logger.error(f"Stack deletion of {name} ended in {status.value}")
        raise UpstreamFailure(
            f"Failed to delete the stack of {name} ({status.value})",
            app_name=name,
            resources=resources,
        )

    def _delete_artifact_store(self, name: str) -> None:
        try:
            bucket = self.provider.get_physical_resource_id(name, ARTIFACT_STORE_RESOURCE)
        except NotFoundError as e:
            logger.debug(f"Failed to get S3 bucket: {e}")
            return

        try:
            keys = self.provider.list_object_keys(bucket)
            if keys:
                logger.info(f"Deleting {len(keys)} objects from {bucket}")
                self.provider.delete_objects(bucket, keys)
            self.provider.delete_bucket(bucket)
        except HerogateError as e:
            logger.warning(f"Failed to delete S3 bucket {bucket}: {e}")

    def _delete_registry(self, name: str) -> None:
        try:
            repository = self.provider.get_physical_resource_id(name, REGISTRY_RESOURCE)
            self.provider.force_delete_repository(repository)
        except NotFoundError as e:
            logger.debug(f"Failed to get ECR repository: {e}")
        except HerogateError as e:
            logger.warning(f"Failed to delete ECR repository: {e}")

    # Background operations with progress

    def _poll_progress(self, name: str, operation: AppState) -> Optional[int]:
        try:
            return self.progress(name, operation)
        except ValueError as e:
            # e.g. rolling back after a failed create
            logger.debug(f"No progress estimate for {name}: {e}")
            return None

    def create_with_progress(
        self,
        name: str,
        render: Callable[[int], None],
        cancel: Optional[threading.Event] = None,
    ) -> Application:
        return run_with_progress(
            lambda: self.create(name),
            lambda: self._poll_progress(name, AppState.CREATING),
            render,
            interval=self.config.progress_interval,
            cancel=cancel,
        )

    def destroy_with_progress(
        self,
        name: str,
        render: Callable[[int], None],
        cancel: Optional[threading.Event] = None,
    ) -> None:
        run_with_progress(
            lambda: self.destroy(name),
            lambda: self._poll_progress(name, AppState.DELETING),
            render,
            interval=self.config.progress_interval,
            cancel=cancel,
        )
