"""
Tests for application stack lifecycle management.
"""

from unittest.mock import Mock, call, patch

import boto3
import pytest
from moto import mock_aws

from herogate.cloudformation import Blueprint, StackManager
from herogate.config import HerogateConfig
from herogate.exceptions import (
    HerogateError,
    MalformedStateError,
    NameTakenError,
    NotFoundError,
    TransientAbsence,
    UpstreamFailure,
)
from herogate.models import AppState, StackStatus
from herogate.provider import CloudProvider


def stack(name="my-app", status="CREATE_COMPLETE", tagged=True):
    record = {
        "StackName": name,
        "StackStatus": status,
        "Tags": [{"Key": "herogate-platform-version", "Value": "1.0"}] if tagged else [],
        "Outputs": [
            {
                "OutputKey": "Repository",
                "OutputValue": f"ssh://git-codecommit.us-east-1.amazonaws.com/v1/repos/{name}",
            },
            {"OutputKey": "Endpoint", "OutputValue": f"{name}-123.us-east-1.elb.amazonaws.com"},
        ],
    }
    return record


def resources(status, count):
    return [
        {"LogicalResourceId": f"Resource{i}", "ResourceStatus": status}
        for i in range(count)
    ]


class TestStackManager:
    """Test stack lifecycle with a mocked provider."""

    def create_manager(self, expected_resources=27):
        """Create a test manager with a mocked provider."""
        provider = Mock()
        provider.region = "us-east-1"
        provider.wait_for_stack.return_value = True
        blueprint = Blueprint(
            version="1.0", template_body="Resources: {}", expected_resources=expected_resources
        )
        config = HerogateConfig(progress_interval=0.01)
        return StackManager(provider=provider, blueprint=blueprint, config=config), provider

    # Queries

    def test_get_app(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack()

        app = manager.get_app("my-app")

        assert app.name == "my-app"
        assert app.status == StackStatus.CREATE_COMPLETE
        assert app.endpoint_url == "http://my-app-123.us-east-1.elb.amazonaws.com"
        assert app.repository_url.endswith("/v1/repos/my-app")
        assert app.platform_version == "1.0"

    def test_get_app_ignores_foreign_stacks(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack(tagged=False)

        with pytest.raises(NotFoundError):
            manager.get_app("my-app")

    def test_list_apps(self):
        manager, provider = self.create_manager()
        provider.list_stacks.return_value = [
            stack("one"),
            stack("network", tagged=False),
            stack("two", status="CREATE_IN_PROGRESS"),
        ]

        apps = manager.list_apps()

        assert [app.name for app in apps] == ["one", "two"]
        assert apps[1].status.state == AppState.CREATING

    def test_get_stack_status(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = NotFoundError("gone")

        assert manager.get_stack_status("my-app") == StackStatus.NOT_EXISTS
        assert manager.stack_exists("my-app") is False

    def test_unknown_stack_status(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack(status="SOMETHING_NEW")

        with pytest.raises(MalformedStateError):
            manager.get_stack_status("my-app")

    def test_get_app_info(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack()
        provider.describe_service.return_value = {
            "taskDefinition": "arn:task/my-app:3",
            "runningCount": 2,
        }
        provider.describe_task_definition.return_value = {
            "containerDefinitions": [
                {"name": "web", "command": ["bundle", "exec", "puma"]},
                {"name": "worker"},
            ]
        }

        info = manager.get_app_info("my-app")

        assert info.region == "us-east-1"
        assert [(c.name, c.running_count) for c in info.containers] == [("web", 2), ("worker", 2)]
        assert info.containers[0].command == ["bundle", "exec", "puma"]
        provider.describe_service.assert_called_once_with("my-app", "my-app")
        provider.describe_task_definition.assert_called_once_with("arn:task/my-app:3")

    def test_get_app_info_before_service_exists(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack(status="CREATE_IN_PROGRESS")
        provider.describe_service.side_effect = TransientAbsence("not yet")

        info = manager.get_app_info("my-app")

        assert info.containers == []

    def test_describe_env_vars(self):
        manager, provider = self.create_manager()
        provider.describe_service.return_value = {"taskDefinition": "arn:task/my-app:3"}
        provider.describe_task_definition.return_value = {
            "containerDefinitions": [
                {"name": "web", "environment": [{"name": "RACK_ENV", "value": "production"}]}
            ]
        }

        assert manager.describe_env_vars("my-app") == {"RACK_ENV": "production"}

    def test_describe_env_vars_without_service(self):
        manager, provider = self.create_manager()
        provider.describe_service.side_effect = TransientAbsence("not yet")

        with pytest.raises(NotFoundError):
            manager.describe_env_vars("my-app")

    # Create

    def test_create_success(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = [NotFoundError("free"), stack(), stack()]

        app = manager.create("my-app")

        assert app.name == "my-app"
        provider.create_stack.assert_called_once_with(
            "my-app",
            "Resources: {}",
            tags={"herogate-platform-version": "1.0"},
            timeout_minutes=10,
        )
        provider.wait_for_stack.assert_called_once_with("my-app", "stack_create_complete")
        provider.delete_stack.assert_not_called()

    def test_create_failure_deletes_stack(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = [
            NotFoundError("free"),
            stack(status="ROLLBACK_COMPLETE"),
        ]
        provider.wait_for_stack.return_value = False
        provider.list_stack_resources.return_value = [
            {
                "LogicalResourceId": "HerogateService",
                "ResourceStatus": "CREATE_FAILED",
                "ResourceStatusReason": "Service did not stabilize",
            }
        ]

        with pytest.raises(UpstreamFailure) as exc_info:
            manager.create("my-app")

        assert "ROLLBACK_COMPLETE" in exc_info.value.message
        assert exc_info.value.resources[0]["ResourceStatus"] == "CREATE_FAILED"
        provider.delete_stack.assert_called_once_with("my-app")

    def test_create_name_taken(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack()

        with pytest.raises(NameTakenError):
            manager.create("my-app")

        provider.create_stack.assert_not_called()

    @pytest.mark.parametrize("name", ["", "ab", "My-App", "-app", "app-", "app!name"])
    def test_create_invalid_name(self, name):
        manager, provider = self.create_manager()

        with pytest.raises(HerogateError, match="must match the pattern"):
            manager.create(name)

        provider.create_stack.assert_not_called()

    def test_create_request_rejected(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = NotFoundError("free")
        provider.create_stack.side_effect = UpstreamFailure("AccessDenied")

        with pytest.raises(UpstreamFailure):
            manager.create("my-app")

        provider.wait_for_stack.assert_not_called()

    # Progress

    def test_create_progress(self):
        manager, provider = self.create_manager(expected_resources=27)
        provider.describe_stack.return_value = stack(status="CREATE_IN_PROGRESS")
        provider.list_stack_resources.return_value = (
            resources("CREATE_COMPLETE", 6) + resources("CREATE_IN_PROGRESS", 4)
        )

        assert manager.progress("my-app", AppState.CREATING) == 22
        assert manager.progress("my-app") == 22

    def test_delete_progress(self):
        manager, provider = self.create_manager(expected_resources=25)
        provider.describe_stack.return_value = stack(status="DELETE_IN_PROGRESS")
        provider.list_stack_resources.return_value = (
            resources("DELETE_COMPLETE", 6) + resources("DELETE_IN_PROGRESS", 19)
        )

        assert manager.progress("my-app", AppState.DELETING) == 24

    def test_delete_progress_after_stack_is_gone(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = NotFoundError("gone")

        assert manager.progress("my-app", AppState.DELETING) == 100
        provider.list_stack_resources.assert_not_called()

    def test_progress_undefined_for_settled_states(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack(status="CREATE_COMPLETE")

        with pytest.raises(ValueError):
            manager.progress("my-app")

    def test_progress_state_comes_from_stack(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack(status="DELETE_IN_PROGRESS")

        with pytest.raises(ValueError, match="deleting, not creating"):
            manager.progress("my-app", AppState.CREATING)
        provider.list_stack_resources.assert_not_called()

    def test_no_progress_estimate_while_rolling_back(self):
        manager, provider = self.create_manager()
        provider.describe_stack.return_value = stack(status="ROLLBACK_IN_PROGRESS")

        assert manager._poll_progress("my-app", AppState.CREATING) is None

    def test_create_with_progress(self):
        manager, provider = self.create_manager()
        # The mocked create settles before the first poll
        manager.config = HerogateConfig(progress_interval=5.0)
        provider.describe_stack.side_effect = [NotFoundError("free"), stack(), stack()]
        provider.list_stack_resources.return_value = resources("CREATE_COMPLETE", 27)
        rendered = []

        app = manager.create_with_progress("my-app", rendered.append)

        assert app.name == "my-app"
        assert rendered == [0]

    # Destroy

    def test_destroy(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = [stack(), NotFoundError("gone")]
        provider.get_physical_resource_id.side_effect = ["my-app-artifacts", "my-app-registry"]
        provider.list_object_keys.return_value = ["a", "b", "c"]

        manager.destroy("my-app")

        provider.delete_objects.assert_called_once_with("my-app-artifacts", ["a", "b", "c"])
        provider.delete_bucket.assert_called_once_with("my-app-artifacts")
        provider.force_delete_repository.assert_called_once_with("my-app-registry")
        provider.delete_stack.assert_called_once_with("my-app")
        provider.wait_for_stack.assert_called_once_with("my-app", "stack_delete_complete")
        assert provider.get_physical_resource_id.call_args_list == [
            call("my-app", "HerogatePipelineArtifactStore"),
            call("my-app", "HerogateRegistry"),
        ]
        names = [c[0] for c in provider.mock_calls]
        assert (
            names.index("delete_objects")
            < names.index("delete_bucket")
            < names.index("delete_stack")
        )

    def test_destroy_empty_bucket_skips_object_deletion(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = [stack(), NotFoundError("gone")]
        provider.get_physical_resource_id.return_value = "physical"
        provider.list_object_keys.return_value = []

        manager.destroy("my-app")

        provider.delete_objects.assert_not_called()
        provider.delete_bucket.assert_called_once_with("physical")

    def test_destroy_continues_when_cleanup_fails(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = [stack(), stack(status="DELETE_COMPLETE")]
        provider.get_physical_resource_id.return_value = "physical"
        provider.list_object_keys.side_effect = UpstreamFailure("AccessDenied")
        provider.force_delete_repository.side_effect = UpstreamFailure("AccessDenied")

        manager.destroy("my-app")

        provider.delete_stack.assert_called_once_with("my-app")

    def test_destroy_missing_app(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = NotFoundError("gone")

        with pytest.raises(NotFoundError):
            manager.destroy("my-app")

        provider.delete_stack.assert_not_called()

    def test_destroy_failure_reports_resources(self):
        manager, provider = self.create_manager()
        provider.describe_stack.side_effect = [stack(), stack(status="DELETE_FAILED")]
        provider.get_physical_resource_id.side_effect = NotFoundError("no resource")
        provider.wait_for_stack.return_value = False
        provider.list_stack_resources.return_value = [
            {"LogicalResourceId": "HerogateVPC", "ResourceStatus": "DELETE_FAILED"}
        ]

        with pytest.raises(UpstreamFailure) as exc_info:
            manager.destroy("my-app")

        assert exc_info.value.app_name == "my-app"
        assert exc_info.value.resources[0]["LogicalResourceId"] == "HerogateVPC"


class TestStackManagerTeardown:
    """Test destroy against moto-backed S3 and ECR."""

    @mock_aws
    def test_destroy_removes_bucket_and_registry(self):
        s3 = boto3.client("s3", region_name="us-east-1")
        ecr = boto3.client("ecr", region_name="us-east-1")
        s3.create_bucket(Bucket="my-app-artifacts")
        for i in range(5):
            s3.put_object(Bucket="my-app-artifacts", Key=f"source/{i}.zip", Body=b"zip")
        ecr.create_repository(repositoryName="my-app")

        provider = CloudProvider(region="us-east-1")
        manager = StackManager(
            provider=provider,
            blueprint=Blueprint(version="1.0", template_body="", expected_resources=27),
            config=HerogateConfig(),
        )
        physical = {
            "HerogatePipelineArtifactStore": "my-app-artifacts",
            "HerogateRegistry": "my-app",
        }

        with patch.object(provider, "describe_stack", side_effect=[stack(), NotFoundError("gone")]), \
                patch.object(provider, "get_physical_resource_id",
                             side_effect=lambda name, logical_id: physical[logical_id]), \
                patch.object(provider, "delete_stack") as mock_delete, \
                patch.object(provider, "wait_for_stack", return_value=True):
            manager.destroy("my-app")

        mock_delete.assert_called_once_with("my-app")
        assert s3.list_buckets()["Buckets"] == []
        assert ecr.describe_repositories()["repositories"] == []
