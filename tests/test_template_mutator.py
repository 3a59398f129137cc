"""
Tests for environment and container definition edits of the app template.
"""

from unittest.mock import Mock

import pytest

from herogate.exceptions import MalformedStateError, NotFoundError, UpstreamFailure
from herogate.template import (
    TemplateDocument,
    TemplateEditor,
    env_vars,
    parse_procfile,
    regenerate_container_definitions,
    set_env_vars,
    unset_env_vars,
)
from herogate.template.containers import Process

BARE_TEMPLATE = """AWSTemplateFormatVersion: 2010-09-09
Description: Herogate Platform Template v1.0
Resources:
  HerogateApplicationContainer:
    Type: "AWS::ECS::TaskDefinition"
    Properties:
      ContainerDefinitions:
        - Name: web
          Image: "httpd:2.4"
"""

ENV_TEMPLATE = """Resources:
  HerogateApplicationContainer:
    Type: AWS::ECS::TaskDefinition
    Properties:
      ContainerDefinitions:
        - Name: web
          Image: httpd:2.4
          Environment:
            - Name: SECRET_KEY_BASE
              Value: abc
            - Name: RACK_ENV
              Value: development
            - Name: DATABASE_URL
              Value: postgres://db
"""


def environment(doc):
    return doc.to_dict()["Resources"]["HerogateApplicationContainer"]["Properties"][
        "ContainerDefinitions"
    ][0].get("Environment")


class TestSetEnvVars:
    """Test merging variables into the environment list."""

    def test_render_after_set_on_template_without_environment(self):
        doc = TemplateDocument.parse(BARE_TEMPLATE)

        set_env_vars(doc, {"RAILS_ENV": "production", "RACK_ENV": "production"})

        assert doc.render() == (
            "AWSTemplateFormatVersion: 2010-09-09\n"
            "Description: Herogate Platform Template v1.0\n"
            "Resources:\n"
            "  HerogateApplicationContainer:\n"
            "    Properties:\n"
            "      ContainerDefinitions:\n"
            "      - Environment:\n"
            "        - Name: RACK_ENV\n"
            "          Value: production\n"
            "        - Name: RAILS_ENV\n"
            "          Value: production\n"
            "        Image: httpd:2.4\n"
            "        Name: web\n"
            "    Type: AWS::ECS::TaskDefinition\n"
        )

    def test_new_values_win_and_result_is_sorted(self):
        doc = TemplateDocument.parse(
            {
                "Resources": {
                    "HerogateApplicationContainer": {
                        "Properties": {
                            "ContainerDefinitions": [
                                {
                                    "Name": "web",
                                    "Environment": [
                                        {"Name": "RACK_ENV", "Value": "development"},
                                        {"Name": "SECRET_KEY_BASE", "Value": "abc"},
                                    ],
                                }
                            ]
                        }
                    }
                }
            }
        )

        set_env_vars(doc, {"RAILS_ENV": "production", "RACK_ENV": "production"})

        assert environment(doc) == [
            {"Name": "RACK_ENV", "Value": "production"},
            {"Name": "RAILS_ENV", "Value": "production"},
            {"Name": "SECRET_KEY_BASE", "Value": "abc"},
        ]

    def test_setting_twice_is_idempotent(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)

        first = set_env_vars(doc, {"FOO": "bar"}).render()
        second = set_env_vars(doc, {"FOO": "bar"}).render()

        assert first == second

    def test_env_vars_reads_template_order(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)

        assert list(env_vars(doc)) == ["SECRET_KEY_BASE", "RACK_ENV", "DATABASE_URL"]

    def test_missing_container_definitions(self):
        doc = TemplateDocument.parse("Resources:\n  HerogateApplicationContainer:\n    Properties: {}\n")

        with pytest.raises(MalformedStateError) as exc_info:
            set_env_vars(doc, {"FOO": "bar"})
        assert "ContainerDefinitions" in exc_info.value.path

    def test_environment_must_be_a_list(self):
        doc = TemplateDocument.parse(
            BARE_TEMPLATE.replace('Image: "httpd:2.4"', 'Image: "httpd:2.4"\n          Environment: oops')
        )

        with pytest.raises(MalformedStateError, match="Expected ListNode"):
            set_env_vars(doc, {"FOO": "bar"})

    def test_environment_entry_needs_value(self):
        doc = TemplateDocument.parse(
            ENV_TEMPLATE.replace("              Value: abc\n", "")
        )

        with pytest.raises(MalformedStateError, match="scalar Value"):
            set_env_vars(doc, {"FOO": "bar"})


class TestUnsetEnvVars:
    """Test removing variables."""

    def test_keeps_original_order(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)

        unset_env_vars(doc, ["RACK_ENV"])

        assert environment(doc) == [
            {"Name": "SECRET_KEY_BASE", "Value": "abc"},
            {"Name": "DATABASE_URL", "Value": "postgres://db"},
        ]

    def test_unknown_names_leave_document_unchanged(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)
        before = doc.render()

        unset_env_vars(doc, ["NOT_SET"])

        assert doc.render() == before

    def test_no_environment_is_a_no_op(self):
        doc = TemplateDocument.parse(BARE_TEMPLATE)

        unset_env_vars(doc, ["FOO"])

        assert environment(doc) is None


class TestProcfile:
    """Test Procfile parsing."""

    def test_parse(self):
        processes = parse_procfile(
            "web: bundle exec rails server -p 80\n"
            "\n"
            "# background jobs\n"
            "worker: bundle exec sidekiq -q 'default queue'\n"
        )

        assert processes == {
            "web": Process("bundle", ["exec", "rails", "server", "-p", "80"]),
            "worker": Process("bundle", ["exec", "sidekiq", "-q", "default queue"]),
        }

    def test_empty(self):
        assert parse_procfile("") == {}
        assert parse_procfile(None) == {}


class TestRegenerateContainerDefinitions:
    """Test rebuilding the container definitions from processes."""

    def processes(self):
        return {
            "worker": Process("bundle", ["exec", "sidekiq"]),
            "web": Process("bundle", ["exec", "puma"]),
        }

    def test_one_definition_per_process_sorted(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)

        regenerate_container_definitions(doc, "registry/app:abc123", self.processes())

        definitions = doc.to_dict()["Resources"]["HerogateApplicationContainer"][
            "Properties"
        ]["ContainerDefinitions"]
        assert [d["Name"] for d in definitions] == ["web", "worker"]
        assert all(d["Image"] == "registry/app:abc123" for d in definitions)
        assert definitions[1]["Command"] == ["bundle", "exec", "sidekiq"]

    def test_only_web_gets_port_mapping(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)

        regenerate_container_definitions(doc, "image", self.processes())

        web, worker = doc.to_dict()["Resources"]["HerogateApplicationContainer"][
            "Properties"
        ]["ContainerDefinitions"]
        assert web["PortMappings"] == [{"ContainerPort": 80}]
        assert "PortMappings" not in worker

    def test_log_configuration(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)

        regenerate_container_definitions(doc, "image", self.processes())

        worker = doc.to_dict()["Resources"]["HerogateApplicationContainer"][
            "Properties"
        ]["ContainerDefinitions"][1]
        assert worker["LogConfiguration"] == {
            "LogDriver": "awslogs",
            "Options": {
                "awslogs-region": {"Ref": "AWS::Region"},
                "awslogs-group": {"Ref": "HerogateApplicationContainerLogs"},
                "awslogs-stream-prefix": "worker",
            },
        }

    def test_environment_is_copied_to_every_definition(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)
        expected = environment(doc)

        regenerate_container_definitions(doc, "image", self.processes())

        definitions = doc.get_list(
            "Resources.HerogateApplicationContainer.Properties.ContainerDefinitions"
        ).items
        for definition in definitions:
            assert [
                {"Name": e.entries["Name"].value, "Value": e.entries["Value"].value}
                for e in definition.entries["Environment"].items
            ] == expected
        # Copies, not shared nodes
        assert definitions[0].entries["Environment"] is not definitions[1].entries["Environment"]

    def test_no_processes_leaves_document_unchanged(self):
        doc = TemplateDocument.parse(ENV_TEMPLATE)
        before = doc.render()

        regenerate_container_definitions(doc, "image", {})

        assert doc.render() == before


class TestTemplateEditor:
    """Test read-modify-write against the provider."""

    def create_editor(self, template=ENV_TEMPLATE):
        provider = Mock()
        provider.get_template.return_value = template
        provider.update_stack.return_value = True
        provider.wait_for_stack.return_value = True
        return TemplateEditor(provider), provider

    def test_set_env_vars_updates_and_waits(self):
        editor, provider = self.create_editor(BARE_TEMPLATE)

        editor.set_env_vars("my-app", {"FOO": "bar"})

        provider.describe_stack.assert_called_once_with("my-app")
        body = provider.update_stack.call_args[0][1]
        assert "Name: FOO" in body
        provider.wait_for_stack.assert_called_once_with("my-app", "stack_update_complete")

    def test_no_updates_skips_wait(self):
        editor, provider = self.create_editor()
        provider.update_stack.return_value = False

        editor.set_env_vars("my-app", {"RACK_ENV": "development"})

        provider.wait_for_stack.assert_not_called()

    def test_failed_update_raises_with_resources(self):
        editor, provider = self.create_editor()
        provider.wait_for_stack.return_value = False
        provider.list_stack_resources.return_value = [
            {"LogicalResourceId": "HerogateApplicationContainer", "ResourceStatus": "UPDATE_FAILED"}
        ]

        with pytest.raises(UpstreamFailure) as exc_info:
            editor.unset_env_vars("my-app", ["RACK_ENV"])

        assert exc_info.value.resources[0]["ResourceStatus"] == "UPDATE_FAILED"

    def test_missing_app(self):
        editor, provider = self.create_editor()
        provider.describe_stack.side_effect = NotFoundError("gone", app_name="my-app")

        with pytest.raises(NotFoundError):
            editor.set_env_vars("my-app", {"FOO": "bar"})

        provider.update_stack.assert_not_called()

    def test_generate_template(self):
        editor, provider = self.create_editor()

        rendered = editor.generate_template("my-app", "repo:tag", "web: ./server\n")

        doc = TemplateDocument.parse(rendered)
        definition = doc.get_map(
            "Resources.HerogateApplicationContainer.Properties.ContainerDefinitions.0"
        )
        assert definition.entries["Image"].value == "repo:tag"
        assert definition.entries["Command"].items[0].value == "./server"
        provider.update_stack.assert_not_called()
