"""
Edits to the application stack template.

The template is fetched whole, edited in place and written back whole with
UpdateStack. There is no version check between the read and the write: an
external edit of the same stack in between is silently overwritten.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping

from ..exceptions import MalformedStateError, UpstreamFailure
from ..provider import CloudProvider
from .containers import Process, container_definition, parse_procfile
from .document import ListNode, MapNode, ScalarNode, TemplateDocument

logger = logging.getLogger(__name__)

CONTAINER_DEFINITIONS_PATH = (
    "Resources.HerogateApplicationContainer.Properties.ContainerDefinitions"
)
FIRST_CONTAINER_PATH = f"{CONTAINER_DEFINITIONS_PATH}.0"
ENVIRONMENT_PATH = f"{FIRST_CONTAINER_PATH}.Environment"


def _env_items(doc: TemplateDocument) -> List[MapNode]:
    """Return the `{Name, Value}` entries of the first container, validated."""
    definition = doc.get_map(FIRST_CONTAINER_PATH)
    if "Environment" not in definition.entries:
        return []

    items = []
    for i, item in enumerate(doc.get_list(ENVIRONMENT_PATH).items):
        where = f"{ENVIRONMENT_PATH}.{i}"
        if not isinstance(item, MapNode):
            raise MalformedStateError("Environment entry must be a map", path=where)
        for key in ("Name", "Value"):
            if not isinstance(item.entries.get(key), ScalarNode):
                raise MalformedStateError(
                    f"Environment entry needs a scalar {key}", path=where
                )
        items.append(item)
    return items


def _env_name(item: MapNode) -> str:
    return str(item.entries["Name"].value)


def env_vars(doc: TemplateDocument) -> Dict[str, Any]:
    """Environment variables of the first container definition, in template order."""
    return {_env_name(item): item.entries["Value"].value for item in _env_items(doc)}


def env_var_node(name: str, value: Any) -> MapNode:
    return MapNode({"Name": ScalarNode(name), "Value": ScalarNode(value)})


def set_env_vars(doc: TemplateDocument, additions: Mapping[str, Any]) -> TemplateDocument:
    """
    Overlay `additions` on the environment list and write it back sorted by name.

    New values win on collision. The document is modified in place and returned.
    """
    merged = env_vars(doc)
    merged.update(additions)
    doc.set(
        ENVIRONMENT_PATH,
        ListNode([env_var_node(name, merged[name]) for name in sorted(merged)]),
    )
    return doc


def unset_env_vars(doc: TemplateDocument, names: Iterable[str]) -> TemplateDocument:
    """
    Drop the named variables, keeping the remaining ones in their original order.

    Unlike set_env_vars the result is not re-sorted.
    """
    removed = set(names)
    items = _env_items(doc)
    remaining = [item for item in items if _env_name(item) not in removed]
    if len(remaining) != len(items):
        doc.set(ENVIRONMENT_PATH, ListNode(remaining))
    return doc


def regenerate_container_definitions(
    doc: TemplateDocument, image: str, processes: Mapping[str, Process]
) -> TemplateDocument:
    """
    Replace the container definitions with one per process, sorted by name.

    Every definition runs `image` and gets the environment list currently in
    the template. An empty process map leaves the document untouched.
    """
    doc.get_list(CONTAINER_DEFINITIONS_PATH)
    if not processes:
        logger.debug("No processes given, container definitions left unchanged")
        return doc

    if "Environment" in doc.get_map(FIRST_CONTAINER_PATH).entries:
        environment = doc.get_list(ENVIRONMENT_PATH)
    else:
        environment = ListNode([])

    definitions = [
        container_definition(name, image, processes[name].tokens, environment)
        for name in sorted(processes)
    ]
    doc.set(CONTAINER_DEFINITIONS_PATH, ListNode(definitions))
    return doc


class TemplateEditor:
    """Read-modify-write of a live application stack template."""

    def __init__(self, provider: CloudProvider):
        self.provider = provider

    def load(self, app_name: str) -> TemplateDocument:
        return TemplateDocument.parse(self.provider.get_template(app_name))

    def apply(self, app_name: str, doc: TemplateDocument) -> None:
        """Submit the rendered document and block until the update settles."""
        if not self.provider.update_stack(app_name, doc.render()):
            return
        if not self.provider.wait_for_stack(app_name, "stack_update_complete"):
            logger.error(f"Stack update of {app_name} did not complete")
            raise UpstreamFailure(
                f"Failed to update the stack of {app_name}",
                app_name=app_name,
                resources=self.provider.list_stack_resources(app_name),
            )

    def set_env_vars(self, app_name: str, additions: Mapping[str, str]) -> None:
        self.provider.describe_stack(app_name)
        doc = set_env_vars(self.load(app_name), additions)
        self.apply(app_name, doc)

    def unset_env_vars(self, app_name: str, names: Iterable[str]) -> None:
        self.provider.describe_stack(app_name)
        doc = unset_env_vars(self.load(app_name), names)
        self.apply(app_name, doc)

    def generate_template(self, app_name: str, image: str, procfile: str) -> str:
        """Render the current template with container definitions rebuilt for `image`."""
        doc = self.load(app_name)
        regenerate_container_definitions(doc, image, parse_procfile(procfile))
        return doc.render()
