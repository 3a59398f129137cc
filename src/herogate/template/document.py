"""
Typed tree representation of a CloudFormation template.

A template is held as MapNode / ListNode / ScalarNode values. Paths are dotted
strings (``Resources.Foo.Properties.Items.0``) where a numeric segment indexes
a list. Accessors fail with MalformedStateError instead of coercing values.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple, Union

import yaml

from ..exceptions import MalformedStateError


@dataclass
class ScalarNode:
    value: Any = None


@dataclass
class ListNode:
    items: List["Node"] = field(default_factory=list)


@dataclass
class MapNode:
    entries: Dict[str, "Node"] = field(default_factory=dict)


Node = Union[MapNode, ListNode, ScalarNode]
Path = Union[str, Sequence[Union[str, int]]]


class CloudFormationLoader(yaml.SafeLoader):
    """YAML loader that expands CloudFormation short-form intrinsic functions."""
    pass


def cfn_tag_constructor(loader, tag_suffix, node):
    """Expand `!Tag value` into its long form, e.g. `{"Fn::Sub": value}`."""
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    elif isinstance(node, yaml.MappingNode):
        value = loader.construct_mapping(node, deep=True)
    else:
        raise yaml.constructor.ConstructorError(
            None, None,
            f"could not determine a constructor for the tag '!{tag_suffix}'",
            node.start_mark)

    if tag_suffix in ("Ref", "Condition"):
        return {tag_suffix: value}
    if tag_suffix == "GetAtt" and isinstance(value, str):
        value = value.split(".", 1)
    return {f"Fn::{tag_suffix}": value}


cfn_tags = [
    'Ref', 'GetAtt', 'GetAZs', 'ImportValue', 'Join', 'Select',
    'Split', 'Sub', 'Transform', 'Base64', 'Cidr', 'FindInMap',
    'Condition', 'Equals', 'If', 'Not', 'And', 'Or'
]

for tag in cfn_tags:
    CloudFormationLoader.add_constructor(
        f'!{tag}',
        lambda loader, node, tag=tag: cfn_tag_constructor(loader, tag, node)
    )


def from_python(value: Any, path: str = "") -> Node:
    """Build a node tree from plain dicts, lists and scalars."""
    if isinstance(value, dict):
        entries: Dict[str, Node] = {}
        for key, child in value.items():
            if not isinstance(key, str):
                raise MalformedStateError(
                    f"Template keys must be strings, got {key!r}", path=path or "<root>"
                )
            entries[key] = from_python(child, f"{path}.{key}" if path else key)
        return MapNode(entries)
    if isinstance(value, (list, tuple)):
        return ListNode([
            from_python(child, f"{path}.{i}" if path else str(i))
            for i, child in enumerate(value)
        ])
    return ScalarNode(value)


def to_python(node: Node) -> Any:
    """Convert a node tree back into plain dicts, lists and scalars."""
    if isinstance(node, MapNode):
        return {key: to_python(child) for key, child in node.entries.items()}
    if isinstance(node, ListNode):
        return [to_python(child) for child in node.items]
    return node.value


def split_path(path: Path) -> Tuple[str, ...]:
    if isinstance(path, str):
        return tuple(segment for segment in path.split(".") if segment)
    return tuple(str(segment) for segment in path)


def _kind(node: Node) -> str:
    return {MapNode: "map", ListNode: "list", ScalarNode: "scalar"}[type(node)]


class TemplateDocument:
    """A parsed template that is edited in place and rendered wholesale."""

    def __init__(self, root: MapNode):
        self.root = root

    @classmethod
    def parse(cls, body: Union[str, Dict[str, Any]]) -> "TemplateDocument":
        """
        Parse a template body.

        Args:
            body: YAML/JSON text, or an already decoded template mapping
        """
        if isinstance(body, str):
            try:
                data = yaml.load(body, Loader=CloudFormationLoader)
            except yaml.YAMLError as e:
                raise MalformedStateError(f"Failed to parse template: {e}") from e
        else:
            data = body

        root = from_python(data)
        if not isinstance(root, MapNode):
            raise MalformedStateError(
                f"Template root must be a map, got {_kind(root)}", path="<root>"
            )
        return cls(root)

    def render(self) -> str:
        """Render the whole document as YAML with every map's keys sorted."""
        return yaml.safe_dump(
            to_python(self.root), default_flow_style=False, sort_keys=True
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_python(self.root)

    def _step(self, node: Node, segment: str, walked: Tuple[str, ...]) -> Node:
        where = ".".join(walked + (segment,))
        if isinstance(node, MapNode):
            if segment not in node.entries:
                raise MalformedStateError("Expected key is missing", path=where)
            return node.entries[segment]
        if isinstance(node, ListNode):
            if not segment.isdigit():
                raise MalformedStateError(
                    f"List index expected, got {segment!r}", path=where
                )
            index = int(segment)
            if index >= len(node.items):
                raise MalformedStateError(
                    f"Index {index} out of range for list of {len(node.items)}",
                    path=where,
                )
            return node.items[index]
        raise MalformedStateError("Cannot descend into a scalar", path=where)

    def get(self, path: Path) -> Node:
        """Return the node at `path`, or raise MalformedStateError."""
        segments = split_path(path)
        node: Node = self.root
        for i, segment in enumerate(segments):
            node = self._step(node, segment, segments[:i])
        return node

    def contains(self, path: Path) -> bool:
        try:
            self.get(path)
        except MalformedStateError:
            return False
        return True

    def _typed(self, path: Path, expected: type) -> Any:
        node = self.get(path)
        if not isinstance(node, expected):
            raise MalformedStateError(
                f"Expected {expected.__name__}, found {_kind(node)}",
                path=".".join(split_path(path)),
            )
        return node

    def get_map(self, path: Path) -> MapNode:
        return self._typed(path, MapNode)

    def get_list(self, path: Path) -> ListNode:
        return self._typed(path, ListNode)

    def get_scalar(self, path: Path) -> ScalarNode:
        return self._typed(path, ScalarNode)

    def set(self, path: Path, value: Node) -> None:
        """
        Replace (or add, for a map key) the node at `path`.

        The parent must already exist; nothing is created along the way.
        """
        segments = split_path(path)
        if not segments:
            raise MalformedStateError("Cannot replace the template root", path="<root>")

        parent = self.get(segments[:-1])
        last = segments[-1]
        where = ".".join(segments)
        if isinstance(parent, MapNode):
            parent.entries[last] = value
        elif isinstance(parent, ListNode):
            if not last.isdigit() or int(last) >= len(parent.items):
                raise MalformedStateError(f"Invalid list index {last!r}", path=where)
            parent.items[int(last)] = value
        else:
            raise MalformedStateError("Cannot set a child of a scalar", path=where)
