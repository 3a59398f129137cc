"""
ECS container definitions generated from a Procfile.
"""

import copy
import re
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .document import ListNode, MapNode, Node, ScalarNode

WEB_PROCESS = "web"
WEB_CONTAINER_PORT = 80

LOG_GROUP_RESOURCE = "HerogateApplicationContainerLogs"

PROCFILE_LINE = re.compile(r"^([A-Za-z0-9_-]+):\s*(.+)$")


@dataclass
class Process:
    """A Procfile entry."""
    command: str
    args: List[str] = field(default_factory=list)

    @property
    def tokens(self) -> List[str]:
        return [self.command] + list(self.args)


def parse_procfile(text: Optional[str]) -> Dict[str, Process]:
    """Parse `name: command args...` lines. Blank lines and comments are skipped."""
    processes: Dict[str, Process] = {}
    for line in (text or "").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        match = PROCFILE_LINE.match(line)
        if not match:
            continue
        tokens = shlex.split(match.group(2))
        if tokens:
            processes[match.group(1)] = Process(command=tokens[0], args=tokens[1:])
    return processes


def _ref(logical_id: str) -> MapNode:
    return MapNode({"Ref": ScalarNode(logical_id)})


def container_definition(
    name: str, image: str, command: List[str], environment: Node
) -> MapNode:
    """
    Build one container definition.

    Args:
        name: Process name; also the awslogs stream prefix
        image: Image URI every process runs
        command: Command tokens
        environment: Environment list node, copied as-is
    """
    definition = MapNode({
        "Name": ScalarNode(name),
        "Image": ScalarNode(image),
        "Command": ListNode([ScalarNode(token) for token in command]),
        "Environment": copy.deepcopy(environment),
        "LogConfiguration": MapNode({
            "LogDriver": ScalarNode("awslogs"),
            "Options": MapNode({
                "awslogs-region": _ref("AWS::Region"),
                "awslogs-group": _ref(LOG_GROUP_RESOURCE),
                "awslogs-stream-prefix": ScalarNode(name),
            }),
        }),
    })

    if name == WEB_PROCESS:
        definition.entries["PortMappings"] = ListNode([
            MapNode({"ContainerPort": ScalarNode(WEB_CONTAINER_PORT)})
        ])

    return definition
