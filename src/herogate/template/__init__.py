"""
Application stack template parsing and editing.
"""

from .containers import Process, parse_procfile
from .document import ListNode, MapNode, ScalarNode, TemplateDocument
from .mutator import (
    TemplateEditor,
    env_vars,
    regenerate_container_definitions,
    set_env_vars,
    unset_env_vars,
)

__all__ = [
    "ListNode",
    "MapNode",
    "Process",
    "ScalarNode",
    "TemplateDocument",
    "TemplateEditor",
    "env_vars",
    "parse_procfile",
    "regenerate_container_definitions",
    "set_env_vars",
    "unset_env_vars",
]
