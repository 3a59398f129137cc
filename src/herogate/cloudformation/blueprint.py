"""
The platform blueprint every application stack is created from.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..exceptions import MalformedStateError
from ..template.document import TemplateDocument

PLATFORM_TEMPLATE_PATH = Path(__file__).parent / "platform.yaml"
PLATFORM_VERSION = "1.0"
PLATFORM_VERSION_TAG = "herogate-platform-version"

# Resource count declared per blueprint version, checked when loading
BLUEPRINT_RESOURCE_COUNTS: Dict[str, int] = {
    "1.0": 27,
}


@dataclass(frozen=True)
class Blueprint:
    """A versioned stack template and the number of resources it creates."""
    version: str
    template_body: str
    expected_resources: int

    @classmethod
    def load(
        cls,
        path: Union[str, Path] = PLATFORM_TEMPLATE_PATH,
        version: str = PLATFORM_VERSION,
        expected_resources: Optional[int] = None,
    ) -> "Blueprint":
        """
        Read a blueprint and check its resource count.

        Args:
            path: Template file
            version: Blueprint version used for the stack tag
            expected_resources: Declared count; defaults to the count
                registered for `version`, which must exist
        """
        body = Path(path).read_text()
        actual = len(TemplateDocument.parse(body).get_map("Resources").entries)

        if expected_resources is None:
            if version not in BLUEPRINT_RESOURCE_COUNTS:
                raise MalformedStateError(
                    f"Blueprint {version} has no declared resource count",
                    path=str(path),
                )
            expected_resources = BLUEPRINT_RESOURCE_COUNTS[version]
        if expected_resources != actual:
            raise MalformedStateError(
                f"Blueprint {version} declares {expected_resources} resources "
                f"but its template defines {actual}",
                path=str(path),
            )
        if actual == 0:
            raise MalformedStateError(f"Blueprint {version} defines no resources")

        return cls(version=version, template_body=body, expected_resources=actual)


def progress_percent(completed: int, expected: int) -> int:
    """floor(100 * completed / expected), kept within 0..100."""
    if expected <= 0:
        raise ValueError("expected resource count must be positive")
    return max(0, min(100, (100 * completed) // expected))
