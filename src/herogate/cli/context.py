"""
Helpers shared by the CLI commands.
"""

import logging
import re
import subprocess
from typing import Optional, Tuple

import click

from ..config import HerogateConfig
from ..provider import CloudProvider

logger = logging.getLogger(__name__)

GIT_REMOTE = "herogate"
CODECOMMIT_URL_PATTERN = re.compile(
    r"ssh://git-codecommit\.(.+)\.amazonaws\.com/v1/repos/(.+)"
)

ERROR_MARK = click.style("▸", fg="red")
WARN_MARK = click.style("▸", fg="yellow")


def fail(message: str) -> click.ClickException:
    return click.ClickException(f"{ERROR_MARK}    {message}")


def app_label(name: str) -> str:
    return click.style(f"⬢ {name}", fg="magenta")


def _git(*args: str) -> Optional[str]:
    """Run a git command in the current directory, returning stdout or None."""
    try:
        result = subprocess.run(
            ["git", *args], capture_output=True, text=True, check=False
        )
    except OSError as e:
        logger.debug(f"Failed to run git: {e}")
        return None
    if result.returncode != 0:
        logger.debug(f"git {' '.join(args)} failed: {result.stderr.strip()}")
        return None
    return result.stdout.strip()


def detect_app_from_repo() -> Tuple[str, str]:
    """
    Find (region, app name) from the herogate remote of the local repository.

    Returns empty strings when there is no such remote.
    """
    url = _git("remote", "get-url", GIT_REMOTE)
    if not url:
        return "", ""

    match = CODECOMMIT_URL_PATTERN.match(url)
    if not match:
        logger.debug(f"Failed to match URL pattern: {url}")
        return "", ""

    logger.debug(f"Detected application {match.group(2)} in {match.group(1)}")
    return match.group(1), match.group(2)


def add_git_remote(repository_url: str) -> None:
    if repository_url:
        _git("remote", "add", GIT_REMOTE, repository_url)


def remove_git_remote() -> None:
    _git("remote", "remove", GIT_REMOTE)


def resolve_app_name(*candidates: Optional[str]) -> str:
    """First non-empty explicit name, falling back to the git remote."""
    for candidate in candidates:
        if candidate:
            logger.debug(f"Override application name: {candidate}")
            return candidate
    _, name = detect_app_from_repo()
    if not name:
        raise fail("Missing required flag `-a`, You must specify an application name")
    return name


def make_provider(config: HerogateConfig) -> CloudProvider:
    return CloudProvider(region=config.region, profile=config.profile)
