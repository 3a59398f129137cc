#!/usr/bin/env python3
"""Main CLI entry point for herogate."""

import dataclasses
import logging
import sys
from typing import Optional

import click

from .. import __version__
from ..config import ConfigManager
from . import apps, env, internal, logs
from .context import detect_app_from_repo, fail


@click.group()
@click.version_option(__version__, prog_name="herogate")
@click.option("--config-file", type=click.Path(dir_okay=False), envvar="HEROGATE_CONFIG",
              help="Configuration file (default: ~/.herogate/config.yaml)")
@click.option("--region", help="AWS region to operate in")
@click.option("--profile", help="AWS profile to use")
@click.option("--debug", is_flag=True, help="Show debug logs")
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[str],
    region: Optional[str],
    profile: Optional[str],
    debug: bool,
) -> None:
    """Deploy and manage containerized applications like Heroku on AWS."""
    try:
        config = ConfigManager(config_file).load()
    except ValueError as e:
        raise fail(str(e))

    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not region:
        # Apps live in the region of their repository
        region, _ = detect_app_from_repo()
    overrides = {}
    if region:
        overrides["region"] = region
    if profile:
        overrides["profile"] = profile
    ctx.obj = dataclasses.replace(config, **overrides)


for module in (apps, env, logs, internal):
    for command in module.COMMANDS:
        cli.add_command(command)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
