"""
Environment variable commands: config, config:get, config:set, config:unset.
"""

from typing import Dict, Tuple

import click

from ..cloudformation import StackManager, failure_report
from ..exceptions import HerogateError, NotFoundError, UpstreamFailure
from ..template import TemplateEditor
from .context import app_label, fail, make_provider, resolve_app_name


def parse_assignments(pairs: Tuple[str, ...]) -> Dict[str, str]:
    """Parse `KEY=VALUE` arguments. The value may itself contain `=`."""
    result = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise fail(f"{pair} is invalid. Must be in the format FOO=bar.")
        result[key] = value
    return result


def _print_vars(env: Dict[str, str]) -> None:
    if not env:
        return
    width = max(len(key) for key in env) + 1
    for key in sorted(env):
        click.echo(f"{click.style(f'{key}:'.ljust(width), fg='green')} {env[key]}")


def _env_vars(ctx: click.Context, name: str) -> Dict[str, str]:
    config = ctx.obj
    manager = StackManager(provider=make_provider(config), config=config)
    try:
        return manager.describe_env_vars(name)
    except HerogateError:
        raise fail("Couldn't find that app.")


def _edit(ctx: click.Context, name: str, action) -> None:
    editor = TemplateEditor(make_provider(ctx.obj))
    try:
        action(editor)
    except NotFoundError:
        raise fail("Couldn't find that app.")
    except UpstreamFailure as e:
        raise fail(failure_report(e))
    except HerogateError as e:
        raise fail(e.message)


@click.command("config")
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def config(ctx: click.Context, app: str) -> None:
    """Display the environment variables of an app."""
    name = resolve_app_name(app)
    env = _env_vars(ctx, name)
    click.echo(f"=== {app_label(name)} Config Vars")
    _print_vars(env)


@click.command("config:get")
@click.argument("key")
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def config_get(ctx: click.Context, key: str, app: str) -> None:
    """Display a single environment variable of an app."""
    name = resolve_app_name(app)
    click.echo(_env_vars(ctx, name).get(key, ""))


@click.command("config:set")
@click.argument("pairs", nargs=-1, required=True)
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def config_set(ctx: click.Context, pairs: Tuple[str, ...], app: str) -> None:
    """Set one or more environment variables, as KEY=VALUE pairs."""
    name = resolve_app_name(app)
    additions = parse_assignments(pairs)
    keys = ", ".join(sorted(additions))

    click.echo(f"Setting {keys} and restarting {app_label(name)}...")
    _edit(ctx, name, lambda editor: editor.set_env_vars(name, additions))
    click.echo("done")
    _print_vars(additions)


@click.command("config:unset")
@click.argument("keys", nargs=-1, required=True)
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def config_unset(ctx: click.Context, keys: Tuple[str, ...], app: str) -> None:
    """Unset one or more environment variables."""
    name = resolve_app_name(app)

    click.echo(f"Unsetting {', '.join(keys)} and restarting {app_label(name)}...")
    _edit(ctx, name, lambda editor: editor.unset_env_vars(name, keys))
    click.echo("done")


COMMANDS = [config, config_get, config_set, config_unset]
