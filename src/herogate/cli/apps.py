"""
Application commands: apps, apps:create, apps:info, apps:open, apps:destroy, ps.
"""

import threading
from urllib.parse import urljoin

import click
from haikunator import Haikunator

from ..cloudformation import StackManager, failure_report
from ..exceptions import HerogateError, UpstreamFailure
from .context import (
    WARN_MARK,
    add_git_remote,
    app_label,
    fail,
    make_provider,
    remove_git_remote,
    resolve_app_name,
)


def random_app_name() -> str:
    """Heroku-like name such as `young-eyrie-2409`."""
    return Haikunator().haikunate()


def _manager(ctx: click.Context) -> StackManager:
    config = ctx.obj
    return StackManager(provider=make_provider(config), config=config)


@click.command("apps")
@click.pass_context
def apps(ctx: click.Context) -> None:
    """List your apps."""
    try:
        found = _manager(ctx).list_apps()
    except HerogateError as e:
        raise fail(e.message)

    click.echo("=== Apps")
    for app in found:
        click.echo(app.name)
    click.echo("")


@click.command("apps:create")
@click.argument("name", required=False)
@click.pass_context
def apps_create(ctx: click.Context, name: str) -> None:
    """Create a new app. A random name is used when NAME is omitted."""
    name = name or random_app_name()
    manager = _manager(ctx)

    def render(percent: int) -> None:
        click.echo(f"Creating app... {percent}%\r", nl=False)

    cancel = threading.Event()
    try:
        app = manager.create_with_progress(name, render, cancel=cancel)
    except KeyboardInterrupt:
        cancel.set()
        click.echo("")
        raise fail(f"Interrupted; {name} is still being created in the background.")
    except UpstreamFailure as e:
        click.echo("")
        raise fail(failure_report(e))
    except HerogateError as e:
        raise fail(e.message)

    add_git_remote(app.repository_url)
    click.echo(f"Creating app... done, {app_label(name)}")
    click.echo(
        f"{click.style(app.endpoint_url, fg='cyan')} | "
        f"{click.style(app.repository_url, fg='green')}"
    )


@click.command("apps:info")
@click.argument("name", required=False)
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def apps_info(ctx: click.Context, name: str, app: str) -> None:
    """Show detailed app information."""
    name = resolve_app_name(name, app)
    try:
        info = _manager(ctx).get_app_info(name)
    except HerogateError:
        raise fail("Couldn't find that app.")

    click.echo(f"=== {info.app.name}")
    for i, container in enumerate(info.containers):
        label = "Containers:" if i == 0 else ""
        click.echo(f"{label:<18}{container.name}: {container.running_count}")
    if info.app.endpoint_url:
        click.echo(f"{'Web URL:':<18}{info.app.endpoint_url}")
    if info.app.repository_url:
        click.echo(f"{'Git URL:':<18}{info.app.repository_url}")
    click.echo(f"{'Status:':<18}{info.app.status.value}")
    click.echo(f"{'Region:':<18}{info.region}")
    click.echo(f"{'Platform Version:':<18}{info.app.platform_version}")


@click.command("apps:open")
@click.argument("path", required=False)
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def apps_open(ctx: click.Context, path: str, app: str) -> None:
    """Open the app in a web browser."""
    name = resolve_app_name(app)
    try:
        found = _manager(ctx).get_app(name)
    except HerogateError:
        raise fail("Couldn't find that app.")
    if not found.endpoint_url:
        raise fail("Couldn't open that app because it doesn't have an endpoint.")

    url = urljoin(found.endpoint_url, path) if path else found.endpoint_url
    if click.launch(url) != 0:
        raise fail(f"Opening the app error: {url}")


@click.command("apps:destroy")
@click.argument("name", required=False)
@click.option("--app", "-a", help="app to run command against")
@click.option("--confirm", help="app name to confirm the deletion with")
@click.pass_context
def apps_destroy(ctx: click.Context, name: str, app: str, confirm: str) -> None:
    """Permanently destroy an app."""
    name = resolve_app_name(name, app)
    manager = _manager(ctx)
    try:
        manager.get_app(name)
    except HerogateError:
        raise fail("Couldn't find that app.")

    if not confirm:
        click.echo(f"{WARN_MARK}    WARNING: This will delete {app_label(name)}")
        click.echo(
            f"{WARN_MARK}    To proceed, type {click.style(name, fg='red')} "
            "or re-run this command with"
        )
        click.echo(f"{WARN_MARK}    {click.style(f'--confirm {name}', fg='red')}\n")
        confirm = click.prompt(">", default="", show_default=False).strip()
    if confirm != name:
        raise fail(f"Confirmation did not match {name}. Aborted.")

    def render(percent: int) -> None:
        click.echo(f"Destroying {app_label(name)}... {percent}%\r", nl=False)

    cancel = threading.Event()
    try:
        manager.destroy_with_progress(name, render, cancel=cancel)
    except KeyboardInterrupt:
        cancel.set()
        click.echo("")
        raise fail(f"Interrupted; {name} is still being destroyed in the background.")
    except UpstreamFailure as e:
        click.echo("")
        raise fail(failure_report(e))
    except HerogateError as e:
        raise fail(e.message)

    remove_git_remote()
    click.echo(f"Destroying {app_label(name)}... done")


@click.command("ps")
@click.option("--app", "-a", help="app to run command against")
@click.pass_context
def ps(ctx: click.Context, app: str) -> None:
    """List the containers of an app."""
    name = resolve_app_name(app)
    try:
        info = _manager(ctx).get_app_info(name)
    except HerogateError:
        raise fail("Couldn't find that app.")

    for container in info.containers:
        command = " ".join(container.command) if container.command else "No commands"
        click.echo(
            f"=== {click.style(container.name, fg='green')} "
            f"({click.style(str(container.running_count), fg='yellow')}): {command}"
        )
        click.echo("")


COMMANDS = [apps, apps_create, apps_info, apps_open, apps_destroy, ps]
