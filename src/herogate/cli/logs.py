"""
The logs command.
"""

import threading

import click

from ..exceptions import HerogateError
from ..logs import LogAggregator
from ..models import LogFilter
from .context import fail, make_provider, resolve_app_name


@click.command("logs")
@click.option("--app", "-a", help="app to run command against")
@click.option("--num", "-n", type=int, default=100, show_default=True,
              help="number of lines to display")
@click.option("--ps", "-p", "process", help="process to limit output to")
@click.option("--source", "-s", help="log source to limit output to")
@click.option("--tail", "-t", is_flag=True, help="continually stream logs")
@click.pass_context
def logs(ctx: click.Context, app: str, num: int, process: str, source: str, tail: bool) -> None:
    """Display recent log output of an app."""
    name = resolve_app_name(app)
    config = ctx.obj
    aggregator = LogAggregator(
        make_provider(config), build_log_resolver=config.build_log_resolver
    )

    cancel = threading.Event()
    entries = aggregator.tail(
        name,
        LogFilter(process=process, source=source),
        num=num,
        follow=tail,
        interval=config.tail_interval,
        cancel=cancel,
    )
    try:
        for entry in entries:
            click.echo(entry.format())
    except KeyboardInterrupt:
        cancel.set()
    except HerogateError as e:
        raise fail(e.message)


COMMANDS = [logs]
