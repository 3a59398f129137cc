"""
Commands run by the platform itself rather than by users.
"""

from pathlib import Path

import click

from ..exceptions import HerogateError
from ..template import TemplateEditor
from .context import fail, make_provider


@click.command("internal:generate-template", hidden=True)
@click.argument("app_name")
@click.argument("image")
@click.option("--procfile", default="Procfile", show_default=True,
              type=click.Path(dir_okay=False), help="Procfile to read processes from")
@click.pass_context
def generate_template(ctx: click.Context, app_name: str, image: str, procfile: str) -> None:
    """Print the app template with container definitions rebuilt for IMAGE."""
    path = Path(procfile)
    text = path.read_text() if path.exists() else ""

    editor = TemplateEditor(make_provider(ctx.obj))
    try:
        click.echo(editor.generate_template(app_name, image, text), nl=False)
    except HerogateError as e:
        raise fail(e.message)


COMMANDS = [generate_template]
