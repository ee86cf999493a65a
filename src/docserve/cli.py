"""CLI interface for docserve.

Command-line tool for serving a directory over HTTP.
"""

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from docserve.config import CliOverrides, Config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.command()
@click.argument(
    "directory",
    type=click.Path(path_type=Path),
    required=False,
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to configuration file (default: auto-discover docserve.toml)",
)
@click.option(
    "--host",
    default=None,
    help="Host to bind to (overrides config, default: 127.0.0.1)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to listen on (overrides config, default: 8080)",
)
@click.option(
    "--md/--no-md",
    "markdown",
    default=None,
    help="Compile Markdown files to HTML (overrides config, default: disabled)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output (log every request)",
)
@click.version_option(package_name="docserve")
def cli(
    directory: Path | None,
    config_path: Path | None,
    host: str | None,
    port: int | None,
    markdown: bool | None,
    verbose: bool,
) -> None:
    """Serve DIRECTORY (default: current directory) over HTTP."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    from docserve.server import run_server

    overrides = CliOverrides(host=host, port=port, root=directory, markdown=markdown)
    try:
        config = Config.load(config_path, overrides).resolve_root()
    except (OSError, ValueError) as e:
        _fail(e)

    click.echo(f"Serving {config.serve.root}")
    click.echo(f"Markdown: {'enabled' if config.serve.markdown else 'disabled'}")
    click.echo(f"Listening on http://{config.server.host}:{config.server.port}")

    try:
        run_server(config)
    except OSError as e:
        _fail(e)


def _fail(error: Exception) -> NoReturn:
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    sys.exit(1)


if __name__ == "__main__":
    cli()
