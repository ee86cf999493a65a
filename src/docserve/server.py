"""aiohttp server for docserve.

Application factory and startup for serving a directory.
"""

import logging

from aiohttp import web

from docserve.app_keys import config_key, renderer_key
from docserve.config import Config
from docserve.core.renderer import MarkdownRenderer
from docserve.handler import create_routes, error_middleware

logger = logging.getLogger(__name__)


def create_app(config: Config) -> web.Application:
    """Create aiohttp application.

    The configuration is fixed here; handlers only ever read it.

    Args:
        config: Application configuration

    Returns:
        Configured aiohttp application

    Raises:
        FileNotFoundError: If the served root does not exist
        NotADirectoryError: If the served root is not a directory
    """
    config = config.resolve_root()

    app = web.Application(middlewares=[error_middleware])
    app[config_key] = config
    app[renderer_key] = MarkdownRenderer(config.serve.root)

    app.router.add_routes(create_routes())

    return app


def run_server(config: Config) -> None:
    """Run the server until interrupted.

    On SIGINT the listening socket is closed and the process exits.

    Args:
        config: Application configuration

    Raises:
        OSError: If the listening socket cannot be opened
    """
    app = create_app(config)
    logger.debug(
        f"Serving {config.serve.root} on {config.server.host}:{config.server.port} "
        f"(markdown={config.serve.markdown})"
    )
    web.run_app(app, host=config.server.host, port=config.server.port)
