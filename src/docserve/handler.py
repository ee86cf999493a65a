"""Request routing for the served directory.

Every request path is mapped onto the served root and answered by the
first matching branch: directory (index.html, README.md or a generated
listing), Markdown file (rendered when enabled) or plain file.
"""

import logging
import os
import stat
from pathlib import Path

from aiohttp import web
from aiohttp.typedefs import Handler

from docserve.app_keys import config_key, renderer_key
from docserve.core.document import MARKDOWN_LIBS, RenderedDocument, document_response
from docserve.core.listing import build_listing_html
from docserve.core.paths import is_in, parent_url, resolve_request_path
from docserve.core.types import URLPath

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.html"
README_FILENAME = "readme.md"


def create_routes() -> list[web.RouteDef]:
    return [
        web.get("/{path:.*}", handle),
    ]


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Turn every failure inside a handler into an HTTP error response.

    HTTP exceptions pass through unchanged. Anything else becomes a 500 so
    one broken request never takes the listener down.
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status >= 500:
            logger.error(f"error during request: code={e.status} error={e.text}")
        elif e.status >= 400:
            logger.debug(f"error during request: code={e.status} error={e.text}")
        raise
    except Exception as e:
        logger.exception(f"Unexpected error during request to {request.rel_url}")
        raise web.HTTPInternalServerError(
            text=f"error during request to {request.rel_url}: {e}",
        ) from e


async def handle(request: web.Request) -> web.StreamResponse:
    config = request.app[config_key]
    url_path = URLPath(request.path)
    root = config.serve.root

    target = _resolve(root, url_path)
    logger.debug(
        f"Request {request.method} {request.rel_url} path={target} remote={request.remote}"
    )

    info = _stat(target, url_path)

    if stat.S_ISDIR(info.st_mode):
        return _serve_directory(request, url_path, target)

    if config.serve.markdown and url_path.endswith(".md"):
        return _serve_markdown(request, url_path, target, dir_path=parent_url(url_path))

    # content type follows the requested name, not the symlink target
    return web.FileResponse(root / url_path.lstrip("/"))


def _resolve(root: Path, url_path: URLPath) -> Path:
    """Resolve the request path, refusing anything outside the root.

    Paths outside the root are reported exactly like missing ones.
    """
    try:
        target = resolve_request_path(root, url_path)
    except ValueError:
        raise _not_found(url_path) from None
    if not is_in(target, root):
        raise _not_found(url_path)
    return target


def _stat(target: Path, url_path: URLPath) -> os.stat_result:
    try:
        return target.stat()
    except (FileNotFoundError, NotADirectoryError):
        raise _not_found(url_path) from None
    except OSError as e:
        raise web.HTTPInternalServerError(
            text=f'failed to check if file "{url_path}" exists: {e}',
        ) from e


def _serve_directory(request: web.Request, url_path: URLPath, directory: Path) -> web.StreamResponse:
    """Serve a directory.

    index.html wins; otherwise README.md when Markdown is enabled;
    otherwise a generated listing.
    """
    config = request.app[config_key]
    root = config.serve.root

    index_path = directory / INDEX_FILENAME
    index_info = _stat_special(index_path, root)
    if index_info is not None:
        if stat.S_ISDIR(index_info.st_mode):
            # a directory called index.html has to be requested explicitly
            raise _not_found(url_path)
        logger.debug("serving index.html")
        return web.FileResponse(index_path)

    if config.serve.markdown:
        readme_path = _find_readme(directory, root)
        if readme_path is not None:
            logger.debug(f"serving {readme_path.name}")
            return _serve_markdown(request, url_path, readme_path, dir_path=url_path)

    try:
        body = build_listing_html(url_path, directory)
    except OSError as e:
        raise web.HTTPInternalServerError(
            text=f'failed to serve directory listing for "{url_path}": {e}',
        ) from e

    return document_response(
        request,
        RenderedDocument(title=url_path, body=body, dir_path=url_path),
    )


def _serve_markdown(
    request: web.Request,
    url_path: URLPath,
    source_path: Path,
    *,
    dir_path: str,
) -> web.Response:
    renderer = request.app[renderer_key]
    try:
        source = source_path.read_bytes()
    except OSError as e:
        raise web.HTTPInternalServerError(
            text=f'failed to read Markdown file "{url_path}": {e}',
        ) from e

    body = renderer.render(source, base_dir=source_path.parent)
    return document_response(
        request,
        RenderedDocument(title=url_path, body=body, dir_path=dir_path, libs=MARKDOWN_LIBS),
    )


def _stat_special(path: Path, root: Path) -> os.stat_result | None:
    """Stat a well-known file inside a served directory.

    Returns:
        Stat result, or None if the file is missing or points outside root
    """
    try:
        info = path.stat()
    except (FileNotFoundError, NotADirectoryError):
        return None
    if not is_in(os.path.realpath(path), root):
        return None
    return info


def _find_readme(directory: Path, root: Path) -> Path | None:
    """Find README.md in any letter case; the first name in sorted order wins."""
    with os.scandir(directory) as entries:
        names = sorted(entry.name for entry in entries if entry.name.lower() == README_FILENAME)

    for name in names:
        info = _stat_special(directory / name, root)
        if info is not None and stat.S_ISREG(info.st_mode):
            return directory / name
    return None


def _not_found(url_path: URLPath) -> web.HTTPNotFound:
    return web.HTTPNotFound(text=f'file "{url_path}" does not exist')
