"""Directory listing HTML."""

import html
import os
import posixpath
from pathlib import Path
from urllib.parse import quote

from docserve.core.paths import parent_url
from docserve.core.types import URLPath


def build_listing_html(url_path: URLPath, directory: Path) -> str:
    """Build the body fragment listing a directory.

    Entries are sorted by name. Directories get a trailing slash in both
    label and link. Below the root a parent link comes first.

    Args:
        url_path: Request path of the directory
        directory: Filesystem directory to list

    Returns:
        HTML fragment with a heading and an unordered list

    Raises:
        OSError: If the directory cannot be read
    """
    items: list[str] = []
    if url_path.strip("/"):
        items.append(_item(quote(parent_url(url_path)), "../"))

    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda e: e.name):
            name = entry.name
            is_dir = entry.is_dir()
            href = posixpath.join("/", quote(url_path.lstrip("/")), quote(name))
            if is_dir:
                name += "/"
                href += "/"
            items.append(_item(href, name))

    heading = f"<h1>Directory listing for {html.escape(url_path)}</h1>"
    return heading + "<ul>" + "".join(items) + "</ul>"


def _item(href: str, label: str) -> str:
    return f'<li><a href="{html.escape(href)}">{html.escape(label)}</a></li>'
