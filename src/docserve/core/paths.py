"""Path containment checks for the served root.

Nothing outside the served root may ever be answered, no matter how the
request path is spelled.
"""

import os
import posixpath
from pathlib import Path

from docserve.core.types import URLPath


def is_in(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    """Check whether path is root itself or lies below it.

    Both paths are made absolute and lexically cleaned first; nothing is
    read from the filesystem. A path that cannot be normalized is treated
    as outside.

    Args:
        path: Candidate path
        root: Directory the candidate must stay within

    Returns:
        True if path equals root or is a descendant of it
    """
    try:
        abs_path = os.path.abspath(path)
        abs_root = os.path.abspath(root)
    except (OSError, ValueError):
        return False

    if abs_path == abs_root:
        return True

    try:
        rel_path = os.path.relpath(abs_path, abs_root)
    except ValueError:
        # different drives on Windows
        return False

    return (
        len(rel_path) != 0
        and rel_path != os.pardir
        and not rel_path.startswith(os.pardir + os.sep)
    )


def resolve_request_path(root: Path, url_path: URLPath) -> Path:
    """Map a request path onto the filesystem below root.

    Symlinks are followed so the containment check sees the real target.

    Args:
        root: Absolute served root
        url_path: URL-decoded request path

    Returns:
        Absolute real path; may be outside root, callers must check with is_in()

    Raises:
        ValueError: If the path contains a null byte
    """
    if "\0" in url_path:
        raise ValueError("embedded null byte in request path")
    relative = url_path.lstrip("/")
    return Path(os.path.realpath(os.path.join(root, relative)))


def parent_url(url_path: URLPath) -> URLPath:
    """Return the URL of the directory containing url_path."""
    parent = posixpath.dirname(url_path.rstrip("/")) or "/"
    return URLPath(parent if parent.endswith("/") else parent + "/")
