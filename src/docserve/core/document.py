"""HTML document wrapping with live-reload support.

Every generated page embeds a hash of its body. A small script polls the
page with HEAD requests and reloads it once the `Serve-Hash` header no
longer matches.
"""

import base64
import hashlib
import html
import json
from collections.abc import Sequence
from dataclasses import dataclass, field

from aiohttp import web

from docserve.assets import read_asset

HASH_HEADER = "Serve-Hash"

MATHJAX = '<script id="MathJax-script" async defer src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>'
HIGHLIGHT_STYLE = '<link rel="stylesheet" href="https://cdn.jsdelivr.net/gh/highlightjs/cdn-release@11.9.0/build/styles/github-dark.min.css">'
HIGHLIGHT_SCRIPT = '<script src="https://cdn.jsdelivr.net/gh/highlightjs/cdn-release@11.9.0/build/highlight.min.js"></script>'
HIGHLIGHT_INIT = "<script defer>hljs.highlightAll();</script>"

# Libraries appended to rendered Markdown pages, in this order
MARKDOWN_LIBS = (MATHJAX, HIGHLIGHT_STYLE, HIGHLIGHT_SCRIPT, HIGHLIGHT_INIT)


def content_hash(body: str) -> str:
    """Return the change-detection token for a body fragment.

    Base64 of the SHA-1 digest. Not a security measure, only compared for
    equality by the polling script.
    """
    digest = hashlib.sha1(body.encode("utf-8"), usedforsecurity=False).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass(frozen=True)
class RenderedDocument:
    """A page ready to be sent: title, body fragment and extra library tags."""

    title: str
    body: str
    dir_path: str = ""
    libs: Sequence[str] = field(default_factory=tuple)

    @property
    def hash(self) -> str:
        return content_hash(self.body)

    def html(self) -> str:
        return build_document(self.title, self.body, self.dir_path, self.libs)


def build_document(
    title: str,
    body: str,
    dir_path: str = "",
    libs: Sequence[str] = (),
) -> str:
    """Wrap a body fragment into a complete HTML page.

    Args:
        title: Page title (escaped)
        body: HTML fragment placed inside <main>
        dir_path: URL directory that relative links starting with "." resolve against
        libs: HTML snippets appended verbatim after the body, in order

    Returns:
        Complete HTML document
    """
    parts = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1">',
        f"<style>{read_asset('style.css')}</style>",
        f'<meta name="serve-hash" content="{content_hash(body)}">',
        f"<script>const dirPath = {_js_string(dir_path)};</script>",
        f"<title>{html.escape(title)}</title>",
        "</head>",
        "<body>",
        f"<main>{body}</main>",
        *libs,
        f"<script defer>{read_asset('reload.js')}</script>",
        f"<script defer>{read_asset('anchors.js')}</script>",
        "</body>",
        "</html>",
    ]
    return "".join(parts)


def document_response(request: web.Request, document: RenderedDocument) -> web.Response:
    """Build the HTTP response for a generated page.

    Generated pages are never cached; the polling script depends on fresh
    HEAD responses. HEAD requests get the headers only.

    Args:
        request: Incoming request
        document: Page to send

    Returns:
        Response with text/html content and the Serve-Hash header
    """
    headers = {
        "Cache-Control": "no-store",
        HASH_HEADER: document.hash,
    }
    if request.method == "HEAD":
        return web.Response(content_type="text/html", charset="utf-8", headers=headers)
    return web.Response(
        text=document.html(),
        content_type="text/html",
        charset="utf-8",
        headers=headers,
    )


def _js_string(value: str) -> str:
    # "</" would end the inline script early
    return json.dumps(value).replace("</", "<\\/")
