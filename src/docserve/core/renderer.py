"""Markdown rendering.

Converts Markdown bytes to an HTML fragment with mistune. On top of the
stock plugins this adds heading IDs, block attributes, list breaks on
double blank lines and `{{file}}` includes.
"""

import html
import logging
import os
import re
from pathlib import Path
from typing import Any

import mistune
from mistune.core import BlockState

from docserve.core.paths import is_in

logger = logging.getLogger(__name__)

PLUGINS = [
    "table",
    "strikethrough",
    "footnotes",
    "url",
    "def_list",
    "math",
    "superscript",
    "subscript",
]

MAX_INCLUDE_DEPTH = 10

FENCE_PATTERN = re.compile(r"^ {0,3}(`{3,}|~{3,})")

INCLUDE_PATTERN = re.compile(r"^\{\{\s*([^{}]+?)\s*\}\}\s*$")

LIST_ITEM_PATTERN = re.compile(r"^ {0,3}(?:[*+-]|\d{1,9}[.)])(?:[ \t]|$)")

ATTRIBUTE_LINE_PATTERN = re.compile(r"^\s*\{([^{}]*)\}\s*$")

HEADING_ATTRIBUTES_PATTERN = re.compile(r"\s*\{([^{}]*)\}\s*$")

ATTRIBUTE_PATTERN = re.compile(
    r"""#(?P<id>[\w\-:.]+)"""
    r"""|\.(?P<class>[\w\-]+)"""
    r"""|(?P<key>[\w\-]+)=(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"']+))"""
)

EXTERNAL_URL_PATTERN = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.\-]*:|//)")

OPENING_TAG_PATTERN = re.compile(r"^(\s*<[a-zA-Z][\w\-]*)")

# Marker HTML block that terminates an open list, removed after rendering
LIST_BREAK = "<!-- list-break -->"

LIST_BREAK_PATTERN = re.compile(re.escape(LIST_BREAK) + r"\n*")


class _HTMLRenderer(mistune.HTMLRenderer):
    """HTML renderer with link hardening, lazy images and block attributes."""

    def link(self, text: str, url: str, title: str | None = None) -> str:
        rendered = super().link(text, url, title)
        if EXTERNAL_URL_PATTERN.match(url):
            rendered = rendered.replace("<a ", '<a rel="noreferrer noopener" ', 1)
        return rendered

    def image(self, text: str, url: str, title: str | None = None) -> str:
        rendered = super().image(text, url, title)
        return rendered.replace("<img ", '<img loading="lazy" ', 1)

    def render_token(self, token: dict[str, Any], state: BlockState) -> str:
        block_attrs: dict[str, str] | None = token.pop("block_attrs", None)
        rendered = super().render_token(token, state)
        if not block_attrs:
            return rendered
        return OPENING_TAG_PATTERN.sub(
            lambda m: m.group(1) + _format_attributes(block_attrs),
            rendered,
            count=1,
        )


class MarkdownRenderer:
    """Renders Markdown to HTML fragments.

    Rendering is deterministic and never fails: malformed Markdown degrades
    to odd HTML instead of raising.
    """

    def __init__(self, root: Path | None = None) -> None:
        """Initialize renderer.

        Args:
            root: Directory that file includes must stay within.
                  If None, includes are not restricted.
        """
        self._root = root
        self._markdown = mistune.create_markdown(
            renderer=_HTMLRenderer(escape=False),
            plugins=PLUGINS,
        )
        self._markdown.before_render_hooks.append(_block_attributes_hook)
        self._markdown.before_render_hooks.append(_heading_ids_hook)

    def render(self, source: bytes, *, base_dir: Path | None = None) -> str:
        """Render Markdown source to an HTML fragment.

        Args:
            source: Raw Markdown bytes (decoded as UTF-8)
            base_dir: Directory that relative includes are resolved against.
                      If None, includes are left untouched.

        Returns:
            HTML fragment without a surrounding document
        """
        text = source.decode("utf-8", errors="replace")
        logger.debug(f"Rendering {len(text)} characters of markdown")
        text = self._preprocess(text, base_dir, [])
        result = self._markdown(text)
        if not isinstance(result, str):
            return ""
        return LIST_BREAK_PATTERN.sub("", result)

    def _preprocess(self, text: str, base_dir: Path | None, stack: list[Path]) -> str:
        """Resolve includes and insert list breaks outside code fences.

        Args:
            text: Markdown text
            base_dir: Directory for relative includes
            stack: Files currently being included (for cycle detection)

        Returns:
            Markdown text ready for parsing
        """
        lines = text.split("\n")
        result: list[str] = []
        fence: str | None = None
        blank_run = 0

        for line in lines:
            fence_match = FENCE_PATTERN.match(line)
            if fence is not None:
                blank_run = 0
                if fence_match and fence_match.group(1).startswith(fence):
                    fence = None
                result.append(line)
                continue
            if fence_match:
                fence = fence_match.group(1)

            if not line.strip():
                blank_run += 1
                result.append(line)
                continue

            if blank_run >= 2 and LIST_ITEM_PATTERN.match(line):
                result.extend([LIST_BREAK, ""])
            blank_run = 0

            include_match = INCLUDE_PATTERN.match(line)
            if include_match and base_dir is not None:
                included = self._include(include_match.group(1), base_dir, stack)
                if included is not None:
                    result.append(included)
                    continue

            result.append(line)

        return "\n".join(result)

    def _include(self, include_path: str, base_dir: Path, stack: list[Path]) -> str | None:
        """Resolve an include to preprocessed file content.

        Args:
            include_path: Path from the include line
            base_dir: Directory of the including file
            stack: Files currently being included

        Returns:
            Included content, or None to keep the include line as-is
        """
        if len(stack) >= MAX_INCLUDE_DEPTH:
            logger.warning("Include depth exceeded, stopping resolution")
            return None

        try:
            full_path = Path(os.path.realpath(base_dir / include_path))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not resolve include {include_path!r}: {e}")
            return None
        if self._root is not None and not is_in(full_path, self._root):
            logger.warning(f"Include outside of served root: {include_path}")
            return None
        if full_path in stack:
            logger.warning(f"Include cycle detected: {include_path}")
            return None

        try:
            content = full_path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            logger.warning(f"Could not resolve include {include_path!r}: {e}")
            return None

        logger.debug(f"Resolved include '{include_path}' to {full_path}")
        return self._preprocess(content, full_path.parent, [*stack, full_path])


def _parse_attributes(text: str) -> dict[str, str] | None:
    """Parse the inside of an attribute block like `#id .class key="value"`.

    Returns:
        Attributes in source order, or None if text is not a valid attribute list
    """
    text = text.strip()
    if not text:
        return None

    attrs: dict[str, str] = {}
    classes: list[str] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        match = ATTRIBUTE_PATTERN.match(text, pos)
        if match is None:
            return None
        if match.group("id") is not None:
            attrs["id"] = match.group("id")
        elif match.group("class") is not None:
            classes.append(match.group("class"))
        else:
            value = next(
                v for v in (match.group("dq"), match.group("sq"), match.group("bare")) if v is not None
            )
            attrs[match.group("key")] = value
        pos = match.end()

    if classes:
        attrs["class"] = " ".join(classes)
    return attrs


def _format_attributes(attrs: dict[str, str]) -> str:
    return "".join(f' {key}="{html.escape(value)}"' for key, value in attrs.items())


def _merge_attributes(pending: dict[str, str] | None, attrs: dict[str, str]) -> dict[str, str]:
    if pending is None:
        return attrs
    merged = dict(pending)
    if "class" in merged and "class" in attrs:
        attrs = {**attrs, "class": merged["class"] + " " + attrs["class"]}
    merged.update(attrs)
    return merged


def _block_attributes_hook(md: mistune.Markdown, state: BlockState) -> None:
    """Attach `{...}` attribute lines to the block that follows them."""
    _attach_block_attributes(state.tokens)


def _attach_block_attributes(tokens: list[dict[str, Any]]) -> None:
    pending: dict[str, str] | None = None
    result: list[dict[str, Any]] = []

    for token in tokens:
        setext_attrs = _setext_attribute_line(token)
        if setext_attrs is not None:
            # "{...}" over "---" is an attribute line followed by a rule
            pending = _merge_attributes(pending, setext_attrs)
            token = {"type": "thematic_break"}

        if token["type"] == "paragraph":
            first, _, rest = token.get("text", "").partition("\n")
            line_match = ATTRIBUTE_LINE_PATTERN.match(first)
            attrs = _parse_attributes(line_match.group(1)) if line_match else None
            if attrs is not None:
                pending = _merge_attributes(pending, attrs)
                if not rest.strip():
                    continue
                token["text"] = rest

        if token["type"] == "blank_line":
            result.append(token)
            continue

        if pending is not None:
            if token["type"] == "heading" and "id" in pending:
                pending = dict(pending)
                token["attrs"]["id"] = pending.pop("id")
            if pending:
                token["block_attrs"] = pending
            pending = None

        children = token.get("children")
        if isinstance(children, list):
            _attach_block_attributes(children)
        result.append(token)

    tokens[:] = result


def _setext_attribute_line(token: dict[str, Any]) -> dict[str, str] | None:
    if token["type"] != "heading" or token.get("style") != "setext":
        return None
    if token["attrs"].get("level") != 2:
        return None
    line_match = ATTRIBUTE_LINE_PATTERN.match(token.get("text", ""))
    return _parse_attributes(line_match.group(1)) if line_match else None


def _heading_ids_hook(md: mistune.Markdown, state: BlockState) -> None:
    """Give every heading an id: `{#custom}` if present, otherwise a slug."""
    used: dict[str, int] = {}
    for token in _iter_headings(state.tokens):
        text: str = token.get("text", "")
        attrs_match = HEADING_ATTRIBUTES_PATTERN.search(text)
        if attrs_match is not None:
            parsed = _parse_attributes(attrs_match.group(1))
            if parsed is not None:
                text = text[: attrs_match.start()]
                token["text"] = text
                if "id" in parsed:
                    token["attrs"]["id"] = parsed.pop("id")
                if parsed:
                    token["block_attrs"] = {**token.get("block_attrs", {}), **parsed}

        heading_id = token["attrs"].get("id") or _slugify(text)
        token["attrs"]["id"] = _unique(heading_id, used)


def _iter_headings(tokens: list[dict[str, Any]]):
    for token in tokens:
        if token["type"] == "heading":
            yield token
        children = token.get("children")
        if isinstance(children, list):
            yield from _iter_headings(children)


def _slugify(text: str) -> str:
    # drop link targets and inline markup before slugging
    text = re.sub(r"\]\([^)]*\)", "]", text)
    slug = re.sub(r"[^\w]+", "-", text.lower()).strip("-_")
    return slug or "section"


def _unique(slug: str, used: dict[str, int]) -> str:
    if slug not in used:
        used[slug] = 0
        return slug
    while True:
        used[slug] += 1
        candidate = f"{slug}-{used[slug]}"
        if candidate not in used:
            used[candidate] = 0
            return candidate
