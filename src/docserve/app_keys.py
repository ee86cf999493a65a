"""Application keys for type-safe app configuration access."""

from aiohttp import web

from docserve.config import Config
from docserve.core.renderer import MarkdownRenderer

config_key = web.AppKey("config", Config)
renderer_key = web.AppKey("renderer", MarkdownRenderer)
