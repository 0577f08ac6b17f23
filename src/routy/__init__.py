"""Routy is a small request router for Python WSGI.

Routes are declared in order with `:name` placeholders, optionally nested
under group prefixes, and the first route matching a request's method and
path runs its handler chain.
"""

from .core import (
    App, Config, Request, Response, HandlerFn,
    RoutyError, ConfigError, ResponseFinalized,
    HttpError, NoRouteMatch, HandlerFailure,
)
from .routing import Match, RouteEntry, Fallback, match_path, normalize_path
from .util import UploadedFile, guess_mime_type, MIME_TYPES

__all__ = [
    "App", "Config", "Request", "Response", "HandlerFn",
    "RoutyError", "ConfigError", "ResponseFinalized",
    "HttpError", "NoRouteMatch", "HandlerFailure",
    "Match", "RouteEntry", "Fallback", "match_path", "normalize_path",
    "UploadedFile", "guess_mime_type", "MIME_TYPES",
]
