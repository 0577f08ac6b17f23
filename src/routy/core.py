import contextlib
import copy
import dataclasses
import html
import http
import json
import logging
import os
import traceback
import urllib.parse
import wsgiref.headers
import wsgiref.simple_server
import wsgiref.types
from dataclasses import InitVar, dataclass, field

from . import routing
from . import util

import typing as t
_O = t.Optional
_T = t.TypeVar("_T")
Headers = wsgiref.headers.Headers
_AnyHeaders: t.TypeAlias = dict[str, str] | list[tuple[str, str]] | Headers
_Wrapper = t.Callable[[_T], _T]

logger = logging.getLogger("routy")


class HandlerFn(t.Protocol):
    def __call__(self, request: "Request", response: "Response",
                 /) -> t.Any: ...


Registrant = t.Callable[["App"], t.Any]


# Errors ------------------------------------------------------------------

class RoutyError(Exception):
    """Base for errors raised by routy itself."""


class ConfigError(RoutyError, ValueError):
    """Unknown or invalid App configuration."""


class ResponseFinalized(RoutyError, RuntimeError):
    """The response was already sent; it can't be written to again."""


@dataclass(kw_only=True)
class HttpError(RoutyError):
    """Throwable HTTP Error."""
    code: int = field(kw_only=False, default=500)
    short: str | None = field(kw_only=False, default=None)
    desc: str | None = None
    headers: dict[str, str] = field(default_factory=dict)  # type:ignore

    def __str__(self):
        return f"HTTP {self.code}" + (f": {self.short}" if self.short else "")

    def default_headers(self) -> dict[str, str]: return {}
    def all_headers(self): return self.default_headers() | self.headers
    def has_cause(self): return self.__cause__ is not None

    def exc_info(self):
        """Get the exception info tuple if this error was raised from an exception."""
        if self.has_cause():
            cause = t.cast(BaseException, self.__cause__)
            return (type(cause), cause, cause.__traceback__)
        return (type(self), self, self.__traceback__)

    def causes(self):
        cause = self.__cause__
        seen = []  # circular reference prevention
        while cause:
            if cause in seen:
                break
            yield cause
            seen.append(cause)
            cause = cause.__cause__

    @classmethod
    @contextlib.contextmanager
    def wrap_exceptions(cls, *args, **kwargs):
        try:
            yield
        except HttpError as ex:
            raise ex
        except Exception as ex:
            raise cls(*args, **kwargs) from ex


@dataclass(kw_only=True)
class NoRouteMatch(HttpError):
    """No route (and no scoped fallback) matched the request."""
    code: int = field(kw_only=False, default=404)
    method: str = ""
    path: str = ""


@dataclass(kw_only=True)
class HandlerFailure(HttpError):
    """A handler raised something other than an HttpError."""
    code: int = field(kw_only=False, default=500)


# Configuration -----------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Config:
    """Options recognized by App.

    `base` is stripped from every request path before matching, for apps
    deployed under a sub-directory. `root`, `views` and `layout` are kept
    for template helpers layered on top of the router.
    """
    base: str = ""
    root: str = ""
    views: str = "views"
    layout: str | None = None
    param_pattern: str = routing.DEFAULT_PARAM_PATTERN
    tracebacks: bool = True
    max_upload_size: int | None = None

    def __post_init__(self):
        base = routing.normalize_path(self.base) if self.base else ""
        object.__setattr__(self, "base", "" if base == "/" else base)

    @classmethod
    def from_options(cls, options: t.Mapping[str, t.Any] | None = None,
                     **kwargs) -> "Config":
        merged = {**(options or {}), **kwargs}
        known = {f.name for f in dataclasses.fields(cls)}
        if unknown := sorted(set(merged) - known):
            raise ConfigError(f"Unknown option(s): {', '.join(unknown)}")
        return cls(**merged)


# Request -----------------------------------------------------------------

_PATH_SAFE = "/:@!$&'()*+,;=~"


def _wsgi_path(environ: wsgiref.types.WSGIEnvironment) -> str:
    """PATH_INFO re-encoded as a normalized, percent-encoded path."""
    raw = environ.get("PATH_INFO", "") or "/"
    try:
        data = raw.encode("latin-1")  # PEP 3333 "bytes as latin-1" str
    except UnicodeEncodeError:
        data = raw.encode("utf-8")
    return routing.normalize_path(urllib.parse.quote(data, safe=_PATH_SAFE))


@dataclass
class Request:
    """One incoming request, as seen by handlers.

    Copies made with the `with_*` methods share the context bag and the
    body cache, so middleware state is visible further down the chain.
    """
    environ: wsgiref.types.WSGIEnvironment
    path: str
    method: str
    headers: Headers
    params: dict[str, str] | None = None
    tail: str = ""
    ctx: dict[str, t.Any] = field(default_factory=dict)
    max_upload_size: int | None = None
    http_errors: tuple[HttpError, ...] = field(default_factory=tuple)
    _cache: dict[str, t.Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_wsgi(cls, environ: wsgiref.types.WSGIEnvironment, *,
                  max_upload_size: int | None = None):
        hlist = [(k[5:].replace("_", "-").title(), v)
                 for k, v in environ.items() if k.startswith("HTTP_")]
        for k in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            if environ.get(k):
                hlist.append((k.replace("_", "-").title(), str(environ[k])))
        return cls(environ, _wsgi_path(environ), environ["REQUEST_METHOD"],
                   Headers(hlist), max_upload_size=max_upload_size)

    def with_path(self, path: str) -> t.Self:
        request = copy.copy(self)
        request.path = path
        return request

    def with_params(self, params: dict[str, str] | None, tail: str = "") -> t.Self:
        request = copy.copy(self)
        request.params = params
        request.tail = tail
        return request

    def with_context(self, defaults: t.Mapping[str, t.Any]) -> t.Self:
        request = copy.copy(self)
        request.ctx = {**defaults, **self.ctx}
        return request

    def with_error(self, http_error: HttpError) -> t.Self:
        request = copy.copy(self)
        request.http_errors = (http_error, *self.http_errors)
        return request

    # Context bag

    def set_ctx(self, key: str, value: t.Any) -> None:
        if key in self.ctx:
            raise KeyError(f"Context key {key!r} is already set")
        self.ctx[key] = value

    def get_ctx(self, key: str, default: t.Any = None) -> t.Any:
        return self.ctx.get(key, default)

    # Route and query values

    def param(self, name: str, default: _O[str] = None) -> _O[str]:
        return (self.params or {}).get(name, default)

    @property
    def query_string(self) -> str:
        return self.environ.get("QUERY_STRING", "")

    @property
    def query(self) -> dict[str, str]:
        return dict(urllib.parse.parse_qsl(self.query_string, keep_blank_values=True))

    def get_query(self, key: str, default: _O[str] = None) -> _O[str]:
        return self.query.get(key, default)

    @property
    def vars(self):
        return self.query | (self.params or {})

    # Headers and body

    def header(self, key: str, default: _O[str] = None) -> _O[str]:
        return self.headers.get(key, default)

    @property
    def content_type(self) -> tuple[str, dict[str, str]]:
        ct, opts = util.parse_header_options(self.headers.get("Content-Type", ""))
        return ct.lower(), {k.lower(): v for k, v in opts.items()}

    def body_bytes(self) -> bytes:
        if (body := self._cache.get("body")) is None:
            fp = self.environ.get("wsgi.input")
            try:
                length = int(self.environ.get("CONTENT_LENGTH") or 0)
            except ValueError:
                length = 0
            body = fp.read(length) if fp is not None and length > 0 else b""
            self._cache["body"] = body
        return body

    def body(self) -> t.Any:
        """Decode the body according to its Content-Type.

        JSON gives the decoded structure, form encodings give a dict of
        fields, and anything else comes back as raw bytes.
        """
        ct, opts = self.content_type
        if ct == "application/json" or ct.endswith("+json"):
            data = self.body_bytes()
            if not data:
                return None
            with HttpError.wrap_exceptions(400, "Malformed JSON body"):
                return json.loads(data)
        if ct == "application/x-www-form-urlencoded":
            text = self.body_bytes().decode(opts.get("charset", "utf-8"), "replace")
            return dict(urllib.parse.parse_qsl(text, keep_blank_values=True))
        if ct == "multipart/form-data":
            return self._multipart()[0]
        return self.body_bytes()

    def files(self, name: str) -> list[util.UploadedFile] | None:
        """Uploaded files for a form field, or None if none were sent."""
        if self.content_type[0] != "multipart/form-data":
            return None
        found = self._multipart()[1].get(name)
        if not found or not found[0].name:
            return None
        return list(found)

    def _multipart(self) -> tuple[dict[str, t.Any], dict[str, list[util.UploadedFile]]]:
        if (parsed := self._cache.get("multipart")) is None:
            with HttpError.wrap_exceptions(400, "Malformed multipart body"):
                parsed = util.parse_multipart(
                    self.body_bytes(), self.headers.get("Content-Type", ""),
                    max_file_size=self.max_upload_size)
            self._cache["multipart"] = parsed
        return parsed

    def cleanup(self) -> None:
        """Delete any spooled upload files."""
        if (parsed := self._cache.get("multipart")) is not None:
            util.remove_spooled(parsed[1])


# Response ----------------------------------------------------------------

_TEXTUAL = ("application/json", "application/javascript", "application/xml")


@dataclass(kw_only=True)
class Response:
    """The response a handler chain writes into.

    Any of send(), json(), redirect(), send_file() or end() finalizes the
    response, which stops the handler chain.
    """
    code: int = 200
    content_type: str | None = None
    charset: str = "utf-8"
    h: InitVar[_AnyHeaders | None] = None
    headers: Headers = field(init=False, default=None)  # type:ignore
    http_error: HttpError | None = None
    finalized: bool = field(init=False, default=False)

    def __post_init__(self, h: _AnyHeaders | None):
        self.headers = Headers(
            list(h.items()) if isinstance(h, dict) or isinstance(h, Headers)
            else list(h or [])
        )
        self._body: list[bytes] = []
        if self.http_error and self.http_error.code:
            self.code = self.http_error.code

    def _check_open(self):
        if self.finalized:
            raise ResponseFinalized(
                f"Response already sent with HTTP {self.code}")

    def status(self, code: int) -> t.Self:
        self._check_open()
        self.code = code
        return self

    def set_header(self, name: str, value: str) -> t.Self:
        self._check_open()
        self.headers[name] = value
        return self

    def remove_header(self, name: str) -> t.Self:
        self._check_open()
        del self.headers[name]
        return self

    def write(self, content: str | bytes) -> t.Self:
        self._check_open()
        self._body.append(content if isinstance(content, bytes)
                          else content.encode(self.charset))
        return self

    def end(self, code: _O[int] = None) -> None:
        """Finalize the response, optionally setting the status first."""
        if code is not None:
            self.status(code)
        self._check_open()
        self.finalized = True

    def send(self, data: str | bytes, code: _O[int] = None,
             content_type: _O[str] = None) -> None:
        self._check_open()
        if content_type:
            self.content_type = content_type
        self.write(data)
        self.end(code)

    def json(self, data: t.Any, code: _O[int] = None) -> None:
        self.send(json.dumps(data), code, "application/json")

    def redirect(self, uri: str, permanent: bool = False) -> None:
        self.set_header("Location", uri)
        self.end(301 if permanent else 302)

    def send_file(self, path: str | os.PathLike, content_type: _O[str] = None, *,
                  mime_types: t.Mapping[str, str] | None = None,
                  max_age: _O[int] = None) -> None:
        """Send a file's bytes, typing it by extension unless told otherwise."""
        self._check_open()
        with open(path, "rb") as fp:
            data = fp.read()
        if max_age is not None:
            del self.headers["Expires"]
            del self.headers["Pragma"]
            self.headers["Cache-Control"] = f"max-age={int(max_age)}"
        self.send(data, content_type=content_type or util.guess_mime_type(path, mime_types))

    def set_content(self, content: t.Any) -> None:
        """Called when a handler returns a non-null result."""
        match content:
            case str() | bytes():
                self.send(content)
            case dict() | list() | tuple():
                self.json(content)
            case _:
                raise TypeError(f"Handler returned unsupported {type(content).__name__}")

    @property
    def body(self) -> bytes:
        return b"".join(self._body)

    def _http_status(self) -> str:
        """Get the HTTP status text for the current response code."""
        try:
            return http.HTTPStatus(self.code).phrase
        except ValueError:
            return "StatusPhraseUnknown"

    def _wsgi_start_response_args(self):
        """Get the args that will go to WSGI's start_response()."""
        status_line = f"{self.code} {self._http_status()}"
        if self.http_error and self.http_error.has_cause():
            return (status_line, self.headers.items(), self.http_error.exc_info())
        return (status_line, self.headers.items(), None)

    def _apply_default_headers(self):
        """Set headers that cannonically apply to this response."""
        content_type = self.content_type or ("text/html" if self._body else None)
        if content_type:
            textual = content_type.startswith("text/") or content_type in _TEXTUAL
            cs = f";charset={self.charset}" if textual and self.charset else ""
            self.headers.setdefault("Content-Type", f"{content_type}{cs}")
        self.headers.setdefault("Content-Length", str(sum(map(len, self._body))))
        if self.http_error:
            for k, v in self.http_error.all_headers().items():
                self.headers.setdefault(k, v)

    def _wsgi_response(self) -> t.Iterable[bytes]:
        return tuple(self._body)


# Router ------------------------------------------------------------------

@dataclass
class _Scope:
    prefix: str
    middleware: list[HandlerFn] = field(default_factory=list)


class App:
    """Route table plus first-match dispatcher, usable as a WSGI app.

    Routes are checked in registration order and the first one whose
    method set and pattern match runs its handler chain; nothing after it
    is considered.
    """

    def __init__(self, config: Config | t.Mapping[str, t.Any] | None = None, *,
                 context: t.Mapping[str, t.Any] | None = None, **options):
        if isinstance(config, Config):
            config = dataclasses.asdict(config)
        self.config = Config.from_options(config, **options)
        self.context: dict[str, t.Any] = dict(context or {})
        self.routes: list[routing.RouteEntry] = []
        self.fallbacks: list[routing.Fallback] = []
        self.errorhandlers: dict[int | type | None, HandlerFn] = dict()
        self._scopes: list[_Scope] = [_Scope("/")]

    def get_config(self, key: str) -> t.Any:
        return getattr(self.config, key, None)

    # Declaration ---------------------------------------------------------

    def route(self, methods: str | t.Iterable[str], pattern: str,
              *handlers: HandlerFn) -> t.Any:
        """Register handlers for a method set and pattern.

        With no handlers, returns a decorator instead:

            @app.route("GET|POST", "/form")
            def form(request, response): ...
        """
        if not handlers:
            def decorator(handlerfn: HandlerFn):
                self.add_route(methods, pattern, handlerfn)
                return handlerfn
            return decorator
        return self.add_route(methods, pattern, *handlers)

    def get(self, pattern: str, *handlers: HandlerFn):
        return self.route("GET", pattern, *handlers)

    def post(self, pattern: str, *handlers: HandlerFn):
        return self.route("POST", pattern, *handlers)

    def put(self, pattern: str, *handlers: HandlerFn):
        return self.route("PUT", pattern, *handlers)

    def patch(self, pattern: str, *handlers: HandlerFn):
        return self.route("PATCH", pattern, *handlers)

    def delete(self, pattern: str, *handlers: HandlerFn):
        return self.route("DELETE", pattern, *handlers)

    def any(self, pattern: str, *handlers: HandlerFn):
        return self.route(routing.WILDCARD, pattern, *handlers)

    def add_route(self, methods: str | t.Iterable[str], pattern: str,
                  *handlers: HandlerFn) -> routing.RouteEntry:
        _check_handlers(handlers)
        entry = routing.RouteEntry(
            routing.parse_methods(methods),
            routing.join_path(self.prefix, pattern),
            (*self._middleware(), *handlers))
        self.routes.append(entry)
        logger.debug("Registered %r", entry)
        return entry

    def fallback(self, *handlers: HandlerFn) -> t.Any:
        """Register a not-found chain for the current group prefix.

        The response status is preset to 404 before the chain runs.
        """
        if not handlers:
            def decorator(handlerfn: HandlerFn):
                self.fallback(handlerfn)
                return handlerfn
            return decorator
        _check_handlers(handlers)
        entry = routing.Fallback(self.prefix, (*self._middleware(), *handlers))
        self.fallbacks.append(entry)
        logger.debug("Registered fallback for %s", entry.prefix)
        return entry

    not_found = fallback

    def errorhandler(self, error: int | type | None) -> _Wrapper[HandlerFn]:
        def decorator(handlerfn: HandlerFn):
            self.set_errorhandler(error, handlerfn)
            return handlerfn
        return decorator

    def set_errorhandler(self, error: int | type | None, handler: HandlerFn):
        _check_handlers((handler,))
        self.errorhandlers[error] = handler

    # Grouping ------------------------------------------------------------

    @property
    def prefix(self) -> str:
        return routing.join_path(*(s.prefix for s in self._scopes))

    def _middleware(self) -> tuple[HandlerFn, ...]:
        return tuple(mw for s in self._scopes for mw in s.middleware)

    @contextlib.contextmanager
    def scope(self, prefix: str, middleware: t.Iterable[HandlerFn] = ()):
        """Context manager form of group():

            with app.scope("/api"):
                app.get("/ping", ping)
        """
        self._scopes.append(_Scope(routing.normalize_path(prefix), list(middleware)))
        try:
            yield self
        finally:
            self._scopes.pop()

    def group(self, prefix: str, *registrants: "Registrant | App",
              middleware: t.Iterable[HandlerFn] = ()) -> None:
        """Run each registrant with `prefix` pushed onto the group stack.

        A registrant is a callable taking this App, which registers routes
        as usual, or another App whose routes get merged in.
        """
        with self.scope(prefix, middleware):
            for registrant in registrants:
                if isinstance(registrant, App):
                    self.mount(registrant)
                else:
                    registrant(self)

    with_ = group

    def use(self, prefix_or_middleware: "str | HandlerFn | App",
            *useables: "HandlerFn | App") -> None:
        """Add middleware, or mount sub-apps under a prefix.

        `use(mw, ...)` prepends middleware to every route and fallback
        registered afterwards in the current group.

        `use("/prefix", mw, sub_app, ...)` mounts each sub-app under the
        prefix; middleware listed before a sub-app runs ahead of its routes.
        """
        if not isinstance(prefix_or_middleware, str):
            for item in (prefix_or_middleware, *useables):
                if isinstance(item, App):
                    self.mount(item)
                else:
                    _check_handlers((item,))
                    self._scopes[-1].middleware.append(item)
            return
        if not any(isinstance(u, App) for u in useables):
            raise ValueError("use() with a prefix needs at least one App to mount")
        collected: list[HandlerFn] = []
        with self.scope(prefix_or_middleware):
            for item in useables:
                if isinstance(item, App):
                    self.mount(item, collected)
                else:
                    _check_handlers((item,))
                    collected.append(item)

    def mount(self, app: "App", middleware: t.Sequence[HandlerFn] = ()) -> None:
        """Merge another App's routes and fallbacks in at the current prefix."""
        if app is self:
            raise ValueError("Cannot mount an App into itself")
        chain = (*self._middleware(), *middleware)
        self.routes.extend(r.with_prefix(self.prefix, chain) for r in app.routes)
        self.fallbacks.extend(f.with_prefix(self.prefix, chain) for f in app.fallbacks)
        for key, handler in app.errorhandlers.items():
            self.errorhandlers.setdefault(key, handler)
        logger.debug("Mounted %d route(s) at %s", len(app.routes), self.prefix)

    def serve_static(self, prefix: str, directory: str | os.PathLike, *,
                     mime_types: t.Mapping[str, str] | None = None,
                     max_age: int = 3600, index: str = "index.html"):
        """Serve files from `directory` under `prefix`.

        Extension-less paths fall back to `index` when it exists, which
        suits single page apps. Register this after the app's other routes.
        """
        root = os.path.realpath(directory)

        def static_handler(request: Request, response: Response):
            rel = urllib.parse.unquote(request.tail).strip("/")
            target = os.path.realpath(os.path.join(root, rel))
            if target != root and not target.startswith(root + os.sep):
                return response.end(404)
            index_file = os.path.join(root, index)
            if not util.file_extension(target) and os.path.isfile(index_file):
                target = index_file
            elif not os.path.isfile(target):
                return response.end(404)
            response.send_file(target, mime_types=mime_types, max_age=max_age)

        return self.route("GET|HEAD", routing.join_path(prefix, routing.WILDCARD),
                          static_handler)

    # Dispatch ------------------------------------------------------------

    def dispatch(self, request: Request) -> Response:
        """Run the first matching handler chain; errors become responses."""
        request = request.with_context(self.context)
        try:
            with HandlerFailure.wrap_exceptions():
                return self._route(request)
        except HttpError as http_error:
            self._log_error(request, http_error)
            return self.handle_error(request, http_error)

    def _route(self, request: Request) -> Response:
        path = self._local_path(request.path)
        if path is None:
            raise NoRouteMatch(method=request.method, path=request.path)
        if path != request.path:
            request = request.with_path(path)
        for entry in self.routes:
            match = entry.match(request.method, path, self.config.param_pattern)
            if match is None:
                continue
            logger.debug("%s %s -> %r", request.method, path, entry)
            params = dict(match.params) if match.params else None
            request = request.with_params(params, match.tail)
            return self._run_chain(entry.handlers, request, Response())
        if fallback := self.get_fallback(path):
            logger.debug("%s %s -> fallback %s", request.method, path, fallback.prefix)
            return self._run_chain(fallback.handlers, request, Response(code=404))
        raise NoRouteMatch(method=request.method, path=path)

    def _run_chain(self, handlers: t.Iterable[HandlerFn], request: Request,
                   response: Response) -> Response:
        for handler in handlers:
            content = handler(request, response)
            if content is response:  # chained writer calls return self
                content = None
            elif isinstance(content, Response):
                if response.http_error and not content.http_error:
                    content.http_error = response.http_error
                content.finalized = True
                return content
            if content is not None:
                response.set_content(content)
            if response.finalized:
                break
        return response

    def _local_path(self, path: str) -> str | None:
        base = self.config.base
        if not base:
            return path
        if path == base:
            return "/"
        if path.startswith(base + "/"):
            return path[len(base):]
        return None

    def get_fallback(self, path: str) -> routing.Fallback | None:
        """The most specific fallback covering `path`; earliest wins ties."""
        covering = [f for f in self.fallbacks if f.covers(path)]
        return max(covering, key=lambda f: len(f.prefix), default=None)

    # Errors --------------------------------------------------------------

    def _log_error(self, request: Request, http_error: HttpError):
        if isinstance(http_error, HandlerFailure):
            logger.error("Handler failed for %s %s", request.method, request.path,
                         exc_info=http_error.exc_info())
        else:
            logger.debug("%s %s -> %s", request.method, request.path, http_error)

    def handle_error(self, request: Request, http_error: HttpError) -> Response:
        handler = self.get_error_handler(http_error) or self.default_error_handler
        try:
            with HandlerFailure.wrap_exceptions():
                return self._run_chain((handler,), request.with_error(http_error),
                                       Response(http_error=http_error))
        except HttpError as ex:
            logger.error("Error handler failed while handling %s", http_error,
                         exc_info=ex.exc_info())
            return self.fallback_error_response(http_error)

    def get_error_handler(self, http_error: HttpError) -> HandlerFn | None:
        for cls in type(http_error).__mro__:  # Exception type handers
            if h := self.errorhandlers.get(cls):
                return h
        for c in http_error.causes():  # handlers for causal exceptions
            if h := self.errorhandlers.get(type(c)):
                return h
        if h := self.errorhandlers.get(http_error.code):  # error code handler
            return h
        return self.errorhandlers.get(None)  # default handler

    def default_error_handler(self, request: Request, response: Response):
        if not request.http_errors:
            raise HttpError(
                500, "Error handler called with no error",
                desc="Error handler was invoked with no error attached to the "
                "request. (That is, itself, an error.)")
        err = request.http_errors[0]
        response.write(f"<h2>HTTP {response.code} - {response._http_status()}</h2>\n")
        if err.short:
            response.write(f"<h3>{html.escape(err.short)}</h3>\n")
        if err.desc:
            response.write(f"<div>{html.escape(err.desc)}</div>\n")
        if err.has_cause():
            exc_type, exc, tb = err.exc_info()
            response.write(f"<pre>{html.escape(repr(exc))}</pre>\n")
            if self.config.tracebacks:
                text = "".join(traceback.format_exception(exc_type, exc, tb))
                response.write(f"<pre>{html.escape(text)}</pre>\n")
        response.end()

    def fallback_error_response(self, http_error: HttpError) -> Response:
        response = Response(http_error=http_error, content_type="text/plain")
        response.send(
            "The server encountered the following error:\n"
            f"HTTP({http_error.code}): {http_error.short}\n\n"
            f"During the handling another error was encountered.\n")
        return response

    # Server Running ----------------------------------------------------

    def make_server(self, port=8080, host=''):
        return wsgiref.simple_server.make_server(host, port, self)

    def serve_forever(self, port=8080, host=''):
        logger.info("Serving on %s:%s -- ctrl+c to quit.", host, port)
        try:
            self.make_server(port, host).serve_forever()
        except KeyboardInterrupt:
            pass

    def __call__(self, environ, start_response):
        """WSGI entrypoint."""
        request = Request.from_wsgi(environ, max_upload_size=self.config.max_upload_size)
        try:
            response = self.dispatch(request)
            response._apply_default_headers()
            start_response(*response._wsgi_start_response_args())
            if request.method == "HEAD":  # headers only, Content-Length kept
                return ()
            return response._wsgi_response()
        finally:
            request.cleanup()


def _check_handlers(handlers: t.Sequence[t.Any]):
    if not handlers:
        raise ValueError("At least one handler is required")
    for h in handlers:
        if not callable(h):
            raise TypeError(f"Handler {h!r} is not callable")
