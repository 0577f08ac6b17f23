from tests.util import wsgi
from tests import _config

import typing as t
import routy
from dataclasses import dataclass
from _pytest.assertion import util as _pytest_util


@dataclass(slots=True)
class _Fault:
    key: str
    want: t.Any
    got: t.Any

    def __str__(self):
        return f"{self.key}: expected={self.want!r}, got={self.got!r}"


def basic_handler(content: t.Any):
    def handler(request: routy.Request, response: routy.Response):
        return content
    return handler


def recorder(log: list, name: str):
    """Middleware-style handler that records that it ran."""
    def handler(request: routy.Request, response: routy.Response):
        log.append(name)
    return handler


def assert_response(resp: wsgi.Response,
                    code: int,
                    content: None | str | bytes | dict | list = None,
                    headers: None | dict[str, str] = None):
    __tracebackhide__ = True
    faults = []

    if code != resp.code:
        faults.append(_Fault("Response.code", code, resp.code))

    if content is not None:
        match content:
            case bytes():
                resp_content = resp.output_bytes()
            case str():
                resp_content = resp.output_str()
            case dict() | list():
                resp_content = resp.output_json()
            case _:
                raise ValueError(f"content is unknown type: ({type(content)})")
        if content != resp_content:
            faults.append(_Fault("Response.content", content, resp_content))

    if headers:
        for k, want, got in _headers_zip(headers, resp.headers_normalized):
            if want == got or _header_normalize(want) == _header_normalize(got):
                continue
            faults.append(_Fault(f"Response.header[{k}]", want, got))

    if faults:
        if len(faults) == 1 and not _config.verbose:
            msg = str(faults[0])
        else:
            details = [repr(resp), *[f">> {f}" for f in faults]]
            if _config.verbose:
                details.append(">-----RESPONSE DUMP-----")
                details.extend(
                    f">|{line}" for line in resp.dump().splitlines())
            msg = "\n".join(details)
        raise AssertionError(_pytest_util.format_explanation(msg))


def assert_produces_response(
        app: wsgi.WSGIApplication,
        url: str,
        code: int,
        content: str | bytes | dict | list | None = None,
        headers: None | dict[str, str] = None,
        **argv):
    __tracebackhide__ = True
    got = wsgi.Request(url, **argv).get_response(app)
    assert_response(got, code, content, headers)
    return got


def _headers_zip(want: dict[str, str], got: dict[str, str]):
    """Yields (key, want, got) ignoring case on keys."""
    want = {k.lower():v for k,v in want.items()}
    got = {k.lower():v for k,v in got.items()}
    for k, v_want in want.items():
        v_got = got.get(k)
        yield k, v_want, v_got


def _header_normalize(val: str | None):
    if val is None:
        return None
    return ",".join(sorted(s.strip() for s in val.split(",")))
