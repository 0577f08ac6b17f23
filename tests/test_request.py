from tests import helper
import os
import routy
import tempfile
import textwrap

expect_response = helper.assert_produces_response


def _multipart(*parts: str) -> bytes:
    chunks = [textwrap.dedent(p).lstrip().replace("\n", "\r\n") for p in parts]
    body = "".join(f"--XyZ\r\n{chunk}\r\n" for chunk in chunks)
    return (body + "--XyZ--\r\n").encode()


MULTIPART = "multipart/form-data; boundary=XyZ"


def _echo(getter):
    def handler(req: routy.Request, resp: routy.Response):
        resp.json(getter(req))
    return handler


def test_reqvars():
    app = routy.App()
    app.any("/foo/bar", _echo(lambda req: dict(method=req.method, path=req.path)))
    expect_response(app, "/foo/bar?baz", 200, dict(method="GET", path="/foo/bar"))
    expect_response(app, "/foo/bar/", 200, dict(method="DELETE", path="/foo/bar"),
                    method="DELETE")


def test_headers():
    app = routy.App()
    app.get("/", _echo(lambda req: [req.header("accept-language"),
                                     req.header("CONNECTION"),
                                     req.header("X-Missing")]))
    headers = {"Accept-Language": "en-US", "Connection": "close"}
    expect_response(app, "/", 200, ["en-US", "close", None], http_headers=headers)


def test_query():
    app = routy.App()
    app.get("/", _echo(lambda req: [req.query, req.get_query("foo"),
                                     req.get_query("nope", "dflt")]))
    expect_response(app, "/?hello=world&foo=42%2B1&empty=", 200,
                    [dict(hello="world", foo="42+1", empty=""), "42+1", "dflt"])


def test_vars_merges_query_and_params():
    app = routy.App()
    app.get("/item/:id", _echo(lambda req: req.vars))
    expect_response(app, "/item/5?id=query&q=1", 200, dict(id="5", q="1"))


def test_body_json():
    app = routy.App()
    app.post("/", _echo(lambda req: req.body()))
    expect_response(app, "/", 200, {"a": [1, 2]}, postdata='{"a": [1, 2]}',
                    content_type="application/json")
    expect_response(app, "/", 200, {"x": 1}, postdata='{"x": 1}',
                    content_type="application/vnd.api+json; charset=utf-8")


def test_body_bad_json_is_400():
    app = routy.App()
    app.post("/", _echo(lambda req: req.body()))
    resp = expect_response(app, "/", 400, postdata='{"a": ',
                           content_type="application/json")
    assert "Malformed JSON body" in resp.output_str()


def test_body_formurl():
    app = routy.App()
    app.post("/", _echo(lambda req: req.body()))
    expect_response(app, "/", 200, dict(foo="bar", baz="2", sp="a b"),
                    postdata="foo=bar&baz=2&sp=a+b",
                    content_type="application/x-www-form-urlencoded")


def test_body_raw():
    app = routy.App()
    app.post("/", lambda req, resp: req.body())
    expect_response(app, "/", 200, b"\x00raw\xff", postdata=b"\x00raw\xff",
                    content_type="application/octet-stream")


def test_body_formdata():
    app = routy.App()
    app.post("/", _echo(lambda req: req.body()))
    data = _multipart(
        """
        content-disposition: form-data; name="hello"

        world""",
        """
        content-disposition: form-data; name="foo"

        42""",
        """
        content-disposition: form-data; name="foo"

        43""")
    expect_response(app, "/", 200, dict(hello="world", foo=["42", "43"]),
                    postdata=data, content_type=MULTIPART)


def test_files():
    seen = {}
    app = routy.App()

    @app.post("/upload")
    def _(req: routy.Request, resp: routy.Response):
        files = req.files("docs")
        seen["paths"] = [f.tmp_name for f in files]
        out = []
        for f in files:
            with open(f.tmp_name, "rb") as fp:
                out.append([f.name, f.type, f.size, f.error, fp.read().decode()])
        resp.json(dict(docs=out, missing=req.files("missing"), form=req.body()))

    data = _multipart(
        """
        content-disposition: form-data; name="title"

        Report""",
        """
        content-disposition: form-data; name="docs"; filename="a.txt"
        content-type: text/plain

        first file""",
        """
        content-disposition: form-data; name="docs"; filename="b.csv"
        content-type: text/csv

        x,y""")
    expect_response(app, "/upload", 200, dict(
        docs=[["a.txt", "text/plain", 10, None, "first file"],
              ["b.csv", "text/csv", 3, None, "x,y"]],
        missing=None,
        form=dict(title="Report")), postdata=data, content_type=MULTIPART)
    assert seen["paths"]
    for path in seen["paths"]:
        assert not os.path.exists(path), "spooled uploads are removed after the request"


def test_empty_file_field_is_none():
    app = routy.App()
    app.post("/", lambda req, resp: repr(req.files("docs")))
    data = _multipart(
        """
        content-disposition: form-data; name="docs"; filename=""
        content-type: application/octet-stream

        """)
    expect_response(app, "/", 200, "None", postdata=data, content_type=MULTIPART)


def test_files_without_multipart():
    app = routy.App()
    app.post("/", lambda req, resp: repr(req.files("docs")))
    expect_response(app, "/", 200, "None", postdata="docs=1",
                    content_type="application/x-www-form-urlencoded")


def test_upload_size_limit():
    app = routy.App(max_upload_size=4)

    @app.post("/")
    def _(req: routy.Request, resp: routy.Response):
        f = req.files("doc")[0]
        resp.json([f.name, f.tmp_name, f.size, f.error])

    data = _multipart(
        """
        content-disposition: form-data; name="doc"; filename="big.bin"

        0123456789""")
    expect_response(app, "/", 200, ["big.bin", None, 10, "UPLOAD_ERR_INI_SIZE"],
                    postdata=data, content_type=MULTIPART)


def test_context_bag():
    db = object()
    app = routy.App(context={"db": db})

    def attach_user(req: routy.Request, resp):
        req.set_ctx("user", "alice")

    def me(req: routy.Request, resp):
        assert req.get_ctx("db") is db
        return dict(user=req.get_ctx("user"), other=req.get_ctx("other", "dflt"))

    app.get("/me", attach_user, me)
    expect_response(app, "/me", 200, dict(user="alice", other="dflt"))
    # context doesn't leak from one request to the next
    assert app.context == {"db": db}


def test_context_is_write_once():
    app = routy.App(context={"db": "conn"})
    app.get("/", lambda req, resp: req.set_ctx("db", "other"))
    resp = expect_response(app, "/", 500)
    assert "already set" in resp.output_str()


def test_synthetic_request_dispatch():
    app = routy.App()
    app.get("/users/:id", lambda req, resp: f"user {req.param('id')}")
    environ = {"REQUEST_METHOD": "GET", "PATH_INFO": "/users/9/", "HTTP_X_TEST": "1"}
    request = routy.Request.from_wsgi(environ)
    assert request.path == "/users/9"
    assert request.header("x-test") == "1"
    response = app.dispatch(request)
    assert (response.code, response.body) == (200, b"user 9")


def test_malformed_multipart_leaves_no_files(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    app = routy.App()
    app.post("/", lambda req, resp: repr(req.files("doc")))
    data = _multipart(
        """
        content-disposition: form-data; name="doc"; filename="a.txt"

        spooled first""",
        """
        this is not a header line

        oops""")
    resp = expect_response(app, "/", 400, postdata=data, content_type=MULTIPART)
    assert "Malformed multipart body" in resp.output_str()
    assert list(tmp_path.glob("routy-*")) == []
