import logging

import routy

app = routy.App()


def require_token(request: routy.Request, response: routy.Response):
    if request.header("Authorization") != "Bearer letmein":
        response.json({"error": "unauthorized"}, 401)


def api(app: routy.App):
    app.get("/ping", lambda req, resp: {"ok": True})
    app.post("/echo", require_token, lambda req, resp: {"got": req.body()})
    app.fallback(lambda req, resp: {"error": f"no endpoint {req.path}"})


@app.get("/")
def home(request: routy.Request, response: routy.Response):
    return "home"


@app.get("/users/:id")
def user(request: routy.Request, response: routy.Response):
    response.json({"id": request.param("id")})


app.group("/api", api)


def main():
    """Program entry point."""
    logging.basicConfig(level=logging.DEBUG)
    app.serve_forever()


if __name__ == "__main__":
    main()
