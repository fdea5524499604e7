#!/usr/bin/env uv run
# /// script
# requires-python = ">=3.9"
# dependencies = [
#     "lazycache",
# ]
#
# [tool.uv.sources]
# lazycache = { path = "../", editable = true }
# ///

import logging
import time
from wsgiref.simple_server import make_server

from lazycache import DefaultKeyGenerator, Headers, LazyCache, Response, set_expiration_header
from lazycache.wsgi import WSGICacheMiddleware


def slow_app(environ, start_response):
    time.sleep(2)  # expensive rendering

    response = set_expiration_header(
        Response(status_code=200, headers=Headers({"Content-Type": "text/plain"})),
        expiration=time.time() + 10,
    )
    start_response("200 OK", response.headers.multi_items())
    return [f"Rendered at {time.ctime()}\n".encode()]


app = WSGICacheMiddleware(
    slow_app,
    cache=LazyCache(key_generator=DefaultKeyGenerator(vary_params=["page"])),
)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)

    # The first request takes two seconds and the next ten seconds are instant.
    # After that the stale page is returned at once while it is re-rendered in the background.
    with make_server("127.0.0.1", 8000, app) as server:
        server.serve_forever()
