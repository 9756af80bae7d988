import asyncio
import io
import os
import socket

import pytest
import uvicorn
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from brewguard.events import EventSink

# Large enough for the base64 JSON of a multi-megabyte upload.
UPSTREAM_MAX_BODY = 16 * 1024 * 1024

RUST_DETECTION = {
    "name": "Rust",
    "confidence": 82,
    "area": 13,
    "description": "Orange powdery lesions on the underside of the leaf.",
    "color": "#aa3333",
}


def make_png(side: int = 64) -> bytes:
    """Random-noise PNG; noise does not compress, so size grows with side**2."""
    image = Image.frombytes("RGB", (side, side), os.urandom(side * side * 3))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def events():
    return EventSink()


@pytest.fixture
async def serve_upstream():
    """Start fake upstream services; each call returns the server's base URL."""
    servers = []

    async def _start(routes):
        app = web.Application(client_max_size=UPSTREAM_MAX_BODY)
        for path, handler in routes.items():
            app.router.add_post(path, handler)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return str(server.make_url("")).rstrip("/")

    yield _start

    for server in servers:
        await server.close()


@pytest.fixture
async def serve_asgi():
    """Serve an ASGI app with uvicorn on a free local port."""
    running = []

    async def _start(app):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        server = uvicorn.Server(uvicorn.Config(app, lifespan="off", log_config=None, access_log=False))
        task = asyncio.create_task(server.serve(sockets=[sock]))
        while not server.started:
            if task.done():
                task.result()
            await asyncio.sleep(0.01)
        running.append((server, task, sock))
        return f"http://127.0.0.1:{port}"

    yield _start

    for server, task, sock in running:
        server.should_exit = True
        await task
        sock.close()


@pytest.fixture
def closed_port_url():
    """A URL nothing listens on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"
