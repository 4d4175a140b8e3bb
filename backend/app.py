"""
aiohttp application serving the three measurement endpoints.

Routes::

    POST /api/speed   drain the request body, reply {"success": true}
    GET  /speed.dat   fixed-size payload, never cacheable

Ping and upload share ``/api/speed``.  The handler reads the whole body
before answering; replying early would let the client stop its clock before
the upload has actually arrived.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from aiohttp import web

from meter.constants import DOWNLOAD_PATH, DOWNLOAD_SIZE_BYTES, PING_PATH, UPLOAD_MAX_BYTES

LOGGER = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store, no-cache, must-revalidate", "Pragma": "no-cache"}

PAYLOAD_KEY = web.AppKey("payload", bytes)
PAYLOAD_PATH_KEY = web.AppKey("payload_path", object)


async def handle_speed(request: web.Request) -> web.Response:
    body = await request.read()
    LOGGER.debug("%s %s drained %d bytes", request.method, request.path, len(body))
    return web.json_response({"success": True}, headers=NO_STORE)


async def handle_payload(request: web.Request) -> web.StreamResponse:
    payload_path: Optional[Path] = request.app[PAYLOAD_PATH_KEY]
    LOGGER.debug("GET %s?%s", request.path, request.query_string)

    if payload_path is not None:
        if not payload_path.is_file():
            LOGGER.error("download payload %s does not exist", payload_path)
            raise web.HTTPNotFound(text="download payload missing")
        return web.FileResponse(payload_path, headers=NO_STORE)

    return web.Response(
        body=request.app[PAYLOAD_KEY],
        content_type="application/octet-stream",
        headers=NO_STORE,
    )


def create_app(
    payload_size: int = DOWNLOAD_SIZE_BYTES,
    payload_path: Optional[Union[str, Path]] = None,
    max_body: int = UPLOAD_MAX_BYTES,
) -> web.Application:
    """
    Build the application.

    With *payload_path* the download is served from that file (404 when it
    does not exist); otherwise a zero-filled payload of *payload_size* bytes
    is held in memory.
    """
    app = web.Application(client_max_size=max_body)
    app[PAYLOAD_PATH_KEY] = Path(payload_path) if payload_path else None
    app[PAYLOAD_KEY] = b"" if payload_path else bytes(payload_size)

    app.router.add_post(PING_PATH, handle_speed)
    app.router.add_get(DOWNLOAD_PATH, handle_payload)
    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    payload_path: Optional[Union[str, Path]] = None,
) -> None:
    app = create_app(payload_path=payload_path)
    LOGGER.info("serving measurement endpoints on http://%s:%d", host, port)
    web.run_app(app, host=host, port=port, print=None)
