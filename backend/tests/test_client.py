import asyncio

import pytest
from aiohttp import web

from brewguard.config import build_endpoint
from brewguard.models.outcomes import (
    BackendError,
    ClientNetworkFailure,
    Malformed,
    Success,
    Timeout,
    Unexpected,
)
from brewguard.models.schemas import DetectionRequest
from brewguard.services.client import DetectionClient, outcome_from_error_body

from conftest import RUST_DETECTION

REQUEST = DetectionRequest(image="data:image/jpeg;base64,AAAA")


async def _detect(serve_upstream, events, handler, timeout=5.0):
    base = await serve_upstream({"/api/detect": handler})
    return await DetectionClient(build_endpoint(base), timeout, events).detect(REQUEST)


async def test_success_payload_is_validated(serve_upstream, events):
    async def handler(request):
        return web.json_response({"processedImage": "data:image/png;base64,BBBB", "detections": [RUST_DETECTION]})

    outcome = await _detect(serve_upstream, events, handler)

    assert isinstance(outcome, Success)
    assert outcome.payload["detections"][0]["color"] == "#aa3333"


async def test_invalid_success_payload_is_unexpected(serve_upstream, events):
    async def handler(request):
        return web.json_response({"detections": [{"name": "Rust", "confidence": 400}]})

    outcome = await _detect(serve_upstream, events, handler)

    assert isinstance(outcome, Unexpected)


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (504, {"error": "timed out", "outcome": "timeout"}, Timeout()),
        (503, {"error": "x", "outcome": "malformed", "details": "<html>"}, Malformed(503, "<html>")),
        (400, {"error": "Invalid image data", "outcome": "backend_error"}, BackendError(400, "Invalid image data")),
        (500, {"error": "boom", "outcome": "unexpected"}, Unexpected("boom")),
    ],
)
async def test_error_bodies_rebuild_the_variant(serve_upstream, events, status, body, expected):
    async def handler(request):
        return web.json_response(body, status=status)

    assert await _detect(serve_upstream, events, handler) == expected


def test_untagged_error_bodies_fall_back_on_status_and_shape():
    assert outcome_from_error_body(504, {"error": "gateway timeout"}) == Timeout()
    assert outcome_from_error_body(502, {"error": "bad", "details": "<h1>"}) == Malformed(502, "<h1>")
    assert outcome_from_error_body(500, {"error": "Model crashed"}) == BackendError(500, "Model crashed")
    assert outcome_from_error_body(500, {}) == BackendError(500, "Failed to process image")


async def test_non_json_proxy_response_is_malformed(serve_upstream, events):
    page = "<html>" + "y" * 300

    async def handler(request):
        return web.Response(text=page, status=502, content_type="text/html")

    outcome = await _detect(serve_upstream, events, handler)

    assert outcome == Malformed(http_status=502, details=page[:200] + "...")


async def test_client_deadline_yields_timeout(serve_upstream, events):
    async def handler(request):
        await asyncio.sleep(2)
        return web.json_response({})

    assert isinstance(await _detect(serve_upstream, events, handler, timeout=0.2), Timeout)


async def test_unreachable_proxy_is_a_network_failure(events, closed_port_url):
    url = build_endpoint(closed_port_url)
    outcome = await DetectionClient(url, 2.0, events).detect(REQUEST)

    assert isinstance(outcome, ClientNetworkFailure)
    assert outcome.url == url
    assert events.events[-1].message == "Network error reaching proxy"
