"""Client side of the proxy call.

The proxy's HTTP response is folded back into the same outcome variants the
gateway produced, using the ``outcome`` tag of error bodies. Failures that
never reach the proxy become :class:`ClientNetworkFailure`.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

import aiohttp
from pydantic import ValidationError

from ..config import Settings
from ..events import EventSink
from ..models.outcomes import (
    BackendError,
    ClientNetworkFailure,
    Malformed,
    ProxyOutcome,
    Success,
    Timeout,
    Unexpected,
    truncate_details,
)
from ..models.schemas import DetectionRequest, DetectionResponse

logger = logging.getLogger(__name__)

CONTEXT = "api"


def outcome_from_error_body(status: int, body: Dict[str, Any]) -> ProxyOutcome:
    message = body.get("error") if isinstance(body.get("error"), str) else ""
    tag = body.get("outcome")
    if tag == Timeout.tag or (tag is None and status == 504):
        return Timeout()
    if tag == Malformed.tag or (tag is None and "details" in body):
        return Malformed(http_status=status, details=str(body.get("details") or ""))
    if tag == Unexpected.tag:
        return Unexpected(message=message)
    return BackendError(http_status=status, message=message or "Failed to process image")


class DetectionClient:
    def __init__(self, proxy_url: str, timeout: float, events: EventSink) -> None:
        self.proxy_url = proxy_url
        self.timeout = timeout
        self._events = events

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink) -> "DetectionClient":
        return cls(settings.proxy_detect_url, settings.client_timeout, events)

    async def detect(self, request: DetectionRequest) -> ProxyOutcome:
        self._events.info(
            "Sending request to backend",
            context=CONTEXT,
            data={"url": self.proxy_url, "modelType": request.modelType.value},
        )
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.proxy_url, json=request.to_payload()) as response:
                    text = await response.text(errors="replace")
                    return self._decode(response.status, text)
        except asyncio.TimeoutError:
            self._events.error("Request to proxy timed out", context=CONTEXT, data={"timeout": self.timeout})
            return Timeout()
        except aiohttp.ClientConnectionError as exc:
            self._events.error("Network error reaching proxy", exc, context=CONTEXT, data={"url": self.proxy_url})
            return ClientNetworkFailure(message=str(exc) or type(exc).__name__, url=self.proxy_url)
        except aiohttp.ClientError as exc:
            self._events.error("Request to proxy failed", exc, context=CONTEXT)
            return Unexpected(message=str(exc) or type(exc).__name__)

    def _decode(self, status: int, text: str) -> ProxyOutcome:
        self._events.info("Response received", context=CONTEXT, data={"status": status})
        try:
            body = json.loads(text)
        except ValueError:
            return Malformed(http_status=status, details=truncate_details(text))

        if status == 200:
            try:
                parsed = DetectionResponse.model_validate(body)
            except ValidationError as exc:
                self._events.error("Detection payload failed validation", exc, context=CONTEXT)
                return Unexpected(message="Backend returned an invalid detection payload")
            return Success(payload=parsed.model_dump())

        if not isinstance(body, dict):
            return BackendError(http_status=status, message="Failed to process image")
        return outcome_from_error_body(status, body)
