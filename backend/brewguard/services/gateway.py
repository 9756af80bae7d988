"""Deadline-bounded forwarding of detection requests to the inference service."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..config import Settings
from ..events import EventSink
from ..models.outcomes import (
    BackendError,
    Malformed,
    Success,
    Timeout,
    Unexpected,
    UpstreamOutcome,
    truncate_details,
)
from ..models.schemas import DetectionRequest

logger = logging.getLogger(__name__)

CONTEXT = "proxy"
BACKEND_FALLBACK_MESSAGE = "Failed to process image"


def _is_json(content_type: Optional[str]) -> bool:
    return bool(content_type) and "application/json" in content_type.lower()


def _error_message(body: Any) -> str:
    if isinstance(body, dict):
        message = body.get("error")
        if isinstance(message, str) and message:
            return message
    return BACKEND_FALLBACK_MESSAGE


class ProxyGateway:
    """Forwards one request upstream and folds every result into an outcome.

    ``forward`` never raises: deadline expiry, non-JSON bodies, error statuses
    and transport failures each map onto an :data:`UpstreamOutcome` variant.
    """

    def __init__(self, upstream_url: str, timeout: float, events: EventSink) -> None:
        self.upstream_url = upstream_url
        self.timeout = timeout
        self._events = events

    @classmethod
    def from_settings(cls, settings: Settings, events: EventSink) -> "ProxyGateway":
        return cls(settings.upstream_detect_url, settings.upstream_timeout, events)

    async def forward(self, request: DetectionRequest) -> UpstreamOutcome:
        self._events.info(
            "Forwarding detection request",
            context=CONTEXT,
            data={
                "modelType": request.modelType.value,
                "detectionType": request.detectionType.value,
                "confidence": request.confidence,
                "overlap": request.overlap,
            },
        )
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.upstream_url,
                    json=request.to_payload(),
                    headers={"Content-Type": "application/json"},
                ) as response:
                    return await self._read_response(response)
        except asyncio.TimeoutError:
            self._events.error(
                "Upstream request timed out",
                context=CONTEXT,
                data={"timeout": self.timeout, "url": self.upstream_url},
            )
            return Timeout()
        except aiohttp.ClientError as exc:
            self._events.error("Upstream request failed", exc, context=CONTEXT)
            return Unexpected(message=str(exc) or type(exc).__name__)
        except Exception as exc:
            logger.exception("Unexpected error forwarding to %s", self.upstream_url)
            self._events.error("Unexpected proxy error", exc, context=CONTEXT)
            return Unexpected(message=str(exc) or type(exc).__name__)

    async def _read_response(self, response: aiohttp.ClientResponse) -> UpstreamOutcome:
        status = response.status
        self._events.info("Backend response status", context=CONTEXT, data={"status": status})

        content_type = response.headers.get("Content-Type")
        if not _is_json(content_type):
            text = await response.text(errors="replace")
            details = truncate_details(text)
            self._events.error(
                "Non-JSON response from backend",
                context=CONTEXT,
                data={"status": status, "contentType": content_type, "details": details},
            )
            return Malformed(http_status=status, details=details)

        body = await response.json(content_type=None)
        if 200 <= status < 300:
            if not isinstance(body, dict):
                return Unexpected(message="Backend returned an unexpected JSON payload")
            return Success(payload=body)

        message = _error_message(body)
        self._events.warn(
            "Backend rejected request",
            context=CONTEXT,
            data={"status": status, "error": message},
        )
        return BackendError(http_status=status, message=message)
