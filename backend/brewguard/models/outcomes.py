"""Result variants of a proxied detection call.

The gateway always produces exactly one :data:`UpstreamOutcome`; the client
adds :class:`ClientNetworkFailure` for calls that never reached the proxy.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

DETAILS_LIMIT = 200
TRUNCATION_MARKER = "..."


def truncate_details(text: str, limit: int = DETAILS_LIMIT) -> str:
    """Keep the first ``limit`` characters of an upstream body."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


@dataclass(frozen=True)
class Success:
    payload: Dict[str, Any]
    tag = "success"


@dataclass(frozen=True)
class Timeout:
    tag = "timeout"


@dataclass(frozen=True)
class Malformed:
    http_status: int
    details: str
    tag = "malformed"


@dataclass(frozen=True)
class BackendError:
    http_status: int
    message: str
    tag = "backend_error"


@dataclass(frozen=True)
class Unexpected:
    message: str
    tag = "unexpected"


@dataclass(frozen=True)
class ClientNetworkFailure:
    message: str
    url: Optional[str] = None
    tag = "network_unavailable"


UpstreamOutcome = Union[Success, Timeout, Malformed, BackendError, Unexpected]
ProxyOutcome = Union[UpstreamOutcome, ClientNetworkFailure]
