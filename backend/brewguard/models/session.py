from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4

from .schemas import DetectionResult


class SessionState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    ENCODING = "encoding"
    SUBMITTING = "submitting"
    AWAITING_RESPONSE = "awaiting_response"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.FAILED)


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.VALIDATING}),
    SessionState.VALIDATING: frozenset({SessionState.ENCODING, SessionState.FAILED}),
    SessionState.ENCODING: frozenset({SessionState.SUBMITTING, SessionState.FAILED}),
    SessionState.SUBMITTING: frozenset({SessionState.AWAITING_RESPONSE, SessionState.FAILED}),
    SessionState.AWAITING_RESPONSE: frozenset({SessionState.COMPLETED, SessionState.FAILED}),
    SessionState.COMPLETED: frozenset(),
    SessionState.FAILED: frozenset(),
}


class ErrorKind(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    TOO_LARGE = "too_large"
    READ_ERROR = "read_error"
    TIMED_OUT = "timed_out"
    UPSTREAM_MALFORMED = "upstream_malformed"
    BACKEND_REJECTED = "backend_rejected"
    UNEXPECTED = "unexpected"
    NETWORK_UNAVAILABLE = "network_unavailable"

    @property
    def is_pre_network(self) -> bool:
        return self in (ErrorKind.UNSUPPORTED_TYPE, ErrorKind.TOO_LARGE, ErrorKind.READ_ERROR)


@dataclass(frozen=True)
class ErrorEnvelope:
    kind: ErrorKind
    message: str
    http_status: Optional[int] = None
    details: Optional[str] = None

    def as_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"kind": self.kind.value, "message": self.message}
        if self.http_status is not None:
            payload["http_status"] = self.http_status
        if self.details is not None:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True)
class EncodedImage:
    data_uri: str


@dataclass
class ProcessingSession:
    """State of one submit-to-outcome lifecycle, mutated by the controller only."""

    id: str = field(default_factory=lambda: str(uuid4()))
    state: SessionState = SessionState.IDLE
    progress: float = 0.0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    file_name: Optional[str] = None
    result: Optional[List[DetectionResult]] = None
    processed_image: Optional[str] = None
    error: Optional[ErrorEnvelope] = None
    superseded: bool = False

    def as_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "id": self.id,
            "state": self.state.value,
            "progress": self.progress,
            "started_at": self.started_at.isoformat(),
        }
        if self.file_name is not None:
            payload["file_name"] = self.file_name
        if self.result is not None:
            payload["result"] = [item.model_dump() for item in self.result]
        if self.processed_image is not None:
            payload["processed_image"] = self.processed_image
        if self.error is not None:
            payload["error"] = self.error.as_dict()
        if self.superseded:
            payload["superseded"] = True
        return payload
