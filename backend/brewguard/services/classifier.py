"""Maps proxy outcomes onto the user-facing error taxonomy."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from ..models.outcomes import (
    BackendError,
    ClientNetworkFailure,
    Malformed,
    ProxyOutcome,
    Success,
    Timeout,
    Unexpected,
)
from ..models.schemas import DetectionResponse, DetectionResult
from ..models.session import ErrorEnvelope, ErrorKind

TIMEOUT_MESSAGE = (
    "Processing timed out. The model may be initializing or the image may be too complex."
)
MALFORMED_MESSAGE = "Backend returned non-JSON response"
UNEXPECTED_MESSAGE = "An unknown error occurred"
NETWORK_MESSAGE = "Unable to reach the detection service."
OFFLINE_HINT = " The backend service may be offline."


@dataclass(frozen=True)
class ClassifiedResult:
    detections: Optional[List[DetectionResult]] = None
    processed_image: Optional[str] = None
    error: Optional[ErrorEnvelope] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ResponseClassifier:
    """Classification looks at the outcome variant only, never at message text."""

    def __init__(self, production: bool = True) -> None:
        self.production = production

    def classify(self, outcome: ProxyOutcome) -> ClassifiedResult:
        if isinstance(outcome, Success):
            try:
                response = DetectionResponse.model_validate(outcome.payload)
            except ValidationError:
                return ClassifiedResult(
                    error=ErrorEnvelope(kind=ErrorKind.UNEXPECTED, message="Backend returned an invalid detection payload")
                )
            return ClassifiedResult(
                detections=list(response.detections),
                processed_image=response.processedImage,
            )
        if isinstance(outcome, Timeout):
            return ClassifiedResult(
                error=ErrorEnvelope(kind=ErrorKind.TIMED_OUT, message=TIMEOUT_MESSAGE, http_status=504)
            )
        if isinstance(outcome, Malformed):
            return ClassifiedResult(
                error=ErrorEnvelope(
                    kind=ErrorKind.UPSTREAM_MALFORMED,
                    message=MALFORMED_MESSAGE,
                    http_status=outcome.http_status,
                    details=outcome.details,
                )
            )
        if isinstance(outcome, BackendError):
            return ClassifiedResult(
                error=ErrorEnvelope(
                    kind=ErrorKind.BACKEND_REJECTED,
                    message=outcome.message,
                    http_status=outcome.http_status,
                )
            )
        if isinstance(outcome, Unexpected):
            return ClassifiedResult(
                error=ErrorEnvelope(
                    kind=ErrorKind.UNEXPECTED,
                    message=outcome.message or UNEXPECTED_MESSAGE,
                )
            )
        if isinstance(outcome, ClientNetworkFailure):
            message = NETWORK_MESSAGE if self.production else NETWORK_MESSAGE + OFFLINE_HINT
            return ClassifiedResult(
                error=ErrorEnvelope(
                    kind=ErrorKind.NETWORK_UNAVAILABLE,
                    message=message,
                    details=outcome.message or None,
                )
            )
        raise TypeError(f"Cannot classify {outcome!r}")
