"""Wire schemas, outcome variants and session state."""
from .outcomes import (  # noqa: F401
    BackendError,
    ClientNetworkFailure,
    Malformed,
    ProxyOutcome,
    Success,
    Timeout,
    Unexpected,
    UpstreamOutcome,
)
from .schemas import (  # noqa: F401
    DetectionOptions,
    DetectionRequest,
    DetectionResponse,
    DetectionResult,
    DetectionType,
    ModelType,
)
from .session import (  # noqa: F401
    EncodedImage,
    ErrorEnvelope,
    ErrorKind,
    ProcessingSession,
    SessionState,
)
