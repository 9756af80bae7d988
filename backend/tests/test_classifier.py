import pytest

from brewguard.models.outcomes import (
    BackendError,
    ClientNetworkFailure,
    Malformed,
    Success,
    Timeout,
    Unexpected,
)
from brewguard.models.session import ErrorKind
from brewguard.services.classifier import (
    NETWORK_MESSAGE,
    OFFLINE_HINT,
    TIMEOUT_MESSAGE,
    UNEXPECTED_MESSAGE,
    ResponseClassifier,
)

from conftest import RUST_DETECTION


def test_success_carries_detections_and_image():
    result = ResponseClassifier().classify(
        Success(payload={"processedImage": "data:image/png;base64,BBBB", "detections": [RUST_DETECTION]})
    )

    assert result.ok
    assert [d.name for d in result.detections] == ["Rust"]
    assert result.processed_image == "data:image/png;base64,BBBB"


@pytest.mark.parametrize(
    "outcome, kind, status",
    [
        (Timeout(), ErrorKind.TIMED_OUT, 504),
        (Malformed(http_status=503, details="<html>"), ErrorKind.UPSTREAM_MALFORMED, 503),
        (BackendError(http_status=400, message="Invalid image data"), ErrorKind.BACKEND_REJECTED, 400),
        (Unexpected(message="socket closed"), ErrorKind.UNEXPECTED, None),
        (ClientNetworkFailure(message="Connection refused"), ErrorKind.NETWORK_UNAVAILABLE, None),
    ],
)
def test_each_variant_maps_to_one_kind(outcome, kind, status):
    result = ResponseClassifier().classify(outcome)

    assert not result.ok
    assert result.detections is None
    assert result.error.kind is kind
    assert result.error.http_status == status


def test_messages_follow_the_variant_not_the_text():
    classifier = ResponseClassifier()

    timeout = classifier.classify(Timeout())
    assert timeout.error.message == TIMEOUT_MESSAGE

    # A backend message that mentions a timeout is still a rejection.
    rejected = classifier.classify(BackendError(http_status=500, message="upstream timed out"))
    assert rejected.error.kind is ErrorKind.BACKEND_REJECTED
    assert rejected.error.message == "upstream timed out"

    malformed = classifier.classify(Malformed(http_status=503, details="<html>down</html>"))
    assert malformed.error.details == "<html>down</html>"

    assert classifier.classify(Unexpected(message="")).error.message == UNEXPECTED_MESSAGE


def test_network_failure_hint_only_outside_production():
    failure = ClientNetworkFailure(message="Connection refused")

    production = ResponseClassifier(production=True).classify(failure)
    development = ResponseClassifier(production=False).classify(failure)

    assert production.error.message == NETWORK_MESSAGE
    assert development.error.message == NETWORK_MESSAGE + OFFLINE_HINT
    assert development.error.details == "Connection refused"


def test_invalid_success_payload_is_unexpected():
    result = ResponseClassifier().classify(Success(payload={"detections": "nope"}))

    assert result.error.kind is ErrorKind.UNEXPECTED
