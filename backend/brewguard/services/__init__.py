"""Service layer utilities."""
from .classifier import ClassifiedResult, ResponseClassifier  # noqa: F401
from .client import DetectionClient  # noqa: F401
from .encoder import UploadCandidate, ValidationError, ValidatorEncoder  # noqa: F401
from .gateway import ProxyGateway  # noqa: F401
from .progress import ProgressEstimator  # noqa: F401
from .session_controller import SessionController  # noqa: F401
