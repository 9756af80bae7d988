from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ModelType(str, Enum):
    YOLO11M_FULL_LEAF = "yolo11m-full-leaf"
    SPOTS_FULL_LEAF = "spots-full-leaf"


class DetectionType(str, Enum):
    DISEASE = "disease"
    LEAF = "leaf"
    BOTH = "both"


class DetectionOptions(BaseModel):
    """Model settings picked in the sidebar, without the image."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    modelType: ModelType = ModelType.YOLO11M_FULL_LEAF
    detectionType: DetectionType = DetectionType.DISEASE
    confidence: int = Field(default=50, ge=1, le=100)
    overlap: int = Field(default=50, ge=1, le=100)


class DetectionRequest(DetectionOptions):
    image: str = Field(min_length=1, description="Image as a base64 data URI")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class DetectionResult(BaseModel):
    name: str
    confidence: int = Field(ge=0, le=100)
    area: float = Field(ge=0, le=100)
    description: str = ""
    color: str = ""


class DetectionResponse(BaseModel):
    processedImage: str
    detections: List[DetectionResult] = Field(default_factory=list)


def highest_confidence(detections: List[DetectionResult]) -> int:
    return max((d.confidence for d in detections), default=0)


def affected_area(detections: List[DetectionResult]) -> int:
    """Summed share of the leaf covered by detections, in whole percent."""
    return round(sum(d.area for d in detections))


class ErrorBody(BaseModel):
    error: str
    outcome: Optional[str] = None
    details: Optional[str] = None


class LogEventIn(BaseModel):
    timestamp: str
    level: Literal["info", "warn", "error", "debug"]
    context: str = "app"
    message: str
    data: Optional[Dict[str, Any]] = None
