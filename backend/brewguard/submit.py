"""Command-line entry point for submitting an image to the detection proxy."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Optional, Sequence

from .config import Settings, load_settings
from .events import EventSink
from .models.schemas import (
    DetectionOptions,
    DetectionType,
    ModelType,
    affected_area,
    highest_confidence,
)
from .models.session import ProcessingSession, SessionState
from .services.encoder import UploadCandidate
from .services.session_controller import SessionController


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect coffee leaf diseases in an image.")
    parser.add_argument("image", help="Path to a JPG or PNG image (max 10MB)")
    parser.add_argument("--model", choices=[m.value for m in ModelType], default=ModelType.YOLO11M_FULL_LEAF.value)
    parser.add_argument(
        "--detection-type", choices=[d.value for d in DetectionType], default=DetectionType.DISEASE.value
    )
    parser.add_argument("--confidence", type=int, default=50, help="Confidence threshold, 1-100")
    parser.add_argument("--overlap", type=int, default=50, help="Overlap threshold, 1-100")
    parser.add_argument("--proxy-url", default=None, help="Base URL of the detection proxy")
    return parser


def render(session: ProcessingSession) -> str:
    if session.state is SessionState.COMPLETED:
        detections = session.result or []
        lines = [f"Diseases detected: {len(detections)}"]
        if detections:
            lines.append(f"Highest confidence: {highest_confidence(detections)}%")
            lines.append(f"Affected area: {affected_area(detections)}%")
        for d in detections:
            lines.append(f"  - {d.name}: {d.confidence}% confidence, {d.area}% area")
        return "\n".join(lines)

    error = session.error
    if error is None:
        return f"Session ended in state {session.state.value}"
    parts = [f"Error ({error.kind.value}): {error.message}"]
    if error.http_status is not None:
        parts.append(f"HTTP status: {error.http_status}")
    if error.details:
        parts.append(f"Details: {error.details}")
    return "\n".join(parts)


async def run(args: argparse.Namespace, settings: Settings) -> ProcessingSession:
    events = EventSink.from_settings(settings)
    controller = SessionController.create_default(settings, events)
    options = DetectionOptions(
        modelType=ModelType(args.model),
        detectionType=DetectionType(args.detection_type),
        confidence=args.confidence,
        overlap=args.overlap,
    )
    try:
        return await controller.submit(UploadCandidate.from_path(args.image), options)
    finally:
        await events.flush()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Submit one image and print the detections or the classified error."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = build_parser().parse_args(argv)

    settings = load_settings()
    if args.proxy_url:
        settings = replace(settings, proxy_url=args.proxy_url)

    try:
        session = asyncio.run(run(args, settings))
    except (OSError, ValueError) as exc:
        logging.error("Cannot submit %s: %s", args.image, exc)
        return 1

    print(render(session))
    return 0 if session.state is SessionState.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
