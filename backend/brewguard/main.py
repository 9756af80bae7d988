import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .events import LOG_LEVELS, EventSink
from .models import schemas
from .models.outcomes import (
    BackendError,
    Malformed,
    Success,
    Timeout,
    Unexpected,
    UpstreamOutcome,
)
from .services.gateway import ProxyGateway

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request to the detection service timed out"
MALFORMED_MESSAGE = "Backend returned non-JSON response"


def outcome_to_response(outcome: UpstreamOutcome) -> JSONResponse:
    """Translate a gateway outcome into the proxy's HTTP contract."""
    if isinstance(outcome, Success):
        return JSONResponse(status_code=200, content=outcome.payload)
    if isinstance(outcome, Timeout):
        body = schemas.ErrorBody(error=TIMEOUT_MESSAGE, outcome=outcome.tag)
        return JSONResponse(status_code=504, content=body.model_dump(exclude_none=True))
    if isinstance(outcome, Malformed):
        # A non-JSON 2xx still means the upstream failed us.
        status = outcome.http_status if outcome.http_status >= 400 else 502
        body = schemas.ErrorBody(error=MALFORMED_MESSAGE, outcome=outcome.tag, details=outcome.details)
        return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))
    if isinstance(outcome, BackendError):
        status = outcome.http_status if outcome.http_status >= 400 else 502
        body = schemas.ErrorBody(error=outcome.message, outcome=outcome.tag)
        return JSONResponse(status_code=status, content=body.model_dump(exclude_none=True))
    if isinstance(outcome, Unexpected):
        body = schemas.ErrorBody(error=outcome.message or "Unknown error", outcome=outcome.tag)
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
    raise TypeError(f"Unknown upstream outcome: {outcome!r}")


def create_app(settings: Optional[Settings] = None, events: Optional[EventSink] = None) -> FastAPI:
    settings = settings or load_settings()
    events = events or EventSink.from_settings(settings)
    gateway = ProxyGateway.from_settings(settings, events)

    app = FastAPI(title="BrewGuard Detection Proxy")
    app.state.settings = settings
    app.state.events = events
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # restrict in prod
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/detect")
    async def detect(payload: schemas.DetectionRequest):
        events.info("Received detection request", context="proxy")
        outcome = await gateway.forward(payload)
        return outcome_to_response(outcome)

    @app.post("/api/logs")
    def collect_log(event: schemas.LogEventIn):
        logger.log(
            LOG_LEVELS[event.level],
            "[client %s] [%s] [%s]: %s %s",
            event.timestamp,
            event.level.upper(),
            event.context,
            event.message,
            event.data or "",
        )
        return {"status": "logged"}

    @app.get("/health")
    def health():
        return {"status": "ok", "upstream": settings.upstream_url}

    return app


app = create_app()
