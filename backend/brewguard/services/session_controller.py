"""State machine driving one image submission from selection to outcome."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from ..config import Settings
from ..events import EventSink
from ..models.outcomes import ProxyOutcome
from ..models.schemas import DetectionOptions, DetectionRequest
from ..models.session import (
    ALLOWED_TRANSITIONS,
    ErrorEnvelope,
    ProcessingSession,
    SessionState,
)
from .classifier import ClassifiedResult, ResponseClassifier
from .client import DetectionClient
from .encoder import UploadCandidate, ValidationError, ValidatorEncoder
from .progress import COMPLETE, ProgressEstimator, ProgressHandle

logger = logging.getLogger(__name__)

CONTEXT = "session"

SessionListener = Callable[[ProcessingSession], None]


class SessionController:
    """Owns the single active :class:`ProcessingSession`.

    A new ``submit`` supersedes the previous one: its in-flight task is
    cancelled, so a late response can never touch the new session. Stale
    transitions (wrong session or not allowed from the current state) are
    ignored.
    """

    def __init__(
        self,
        client: DetectionClient,
        events: EventSink,
        encoder: Optional[ValidatorEncoder] = None,
        progress: Optional[ProgressEstimator] = None,
        classifier: Optional[ResponseClassifier] = None,
    ) -> None:
        self._client = client
        self._events = events
        self._encoder = encoder or ValidatorEncoder(events)
        self._progress = progress or ProgressEstimator()
        self._classifier = classifier or ResponseClassifier()
        self._session = ProcessingSession()
        self._handle: Optional[ProgressHandle] = None
        self._inflight: Optional["asyncio.Task[None]"] = None
        self._listeners: List[SessionListener] = []

    @classmethod
    def create_default(cls, settings: Settings, events: Optional[EventSink] = None) -> "SessionController":
        events = events or EventSink.from_settings(settings)
        return cls(
            client=DetectionClient.from_settings(settings, events),
            events=events,
            classifier=ResponseClassifier(production=settings.is_production),
        )

    @property
    def session(self) -> ProcessingSession:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def submit(
        self, candidate: UploadCandidate, options: Optional[DetectionOptions] = None
    ) -> ProcessingSession:
        """Run one session to its terminal state and return it.

        If another ``submit`` supersedes this one, the returned session is
        flagged ``superseded`` and left in the state it had reached.
        """
        self._abandon_current()
        session = ProcessingSession(file_name=candidate.file_name)
        self._session = session
        self._notify(session)

        task = asyncio.ensure_future(self._run(session, candidate, options or DetectionOptions()))
        self._inflight = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight is task and task.done():
                self._inflight = None
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
        return session

    def cancel(self) -> None:
        """Tear down whatever is in flight without starting a new session."""
        if self._handle is not None:
            self._progress.stop(self._handle)
        if self._inflight is not None and not self._inflight.done():
            self._events.info("Cancelling in-flight request", context=CONTEXT, data={"session": self._session.id})
            self._inflight.cancel()

    def _abandon_current(self) -> None:
        previous = self._session
        if self._inflight is None or self._inflight.done():
            return
        previous.superseded = True
        self._events.warn(
            "New upload started; abandoning previous session",
            context=CONTEXT,
            data={"session": previous.id, "state": previous.state.value},
        )
        self.cancel()
        self._inflight = None

    async def _run(self, session: ProcessingSession, candidate: UploadCandidate, options: DetectionOptions) -> None:
        handle: Optional[ProgressHandle] = None
        try:
            self._transition(session, SessionState.VALIDATING)
            try:
                self._encoder.validate(candidate)
            except ValidationError as exc:
                self._fail(session, ErrorEnvelope(kind=exc.kind, message=exc.message))
                return

            self._transition(session, SessionState.ENCODING)
            try:
                image = await self._encoder.encode(candidate)
            except ValidationError as exc:
                self._fail(session, ErrorEnvelope(kind=exc.kind, message=exc.message))
                return

            request = DetectionRequest(image=image.data_uri, **options.model_dump())
            self._transition(session, SessionState.SUBMITTING)
            handle = self._progress.start(on_update=lambda value: self._on_progress(session, value))
            self._handle = handle

            self._transition(session, SessionState.AWAITING_RESPONSE)
            outcome: ProxyOutcome = await self._client.detect(request)
            result = self._classifier.classify(outcome)
            self._finish(session, handle, result)
        finally:
            if handle is not None:
                self._progress.stop(handle)
                if self._handle is handle:
                    self._handle = None

    def _finish(self, session: ProcessingSession, handle: ProgressHandle, result: ClassifiedResult) -> None:
        if result.ok:
            if not self._can_transition(session, SessionState.COMPLETED):
                return
            session.progress = self._progress.stop(handle, COMPLETE)
            session.result = result.detections
            session.processed_image = result.processed_image
            self._transition(session, SessionState.COMPLETED)
            self._events.info(
                "Image processed successfully",
                context=CONTEXT,
                data={"session": session.id, "detections": len(result.detections or [])},
            )
        else:
            session.progress = self._progress.stop(handle)
            self._fail(session, result.error)

    def _fail(self, session: ProcessingSession, error: ErrorEnvelope) -> None:
        if not self._can_transition(session, SessionState.FAILED):
            return
        session.error = error
        self._events.error(
            "Error processing image",
            context=CONTEXT,
            data={"session": session.id, **error.as_dict()},
        )
        self._transition(session, SessionState.FAILED)

    def _on_progress(self, session: ProcessingSession, value: float) -> None:
        if session is not self._session or session.state is not SessionState.AWAITING_RESPONSE:
            return
        session.progress = max(session.progress, value)
        self._notify(session)

    def _can_transition(self, session: ProcessingSession, target: SessionState) -> bool:
        if session is not self._session:
            logger.debug("Ignoring %s for stale session %s", target.value, session.id)
            return False
        if target not in ALLOWED_TRANSITIONS[session.state]:
            logger.debug("Ignoring %s -> %s for session %s", session.state.value, target.value, session.id)
            return False
        return True

    def _transition(self, session: ProcessingSession, target: SessionState) -> bool:
        if not self._can_transition(session, target):
            return False
        self._events.debug(
            "Session state changed",
            context=CONTEXT,
            data={"session": session.id, "from": session.state.value, "to": target.value},
        )
        session.state = target
        self._notify(session)
        return True

    def _notify(self, session: ProcessingSession) -> None:
        for listener in list(self._listeners):
            listener(session)
