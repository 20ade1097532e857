"""Lifecycle of a weekly video recap job, from creation to a playable URL.

The state is an immutable :class:`RecapState`; every event is a pure
function returning the next state. :class:`VideoRecapWorkflow` drives those
transitions against the handlers through a :class:`ProxyClient`, waiting
between polls on a :class:`CancellationToken` so a cancel wakes it at once.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from .proxy_client import ProxyClientError
from .weekly_recap import MIN_REFLECTIONS_FOR_VIDEO

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 15.0
MAX_POLL_ATTEMPTS = 40

TIMEOUT_MESSAGE = 'Video generation timed out. The video may still be processing.'
POLL_ERROR_MESSAGE = 'Failed to check video status after multiple attempts'
VENDOR_FAILED_MESSAGE = 'Video generation failed with status: {status}'
UNEXPECTED_ERROR_MESSAGE = 'Video recap stopped unexpectedly. Please try again.'

_FAILED_STATUSES = {'failed', 'error'}


class RecapPhase(str, enum.Enum):
    INITIAL = 'initial'
    NOT_ENOUGH_REFLECTIONS = 'notEnoughReflections'
    GENERATING = 'generating'
    POLLING = 'polling'
    COMPLETED = 'completed'
    FAILED = 'failed'


TERMINAL_PHASES = frozenset({RecapPhase.COMPLETED, RecapPhase.FAILED})


@dataclass(frozen=True)
class RecapState:
    phase: RecapPhase = RecapPhase.INITIAL
    reflection_count: int = 0
    job: Optional[Dict[str, Any]] = None
    attempts: int = 0
    last_status: Optional[str] = None
    video_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def video_id(self) -> Optional[str]:
        return self.job.get('video_id') if self.job else None


class TransitionError(Exception):
    """An event arrived in a phase that cannot accept it."""


def _expect(state: RecapState, *phases: RecapPhase) -> None:
    if state.phase not in phases:
        raise TransitionError(f'cannot leave {state.phase.value} this way')


def opened(reflection_count: int) -> RecapState:
    phase = (
        RecapPhase.INITIAL
        if reflection_count >= MIN_REFLECTIONS_FOR_VIDEO
        else RecapPhase.NOT_ENOUGH_REFLECTIONS
    )
    return RecapState(phase=phase, reflection_count=reflection_count)


def generation_started(state: RecapState) -> RecapState:
    _expect(state, RecapPhase.INITIAL, RecapPhase.FAILED, RecapPhase.COMPLETED)
    return RecapState(phase=RecapPhase.GENERATING, reflection_count=state.reflection_count)


def job_created(state: RecapState, job: Dict[str, Any]) -> RecapState:
    _expect(state, RecapPhase.GENERATING)
    return replace(state, phase=RecapPhase.POLLING, job=dict(job), attempts=0)


def generation_failed(state: RecapState, message: str) -> RecapState:
    _expect(state, RecapPhase.GENERATING)
    return replace(state, phase=RecapPhase.FAILED, error=message)


def status_received(
    state: RecapState,
    status: Optional[str],
    video_url: Optional[str],
    max_attempts: int = MAX_POLL_ATTEMPTS,
) -> RecapState:
    """Apply one poll response.

    ``completed`` needs a URL to finish; without one it counts as still
    processing, like any other non-failure status.
    """

    _expect(state, RecapPhase.POLLING)
    if status == 'completed' and video_url:
        return replace(state, phase=RecapPhase.COMPLETED, last_status=status, video_url=video_url)
    if status in _FAILED_STATUSES:
        message = VENDOR_FAILED_MESSAGE.format(status=status)
        return replace(state, phase=RecapPhase.FAILED, last_status=status, error=message)

    attempts = state.attempts + 1
    if attempts >= max_attempts:
        return replace(state, phase=RecapPhase.FAILED, attempts=attempts, last_status=status, error=TIMEOUT_MESSAGE)
    return replace(state, attempts=attempts, last_status=status)


def poll_failed(state: RecapState, max_attempts: int = MAX_POLL_ATTEMPTS) -> RecapState:
    # Request failures share the attempt budget with unfinished responses.
    _expect(state, RecapPhase.POLLING)
    attempts = state.attempts + 1
    if attempts >= max_attempts:
        return replace(state, phase=RecapPhase.FAILED, attempts=attempts, error=POLL_ERROR_MESSAGE)
    return replace(state, attempts=attempts)


def run_aborted(state: RecapState, message: str = UNEXPECTED_ERROR_MESSAGE) -> RecapState:
    _expect(state, RecapPhase.GENERATING, RecapPhase.POLLING)
    return replace(state, phase=RecapPhase.FAILED, error=message)


def cancelled(state: RecapState) -> RecapState:
    return opened(state.reflection_count) if state.phase != RecapPhase.NOT_ENOUGH_REFLECTIONS else state


class CancellationToken:
    """One-shot cancel flag that also interrupts waits."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True when cancelled meanwhile."""

        return self._event.wait(timeout)


class VideoRecapWorkflow:
    """Single-flight driver for one video recap at a time.

    A request already sent when :meth:`cancel` is called still completes,
    but its result is dropped and nothing further is scheduled.
    """

    def __init__(
        self,
        client,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        on_change: Optional[Callable[[RecapState], None]] = None,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._on_change = on_change
        self._lock = threading.Lock()
        self._state = RecapState()
        self._token: Optional[CancellationToken] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> RecapState:
        with self._lock:
            return self._state

    @property
    def running(self) -> bool:
        with self._lock:
            return self._token is not None

    def _apply(self, token: CancellationToken, transition, *args) -> Optional[RecapState]:
        """Run ``transition`` on the current state unless ``token`` is stale."""

        with self._lock:
            if token.cancelled or token is not self._token:
                return None
            state = transition(self._state, *args)
            self._state = state
        if self._on_change:
            self._on_change(state)
        return state

    def open(self) -> RecapState:
        """Load this week's reflection count and gate generation on it."""

        count = self._client.weekly_reflection_count()
        with self._lock:
            if self._token is not None:
                raise TransitionError('a video recap is already in progress')
            self._state = state = opened(count)
        if self._on_change:
            self._on_change(state)
        return state

    def start(self, background: bool = False) -> Optional[threading.Thread]:
        """Create the job and poll until it finishes, fails or is cancelled.

        Raises :class:`TransitionError` while another run is active or when
        the current phase does not allow a new run.
        """

        with self._lock:
            if self._token is not None:
                raise TransitionError('a video recap is already in progress')
            self._state = state = generation_started(self._state)
            token = CancellationToken()
            self._token = token

        if self._on_change:
            self._on_change(state)
        if not background:
            self._run(token)
            return None

        thread = threading.Thread(target=self._run, args=(token,), name='video-recap-poll', daemon=True)
        self._thread = thread
        thread.start()
        return thread

    def cancel(self) -> RecapState:
        with self._lock:
            token, self._token = self._token, None
            if token is not None:
                token.cancel()
            self._state = cancelled(self._state)
            state = self._state
        if self._on_change:
            self._on_change(state)
        return state

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _finish(self, token: CancellationToken) -> None:
        with self._lock:
            if self._token is token:
                self._token = None

    def _run(self, token: CancellationToken) -> None:
        try:
            self._generate_and_poll(token)
        except Exception:
            logger.exception('video_recap.run.failed')
            self._abort(token)
        finally:
            self._finish(token)

    def _abort(self, token: CancellationToken) -> None:
        with self._lock:
            if token.cancelled or token is not self._token or self._state.phase in TERMINAL_PHASES:
                return
            self._state = state = run_aborted(self._state)
        if self._on_change:
            try:
                self._on_change(state)
            except Exception:
                logger.exception('video_recap.on_change.failed')

    def _generate_and_poll(self, token: CancellationToken) -> None:
        try:
            job = self._client.generate_video_recap()
        except ProxyClientError as exc:
            logger.warning('video_recap.generate.failed: %s', exc.message)
            self._apply(token, generation_failed, exc.message)
            return

        if self._apply(token, job_created, job) is None:
            return
        video_id = job.get('video_id')

        while True:
            if token.cancelled:
                return
            try:
                payload = self._client.poll_video_status(video_id)
            except ProxyClientError as exc:
                logger.warning(
                    'video_recap.poll.failed',
                    extra={'video_id': video_id, 'attempt': self.state.attempts + 1, 'reason': exc.message},
                )
                next_state = self._apply(token, poll_failed, self._max_attempts)
            else:
                next_state = self._apply(
                    token, status_received, payload.get('status'), payload.get('video_url'), self._max_attempts
                )

            if next_state is None:
                return

            if next_state.phase == RecapPhase.COMPLETED:
                self._persist_url(next_state)
                return
            if next_state.phase in TERMINAL_PHASES:
                return
            if token.wait(self._poll_interval):
                return

    def _persist_url(self, state: RecapState) -> None:
        job = state.job or {}
        try:
            self._client.update_video_url(state.video_url, job.get('week_start'), job.get('week_end'))
        except ProxyClientError:
            # The vendor URL already plays, so the recap stays completed.
            logger.warning('video_recap.persist_url.failed', extra={'video_id': state.video_id}, exc_info=True)
