"""
Background transcription tasks.

Each upload schedules one task on a worker pool. The task never touches
project state: it posts a completion message to a queue, and the owner of
the project state drains that queue on its own thread and dispatches the
messages through an ``EventBus``. Every task carries a cancellation token tied
to its project; a cancelled task's result is dropped when drained.
"""

import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from .errors import TranscriptionFailure
from .logging import get_logger, short_id
from .models import MediaHandle, TranscriptSegment
from .transcription import TranscriptionGateway

logger = get_logger(__name__)


class CancellationToken:
    """Flag shared between a task and whoever may abandon its result."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class TranscriptionCompleted:
    project_id: str
    token: CancellationToken
    segments: list[TranscriptSegment] = field(default_factory=list)


@dataclass
class TranscriptionFailed:
    project_id: str
    token: CancellationToken
    error: str = ""


class EventBus:
    """Synchronous publish/subscribe keyed by message type."""

    def __init__(self):
        self._handlers: dict[type, list[Callable]] = {}

    def subscribe(self, event_type: type, handler: Callable):
        self._handlers.setdefault(event_type, []).append(handler)

    def publish(self, event):
        for handler in self._handlers.get(type(event), []):
            handler(event)


class TranscriptionScheduler:
    """
    Runs transcription calls off the caller's thread.

    Args:
        gateway: Transcription gateway used by every task
        max_workers: Worker threads in the pool
    """

    def __init__(self, gateway: TranscriptionGateway, max_workers: int = 2):
        self.gateway = gateway
        self.outbox: "queue.Queue" = queue.Queue()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="transcribe")
        self._tokens: dict[str, CancellationToken] = {}
        self._futures: list[Future] = []

    def schedule(self, project_id: str, media: MediaHandle) -> CancellationToken:
        """Start transcribing a project's media. A previous task for the project is cancelled."""
        self.cancel(project_id)
        token = CancellationToken(project_id)
        self._tokens[project_id] = token
        future = self._executor.submit(self._run, token, media)
        self._futures = [f for f in self._futures if not f.done()] + [future]
        logger.info("Transcription scheduled for project %s", short_id(project_id))
        return token

    def _run(self, token: CancellationToken, media: MediaHandle):
        try:
            segments = self.gateway.transcribe(media.read_bytes(), media.mime_type)
        except (TranscriptionFailure, OSError) as exc:
            self.outbox.put(TranscriptionFailed(token.project_id, token, str(exc)))
        except Exception as exc:
            logger.exception("Unexpected error while transcribing %s", short_id(token.project_id))
            self.outbox.put(TranscriptionFailed(token.project_id, token, str(exc)))
        else:
            self.outbox.put(TranscriptionCompleted(token.project_id, token, list(segments)))

    def token_for(self, project_id: str) -> Optional[CancellationToken]:
        return self._tokens.get(project_id)

    def cancel(self, project_id: str):
        token = self._tokens.pop(project_id, None)
        if token is not None:
            token.cancel()
            logger.debug("Cancelled transcription for project %s", short_id(project_id))

    def cancel_all(self):
        for project_id in list(self._tokens):
            self.cancel(project_id)

    def pending(self) -> int:
        return sum(1 for f in self._futures if not f.done())

    def wait(self, timeout: Optional[float] = None):
        """Block until every scheduled task has posted its message."""
        wait(self._futures, timeout=timeout)

    def drain(self, bus: EventBus) -> int:
        """Dispatch every queued completion message. Returns how many were handled."""
        handled = 0
        while True:
            try:
                event = self.outbox.get_nowait()
            except queue.Empty:
                return handled
            if self._tokens.get(event.project_id) is event.token:
                del self._tokens[event.project_id]
            bus.publish(event)
            handled += 1

    def shutdown(self):
        self.cancel_all()
        self._executor.shutdown(wait=False)
