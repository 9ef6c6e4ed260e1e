"""
Playback coordination between the media element and the annotation tabs.

The media element itself is opaque: anything with ``current_time``,
``paused``, ``play()``, ``pause()``, ``seek()``, a time-update hook and the
two presentation switches (``muted`` and ``audio_only``) will do.
``HeadlessMediaElement`` is the in-process stand-in the web server drives
from browser time updates.
"""

from enum import Enum
from typing import Callable, Protocol

from .logging import get_logger
from .models import ReviewTab

logger = get_logger(__name__)


class PlaybackMode(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    MUTED_VIDEO = "muted-video"


TAB_MODES = {
    ReviewTab.ORIGINAL: PlaybackMode.VIDEO,
    ReviewTab.VISUAL: PlaybackMode.MUTED_VIDEO,
    ReviewTab.AUDIO: PlaybackMode.AUDIO,
}


class MediaElement(Protocol):
    current_time: float
    paused: bool
    muted: bool
    audio_only: bool

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, time_s: float) -> None: ...

    def on_time_update(self, listener: Callable[[float], None]) -> None: ...


class HeadlessMediaElement:
    """Media element state without a decoder behind it."""

    def __init__(self, duration: float = None):
        self.duration = duration
        self.current_time = 0.0
        self.paused = True
        self.muted = False
        self.audio_only = False
        self._listeners: list[Callable[[float], None]] = []

    def on_time_update(self, listener: Callable[[float], None]):
        self._listeners.append(listener)

    def _clamp(self, time_s: float) -> float:
        time_s = max(0.0, float(time_s))
        if self.duration is not None:
            time_s = min(time_s, self.duration)
        return time_s

    def play(self):
        self.paused = False

    def pause(self):
        self.paused = True

    def seek(self, time_s: float):
        self.report_time(time_s)

    def report_time(self, time_s: float):
        """Record a new playback position and notify listeners."""
        self.current_time = self._clamp(time_s)
        for listener in list(self._listeners):
            listener(self.current_time)

    def advance(self, seconds: float):
        """Move the playhead forward if playing, as a decoder would."""
        if not self.paused:
            self.report_time(self.current_time + seconds)


class PlaybackCoordinator:
    """
    Tracks playback position and applies tab-driven presentation rules.

    Seeking never starts playback. The verbal tab pauses playback, and leaving
    it does not resume.
    """

    def __init__(self, media: MediaElement):
        self.media = media
        self.mode = PlaybackMode.VIDEO
        self._observers: list[Callable[[float], None]] = []
        media.on_time_update(self._publish)

    @property
    def current_time(self) -> float:
        return self.media.current_time

    @property
    def is_playing(self) -> bool:
        return not self.media.paused

    def _publish(self, time_s: float):
        for observer in list(self._observers):
            observer(time_s)

    def observe_time(self, callback: Callable[[float], None]) -> Callable[[], None]:
        """Subscribe to playback position updates. Returns an unsubscribe function."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def seek(self, time_s: float):
        was_paused = self.media.paused
        self.media.seek(max(0.0, float(time_s)))
        if was_paused and not self.media.paused:
            self.media.pause()

    def play(self):
        self.media.play()

    def pause(self):
        self.media.pause()

    def set_mode(self, mode: PlaybackMode):
        mode = PlaybackMode(mode)
        self.mode = mode
        self.media.audio_only = mode == PlaybackMode.AUDIO
        self.media.muted = mode == PlaybackMode.MUTED_VIDEO
        logger.debug("Playback mode: %s", mode.value)

    def apply_tab(self, tab: ReviewTab):
        """Presentation for the active annotation tab."""
        tab = ReviewTab(tab)
        if tab == ReviewTab.VERBAL:
            if self.is_playing:
                logger.debug("Pausing playback for transcript review")
            self.pause()
            return
        self.set_mode(TAB_MODES[tab])

    def state(self) -> dict:
        return {
            "current_time": self.current_time,
            "playing": self.is_playing,
            "mode": self.mode.value,
            "muted": self.media.muted,
            "audio_only": self.media.audio_only,
        }
