"""
Data model for review projects.

Times on the media timeline are float seconds, matching what a media element
reports. Creation times are integer epoch milliseconds.
"""

import time
import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


class NoteKind(str, Enum):
    """Review dimension a note belongs to."""
    ORIGINAL = "ORIGINAL"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    VERBAL = "VERBAL"


class ReviewTab(str, Enum):
    """Annotation tabs shown next to the player."""
    ORIGINAL = "original"
    VISUAL = "visual"
    AUDIO = "audio"
    VERBAL = "verbal"

    @property
    def note_kind(self) -> NoteKind:
        return TAB_NOTE_KINDS[self]


TAB_NOTE_KINDS = {
    ReviewTab.ORIGINAL: NoteKind.ORIGINAL,
    ReviewTab.VISUAL: NoteKind.VIDEO,
    ReviewTab.AUDIO: NoteKind.AUDIO,
    ReviewTab.VERBAL: NoteKind.VERBAL,
}

VERBAL_FIELDS = ("transcript_segment_index", "highlight_start", "highlight_end", "quote")


@dataclass
class User:
    id: str
    email: str
    name: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(id=data["id"], email=data["email"], name=data["name"])


@dataclass
class TranscriptSegment:
    """One sentence-level span of spoken text."""
    start_time: float
    end_time: float
    text: str

    def contains_time(self, t: float) -> bool:
        return self.start_time <= t <= self.end_time

    def to_dict(self) -> dict:
        return {"startTime": self.start_time, "endTime": self.end_time, "text": self.text}

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptSegment":
        return cls(
            start_time=float(data["startTime"]),
            end_time=float(data["endTime"]),
            text=data["text"],
        )


@dataclass
class MediaHandle:
    """Uploaded media file. Lives only as long as the running process."""
    path: Path
    mime_type: str
    filename: str

    def exists(self) -> bool:
        return self.path.exists()

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class Project:
    """
    One uploaded video with its transcript.

    ``media`` is transient: it is never written to the store and does not take
    part in equality, so a project read back from the store compares equal to
    the one that was saved.
    """
    id: str
    user_id: str
    name: str
    created_at: int = field(default_factory=now_ms)
    transcribing: bool = False
    transcript: list[TranscriptSegment] = field(default_factory=list)
    media: Optional[MediaHandle] = field(default=None, compare=False, repr=False)

    @classmethod
    def create(cls, user_id: str, name: str, media: Optional[MediaHandle] = None) -> "Project":
        """New project awaiting its transcript."""
        return cls(id=new_id(), user_id=user_id, name=name, transcribing=True, media=media)

    @property
    def has_media(self) -> bool:
        return self.media is not None and self.media.exists()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "created_at": self.created_at,
            "transcribing": self.transcribing,
            "transcript": [seg.to_dict() for seg in self.transcript],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            name=data["name"],
            created_at=data["created_at"],
            transcribing=data.get("transcribing", False),
            transcript=[TranscriptSegment.from_dict(s) for s in data.get("transcript", [])],
        )


@dataclass(frozen=True)
class Note:
    """A timestamped or text-span annotation. Never edited; delete and recreate."""
    id: str
    project_id: str
    kind: NoteKind
    timestamp: float
    content: str
    created_at: int = field(default_factory=now_ms)
    transcript_segment_index: Optional[int] = None
    highlight_start: Optional[int] = None
    highlight_end: Optional[int] = None
    color: Optional[str] = None
    quote: Optional[str] = None

    @property
    def is_verbal(self) -> bool:
        return self.kind == NoteKind.VERBAL

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Note":
        data = data.copy()
        data["kind"] = NoteKind(data["kind"])
        return cls(**data)
