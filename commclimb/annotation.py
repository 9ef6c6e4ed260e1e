"""
Annotation model for a review project.

Holds the open project's notes in memory and keeps them in step with the store:
- Kind-specific validation (verbal notes must point at a real span of a segment)
- Append-only note set; notes are deleted and recreated, never edited
- Transcript attachment when transcription finishes
"""

import math
import re
from typing import Iterable, Optional, Sequence

from .errors import TranscriptStateError, ValidationError
from .logging import get_logger, short_id
from .models import Note, NoteKind, Project, TranscriptSegment, new_id, now_ms
from .store import Storage

logger = get_logger(__name__)

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Point notes match playback within this many seconds either side
NEAR_WINDOW_S = 0.5


def filter_by_kind(notes: Iterable[Note], kind: NoteKind) -> list[Note]:
    """Notes of one kind, in their original order."""
    kind = NoteKind(kind)
    return [n for n in notes if n.kind == kind]


def _require_int(value, name: str) -> int:
    # bool is an int subclass but never a valid index
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


def validate_note_fields(
    project: Project,
    kind: NoteKind,
    timestamp: Optional[float],
    content: str,
    transcript_segment_index: Optional[int] = None,
    highlight_start: Optional[int] = None,
    highlight_end: Optional[int] = None,
    quote: Optional[str] = None,
    color: Optional[str] = None,
) -> float:
    """
    Check note fields against the project they annotate.

    Returns the timestamp the note should carry. Verbal notes are anchored at
    the start of their transcript segment.

    Raises:
        ValidationError: describing the first problem found
    """
    try:
        kind = NoteKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown note kind: {kind}") from None

    if content is None or not isinstance(content, str):
        raise ValidationError("content must be a string")

    if color is not None and not HEX_COLOR.match(color):
        raise ValidationError(f"Invalid highlight color: {color}")

    verbal_values = (transcript_segment_index, highlight_start, highlight_end, quote)

    if kind != NoteKind.VERBAL:
        if any(v is not None for v in verbal_values):
            raise ValidationError(f"{kind.value} notes cannot reference the transcript")
        if not content.strip():
            raise ValidationError("Note content cannot be empty")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValidationError("timestamp must be a number")
        if not math.isfinite(timestamp):
            raise ValidationError("timestamp must be a finite number")
        if timestamp < 0:
            raise ValidationError("timestamp cannot be negative")
        return float(timestamp)

    if any(v is None for v in verbal_values):
        raise ValidationError(
            "Verbal notes require transcript_segment_index, highlight_start, highlight_end and quote"
        )

    index = _require_int(transcript_segment_index, "transcript_segment_index")
    start = _require_int(highlight_start, "highlight_start")
    end = _require_int(highlight_end, "highlight_end")

    if not 0 <= index < len(project.transcript):
        raise ValidationError(
            f"Transcript segment {index} does not exist ({len(project.transcript)} segments)"
        )

    text_length = len(project.transcript[index].text)
    if not 0 <= start <= end <= text_length:
        raise ValidationError(
            f"Highlight {start}-{end} is outside segment {index} (length {text_length})"
        )

    return project.transcript[index].start_time


class AnnotationModel:
    """
    In-memory notes for the open project, persisted through the store.

    Notes keep insertion order. Deleting is idempotent.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self.project: Optional[Project] = None
        self._notes: list[Note] = []

    @property
    def notes(self) -> list[Note]:
        return list(self._notes)

    def load(self, project: Project) -> list[Note]:
        """Bind to a project and read its notes from the store."""
        self.project = project
        self._notes = self.storage.get_notes(project.id)
        return self.notes

    def clear(self):
        self.project = None
        self._notes = []

    def _resolve_project(self, project_id: str) -> Project:
        if self.project is not None and self.project.id == project_id:
            return self.project
        project = self.storage.get_project(project_id)
        if project is None:
            raise ValidationError(f"Unknown project: {project_id}")
        return project

    def add_note(
        self,
        project_id: str,
        kind: NoteKind,
        timestamp: Optional[float],
        content: str,
        transcript_segment_index: Optional[int] = None,
        highlight_start: Optional[int] = None,
        highlight_end: Optional[int] = None,
        quote: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Note:
        """Validate, persist and append a new note."""
        project = self._resolve_project(project_id)
        timestamp = validate_note_fields(
            project,
            kind,
            timestamp,
            content,
            transcript_segment_index=transcript_segment_index,
            highlight_start=highlight_start,
            highlight_end=highlight_end,
            quote=quote,
            color=color,
        )

        note = Note(
            id=new_id(),
            project_id=project.id,
            kind=NoteKind(kind),
            timestamp=timestamp,
            content=content,
            created_at=now_ms(),
            transcript_segment_index=transcript_segment_index,
            highlight_start=highlight_start,
            highlight_end=highlight_end,
            color=color,
            quote=quote,
        )

        self.storage.save_note(note)
        if project is self.project:
            self._notes.append(note)
        logger.info("Created %s note %s at %.2fs", note.kind.value, short_id(note.id), note.timestamp)
        return note

    def delete_note(self, note_id: str) -> bool:
        """Remove a note from memory and the store. Returns False if it was not loaded."""
        remaining = [n for n in self._notes if n.id != note_id]
        removed = len(remaining) != len(self._notes)
        self._notes = remaining
        self.storage.delete_note(note_id)
        if removed:
            logger.info("Deleted note %s", short_id(note_id))
        return removed

    def filter_by_kind(self, kind: NoteKind) -> list[Note]:
        return filter_by_kind(self._notes, kind)

    def notes_at(self, time_s: float, window: float = NEAR_WINDOW_S) -> list[Note]:
        """Timestamped notes within ``window`` seconds of a playback position."""
        return [
            n for n in self._notes
            if not n.is_verbal and abs(n.timestamp - time_s) <= window
        ]

    def highlights_for_segment(self, index: int) -> list[Note]:
        """Verbal notes anchored to one transcript segment, ordered by position."""
        return sorted(
            (n for n in self._notes if n.is_verbal and n.transcript_segment_index == index),
            key=lambda n: (n.highlight_start, n.highlight_end),
        )

    def attach_transcript(self, project: Project, segments: Sequence[TranscriptSegment]) -> Project:
        """
        Replace a project's transcript once transcription completes.

        Raises:
            TranscriptStateError: if the project is not awaiting a transcript
        """
        if not project.transcribing:
            raise TranscriptStateError(f"Project {project.id} is not transcribing")

        project.transcript = list(segments)
        project.transcribing = False
        self.storage.save_project(project)
        logger.info("Attached %d transcript segments to %s", len(project.transcript), project.name)
        return project

    def mark_transcription_failed(self, project: Project) -> Project:
        """Stop waiting for a transcript; whatever transcript exists is kept."""
        project.transcribing = False
        self.storage.save_project(project)
        return project
