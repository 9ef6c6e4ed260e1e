"""
CommClimb - Video Review Toolkit

Upload a talk, get an AI transcript, and review it along four dimensions:
- Original: notes on the full recording
- Visual: notes while watching without sound
- Audio: notes while listening without picture
- Verbal: highlights and comments on the transcript
"""

__version__ = "0.3.0"

from .annotation import AnnotationModel, filter_by_kind
from .controller import AppSession, View, ViewController
from .errors import AuthError, Outcome, TranscriptionFailure, ValidationError
from .models import Note, NoteKind, Project, ReviewTab, TranscriptSegment, User
from .playback import PlaybackCoordinator, PlaybackMode
from .store import KeyValueStore, Storage
from .transcription import GeminiTranscriber, HttpTranscriptionGateway

__all__ = [
    "AnnotationModel",
    "filter_by_kind",
    "AppSession",
    "View",
    "ViewController",
    "AuthError",
    "Outcome",
    "TranscriptionFailure",
    "ValidationError",
    "Note",
    "NoteKind",
    "Project",
    "ReviewTab",
    "TranscriptSegment",
    "User",
    "PlaybackCoordinator",
    "PlaybackMode",
    "KeyValueStore",
    "Storage",
    "GeminiTranscriber",
    "HttpTranscriptionGateway",
]
