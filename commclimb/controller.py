"""
View controller for the review app.

The controller is the only writer of session state. It moves between three
views (auth, dashboard, project), owns the explicit ``AppSession`` context,
and applies transcription results delivered by the scheduler when
``pump_events()`` is called.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from .annotation import AnnotationModel, filter_by_kind
from .config import get_media_dir
from .errors import AuthError, Outcome, ValidationError
from .logging import get_logger, short_id
from .models import MediaHandle, Note, NoteKind, Project, ReviewTab, User
from .playback import HeadlessMediaElement, MediaElement, PlaybackCoordinator
from .store import Storage
from .tasks import EventBus, TranscriptionCompleted, TranscriptionFailed, TranscriptionScheduler

logger = get_logger(__name__)


class View(str, Enum):
    AUTH = "auth"
    DASHBOARD = "dashboard"
    PROJECT = "project"


@dataclass
class AppSession:
    """Everything the UI shows for the signed-in user."""
    view: View = View.AUTH
    user: Optional[User] = None
    projects: list[Project] = field(default_factory=list)
    current_project: Optional[Project] = None
    active_tab: ReviewTab = ReviewTab.ORIGINAL
    editing_project_id: Optional[str] = None
    edit_name: str = ""
    auth_error: Optional[str] = None
    note_error: Optional[str] = None
    current_time: float = 0.0
    nearby_note_ids: list[str] = field(default_factory=list)
    active_segment_index: Optional[int] = None


def project_name_from_filename(filename: str) -> str:
    """Display name for an uploaded file: everything before the first dot."""
    base = Path(filename).name
    return base.split(".")[0] or base


class ViewController:
    """
    State machine driving the review app.

    Args:
        storage: Persistence for users, projects and notes
        scheduler: Runs transcription tasks in the background
        media: Media element to coordinate (headless if omitted)
        media_dir: Where uploaded media is kept while the app runs
    """

    def __init__(
        self,
        storage: Storage,
        scheduler: TranscriptionScheduler,
        media: Optional[MediaElement] = None,
        media_dir: Optional[Path] = None,
    ):
        self.storage = storage
        self.scheduler = scheduler
        self.media_dir = Path(media_dir) if media_dir else get_media_dir()
        self.session = AppSession()
        self.annotations = AnnotationModel(storage)
        self.playback = PlaybackCoordinator(media or HeadlessMediaElement())
        self.playback.observe_time(self._on_time)

        # Media handles survive reloads of the project list, not restarts
        self._media: dict[str, MediaHandle] = {}

        self.bus = EventBus()
        self.bus.subscribe(TranscriptionCompleted, self._on_transcribed)
        self.bus.subscribe(TranscriptionFailed, self._on_transcription_failed)

    # ------------------------------------------------------------------
    # Lifecycle & auth
    # ------------------------------------------------------------------

    def start(self):
        """Resume a remembered session, if there is one."""
        user = self.storage.get_current_user()
        if user:
            self._enter_dashboard(user)
        else:
            self.session.view = View.AUTH

    def _enter_dashboard(self, user: User):
        self.session.user = user
        self.session.auth_error = None
        self._load_projects()
        self.session.view = View.DASHBOARD

    def _load_projects(self):
        projects = self.storage.get_projects(self.session.user.id)
        for project in projects:
            project.media = self._media.get(project.id)
            if project.transcribing and self.scheduler.token_for(project.id) is None:
                # Nothing is working on it any more (the app was restarted)
                logger.warning("Transcription of %s was interrupted", project.name)
                self.annotations.mark_transcription_failed(project)
        self.session.projects = projects

    def login(self, email: str, password: str) -> Outcome:
        return self._authenticate(self.storage.login_user, email, password)

    def register(self, email: str, password: str) -> Outcome:
        return self._authenticate(self.storage.register_user, email, password)

    def _authenticate(self, action, email: str, password: str) -> Outcome:
        self.session.auth_error = None
        try:
            user = action(email, password)
        except AuthError as exc:
            self.session.auth_error = str(exc)
            return Outcome.rejected(str(exc))
        self._enter_dashboard(user)
        return Outcome.success(user)

    def logout(self):
        """Sign out. In-flight transcriptions still finish and are saved."""
        self.storage.logout_user()
        self.playback.pause()
        self.annotations.clear()
        # A fresh session starts on the auth view
        self.session = AppSession()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def find_project(self, project_id: str) -> Optional[Project]:
        for project in self.session.projects:
            if project.id == project_id:
                return project
        return None

    def _store_media(self, project_id: str, filename: str, data: bytes, mime_type: str) -> MediaHandle:
        self.media_dir.mkdir(parents=True, exist_ok=True)
        path = self.media_dir / f"{project_id}{Path(filename).suffix.lower()}"
        path.write_bytes(data)
        handle = MediaHandle(path=path, mime_type=mime_type, filename=Path(filename).name)
        self._media[project_id] = handle
        return handle

    def upload(self, filename: str, data: bytes, mime_type: str) -> Outcome:
        """
        Create a project for an uploaded video and start transcribing it.

        The project is saved, listed and opened before transcription begins;
        the transcript arrives later through ``pump_events()``.
        """
        if self.session.user is None:
            return Outcome.rejected("Not signed in")
        if not data:
            return Outcome.rejected("Uploaded file is empty")

        project = Project.create(self.session.user.id, project_name_from_filename(filename))
        project.media = self._store_media(project.id, filename, data, mime_type)

        self.storage.save_project(project)
        self.session.projects.append(project)
        logger.info("Uploaded %s as project %s", filename, short_id(project.id))

        self.open_project(project.id)
        self.scheduler.schedule(project.id, project.media)
        return Outcome.success(project)

    def open_project(self, project_id: str) -> Outcome:
        if self.session.editing_project_id:
            return Outcome.rejected("Finish renaming before opening a project")
        project = self.find_project(project_id)
        if project is None:
            return Outcome.rejected(f"Unknown project: {project_id}")

        self.session.current_project = project
        self.session.note_error = None
        self.annotations.load(project)
        self.playback.pause()
        self.playback.seek(0)
        self.set_tab(ReviewTab.ORIGINAL)
        self.session.view = View.PROJECT
        return Outcome.success(project)

    def close_project(self):
        self.playback.pause()
        self.annotations.clear()
        self.session.current_project = None
        self.session.view = View.DASHBOARD

    def start_rename(self, project_id: str) -> Outcome:
        """Put one project into rename mode. Another open edit is committed first."""
        project = self.find_project(project_id)
        if project is None:
            return Outcome.rejected(f"Unknown project: {project_id}")
        if self.session.editing_project_id and self.session.editing_project_id != project_id:
            self.commit_rename()
        self.session.editing_project_id = project_id
        self.session.edit_name = project.name
        return Outcome.success(project)

    def edit_rename(self, text: str):
        self.session.edit_name = text

    def commit_rename(self) -> Outcome:
        """Persist the pending rename (blur or Enter). Blank names keep the old name."""
        project_id = self.session.editing_project_id
        name = (self.session.edit_name or "").strip()
        self.cancel_rename()

        if project_id is None:
            return Outcome.rejected("No rename in progress")
        project = self.find_project(project_id)
        if project is None:
            return Outcome.rejected(f"Unknown project: {project_id}")
        if not name:
            return Outcome.rejected("Project name cannot be blank")

        project.name = name
        self.storage.save_project(project)
        logger.info("Renamed project %s to %s", short_id(project.id), name)
        return Outcome.success(project)

    def cancel_rename(self):
        """Leave rename mode without saving (Escape)."""
        self.session.editing_project_id = None
        self.session.edit_name = ""

    def delete_project(self, project_id: str, confirmed: bool = False) -> Outcome:
        """
        Delete a project after explicit confirmation.

        Its notes stay in the store; only the project record is removed.
        """
        if not confirmed:
            return Outcome.rejected("Deletion not confirmed")
        project = self.find_project(project_id)
        if project is None:
            return Outcome.rejected(f"Unknown project: {project_id}")

        self.scheduler.cancel(project_id)
        self.storage.delete_project(project_id)
        self.session.projects = [p for p in self.session.projects if p.id != project_id]

        handle = self._media.pop(project_id, None)
        if handle is not None:
            handle.path.unlink(missing_ok=True)

        if self.session.editing_project_id == project_id:
            self.cancel_rename()
        if self.session.current_project is project:
            self.close_project()

        logger.info("Deleted project %s", project.name)
        return Outcome.success(project)

    def reattach_media(self, project_id: str, filename: str, data: bytes, mime_type: str) -> Outcome:
        """Give a project whose media expired a fresh copy of its video."""
        project = self.find_project(project_id)
        if project is None:
            return Outcome.rejected(f"Unknown project: {project_id}")
        if not data:
            return Outcome.rejected("Uploaded file is empty")
        project.media = self._store_media(project_id, filename, data, mime_type)
        return Outcome.success(project)

    def retry_transcription(self, project_id: str) -> Outcome:
        """Run transcription again for a project whose last attempt produced nothing."""
        project = self.find_project(project_id)
        if project is None:
            return Outcome.rejected(f"Unknown project: {project_id}")
        if project.transcribing:
            return Outcome.rejected("Transcription already in progress")
        if project.transcript:
            return Outcome.rejected("Project already has a transcript")
        if not project.has_media:
            return Outcome.rejected("Media is no longer available; upload it again")

        project.transcribing = True
        self.storage.save_project(project)
        self.scheduler.schedule(project.id, project.media)
        return Outcome.success(project)

    # ------------------------------------------------------------------
    # Review: tabs, playback, notes
    # ------------------------------------------------------------------

    def set_tab(self, tab: ReviewTab):
        tab = ReviewTab(tab)
        self.session.active_tab = tab
        self.playback.apply_tab(tab)

    @property
    def layout(self) -> dict:
        """Panel arrangement: the verbal tab hides the player and takes the full width."""
        verbal = self.session.active_tab == ReviewTab.VERBAL
        return {
            "media_panel_visible": not verbal,
            "annotation_panel": "full" if verbal else "third",
        }

    def jump_to_time(self, time_s: float):
        self.playback.seek(time_s)

    def _on_time(self, time_s: float):
        self.session.current_time = time_s
        self.session.nearby_note_ids = [n.id for n in self.annotations.notes_at(time_s)]
        self.session.active_segment_index = self._segment_at(time_s)

    def _segment_at(self, time_s: float) -> Optional[int]:
        """Index of the transcript segment being spoken at a playback position."""
        project = self.session.current_project
        if project is None:
            return None
        for index, segment in enumerate(project.transcript):
            if segment.contains_time(time_s):
                return index
        return None

    def visible_notes(self, tab: Optional[ReviewTab] = None) -> list[Note]:
        tab = ReviewTab(tab) if tab else self.session.active_tab
        return filter_by_kind(self.annotations.notes, tab.note_kind)

    def add_note(
        self,
        kind: NoteKind,
        content: str,
        timestamp: Optional[float] = None,
        transcript_segment_index: Optional[int] = None,
        highlight_start: Optional[int] = None,
        highlight_end: Optional[int] = None,
        quote: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Outcome:
        """Add a note to the open project. Non-verbal notes default to the playhead position."""
        project = self.session.current_project
        if project is None:
            return Outcome.rejected("No project is open")

        try:
            if timestamp is None and NoteKind(kind) != NoteKind.VERBAL:
                timestamp = self.playback.current_time
            note = self.annotations.add_note(
                project.id,
                kind,
                timestamp,
                content,
                transcript_segment_index=transcript_segment_index,
                highlight_start=highlight_start,
                highlight_end=highlight_end,
                quote=quote,
                color=color,
            )
        except (ValidationError, ValueError) as exc:
            self.session.note_error = str(exc)
            return Outcome.rejected(str(exc))

        self.session.note_error = None
        return Outcome.success(note)

    def delete_note(self, note_id: str) -> Outcome:
        return Outcome.success(self.annotations.delete_note(note_id))

    # ------------------------------------------------------------------
    # Transcription results
    # ------------------------------------------------------------------

    def pump_events(self) -> int:
        """Apply finished transcriptions. Call from the controller's thread."""
        return self.scheduler.drain(self.bus)

    def _project_for_result(self, event) -> Optional[Project]:
        if event.token.cancelled:
            logger.debug("Dropping cancelled transcription for %s", short_id(event.project_id))
            return None
        project = self.find_project(event.project_id) or self.storage.get_project(event.project_id)
        if project is None:
            logger.warning("Transcription finished for missing project %s", short_id(event.project_id))
            return None
        if not project.transcribing:
            logger.warning("Project %s was not waiting for a transcript", project.name)
            return None
        return project

    def _on_transcribed(self, event: TranscriptionCompleted):
        project = self._project_for_result(event)
        if project is not None:
            self.annotations.attach_transcript(project, event.segments)

    def _on_transcription_failed(self, event: TranscriptionFailed):
        project = self._project_for_result(event)
        if project is not None:
            logger.error("Transcription failed for %s: %s", project.name, event.error)
            self.annotations.mark_transcription_failed(project)
