"""Tests for controller.py - the review app state machine."""

from commclimb.controller import View, ViewController, project_name_from_filename
from commclimb.models import NoteKind, Project, ReviewTab
from commclimb.tasks import TranscriptionScheduler


class TestProjectNames:
    def test_name_is_text_before_first_dot(self):
        assert project_name_from_filename("demo.mp4") == "demo"
        assert project_name_from_filename("talk.final.webm") == "talk"

    def test_name_ignores_directories(self):
        assert project_name_from_filename("/videos/pitch.mov") == "pitch"


class TestSessionLifecycle:
    """Tests for start, sign in and sign out."""

    def test_start_without_session_shows_auth(self, controller):
        controller.start()
        assert controller.session.view == View.AUTH
        assert controller.session.user is None

    def test_register_enters_dashboard(self, controller):
        controller.start()
        outcome = controller.register("ada@example.com", "secret")
        assert outcome
        assert controller.session.view == View.DASHBOARD
        assert controller.session.user.email == "ada@example.com"

    def test_bad_login_sets_auth_error(self, controller):
        controller.start()
        outcome = controller.login("nobody@example.com", "secret")
        assert not outcome
        assert controller.session.view == View.AUTH
        assert controller.session.auth_error == "Invalid email or password"

    def test_duplicate_registration_sets_auth_error(self, signed_in):
        signed_in.logout()
        outcome = signed_in.register("ada@example.com", "other")
        assert not outcome
        assert signed_in.session.auth_error == "User already exists"

    def test_remembered_session_resumes(self, signed_in, make_controller, gateway):
        fresh = make_controller(gateway)
        fresh.start()
        assert fresh.session.view == View.DASHBOARD
        assert fresh.session.user == signed_in.session.user

    def test_logout_clears_session(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)

        signed_in.logout()

        s = signed_in.session
        assert s.view == View.AUTH
        assert s.user is None
        assert s.projects == []
        assert s.current_project is None
        assert signed_in.annotations.notes == []
        assert signed_in.storage.get_current_user() is None

    def test_logout_starts_a_fresh_session(self, signed_in):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        signed_in.set_tab(ReviewTab.VERBAL)
        old = signed_in.session

        signed_in.logout()

        assert signed_in.session is not old
        assert signed_in.session.view == View.AUTH
        assert signed_in.session.active_tab == ReviewTab.ORIGINAL

    def test_transcription_still_saved_after_logout(self, make_controller, stub_gateway, hello_segments, finish):
        gw = stub_gateway(segments=hello_segments, block=True)
        controller = make_controller(gw)
        controller.start()
        controller.register("ada@example.com", "secret")
        project = controller.upload("demo.mp4", b"video", "video/mp4").value

        controller.logout()
        gw.release.set()
        finish(controller)

        saved = controller.storage.get_project(project.id)
        assert saved.transcribing is False
        assert saved.transcript == hello_segments


class TestUpload:
    """Tests for uploading and background transcription."""

    def test_project_listed_before_transcript_arrives(self, make_controller, stub_gateway, hello_segments, finish):
        gw = stub_gateway(segments=hello_segments, block=True)
        controller = make_controller(gw)
        controller.start()
        controller.register("ada@example.com", "secret")

        outcome = controller.upload("demo.mp4", b"video", "video/mp4")

        project = outcome.value
        assert project.name == "demo"
        assert project.transcribing is True
        assert project.transcript == []
        assert controller.session.projects == [project]
        assert controller.session.view == View.PROJECT
        assert controller.session.current_project is project
        assert controller.session.active_tab == ReviewTab.ORIGINAL

        gw.release.set()
        finish(controller)

        assert project.transcribing is False
        assert project.transcript == hello_segments

    def test_verbal_note_after_transcription(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)

        outcome = signed_in.add_note(
            NoteKind.VERBAL,
            "Strong opener",
            transcript_segment_index=0,
            highlight_start=0,
            highlight_end=5,
            quote="Hello",
        )

        assert outcome
        assert outcome.value.timestamp == 0.0
        assert signed_in.visible_notes(ReviewTab.VERBAL) == [outcome.value]

    def test_gateway_failure_leaves_empty_transcript(self, make_controller, failing_gateway, finish):
        controller = make_controller(failing_gateway)
        controller.start()
        controller.register("ada@example.com", "secret")

        project = controller.upload("demo.mp4", b"video", "video/mp4").value
        finish(controller)

        assert project.transcribing is False
        assert project.transcript == []
        assert controller.storage.get_project(project.id).transcribing is False

    def test_upload_requires_sign_in(self, controller):
        controller.start()
        assert not controller.upload("demo.mp4", b"video", "video/mp4")

    def test_empty_upload_rejected(self, signed_in):
        outcome = signed_in.upload("demo.mp4", b"", "video/mp4")
        assert outcome.reason == "Uploaded file is empty"
        assert signed_in.session.projects == []

    def test_media_sent_to_gateway(self, signed_in, gateway, finish):
        signed_in.upload("demo.mp4", b"\x00\x01", "video/mp4")
        finish(signed_in)
        assert gateway.calls == [(b"\x00\x01", "video/mp4")]

    def test_interrupted_transcription_marked_failed_on_start(self, signed_in, make_controller, gateway):
        stale = Project.create(signed_in.session.user.id, "stale")
        signed_in.storage.save_project(stale)

        fresh = make_controller(gateway)
        fresh.start()

        loaded = fresh.find_project(stale.id)
        assert loaded.transcribing is False
        assert fresh.storage.get_project(stale.id).transcribing is False

    def test_retry_after_failure(self, make_controller, failing_gateway, hello_segments, finish):
        controller = make_controller(failing_gateway)
        controller.start()
        controller.register("ada@example.com", "secret")
        project = controller.upload("demo.mp4", b"video", "video/mp4").value
        finish(controller)

        failing_gateway.error = None
        failing_gateway.segments = hello_segments
        outcome = controller.retry_transcription(project.id)
        assert outcome
        assert project.transcribing is True

        finish(controller)
        assert project.transcript == hello_segments

    def test_retry_refused_while_transcribing(self, make_controller, stub_gateway, finish):
        gw = stub_gateway(block=True)
        controller = make_controller(gw)
        controller.start()
        controller.register("ada@example.com", "secret")
        project = controller.upload("demo.mp4", b"video", "video/mp4").value

        assert controller.retry_transcription(project.id).reason == "Transcription already in progress"
        gw.release.set()
        finish(controller)

    def test_retry_needs_media(self, signed_in, make_controller, failing_gateway):
        project = Project.create(signed_in.session.user.id, "old")
        project.transcribing = False
        signed_in.storage.save_project(project)
        controller = make_controller(failing_gateway)
        controller.start()

        outcome = controller.retry_transcription(project.id)
        assert "upload it again" in outcome.reason

    def test_reattach_media(self, signed_in, temp_dir):
        project = Project.create(signed_in.session.user.id, "old")
        project.transcribing = False
        signed_in.storage.save_project(project)
        signed_in.close_project()
        signed_in.start()

        outcome = signed_in.reattach_media(project.id, "old.mp4", b"fresh", "video/mp4")

        assert outcome
        reloaded = signed_in.find_project(project.id)
        assert reloaded.has_media
        assert reloaded.media.read_bytes() == b"fresh"


class TestRename:
    """Tests for inline renaming."""

    def test_commit_saves_new_name(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)
        signed_in.close_project()

        signed_in.start_rename(project.id)
        signed_in.edit_rename("  Final pitch ")
        outcome = signed_in.commit_rename()

        assert outcome
        assert project.name == "Final pitch"
        assert signed_in.storage.get_project(project.id).name == "Final pitch"
        assert signed_in.session.editing_project_id is None

    def test_blank_name_rejected(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)

        signed_in.start_rename(project.id)
        signed_in.edit_rename("   ")
        outcome = signed_in.commit_rename()

        assert outcome.reason == "Project name cannot be blank"
        assert project.name == "demo"

    def test_cancel_discards_edit(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)

        signed_in.start_rename(project.id)
        signed_in.edit_rename("changed")
        signed_in.cancel_rename()

        assert project.name == "demo"
        assert signed_in.session.editing_project_id is None

    def test_one_edit_at_a_time(self, signed_in, finish):
        first = signed_in.upload("first.mp4", b"video", "video/mp4").value
        second = signed_in.upload("second.mp4", b"video", "video/mp4").value
        finish(signed_in)
        signed_in.close_project()

        signed_in.start_rename(first.id)
        signed_in.edit_rename("renamed")
        signed_in.start_rename(second.id)

        assert first.name == "renamed"
        assert signed_in.session.editing_project_id == second.id
        assert signed_in.session.edit_name == "second"

    def test_open_refused_while_editing(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)
        signed_in.close_project()

        signed_in.start_rename(project.id)
        outcome = signed_in.open_project(project.id)

        assert not outcome
        assert signed_in.session.view == View.DASHBOARD


class TestDelete:
    """Tests for confirmed deletion."""

    def test_unconfirmed_delete_does_nothing(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)

        assert not signed_in.delete_project(project.id)
        assert signed_in.find_project(project.id) is project

    def test_confirmed_delete_removes_project_and_media(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)
        media_path = project.media.path

        assert signed_in.delete_project(project.id, confirmed=True)

        assert signed_in.session.projects == []
        assert signed_in.storage.get_project(project.id) is None
        assert not media_path.exists()
        assert signed_in.session.view == View.DASHBOARD

    def test_delete_during_transcription_drops_result(self, make_controller, stub_gateway, hello_segments, finish):
        gw = stub_gateway(segments=hello_segments, block=True)
        controller = make_controller(gw)
        controller.start()
        controller.register("ada@example.com", "secret")
        project = controller.upload("demo.mp4", b"video", "video/mp4").value

        controller.delete_project(project.id, confirmed=True)
        gw.release.set()
        finish(controller)

        assert controller.storage.get_project(project.id) is None
        assert controller.session.projects == []


class TestReview:
    """Tests for tabs, playback and notes in an open project."""

    def test_verbal_tab_pauses_and_original_does_not_resume(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)
        signed_in.playback.play()

        signed_in.set_tab(ReviewTab.VERBAL)
        assert signed_in.playback.is_playing is False

        signed_in.set_tab(ReviewTab.ORIGINAL)
        assert signed_in.playback.is_playing is False

    def test_layout_follows_tab(self, signed_in):
        assert signed_in.layout == {"media_panel_visible": True, "annotation_panel": "third"}
        signed_in.set_tab(ReviewTab.VERBAL)
        assert signed_in.layout == {"media_panel_visible": False, "annotation_panel": "full"}

    def test_note_defaults_to_playhead(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)
        signed_in.jump_to_time(12.5)

        note = signed_in.add_note(NoteKind.VIDEO, "Good eye contact").value

        assert note.timestamp == 12.5
        assert signed_in.session.current_time == 12.5

    def test_tab_shows_only_its_kind(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)
        video = signed_in.add_note(NoteKind.VIDEO, "gesture", timestamp=1.0).value
        signed_in.add_note(NoteKind.AUDIO, "pace", timestamp=2.0)

        signed_in.set_tab(ReviewTab.VISUAL)
        assert signed_in.visible_notes() == [video]

    def test_invalid_note_sets_note_error(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)

        outcome = signed_in.add_note(NoteKind.ORIGINAL, "   ", timestamp=1.0)

        assert not outcome
        assert signed_in.session.note_error == outcome.reason

    def test_unknown_kind_sets_note_error(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)
        assert not signed_in.add_note("GESTURE", "x", timestamp=1.0)
        assert signed_in.session.note_error

    def test_add_note_requires_open_project(self, signed_in):
        assert signed_in.add_note(NoteKind.ORIGINAL, "x").reason == "No project is open"

    def test_nearby_notes_track_playhead(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)
        note = signed_in.add_note(NoteKind.ORIGINAL, "here", timestamp=10.0).value

        signed_in.jump_to_time(10.2)

        assert signed_in.session.nearby_note_ids == [note.id]

    def test_active_segment_tracks_playhead(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)

        signed_in.jump_to_time(1.0)
        assert signed_in.session.active_segment_index == 0

        signed_in.jump_to_time(9.0)
        assert signed_in.session.active_segment_index is None

    def test_delete_note_twice(self, signed_in, finish):
        signed_in.upload("demo.mp4", b"video", "video/mp4")
        finish(signed_in)
        note = signed_in.add_note(NoteKind.ORIGINAL, "x", timestamp=1.0).value

        assert signed_in.delete_note(note.id).value is True
        assert signed_in.delete_note(note.id).value is False

    def test_open_project_resets_playback(self, signed_in, finish):
        project = signed_in.upload("demo.mp4", b"video", "video/mp4").value
        finish(signed_in)
        signed_in.jump_to_time(30.0)
        signed_in.set_tab(ReviewTab.AUDIO)
        signed_in.close_project()

        signed_in.open_project(project.id)

        assert signed_in.playback.current_time == 0.0
        assert signed_in.session.active_tab == ReviewTab.ORIGINAL


def test_controller_uses_given_media_dir(storage, gateway, temp_dir):
    controller = ViewController(storage, TranscriptionScheduler(gateway), media_dir=temp_dir / "clips")
    try:
        assert controller.media_dir == temp_dir / "clips"
    finally:
        controller.scheduler.shutdown()
