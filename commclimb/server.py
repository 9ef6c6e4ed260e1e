"""
Web server for CommClimb.

Features:
- JSON API over the view controller (auth, projects, notes, tabs, playback)
- Media streaming with range requests so the browser player can seek
- Transcription endpoint speaking the {videoFileBase64, mimeType} contract
- Transcript and note export
"""

import mimetypes
import threading
from pathlib import Path
from typing import Optional

from flask import Flask, Response, g, jsonify, request, send_file
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from werkzeug.utils import secure_filename

from .config import get_db_path, get_media_dir
from .controller import ViewController
from .errors import Outcome, TranscriptionFailure
from .export import EXPORT_FORMATS, render_export
from .logging import get_logger
from .models import NoteKind, ReviewTab
from .store import Storage
from .tasks import TranscriptionScheduler
from .transcription import TranscribeRequest, TranscriptionGateway, get_gateway

logger = get_logger(__name__)

ALLOWED_EXTENSIONS = {".mp4", ".webm", ".mov", ".avi", ".mkv", ".m4v"}

# Endpoints that never touch controller state
UNLOCKED_ENDPOINTS = {"index", "transcribe", "serve_media"}


class Credentials(BaseModel):
    email: str = ""
    password: str = ""


class RenameRequest(BaseModel):
    name: str


class TabRequest(BaseModel):
    tab: ReviewTab


class TimeUpdate(BaseModel):
    time: float = Field(..., ge=0, allow_inf_nan=False)
    playing: Optional[bool] = None


class SeekRequest(BaseModel):
    time: float = Field(..., ge=0, allow_inf_nan=False)


class NoteRequest(BaseModel):
    kind: NoteKind
    content: str = ""
    timestamp: Optional[float] = Field(default=None, allow_inf_nan=False)
    transcript_segment_index: Optional[int] = None
    highlight_start: Optional[int] = None
    highlight_end: Optional[int] = None
    quote: Optional[str] = None
    color: Optional[str] = None


def project_json(project) -> dict:
    data = project.to_dict()
    data["has_media"] = project.has_media
    return data


def _parse(model: type[BaseModel]):
    return model.model_validate(request.get_json(silent=True) or {})


def _rejected(outcome: Outcome, status: int = 400):
    return jsonify({"error": outcome.reason}), status


def create_app(
    db_path: Optional[Path] = None,
    gateway: Optional[TranscriptionGateway] = None,
    media_dir: Optional[Path] = None,
) -> Flask:
    """Create and configure the review app."""
    app = Flask(__name__)

    gateway = gateway or get_gateway()
    storage = Storage.open(db_path or get_db_path())
    controller = ViewController(
        storage,
        TranscriptionScheduler(gateway),
        media_dir=media_dir or get_media_dir(),
    )
    controller.start()

    app.config["GATEWAY"] = gateway
    app.config["CONTROLLER"] = controller
    app.config["LOCK"] = threading.RLock()

    def ctl() -> ViewController:
        return app.config["CONTROLLER"]

    @app.before_request
    def acquire_controller():
        if request.endpoint in UNLOCKED_ENDPOINTS:
            return
        app.config["LOCK"].acquire()
        g.locked = True
        ctl().pump_events()

    @app.teardown_request
    def release_controller(exc=None):
        if g.pop("locked", False):
            app.config["LOCK"].release()

    @app.errorhandler(PydanticValidationError)
    def invalid_request(exc: PydanticValidationError):
        details = exc.errors(include_url=False, include_context=False, include_input=False)
        return jsonify({"error": "Invalid request", "details": details}), 400

    # ==========================================================================
    # Page & session
    # ==========================================================================

    @app.route("/")
    def index():
        """Serve the review interface."""
        return get_html_template()

    @app.route("/api/session")
    def get_session():
        c = ctl()
        s = c.session
        return jsonify(
            {
                "view": s.view.value,
                "user": s.user.to_dict() if s.user else None,
                "projects": [project_json(p) for p in s.projects],
                "current_project": project_json(s.current_project) if s.current_project else None,
                "active_tab": s.active_tab.value,
                "layout": c.layout,
                "editing_project_id": s.editing_project_id,
                "auth_error": s.auth_error,
                "note_error": s.note_error,
                "playback": c.playback.state(),
            }
        )

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        creds = _parse(Credentials)
        outcome = ctl().login(creds.email, creds.password)
        if not outcome:
            return _rejected(outcome, 401)
        return jsonify(outcome.value.to_dict())

    @app.route("/api/auth/register", methods=["POST"])
    def register():
        creds = _parse(Credentials)
        outcome = ctl().register(creds.email, creds.password)
        if not outcome:
            return _rejected(outcome, 409)
        return jsonify(outcome.value.to_dict()), 201

    @app.route("/api/auth/logout", methods=["POST"])
    def logout():
        ctl().logout()
        return jsonify({"success": True})

    # ==========================================================================
    # Projects
    # ==========================================================================

    @app.route("/api/projects", methods=["GET"])
    def list_projects():
        c = ctl()
        if c.session.user is None:
            return jsonify({"error": "Not signed in"}), 401
        return jsonify({"projects": [project_json(p) for p in c.session.projects]})

    def _read_upload():
        if "file" not in request.files:
            return None, (jsonify({"error": "No file provided"}), 400)

        file = request.files["file"]
        filename = secure_filename(file.filename or "")
        if not filename:
            return None, (jsonify({"error": "No file selected"}), 400)

        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            return None, (jsonify({"error": f"Unsupported file type: {ext}"}), 400)

        mime_type = file.mimetype
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(filename)[0] or "video/mp4"
        return (filename, file.read(), mime_type), None

    @app.route("/api/projects", methods=["POST"])
    def upload_project():
        """Upload a video; the project is returned before its transcript exists."""
        upload, error = _read_upload()
        if error:
            return error
        outcome = ctl().upload(*upload)
        if not outcome:
            return _rejected(outcome)
        return jsonify(project_json(outcome.value)), 201

    @app.route("/api/projects/<project_id>", methods=["PATCH"])
    def rename_project(project_id: str):
        body = _parse(RenameRequest)
        c = ctl()
        started = c.start_rename(project_id)
        if not started:
            return _rejected(started, 404)
        c.edit_rename(body.name)
        outcome = c.commit_rename()
        if not outcome:
            return _rejected(outcome)
        return jsonify(project_json(outcome.value))

    @app.route("/api/projects/<project_id>", methods=["DELETE"])
    def delete_project(project_id: str):
        confirmed = request.args.get("confirm", "false").lower() == "true"
        outcome = ctl().delete_project(project_id, confirmed=confirmed)
        if not outcome:
            return _rejected(outcome)
        return jsonify({"success": True})

    @app.route("/api/projects/<project_id>/open", methods=["POST"])
    def open_project(project_id: str):
        outcome = ctl().open_project(project_id)
        if not outcome:
            return _rejected(outcome, 409)
        return jsonify(project_json(outcome.value))

    @app.route("/api/projects/close", methods=["POST"])
    def close_project():
        ctl().close_project()
        return jsonify({"success": True})

    @app.route("/api/projects/<project_id>/media", methods=["POST"])
    def reattach_media(project_id: str):
        upload, error = _read_upload()
        if error:
            return error
        outcome = ctl().reattach_media(project_id, *upload)
        if not outcome:
            return _rejected(outcome)
        return jsonify(project_json(outcome.value))

    @app.route("/api/projects/<project_id>/media", methods=["GET"])
    def serve_media(project_id: str):
        """Serve project media with range request support for seeking."""
        with app.config["LOCK"]:
            project = ctl().find_project(project_id)
            media = project.media if project else None
        if media is None or not media.exists():
            return jsonify({"error": "Media not available"}), 404

        # Werkzeug answers Range requests: 206 for satisfiable ranges
        # (suffix ranges included), 416 past the end, the whole file when the
        # header cannot be parsed
        return send_file(media.path, mimetype=media.mime_type, conditional=True)

    @app.route("/api/projects/<project_id>/transcribe", methods=["POST"])
    def retry_transcription(project_id: str):
        outcome = ctl().retry_transcription(project_id)
        if not outcome:
            return _rejected(outcome, 409)
        return jsonify(project_json(outcome.value)), 202

    @app.route("/api/projects/<project_id>/export/<format>")
    def export_project(project_id: str, format: str):
        c = ctl()
        project = c.find_project(project_id)
        if project is None:
            return jsonify({"error": "Project not found"}), 404
        if format not in EXPORT_FORMATS:
            return jsonify({"error": f"Unknown format: {format}"}), 400

        mimetype, suffix = EXPORT_FORMATS[format]
        body = render_export(project, c.storage.get_notes(project.id), format)
        response = Response(body, mimetype=mimetype)
        response.headers["Content-Disposition"] = f'attachment; filename="{secure_filename(project.name) or project.id}{suffix}"'
        return response

    # ==========================================================================
    # Tabs & playback
    # ==========================================================================

    @app.route("/api/tab", methods=["POST"])
    def set_tab():
        body = _parse(TabRequest)
        c = ctl()
        c.set_tab(body.tab)
        return jsonify({"active_tab": c.session.active_tab.value, "layout": c.layout, "playback": c.playback.state()})

    @app.route("/api/playback", methods=["GET"])
    def playback_state():
        return jsonify(ctl().playback.state())

    @app.route("/api/playback/time", methods=["POST"])
    def report_time():
        """Browser player reports its position; the response says how it should present."""
        body = _parse(TimeUpdate)
        c = ctl()
        media = c.playback.media
        if body.playing is not None:
            if body.playing and c.session.active_tab != ReviewTab.VERBAL:
                media.play()
            else:
                media.pause()
        media.report_time(body.time)
        state = c.playback.state()
        state["nearby_note_ids"] = c.session.nearby_note_ids
        state["active_segment_index"] = c.session.active_segment_index
        return jsonify(state)

    @app.route("/api/playback/seek", methods=["POST"])
    def seek():
        body = _parse(SeekRequest)
        c = ctl()
        c.jump_to_time(body.time)
        return jsonify(c.playback.state())

    # ==========================================================================
    # Notes
    # ==========================================================================

    @app.route("/api/notes", methods=["GET"])
    def list_notes():
        c = ctl()
        if c.session.current_project is None:
            return jsonify({"error": "No project is open"}), 409
        kind = request.args.get("kind")
        if kind:
            try:
                notes = c.annotations.filter_by_kind(NoteKind(kind.upper()))
            except ValueError:
                return jsonify({"error": f"Unknown note kind: {kind}"}), 400
        else:
            notes = c.annotations.notes
        return jsonify({"count": len(notes), "notes": [n.to_dict() for n in notes]})

    @app.route("/api/notes", methods=["POST"])
    def create_note():
        body = _parse(NoteRequest)
        outcome = ctl().add_note(
            body.kind,
            body.content,
            timestamp=body.timestamp,
            transcript_segment_index=body.transcript_segment_index,
            highlight_start=body.highlight_start,
            highlight_end=body.highlight_end,
            quote=body.quote,
            color=body.color,
        )
        if not outcome:
            return _rejected(outcome)
        return jsonify(outcome.value.to_dict()), 201

    @app.route("/api/notes/<note_id>", methods=["DELETE"])
    def delete_note(note_id: str):
        outcome = ctl().delete_note(note_id)
        return jsonify({"success": True, "deleted": outcome.value})

    # ==========================================================================
    # Transcription contract
    # ==========================================================================

    @app.route("/api/transcribe", methods=["POST"])
    def transcribe():
        """Transcribe inline base64 media. Every failure collapses to one 500."""
        try:
            body = _parse(TranscribeRequest)
        except PydanticValidationError:
            return jsonify({"error": "Missing video data"}), 400

        try:
            segments = app.config["GATEWAY"].transcribe(body.media_bytes(), body.mimeType)
        except TranscriptionFailure as exc:
            logger.error("Transcription failed: %s", exc)
            return jsonify({"error": "Transcription failed"}), 500
        return jsonify([seg.to_dict() for seg in segments])

    return app


def get_html_template() -> str:
    """Return the HTML page for the review interface."""
    return """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>CommClimb</title>
    <style>
        :root { --bg: #0f172a; --panel: #1e293b; --text: #e2e8f0; --muted: #94a3b8; --accent: #38bdf8; --border: #334155; }
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); min-height: 100vh; }
        header { display: flex; justify-content: space-between; align-items: center; padding: 12px 16px; background: var(--panel); border-bottom: 1px solid var(--border); }
        h1 { color: var(--accent); font-size: 20px; }
        button, input { font: inherit; }
        button { background: var(--accent); color: var(--bg); border: 0; border-radius: 6px; padding: 6px 12px; cursor: pointer; }
        button.ghost { background: transparent; color: var(--muted); }
        input { background: var(--bg); color: var(--text); border: 1px solid var(--border); border-radius: 6px; padding: 6px 10px; }
        .hidden { display: none !important; }
        .error { color: #f87171; font-size: 14px; }
        #auth { max-width: 360px; margin: 15vh auto; display: grid; gap: 10px; }
        #projects { display: grid; grid-template-columns: repeat(auto-fill, minmax(240px, 1fr)); gap: 16px; padding: 24px; }
        .card { background: var(--panel); border: 1px solid var(--border); border-radius: 10px; padding: 16px; cursor: pointer; }
        .badge { color: #facc15; font-size: 12px; }
        #review { display: flex; height: calc(100vh - 50px); }
        #media-panel { width: 66%; background: #000; position: relative; display: flex; flex-direction: column; gap: 12px; align-items: center; justify-content: center; }
        #media-panel video { max-width: 100%; max-height: 100%; }
        #audio-cover { position: absolute; top: 0; left: 0; right: 0; bottom: 56px; background: #000; color: var(--muted); display: flex; align-items: center; justify-content: center; }
        .notice { padding: 12px; color: var(--muted); display: grid; gap: 8px; justify-items: start; }
        #note-panel { width: 34%; border-left: 1px solid var(--border); display: flex; flex-direction: column; }
        #note-panel.full { width: 100%; }
        .tabs { display: flex; border-bottom: 1px solid var(--border); }
        .tabs button { flex: 1; background: transparent; color: var(--muted); border-radius: 0; }
        .tabs button.active { color: var(--accent); border-bottom: 2px solid var(--accent); }
        #notes { flex: 1; overflow-y: auto; padding: 12px; display: grid; gap: 8px; align-content: start; }
        .note { background: var(--panel); border-radius: 6px; padding: 8px; }
        .note.near { outline: 1px solid var(--accent); }
        .note time { color: var(--accent); cursor: pointer; margin-right: 6px; }
        .segment { padding: 6px; border-radius: 6px; }
        mark { color: inherit; }
        #note-form { display: flex; gap: 8px; padding: 12px; border-top: 1px solid var(--border); }
        #note-form input { flex: 1; }
    </style>
</head>
<body>
    <header>
        <h1>CommClimb</h1>
        <div id="header-actions"></div>
    </header>

    <form id="auth" class="hidden">
        <input id="email" type="email" placeholder="Email" required>
        <input id="password" type="password" placeholder="Password" required>
        <p id="auth-error" class="error"></p>
        <button type="submit" data-mode="login">Sign In</button>
        <button type="button" class="ghost" id="auth-register">Create Account</button>
    </form>

    <section id="dashboard" class="hidden">
        <div style="padding: 24px 24px 0">
            <label><button type="button" onclick="document.getElementById('upload').click()">New Analysis</button></label>
            <input id="upload" type="file" accept="video/*" class="hidden">
        </div>
        <div id="projects"></div>
    </section>

    <section id="review" class="hidden">
        <div id="media-panel">
            <video id="player" controls></video>
            <div id="audio-cover" class="hidden">Audio only</div>
            <div id="reupload" class="notice hidden">
                <p>The video for this project is no longer available.</p>
                <button type="button" onclick="document.getElementById('reupload-file').click()">Re-upload Video</button>
                <input id="reupload-file" type="file" accept="video/*" class="hidden">
            </div>
        </div>
        <div id="note-panel">
            <div class="tabs">
                <button data-tab="original">Original</button>
                <button data-tab="visual">Visual</button>
                <button data-tab="audio">Audio</button>
                <button data-tab="verbal">Verbal</button>
            </div>
            <div id="notes"></div>
            <p id="note-error" class="error" style="padding: 0 12px"></p>
            <form id="note-form">
                <input id="note-content" placeholder="Add a note at the current time">
                <button type="submit">Add</button>
            </form>
        </div>
    </section>

    <script>
        const api = async (path, options = {}) => {
            const init = { ...options };
            if (options.json !== undefined) {
                init.headers = { 'Content-Type': 'application/json' };
                init.body = JSON.stringify(options.json);
            }
            const res = await fetch(path, init);
            const body = res.headers.get('Content-Type')?.includes('json') ? await res.json() : await res.text();
            return { ok: res.ok, body };
        };
        const $ = (id) => document.getElementById(id);
        const fmt = (t) => `${Math.floor(t / 60)}:${String(Math.floor(t % 60)).padStart(2, '0')}`;
        const escapeHtml = (s) => s.replace(/[&<>"]/g, c => ({ '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;' }[c]));
        let state = null;
        let loadedMedia = null;
        let nearby = [];

        async function refresh() {
            state = (await api('/api/session')).body;
            $('auth').classList.toggle('hidden', state.view !== 'auth');
            $('dashboard').classList.toggle('hidden', state.view !== 'dashboard');
            $('review').classList.toggle('hidden', state.view !== 'project');
            $('auth-error').textContent = state.auth_error || '';
            $('header-actions').innerHTML = state.user
                ? (state.view === 'project' ? '<button class="ghost" id="back">Back</button> ' : '') + `${escapeHtml(state.user.name)} <button class="ghost" id="logout">Log Out</button>`
                : '';
            if ($('logout')) $('logout').onclick = async () => { await api('/api/auth/logout', { method: 'POST' }); refresh(); };
            if ($('back')) $('back').onclick = async () => { await api('/api/projects/close', { method: 'POST' }); refresh(); };
            if (state.view === 'dashboard') renderProjects();
            if (state.view === 'project') renderReview();
            if (state.projects.some(p => p.transcribing)) setTimeout(refresh, 3000);
        }

        function renderProjects() {
            $('projects').innerHTML = state.projects.map(p => `
                <div class="card" data-id="${p.id}">
                    ${p.transcribing ? '<span class="badge">Transcribing...</span>' : ''}
                    <h3>${escapeHtml(p.name)}</h3>
                    <small>${new Date(p.created_at).toLocaleDateString()}</small>
                    <div><button class="ghost" data-rename="${p.id}">Rename</button><button class="ghost" data-delete="${p.id}">Delete</button></div>
                </div>`).join('') || '<p>No projects yet. Upload a video to start climbing!</p>';
            document.querySelectorAll('.card').forEach(card => card.onclick = async (e) => {
                const id = card.dataset.id;
                if (e.target.dataset.rename) {
                    e.stopPropagation();
                    const name = prompt('Project name', state.projects.find(p => p.id === id).name);
                    if (name !== null) await api(`/api/projects/${id}`, { method: 'PATCH', json: { name } });
                } else if (e.target.dataset.delete) {
                    e.stopPropagation();
                    if (confirm('Are you sure you want to delete this project? This cannot be undone.')) {
                        await api(`/api/projects/${id}?confirm=true`, { method: 'DELETE' });
                    }
                } else {
                    await api(`/api/projects/${id}/open`, { method: 'POST' });
                }
                refresh();
            });
        }

        async function renderReview() {
            const project = state.current_project;
            const player = $('player');
            if (project.has_media && loadedMedia !== project.id) {
                player.src = `/api/projects/${project.id}/media`;
                loadedMedia = project.id;
            }
            $('media-panel').classList.toggle('hidden', !state.layout.media_panel_visible);
            $('note-panel').classList.toggle('full', state.layout.annotation_panel === 'full');
            player.muted = state.playback.muted;
            // Audio tab: keep the sound, cover the picture
            $('audio-cover').classList.toggle('hidden', !state.playback.audio_only || !project.has_media);
            player.classList.toggle('hidden', !project.has_media);
            $('reupload').classList.toggle('hidden', project.has_media);
            if (!state.playback.playing) player.pause();
            document.querySelectorAll('.tabs button').forEach(b => b.classList.toggle('active', b.dataset.tab === state.active_tab));
            $('note-form').classList.toggle('hidden', state.active_tab === 'verbal');
            $('note-error').textContent = state.note_error || '';

            const kind = { original: 'ORIGINAL', visual: 'VIDEO', audio: 'AUDIO', verbal: 'VERBAL' }[state.active_tab];
            const notes = (await api(`/api/notes?kind=${kind}`)).body.notes || [];
            if (state.active_tab === 'verbal') {
                if (project.transcribing) {
                    $('notes').innerHTML = '<p>AI Analyzing...</p>';
                } else if (project.transcript.length === 0) {
                    $('notes').innerHTML = `<div class="notice"><p>No transcript is available for this video.</p>
                        <button type="button" id="retry">Retry Transcription</button></div>`;
                    $('retry').onclick = async () => {
                        const res = await api(`/api/projects/${project.id}/transcribe`, { method: 'POST' });
                        if (!res.ok) alert(res.body.error);
                        refresh();
                    };
                } else {
                    $('notes').innerHTML = project.transcript.map((seg, i) => `<div class="segment" data-index="${i}"><time>${fmt(seg.startTime)}</time><span class="segment-text">${escapeHtml(seg.text)}</span></div>`).join('')
                        + notes.map(n => `<div class="note"><mark style="background:${n.color || '#854d0e'}">${escapeHtml(n.quote)}</mark> ${escapeHtml(n.content)} <button class="ghost" data-del="${n.id}">x</button></div>`).join('');
                }
                document.querySelectorAll('.segment').forEach(el => el.onmouseup = async () => {
                    const sel = window.getSelection();
                    if (!sel.rangeCount) return;
                    const range = sel.getRangeAt(0);
                    const textNode = el.querySelector('.segment-text').firstChild;
                    if (range.collapsed || range.startContainer !== textNode || range.endContainer !== textNode) return;
                    const text = project.transcript[el.dataset.index].text;
                    // DOM offsets count UTF-16 units; the server counts code points
                    const toCodePoints = (offset) => Array.from(text.slice(0, offset)).length;
                    const quote = text.slice(range.startOffset, range.endOffset);
                    const start = toCodePoints(range.startOffset);
                    const end = toCodePoints(range.endOffset);
                    const content = prompt('Comment on this highlight', '') ?? '';
                    await api('/api/notes', { method: 'POST', json: { kind: 'VERBAL', content, quote, transcript_segment_index: Number(el.dataset.index), highlight_start: start, highlight_end: end, color: '#854d0e' } });
                    refresh();
                });
            } else {
                $('notes').innerHTML = notes.map(n => `<div class="note ${nearby.includes(n.id) ? 'near' : ''}"><time data-t="${n.timestamp}">${fmt(n.timestamp)}</time>${escapeHtml(n.content)} <button class="ghost" data-del="${n.id}">x</button></div>`).join('');
                document.querySelectorAll('time[data-t]').forEach(t => t.onclick = async () => {
                    const res = await api('/api/playback/seek', { method: 'POST', json: { time: Number(t.dataset.t) } });
                    player.currentTime = res.body.current_time;
                });
            }
            document.querySelectorAll('[data-del]').forEach(b => b.onclick = async () => { await api(`/api/notes/${b.dataset.del}`, { method: 'DELETE' }); refresh(); });
        }

        $('auth').onsubmit = async (e) => {
            e.preventDefault();
            await api('/api/auth/login', { method: 'POST', json: { email: $('email').value, password: $('password').value } });
            refresh();
        };
        $('auth-register').onclick = async () => {
            await api('/api/auth/register', { method: 'POST', json: { email: $('email').value, password: $('password').value } });
            refresh();
        };
        $('upload').onchange = async (e) => {
            const form = new FormData();
            form.append('file', e.target.files[0]);
            await api('/api/projects', { method: 'POST', body: form });
            e.target.value = '';
            refresh();
        };
        $('reupload-file').onchange = async (e) => {
            const form = new FormData();
            form.append('file', e.target.files[0]);
            const res = await api(`/api/projects/${state.current_project.id}/media`, { method: 'POST', body: form });
            if (!res.ok) alert(res.body.error);
            e.target.value = '';
            loadedMedia = null;
            refresh();
        };
        document.querySelectorAll('.tabs button').forEach(b => b.onclick = async () => {
            await api('/api/tab', { method: 'POST', json: { tab: b.dataset.tab } });
            refresh();
        });
        $('note-form').onsubmit = async (e) => {
            e.preventDefault();
            const content = $('note-content').value;
            if (!content.trim()) return;
            const kind = { original: 'ORIGINAL', visual: 'VIDEO', audio: 'AUDIO' }[state.active_tab];
            await api('/api/notes', { method: 'POST', json: { kind, content, timestamp: $('player').currentTime } });
            $('note-content').value = '';
            refresh();
        };
        const reportTime = async () => {
            const player = $('player');
            const res = await api('/api/playback/time', { method: 'POST', json: { time: player.currentTime, playing: !player.paused } });
            if (res.ok) {
                if (!res.body.playing && !player.paused) player.pause();
                const changed = JSON.stringify(nearby) !== JSON.stringify(res.body.nearby_note_ids);
                nearby = res.body.nearby_note_ids;
                if (changed && state.view === 'project') renderReview();
            }
        };
        $('player').addEventListener('timeupdate', reportTime);
        $('player').addEventListener('play', reportTime);
        $('player').addEventListener('pause', reportTime);

        refresh();
    </script>
</body>
</html>
"""


def run_server(
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    open_browser: bool = True,
):
    """Run the review server."""
    app = create_app(db_path)

    url = f"http://{host}:{port}"
    logger.info("Starting CommClimb at %s", url)

    if open_browser:
        import webbrowser

        def open_browser_delayed():
            import time

            time.sleep(1)
            webbrowser.open(url)

        threading.Thread(target=open_browser_delayed, daemon=True).start()

    app.run(host=host, port=port, debug=False, threaded=True)
