"""
Export of transcripts and review notes.

- WebVTT/SRT for the transcript, so it can be loaded as captions
- WebVTT for notes, one cue per note, for review in any player
- JSON for the whole project
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .models import Note, Project, TranscriptSegment

# How long a point note stays on screen as a cue
NOTE_CUE_SECONDS = 2.0


def seconds_to_timecode(seconds: float, format: str = "vtt") -> str:
    """
    Convert seconds to a timecode string.

    Args:
        seconds: Time in seconds
        format: "vtt" for WebVTT (HH:MM:SS.mmm) or "srt" for SubRip (HH:MM:SS,mmm)
    """
    ms = int(round(max(seconds, 0) * 1000))
    hours, remainder = divmod(ms, 3600000)
    minutes, remainder = divmod(remainder, 60000)
    secs, milliseconds = divmod(remainder, 1000)

    separator = "." if format == "vtt" else ","
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{milliseconds:03d}"


def render_transcript_vtt(transcript: Iterable[TranscriptSegment]) -> str:
    lines = ["WEBVTT", ""]
    for i, seg in enumerate(transcript, 1):
        lines.append(str(i))
        lines.append(f"{seconds_to_timecode(seg.start_time)} --> {seconds_to_timecode(seg.end_time)}")
        lines.append(seg.text)
        lines.append("")
    return "\n".join(lines)


def render_transcript_srt(transcript: Iterable[TranscriptSegment]) -> str:
    """SRT is widely supported by video editors like Premiere, DaVinci Resolve."""
    lines = []
    for i, seg in enumerate(transcript, 1):
        lines.append(str(i))
        start = seconds_to_timecode(seg.start_time, "srt")
        end = seconds_to_timecode(seg.end_time, "srt")
        lines.append(f"{start} --> {end}")
        lines.append(seg.text)
        lines.append("")
    return "\n".join(lines)


def render_notes_vtt(notes: Iterable[Note]) -> str:
    """Notes as WebVTT cues, labelled by review dimension."""
    lines = ["WEBVTT", ""]
    for i, note in enumerate(sorted(notes, key=lambda n: (n.timestamp, n.created_at)), 1):
        lines.append(str(i))
        start = seconds_to_timecode(note.timestamp)
        end = seconds_to_timecode(note.timestamp + NOTE_CUE_SECONDS)
        lines.append(f"{start} --> {end}")

        text = f"[{note.kind.value}] {note.content}".rstrip()
        if note.is_verbal:
            text += f' "{note.quote}"'
        lines.append(text)
        lines.append("")
    return "\n".join(lines)


def project_to_json(project: Project, notes: Iterable[Note]) -> dict:
    notes = list(notes)
    return {
        "version": "1.0",
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "project": project.to_dict(),
        "count": len(notes),
        "notes": [n.to_dict() for n in notes],
    }


# format -> (mimetype, filename suffix)
EXPORT_FORMATS = {
    "vtt": ("text/vtt", ".vtt"),
    "srt": ("text/plain", ".srt"),
    "notes-vtt": ("text/vtt", "_notes.vtt"),
    "json": ("application/json", ".json"),
}


def render_export(project: Project, notes: Iterable[Note], format: str) -> str:
    """Render one export format as text."""
    if format == "vtt":
        return render_transcript_vtt(project.transcript)
    if format == "srt":
        return render_transcript_srt(project.transcript)
    if format == "notes-vtt":
        return render_notes_vtt(notes)
    if format == "json":
        return json.dumps(project_to_json(project, notes), indent=2)
    raise ValueError(f"Unknown export format: {format}")


def export_project(project: Project, notes: Iterable[Note], format: str, output_path: Path) -> Path:
    output_path.write_text(render_export(project, notes, format), encoding="utf-8")
    return output_path
