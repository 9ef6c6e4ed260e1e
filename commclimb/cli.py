"""Command-line interface for CommClimb."""

import argparse
import json
import mimetypes
import os
import sys
from pathlib import Path

from . import __version__
from .logging import setup_logging, get_logger

logger = get_logger(__name__)


def cmd_setup(args):
    """Install dependencies and verify configuration."""
    from .config import check_dependencies, install_dependencies, load_environment

    logger.info("=== CommClimb Setup ===")

    if not check_dependencies():
        install_dependencies()
    else:
        logger.info("All dependencies installed.")

    load_environment()

    api_key = os.environ.get("GEMINI_API_KEY")
    if api_key:
        logger.info("API Key: %s%s", "*" * 10, api_key[-4:])
    elif os.environ.get("COMMCLIMB_TRANSCRIBE_URL"):
        logger.info("Transcription endpoint: %s", os.environ["COMMCLIMB_TRANSCRIBE_URL"])
    else:
        logger.warning("GEMINI_API_KEY not found in .env file")
        logger.warning("Create a .env file with: GEMINI_API_KEY=your-api-key")

    logger.info("Setup complete!")


def cmd_serve(args):
    """Launch the review web app."""
    from .config import check_dependencies, get_db_path
    from .server import run_server

    if not check_dependencies():
        logger.error("Dependencies not installed. Run: commclimb setup")
        sys.exit(1)

    db_path = get_db_path(args.db)
    logger.info("Database: %s", db_path)
    run_server(host=args.host, port=args.port, db_path=db_path, open_browser=not args.no_browser)


def cmd_transcribe(args):
    """Transcribe a video file and print the segments as JSON."""
    from .config import get_gemini_client, get_transcribe_url, load_environment
    from .errors import TranscriptionFailure
    from .transcription import get_gateway

    media_path = Path(args.input)
    if not media_path.exists():
        logger.error("File not found: %s", media_path)
        sys.exit(1)

    load_environment()
    # Without a remote endpoint a Gemini key is required; exits if missing
    client = None if get_transcribe_url() else get_gemini_client()

    mime_type = args.mime_type or mimetypes.guess_type(str(media_path))[0] or "video/mp4"
    logger.info("Transcribing %s (%s)...", media_path.name, mime_type)

    try:
        segments = get_gateway(client=client).transcribe(media_path.read_bytes(), mime_type)
    except TranscriptionFailure as exc:
        logger.error("Transcription failed: %s", exc)
        sys.exit(1)

    output = json.dumps([seg.to_dict() for seg in segments], indent=2)
    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        logger.info("Saved %d segments to %s", len(segments), args.output)
    else:
        print(output)


def cmd_export(args):
    """Export a project's transcript or notes."""
    from .config import get_db_path
    from .export import EXPORT_FORMATS, export_project
    from .store import Storage

    storage = Storage.open(get_db_path(args.db))
    project = storage.get_project(args.project_id)
    if project is None:
        logger.error("Project not found: %s", args.project_id)
        sys.exit(1)

    suffix = EXPORT_FORMATS[args.format][1]
    output_path = Path(args.output) if args.output else Path(f"{project.name}{suffix}")
    export_project(project, storage.get_notes(project.id), args.format, output_path)
    logger.info("Exported %s to %s", project.name, output_path)


def main():
    parser = argparse.ArgumentParser(
        prog="commclimb",
        description="CommClimb - video review with AI transcripts and timestamped notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  commclimb setup                        # Install dependencies, check API key
  commclimb serve                        # Launch the review app in a browser
  commclimb serve --port 9000 --no-browser
  commclimb transcribe talk.mp4          # Print transcript segments as JSON
  commclimb export <project-id> --format srt
        """,
    )
    parser.add_argument("--version", action="version", version=f"commclimb {__version__}")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show debug output"
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Show only errors"
    )
    parser.add_argument(
        "--log-file", metavar="FILE", help="Write logs to file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Setup command
    subparsers.add_parser("setup", help="Install dependencies and verify configuration")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Launch the review web app")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8765, help="Port (default: 8765)")
    serve_parser.add_argument("--db", help="Database file (default: ~/.commclimb/commclimb.db)")
    serve_parser.add_argument("--no-browser", action="store_true", help="Do not open a browser")

    # Transcribe command
    transcribe_parser = subparsers.add_parser("transcribe", help="Transcribe a video file")
    transcribe_parser.add_argument("input", help="Video file")
    transcribe_parser.add_argument("--output", "-o", help="Write JSON to this file instead of stdout")
    transcribe_parser.add_argument("--mime-type", help="Override the detected MIME type")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export a project's transcript or notes")
    export_parser.add_argument("project_id", help="Project ID")
    export_parser.add_argument(
        "--format",
        default="vtt",
        choices=["vtt", "srt", "notes-vtt", "json"],
        help="Export format (default: vtt)",
    )
    export_parser.add_argument("--output", "-o", help="Output file path")
    export_parser.add_argument("--db", help="Database file (default: ~/.commclimb/commclimb.db)")

    args = parser.parse_args()

    setup_logging(
        verbose=getattr(args, "verbose", False),
        quiet=getattr(args, "quiet", False),
        log_file=getattr(args, "log_file", None),
    )

    if args.command is None:
        parser.print_help()
        return

    commands = {
        "setup": cmd_setup,
        "serve": cmd_serve,
        "transcribe": cmd_transcribe,
        "export": cmd_export,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
