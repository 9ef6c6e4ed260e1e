"""Configuration and environment handling."""

import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger("commclimb.config")

REQUIRED_PACKAGES = ["flask", "google-genai", "pydantic", "python-dotenv", "requests"]

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_DB_PATH = Path.home() / ".commclimb" / "commclimb.db"


def check_dependencies() -> bool:
    """Check if required packages are installed."""
    try:
        from dotenv import load_dotenv  # noqa: F401
        from flask import Flask  # noqa: F401
        from google import genai  # noqa: F401
        import pydantic  # noqa: F401
        import requests  # noqa: F401

        return True
    except ImportError:
        return False


def install_dependencies():
    """Install required packages."""
    logger.info("Installing dependencies...")
    subprocess.check_call([sys.executable, "-m", "pip", "install", *REQUIRED_PACKAGES, "-q"])
    logger.info("Dependencies installed successfully!")


def load_environment():
    """Load variables from a .env file into the process environment."""
    from dotenv import load_dotenv

    load_dotenv()


def load_api_key(client_name: str) -> str:
    """Load the requested API key from .env file."""
    load_environment()

    if client_name == "gemini":
        key = os.environ.get("GEMINI_API_KEY")
        if not key:
            logger.error("GEMINI_API_KEY not found in .env file")
            sys.exit(1)
        return key

    logger.error("Unknown client '%s' specified", client_name)
    sys.exit(1)


def get_gemini_client():
    """Get a configured Gemini client."""
    from google import genai

    api_key = load_api_key("gemini")
    return genai.Client(api_key=api_key)


def get_model() -> str:
    """Transcription model name, overridable with COMMCLIMB_MODEL."""
    return os.environ.get("COMMCLIMB_MODEL", DEFAULT_MODEL)


def get_db_path(override: Optional[str] = None) -> Path:
    """Resolve the key-value store location.

    Precedence: explicit override, then COMMCLIMB_DB, then ~/.commclimb/commclimb.db
    """
    if override:
        return Path(override)
    env_path = os.environ.get("COMMCLIMB_DB")
    if env_path:
        return Path(env_path)
    return DEFAULT_DB_PATH


def get_media_dir() -> Path:
    """Directory holding uploaded media for the lifetime of the server."""
    env_dir = os.environ.get("COMMCLIMB_MEDIA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(tempfile.gettempdir()) / "commclimb_media"


def get_transcribe_url() -> Optional[str]:
    """Remote transcription endpoint, if one is configured.

    When COMMCLIMB_TRANSCRIBE_URL is unset, transcription talks to Gemini directly.
    """
    return os.environ.get("COMMCLIMB_TRANSCRIBE_URL") or None
