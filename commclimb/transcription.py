"""Transcript generation for uploaded media using Gemini AI."""

import base64
import json
import os
from typing import List, Optional, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, model_validator

from .config import get_model, get_transcribe_url, load_environment
from .errors import TranscriptionFailure
from .logging import get_logger
from .models import TranscriptSegment

logger = get_logger(__name__)

TRANSCRIBE_PROMPT = """
Analyze the audio in this video and generate a verbatim transcript.
Break the transcript down into sentence-level segments.
For each segment, provide the precise start and end time in seconds.
Return the result as a JSON array.
"""

DEFAULT_HTTP_TIMEOUT = 300


class SegmentPayload(BaseModel):
    """One transcript segment as it travels over the wire."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: float = Field(..., alias="startTime", ge=0, allow_inf_nan=False, description="Start time of the sentence in seconds")
    end_time: float = Field(..., alias="endTime", ge=0, allow_inf_nan=False, description="End time of the sentence in seconds")
    text: str = Field(..., description="The spoken text")

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_time < self.start_time:
            raise ValueError("endTime must not be before startTime")
        return self

    def to_segment(self) -> TranscriptSegment:
        return TranscriptSegment(start_time=self.start_time, end_time=self.end_time, text=self.text)


class TranscribeRequest(BaseModel):
    """Body of a transcription request."""

    videoFileBase64: str = Field(..., min_length=1)
    mimeType: str = Field(..., min_length=1)

    def media_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.videoFileBase64, validate=True)
        except ValueError as exc:
            raise TranscriptionFailure("Media is not valid base64") from exc


def encode_media(data: bytes) -> str:
    """Media bytes as base64 text for JSON transport."""
    return base64.b64encode(data).decode("ascii")


def parse_segments(payload: Union[str, bytes, list]) -> List[TranscriptSegment]:
    """
    Validate a gateway response into transcript segments.

    Args:
        payload: JSON text or an already decoded list

    Returns:
        Segments in the order received

    Raises:
        TranscriptionFailure: on malformed JSON or schema violations
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise TranscriptionFailure("Transcription response is not valid JSON") from exc

    if not isinstance(payload, list):
        raise TranscriptionFailure("Transcription response must be a JSON array")

    try:
        return [SegmentPayload.model_validate(item).to_segment() for item in payload]
    except PydanticValidationError as exc:
        raise TranscriptionFailure(f"Malformed transcript segment: {exc.errors()[0]['msg']}") from exc


class TranscriptionGateway:
    """Maps a media blob to an ordered sequence of timed text segments."""

    def transcribe(self, data: bytes, mime_type: str) -> List[TranscriptSegment]:
        raise NotImplementedError


def _response_schema():
    from google.genai import types

    segment = types.Schema(
        type=types.Type.OBJECT,
        properties={
            "startTime": types.Schema(type=types.Type.NUMBER, description="Start time of the sentence in seconds"),
            "endTime": types.Schema(type=types.Type.NUMBER, description="End time of the sentence in seconds"),
            "text": types.Schema(type=types.Type.STRING, description="The spoken text"),
        },
        required=["startTime", "endTime", "text"],
    )
    return types.Schema(type=types.Type.ARRAY, items=segment)


class GeminiTranscriber(TranscriptionGateway):
    """
    Transcribe media by sending it inline to Gemini with a strict JSON schema.

    Args:
        client: Optional pre-configured Gemini client (created on first use otherwise)
        model: Model name, defaults to COMMCLIMB_MODEL or gemini-2.5-flash
    """

    def __init__(self, client=None, model: Optional[str] = None):
        self.client = client
        self.model = model or get_model()

    def _get_client(self):
        if self.client is None:
            from google import genai

            load_environment()
            api_key = os.environ.get("GEMINI_API_KEY")
            if not api_key:
                raise TranscriptionFailure("GEMINI_API_KEY is not set")
            self.client = genai.Client(api_key=api_key)
        return self.client

    def transcribe(self, data: bytes, mime_type: str) -> List[TranscriptSegment]:
        from google.genai import types

        client = self._get_client()

        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_bytes(data=data, mime_type=mime_type),
                    types.Part.from_text(text=TRANSCRIBE_PROMPT),
                ],
            ),
        ]

        logger.debug("Requesting transcript from %s (%d bytes, %s)", self.model, len(data), mime_type)
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=_response_schema(),
                ),
            )
        except Exception as exc:
            raise TranscriptionFailure(f"Gemini request failed: {exc}") from exc

        if not response.text:
            return []
        return parse_segments(response.text)


class HttpTranscriptionGateway(TranscriptionGateway):
    """Transcribe through a remote endpoint speaking the JSON transcription contract."""

    def __init__(self, url: str, timeout: float = DEFAULT_HTTP_TIMEOUT, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def transcribe(self, data: bytes, mime_type: str) -> List[TranscriptSegment]:
        body = {"videoFileBase64": encode_media(data), "mimeType": mime_type}
        try:
            response = self.session.post(self.url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise TranscriptionFailure(f"Transcription request failed: {exc}") from exc

        return parse_segments(response.content)


def get_gateway(client=None) -> TranscriptionGateway:
    """Gateway selected by configuration: remote HTTP if configured, else Gemini.

    Args:
        client: Gemini client to use when no remote endpoint is configured
    """
    load_environment()
    url = get_transcribe_url()
    if url:
        logger.info("Using remote transcription endpoint: %s", url)
        return HttpTranscriptionGateway(url)
    return GeminiTranscriber(client=client)
