import logging
from pathlib import Path

import httpx
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .context import JobContext
from .errors import ProcessingError, TransientIOError

logger = logging.getLogger(__name__)


class OpenAIClient:
    """
    Minimal client for the OpenAI-compatible audio transcription and image
    edit endpoints. Non-2xx responses raise TransientIOError whose message is
    the response body, unchanged.
    """

    def __init__(self, http: httpx.Client, *, api_key=None, base_url=None,
                 transcription_model=None, image_model=None, timeout=None):
        self.http = http
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.transcription_model = transcription_model or settings.TRANSCRIPTION_MODEL
        self.image_model = image_model or settings.IMAGE_EDIT_MODEL
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS

    def _headers(self) -> dict:
        if not self.api_key:
            raise ImproperlyConfigured("OPENAI_API_KEY is missing")
        return {"Authorization": f"Bearer {self.api_key}"}

    def _post(self, path: str, context: JobContext, **kwargs) -> httpx.Response:
        headers = self._headers()
        context.check(path)
        url = f"{self.base_url}/{path}"
        try:
            r = self.http.post(url, headers=headers, timeout=context.timeout(self.timeout), **kwargs)
        except httpx.TimeoutException as e:
            raise TransientIOError(f"{path} timed out") from e
        except httpx.HTTPError as e:
            raise TransientIOError(f"{path} request failed: {e}") from e
        if not r.is_success:
            logger.warning("%s returned %d", path, r.status_code)
            raise TransientIOError(r.text)
        return r

    def transcribe(self, audio_path: Path, context: JobContext, response_format: str = "srt") -> str:
        """Send a WAV file for transcription and return the subtitle text."""
        with open(audio_path, "rb") as f:
            r = self._post(
                "audio/transcriptions",
                context,
                data={"model": self.transcription_model, "response_format": response_format},
                files={"file": ("audio.wav", f, "audio/wav")},
            )
        return r.text

    def edit_image(self, image: bytes, mask: bytes, context: JobContext) -> dict:
        """Send an image and its mask for inpainting; returns the decoded JSON body."""
        r = self._post(
            "images/edits",
            context,
            data={"model": self.image_model},
            files=[
                ("image[]", ("image.png", image, "image/png")),
                ("mask", ("mask.png", mask, "image/png")),
            ],
        )
        try:
            return r.json()
        except ValueError as e:
            raise ProcessingError(f"images/edits returned invalid JSON: {r.text[:300]}") from e
