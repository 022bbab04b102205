"""
Render pipelines: one strategy per family of job types.

Each pipeline validates the job's params before touching the network or
spawning anything, pulls its inputs into the job's Workspace, produces the
output and returns it as an Artifact for the publisher.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import httpx
from django.conf import settings
from PIL import Image, UnidentifiedImageError

from .clients import OpenAIClient
from .context import JobContext
from .errors import ProcessingError, ValidationError
from .models import RenderJob
from .runner import ProcessRunner
from .serializers import validate_params
from .sources import SourceResolver
from .utils import guess_suffix
from .workspace import Workspace

logger = logging.getLogger(__name__)

AUTO_COLOR_FILTER = "eq=contrast=1.05:brightness=0.03:saturation=1.12"


@dataclass
class Artifact:
    data: bytes
    content_type: str
    path: str            # storage key, jobs/<id>/...
    kind: str = "render"  # selects bucket and signed URL lifetime
    logs: str = ""


class Pipeline:
    job_types: tuple = ()

    def validate(self, job_type: str, params) -> dict:
        if job_type not in self.job_types:
            raise ValidationError(f"unknown job_type {job_type}")
        return validate_params(job_type, params)

    def run(self, job: RenderJob, workspace: Workspace, context: JobContext) -> Artifact:
        raise NotImplementedError


class _EncoderPipeline(Pipeline):
    """Shared plumbing for pipelines that fetch a media item and run the encoder."""

    def __init__(self, resolver: SourceResolver, runner: ProcessRunner, http: httpx.Client,
                 *, ffmpeg: str | None = None, http_timeout: float | None = None):
        self.resolver = resolver
        self.runner = runner
        self.http = http
        self.ffmpeg = ffmpeg or settings.FFMPEG_BINARY
        self.http_timeout = http_timeout if http_timeout is not None else settings.HTTP_TIMEOUT_SECONDS

    def fetch_source(self, item_id: str, workspace: Workspace, context: JobContext) -> Path:
        src_url = self.resolver.resolve(item_id)
        name = "input" + guess_suffix(src_url, ".mp4")
        return workspace.download(self.http, src_url, name, context, timeout=self.http_timeout)

    def encode(self, cmd: list, out: Path, context: JobContext):
        def stream(line):
            logger.info("[job %s] %s", context.job_id, line)

        result = self.runner.run(cmd, context, log_sink=stream)
        if not result.ok:
            raise ProcessingError(f"{Path(self.ffmpeg).name} exited with code {result.returncode}: {result.command_line}", result.output)
        if not out.exists():
            raise ProcessingError(f"{Path(self.ffmpeg).name} produced no output: {result.command_line}", result.output)
        return result


# -----------------------------------------------------
# export / auto_color / auto_cut
# -----------------------------------------------------
def format_seconds(value) -> str:
    """Plain decimal seconds for -t: 30.0 -> '30', 1234567.0 -> '1234567', never exponent form."""
    return format(Decimal(repr(float(value))).normalize(), "f")


def build_transform_command(ffmpeg: str, job_type: str, params: dict, src: Path, out: Path) -> list:
    """H.264/MP4 re-encode with the filters and trim for job_type; always fast-start."""
    cmd = [ffmpeg, "-y", "-i", str(src)]

    filters = []
    if job_type == RenderJob.JobType.AUTO_COLOR:
        filters.append(AUTO_COLOR_FILTER)
    if filters:
        cmd += ["-vf", ",".join(filters)]

    if job_type == RenderJob.JobType.AUTO_CUT:
        cmd += ["-t", format_seconds(params["targetDurationSec"])]

    cmd += ["-movflags", "+faststart", str(out)]
    return cmd


class VideoTransformPipeline(_EncoderPipeline):
    job_types = (
        RenderJob.JobType.EXPORT,
        RenderJob.JobType.AUTO_COLOR,
        RenderJob.JobType.AUTO_CUT,
    )

    def run(self, job, workspace, context):
        params = self.validate(job.job_type, job.params)

        src = self.fetch_source(params["itemId"], workspace, context)
        out = workspace.path("output.mp4")
        cmd = build_transform_command(self.ffmpeg, job.job_type, params, src, out)

        context.check("encode")
        result = self.encode(cmd, out, context)

        return Artifact(
            data=out.read_bytes(),
            content_type="video/mp4",
            path=f"jobs/{job.id}/export.mp4",
            kind="render",
            logs=result.command_line,
        )


# -----------------------------------------------------
# subtitles
# -----------------------------------------------------
def build_audio_extract_command(ffmpeg: str, src: Path, out: Path) -> list:
    """Mono 16 kHz 16-bit PCM WAV, the format speech models expect."""
    return [
        ffmpeg,
        "-y",
        "-i", str(src),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ac", "1",
        "-ar", "16000",
        str(out),
    ]


class SubtitleExtractionPipeline(_EncoderPipeline):
    job_types = (RenderJob.JobType.SUBTITLES,)

    def __init__(self, resolver, runner, http, ai: OpenAIClient, **kwargs):
        super().__init__(resolver, runner, http, **kwargs)
        self.ai = ai

    def run(self, job, workspace, context):
        params = self.validate(job.job_type, job.params)

        src = self.fetch_source(params["itemId"], workspace, context)
        wav = workspace.path("audio.wav")
        cmd = build_audio_extract_command(self.ffmpeg, src, wav)

        context.check("extract audio")
        result = self.encode(cmd, wav, context)

        context.check("transcribe")
        srt = self.ai.transcribe(wav, context)

        return Artifact(
            data=srt.encode("utf-8"),
            content_type="text/plain",
            path=f"jobs/{job.id}/subs.srt",
            kind="subtitles",
            logs=f"{result.command_line}\nlen={len(srt)}",
        )


# -----------------------------------------------------
# object_remove
# -----------------------------------------------------
def _to_png(path: Path, label: str, size=None) -> tuple:
    """Re-encode a downloaded image as RGBA PNG; returns (bytes, (w, h))."""
    try:
        with Image.open(path) as img:
            img = img.convert("RGBA")
            if size and img.size != size:
                img = img.resize(size)
            buf = io.BytesIO()
            img.save(buf, format="PNG")
            return buf.getvalue(), img.size
    except (UnidentifiedImageError, OSError) as e:
        raise ProcessingError(f"{label} is not a readable image") from e


def decode_edit_result(payload) -> bytes:
    """Pull the base64 image out of an image-edit response and return it as PNG bytes."""
    try:
        b64 = payload["data"][0]["b64_json"]
    except (KeyError, IndexError, TypeError):
        b64 = None
    if not b64:
        raise ProcessingError("edit failed: response has no image data")

    try:
        raw = base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProcessingError("edit failed: image data is not valid base64") from e

    try:
        with Image.open(io.BytesIO(raw)) as img:
            if img.format == "PNG":
                img.verify()
                return raw
            buf = io.BytesIO()
            img.convert("RGBA").save(buf, format="PNG")
            return buf.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise ProcessingError("edit failed: image data is not a readable image") from e


class InpaintingPipeline(Pipeline):
    job_types = (RenderJob.JobType.OBJECT_REMOVE,)

    def __init__(self, http: httpx.Client, ai: OpenAIClient, *, http_timeout: float | None = None):
        self.http = http
        self.ai = ai
        self.http_timeout = http_timeout if http_timeout is not None else settings.HTTP_TIMEOUT_SECONDS

    def run(self, job, workspace, context):
        params = self.validate(job.job_type, job.params)

        src = workspace.download(self.http, params["src_url"], "source" + guess_suffix(params["src_url"]), context,
                                 timeout=self.http_timeout)
        mask = workspace.download(self.http, params["mask_url"], "mask" + guess_suffix(params["mask_url"]), context,
                                  timeout=self.http_timeout)

        image_png, size = _to_png(src, "source image")
        mask_png, _ = _to_png(mask, "mask", size=size)

        context.check("inpaint")
        payload = self.ai.edit_image(image_png, mask_png, context)
        png = decode_edit_result(payload)

        return Artifact(
            data=png,
            content_type="image/png",
            path=f"jobs/{job.id}/inpaint.png",
            kind="inpaint",
            logs="inpainted",
        )


def get_pipeline(pipelines, job_type: str) -> Pipeline:
    for pipeline in pipelines:
        if job_type in pipeline.job_types:
            return pipeline
    raise ValidationError(f"unknown job_type {job_type}")
