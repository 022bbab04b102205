from datetime import timedelta
from itertools import count

import pytest
from django.utils import timezone

from renders.claims import JobClaimer
from renders.clients import OpenAIClient
from renders.context import JobContext
from renders.lifecycle import JobLifecycleManager
from renders.models import MediaItem, RenderJob
from renders.pipelines import (
    InpaintingPipeline,
    SubtitleExtractionPipeline,
    VideoTransformPipeline,
)
from renders.s3 import ArtifactPublisher
from renders.sources import SourceResolver
from renders.workspace import Workspace

from .fakes import AI_BASE, FakeRunner, HttpRecorder, InMemoryStorage


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def http():
    recorder = HttpRecorder()
    yield recorder
    recorder.client.close()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def ai(http):
    return OpenAIClient(http.client, api_key="test-key", base_url=AI_BASE)


@pytest.fixture
def context():
    return JobContext("test-job", timeout=60)


@pytest.fixture
def workspace(tmp_path):
    with Workspace("test-job", tmp_path / "work") as ws:
        yield ws


@pytest.fixture
def make_media(db):
    def make(media_id="m1", **fields):
        return MediaItem.objects.create(id=media_id, **fields)
    return make


@pytest.fixture
def make_job(db):
    """Creates queued jobs whose created_at increases in call order."""
    base = timezone.now() - timedelta(hours=1)
    seq = count()

    def make(job_type="export", params=None, status=RenderJob.Status.QUEUED):
        job = RenderJob.objects.create(job_type=job_type, params=params if params is not None else {}, status=status)
        RenderJob.objects.filter(pk=job.pk).update(created_at=base + timedelta(seconds=next(seq)))
        job.refresh_from_db()
        return job
    return make


@pytest.fixture
def build_manager(fake_runner, http, storage, ai, tmp_path):
    def build(runner=None, claimer=None, publisher=None, job_timeout=60):
        runner = runner or fake_runner
        resolver = SourceResolver()
        return JobLifecycleManager(
            claimer=claimer or JobClaimer(),
            pipelines=[
                VideoTransformPipeline(resolver, runner, http.client, ffmpeg="ffmpeg"),
                SubtitleExtractionPipeline(resolver, runner, http.client, ai, ffmpeg="ffmpeg"),
                InpaintingPipeline(http.client, ai),
            ],
            publisher=publisher or ArtifactPublisher(storage),
            workspace_root=tmp_path / "work",
            job_timeout=job_timeout,
        )
    return build
