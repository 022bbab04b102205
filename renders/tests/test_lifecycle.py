import pytest
from django.conf import settings

from renders.errors import DeadlineExceededError, TransientIOError
from renders.models import RenderJob
from renders.s3 import ArtifactPublisher

from .fakes import AI_BASE, FakeRunner, InMemoryStorage, edit_response, png_bytes

pytestmark = pytest.mark.django_db

SRC = "https://cdn.test/m1.mp4"


@pytest.fixture
def source(make_media, http):
    make_media("m1", public_url=SRC)
    http.add("GET", SRC, content=b"source-video")


def reload(job):
    job.refresh_from_db()
    return job


def test_auto_color_job_completes(build_manager, source, make_job, fake_runner, storage):
    job = make_job("auto_color", {"itemId": "m1"})

    outcome = build_manager().run()

    assert outcome.ok
    assert len(fake_runner.calls) == 1
    cmd = fake_runner.calls[0]
    assert "eq=contrast=1.05:brightness=0.03:saturation=1.12" in cmd

    key = (settings.S3_RENDERS_BUCKET, f"jobs/{job.id}/export.mp4")
    assert storage.objects[key] == (b"rendered-bytes", "video/mp4")

    job = reload(job)
    assert job.status == RenderJob.Status.COMPLETED
    assert job.progress == 100
    assert job.output_url
    assert storage.fetch(job.output_url) == b"rendered-bytes"
    assert "eq=contrast=1.05:brightness=0.03:saturation=1.12" in job.logs
    assert job.logs.startswith("ffmpeg ")
    assert outcome.result() == {"output_url": job.output_url, "logs": job.logs}


def test_unknown_job_type_fails_without_io(build_manager, make_job, fake_runner, http):
    job = make_job("teleport", {"itemId": "m1"})

    outcome = build_manager().run()

    assert not outcome.ok
    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert job.logs == "unknown job_type teleport"
    assert job.output_url is None
    assert fake_runner.calls == []
    assert http.calls() == []


def test_object_remove_without_mask_fails_before_any_request(build_manager, make_job, http):
    job = make_job("object_remove", {"src_url": "https://img.test/a.png"})

    build_manager().run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert "mask_url" in job.logs
    assert http.calls() == []


def test_subtitles_api_error_lands_in_logs(build_manager, source, make_job, http):
    body = "Audio file is too short. Minimum audio length is 0.1 seconds."
    http.add("POST", f"{AI_BASE}/audio/transcriptions", status_code=400, text=body)
    job = make_job("subtitles", {"itemId": "m1"})

    outcome = build_manager().run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert job.logs == body
    assert job.output_url is None
    assert outcome.error == body


def test_subtitles_job_completes(build_manager, source, make_job, http, storage):
    http.add("POST", f"{AI_BASE}/audio/transcriptions", text="1\n00:00:00,000 --> 00:00:01,000\nHi\n")
    job = make_job("subtitles", {"itemId": "m1"})

    build_manager().run()

    job = reload(job)
    assert job.status == RenderJob.Status.COMPLETED
    assert storage.fetch(job.output_url).startswith(b"1\n00:00:00,000")
    assert (settings.S3_SUBTITLES_BUCKET, f"jobs/{job.id}/subs.srt") in storage.objects


def test_object_remove_job_completes(build_manager, make_job, http, storage):
    http.add("GET", "https://img.test/a.png", content=png_bytes())
    http.add("GET", "https://img.test/m.png", content=png_bytes())
    http.add("POST", f"{AI_BASE}/images/edits", json=edit_response(png_bytes()))
    job = make_job("object_remove", {"src_url": "https://img.test/a.png", "mask_url": "https://img.test/m.png"})

    build_manager().run()

    job = reload(job)
    assert job.status == RenderJob.Status.COMPLETED
    assert job.logs == "inpainted"
    assert storage.fetch(job.output_url) == png_bytes()


def test_missing_media_fails(build_manager, make_job):
    job = make_job("export", {"itemId": "ghost"})

    build_manager().run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert job.logs == "media not found: ghost"


def test_encoder_failure_records_stderr(build_manager, source, make_job):
    runner = FakeRunner(returncode=1, stderr="moov atom not found")
    job = make_job("export", {"itemId": "m1"})

    build_manager(runner=runner).run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert "moov atom not found" in job.logs
    assert job.output_url is None


def test_upload_failure_fails_job(build_manager, source, make_job):
    storage = InMemoryStorage(fail=TransientIOError("upload failed: renders/x: AccessDenied"))
    job = make_job("export", {"itemId": "m1"})

    build_manager(publisher=ArtifactPublisher(storage)).run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert "AccessDenied" in job.logs
    assert job.output_url is None
    assert storage.objects == {}


def test_deadline_fails_job(build_manager, source, make_job):
    def stall(args):
        raise DeadlineExceededError("subprocess ffmpeg")

    job = make_job("export", {"itemId": "m1"})
    build_manager(runner=FakeRunner(side_effect=stall)).run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert job.logs == "deadline exceeded during subprocess ffmpeg"


def test_unexpected_error_fails_job(build_manager, source, make_job):
    def crash(args):
        raise RuntimeError("disk full")

    job = make_job("export", {"itemId": "m1"})
    build_manager(runner=FakeRunner(side_effect=crash)).run()

    job = reload(job)
    assert job.status == RenderJob.Status.FAILED
    assert job.logs == "disk full"


def test_canceled_job_is_not_overwritten(build_manager, source, make_job, storage):
    job = make_job("export", {"itemId": "m1"})

    def cancel(args):
        RenderJob.objects.filter(pk=job.pk).update(status=RenderJob.Status.CANCELED)

    outcome = build_manager(runner=FakeRunner(side_effect=cancel)).run()

    assert not outcome.ok
    assert "canceled" in outcome.error
    job = reload(job)
    assert job.status == RenderJob.Status.CANCELED
    assert job.output_url is None
    assert storage.objects == {}


def test_workspace_removed_after_success_and_failure(build_manager, source, make_job, tmp_path):
    make_job("export", {"itemId": "m1"})
    make_job("export", {"itemId": "ghost"})

    manager = build_manager()
    manager.run()
    manager.run()

    assert list((tmp_path / "work").iterdir()) == []


def test_job_is_processed_once_and_never_requeued(build_manager, source, make_job, fake_runner):
    job = make_job("export", {"itemId": "m1"})
    manager = build_manager()

    assert manager.run() is not None
    assert manager.run() is None
    assert len(fake_runner.calls) == 1
    assert reload(job).status == RenderJob.Status.COMPLETED


def test_run_processes_only_the_oldest_job(build_manager, source, make_job, fake_runner):
    first = make_job("export", {"itemId": "m1"})
    second = make_job("auto_cut", {"itemId": "m1"})

    outcome = build_manager().run()

    assert outcome.job_id == str(first.id)
    assert reload(second).status == RenderJob.Status.QUEUED
    assert len(fake_runner.calls) == 1


def test_only_one_worker_reaches_the_pipeline(build_manager, source, make_job, fake_runner):
    make_job("export", {"itemId": "m1"})
    a, b = build_manager(), build_manager()

    job_a = a.claimer.claim_next()
    job_b = b.claimer.claim_next()
    assert job_b is None

    a.process(job_a)
    assert len(fake_runner.calls) == 1


def test_cancel_after_publish_is_not_reported_as_success(build_manager, source, make_job, storage):
    job = make_job("export", {"itemId": "m1"})
    publisher = ArtifactPublisher(storage)
    publish = publisher.publish

    def publish_then_cancel(artifact, destination=None):
        url = publish(artifact, destination)
        RenderJob.objects.filter(pk=job.pk).update(status=RenderJob.Status.CANCELED)
        return url

    publisher.publish = publish_then_cancel
    outcome = build_manager(publisher=publisher).run()

    assert not outcome.ok
    assert outcome.output_url is None
    assert outcome.error == f"job no longer running: {job.id}"
    job = reload(job)
    assert job.status == RenderJob.Status.CANCELED
    assert job.output_url is None
