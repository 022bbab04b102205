import logging
from dataclasses import dataclass

import httpx
from django.conf import settings
from django.utils import timezone

from .claims import JobClaimer
from .clients import OpenAIClient
from .context import JobContext
from .errors import JobCanceledError, RenderError
from .models import RenderJob
from .pipelines import (
    InpaintingPipeline,
    SubtitleExtractionPipeline,
    VideoTransformPipeline,
    get_pipeline,
)
from .runner import ProcessRunner
from .s3 import ArtifactPublisher, S3ObjectStorage
from .sources import SourceResolver
from .utils import truncate_logs
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class JobOutcome:
    job_id: str
    ok: bool
    output_url: str | None = None
    logs: str | None = None
    error: str | None = None

    def result(self) -> dict:
        return {"output_url": self.output_url, "logs": self.logs}


class JobLifecycleManager:
    """
    Claims queued render jobs and drives each one to a terminal state.

    This is the only place job failures are caught: whatever the resolver,
    pipeline or publisher raise ends up as status=failed with the error text
    in logs. Terminal writes only apply while the job is still running, so
    a job canceled mid-flight stays canceled.
    """

    def __init__(self, claimer, pipelines, publisher, *, workspace_root=None, job_timeout=None):
        self.claimer = claimer
        self.pipelines = list(pipelines)
        self.publisher = publisher
        self.workspace_root = workspace_root if workspace_root is not None else settings.RENDER_WORKSPACE_ROOT
        self.job_timeout = job_timeout if job_timeout is not None else settings.RENDER_JOB_TIMEOUT

    def run(self) -> JobOutcome | None:
        """Claim the oldest queued job and process it; None when nothing is queued."""
        job = self.claimer.claim_next()
        if job is None:
            return None
        return self.process(job)

    def process(self, job: RenderJob) -> JobOutcome:
        logger.info("Processing %s job %s", job.job_type, job.id)
        context = JobContext(job.id, timeout=self.job_timeout, is_canceled=lambda: self._is_canceled(job.id))

        try:
            pipeline = get_pipeline(self.pipelines, job.job_type)
            pipeline.validate(job.job_type, job.params)
            with Workspace(job.id, self.workspace_root) as workspace:
                artifact = pipeline.run(job, workspace, context)
                context.check("publish")
                output_url = self.publisher.publish(artifact, artifact.path)
        except JobCanceledError as e:
            logger.info("Job %s was canceled; leaving it as is", job.id)
            return JobOutcome(str(job.id), ok=False, error=str(e))
        except RenderError as e:
            logger.warning("Job %s failed: %s", job.id, e)
            return self._fail(job, str(e))
        except Exception as e:
            logger.exception("Job %s failed unexpectedly", job.id)
            return self._fail(job, str(e) or e.__class__.__name__)

        logs = truncate_logs(artifact.logs)
        if not self._finish(job, status=RenderJob.Status.COMPLETED, output_url=output_url, logs=logs):
            return JobOutcome(str(job.id), ok=False, logs=logs, error=f"job no longer running: {job.id}")
        logger.info("Job %s completed", job.id)
        return JobOutcome(str(job.id), ok=True, output_url=output_url, logs=logs)

    def _fail(self, job, message: str) -> JobOutcome:
        logs = truncate_logs(message)
        self._finish(job, status=RenderJob.Status.FAILED, logs=logs)
        return JobOutcome(str(job.id), ok=False, logs=logs, error=message)

    def _finish(self, job, **fields) -> bool:
        updated = RenderJob.objects.filter(pk=job.pk, status=RenderJob.Status.RUNNING).update(
            progress=100, updated_at=timezone.now(), **fields
        )
        if not updated:
            logger.warning("Job %s is no longer running; %s not recorded", job.id, fields.get("status"))
        return bool(updated)

    @staticmethod
    def _is_canceled(job_id) -> bool:
        return RenderJob.objects.filter(pk=job_id, status=RenderJob.Status.CANCELED).exists()


class WorkerRuntime:
    """Wires the manager to its real collaborators; closes the HTTP client on exit."""

    def __init__(self, storage=None):
        self.http = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS, follow_redirects=True)
        resolver = SourceResolver()
        runner = ProcessRunner()
        ai = OpenAIClient(self.http)
        self.manager = JobLifecycleManager(
            claimer=JobClaimer(),
            pipelines=[
                VideoTransformPipeline(resolver, runner, self.http),
                SubtitleExtractionPipeline(resolver, runner, self.http, ai),
                InpaintingPipeline(self.http, ai),
            ],
            publisher=ArtifactPublisher(storage or S3ObjectStorage()),
        )

    def __enter__(self):
        return self.manager

    def __exit__(self, exc_type, exc, tb):
        self.http.close()
        return False
