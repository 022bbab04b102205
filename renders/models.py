import uuid
from django.db import models


class MediaItem(models.Model):
    """Media record owned by the content platform; read-only for the worker."""

    id = models.CharField(primary_key=True, max_length=64)
    # Legacy URL columns, populated inconsistently upstream
    public_url = models.TextField(blank=True, default="")
    url = models.TextField(blank=True, default="")
    storage_url = models.TextField(blank=True, default="")
    path = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "session_media"


class RenderJob(models.Model):
    class Status(models.TextChoices):
        QUEUED = "queued"
        RUNNING = "running"
        COMPLETED = "completed"
        FAILED = "failed"
        CANCELED = "canceled"

    class JobType(models.TextChoices):
        EXPORT = "export"
        AUTO_COLOR = "auto_color"
        AUTO_CUT = "auto_cut"
        SUBTITLES = "subtitles"
        OBJECT_REMOVE = "object_remove"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Not constrained to JobType: rows are written by other services, dispatch validates
    job_type = models.CharField(max_length=32)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.QUEUED)
    progress = models.PositiveSmallIntegerField(default=0)  # 0..100, advisory
    params = models.JSONField(default=dict, blank=True)
    output_url = models.TextField(null=True, blank=True)    # only set when completed
    logs = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "render_jobs"
        indexes = [models.Index(fields=["status", "created_at"], name="render_jobs_claim_idx")]

    def __str__(self):
        return f"{self.job_type}:{self.id} ({self.status})"
