import logging

from django.utils import timezone

from .models import RenderJob

logger = logging.getLogger(__name__)

CLAIM_PROGRESS = 5


class JobClaimer:
    """
    Reserves queued jobs for exclusive processing.

    A claim is a single conditional UPDATE (status='queued' -> 'running');
    whoever updates the row owns the job. Database errors propagate.
    """

    def try_claim(self, job_id) -> bool:
        won = RenderJob.objects.filter(pk=job_id, status=RenderJob.Status.QUEUED).update(
            status=RenderJob.Status.RUNNING,
            progress=CLAIM_PROGRESS,
            updated_at=timezone.now(),
        )
        return won == 1

    def claim(self, limit: int = 1) -> list:
        """Claim up to limit jobs, oldest first."""
        claimed = []
        while len(claimed) < limit:
            candidates = list(
                RenderJob.objects.filter(status=RenderJob.Status.QUEUED)
                .order_by("created_at", "id")
                .values_list("pk", flat=True)[: limit - len(claimed)]
            )
            if not candidates:
                break
            for pk in candidates:
                if self.try_claim(pk):
                    claimed.append(pk)
                else:
                    logger.info("Job %s was claimed by another worker", pk)

        jobs = {job.pk: job for job in RenderJob.objects.filter(pk__in=claimed)}
        return [jobs[pk] for pk in claimed]

    def claim_next(self):
        jobs = self.claim(1)
        return jobs[0] if jobs else None
