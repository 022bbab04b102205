from celery import shared_task
from celery.utils.log import get_task_logger

from .lifecycle import WorkerRuntime

logger = get_task_logger(__name__)


def outcome_payload(outcome) -> dict:
    if outcome.ok:
        return {"ok": True, "job": outcome.job_id, "result": outcome.result()}
    return {"ok": False, "job": outcome.job_id, "error": outcome.error}


@shared_task(bind=True)
def process_render_queue(self):
    """Process the oldest queued render job, if any. Database errors fail the task."""
    with WorkerRuntime() as manager:
        outcome = manager.run()

    if outcome is None:
        logger.info("No queued render jobs")
        return None
    if outcome.ok:
        logger.info("Render job %s completed", outcome.job_id)
    else:
        logger.warning("Render job %s did not complete: %s", outcome.job_id, outcome.error)
    return outcome_payload(outcome)
