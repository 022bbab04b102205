"""
Render worker error types.

Every failure a job can end in derives from RenderError. The lifecycle
manager turns any of them into a failed job whose logs hold str(error).
"""


class RenderError(Exception):
    """Base exception for render job failures."""
    pass


class ValidationError(RenderError):
    """Unknown job_type or params that do not match it. Raised before any I/O."""
    pass


class NotFoundError(RenderError):
    """Referenced media record does not exist."""

    def __init__(self, media_id: str):
        self.media_id = media_id
        super().__init__(f"media not found: {media_id}")


class MissingSourceError(RenderError):
    """Media record exists but carries no usable source URL."""

    def __init__(self, media_id: str):
        self.media_id = media_id
        super().__init__(f"media src missing: {media_id}")


class TransientIOError(RenderError):
    """Download, upload or remote API failure."""
    pass


class DeadlineExceededError(TransientIOError):
    """The job ran past its time budget."""

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"deadline exceeded during {stage}")


class ProcessingError(RenderError):
    """Encoder exited non-zero or a service returned unusable output."""

    def __init__(self, message: str, output: str = ""):
        self.message = message
        self.output = output
        super().__init__(message)

    def __str__(self):
        if self.output:
            return f"{self.message}\n{self.output}"
        return self.message


class JobCanceledError(RenderError):
    """The job was canceled externally while it was running."""

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"job canceled: {job_id}")
