import logging
import shutil
import tempfile
from pathlib import Path

import httpx

from .context import JobContext
from .errors import TransientIOError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class Workspace:
    """
    Scratch directory for one job attempt.

    Use as a context manager; the directory and everything in it is removed
    on exit, whether the job succeeded or not.
    """

    def __init__(self, job_id, root: str | Path | None = None):
        self.job_id = job_id
        self.root = Path(root) if root else Path(tempfile.gettempdir())
        self.dir: Path | None = None

    def __enter__(self):
        self.root.mkdir(parents=True, exist_ok=True)
        self.dir = Path(tempfile.mkdtemp(prefix=f"job-{self.job_id}-", dir=self.root))
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False

    def cleanup(self) -> None:
        if self.dir is not None:
            shutil.rmtree(self.dir, ignore_errors=True)
            self.dir = None

    def path(self, name: str) -> Path:
        if self.dir is None:
            raise RuntimeError("workspace is not open")
        return self.dir / name

    def download(self, client: httpx.Client, url: str, name: str, context: JobContext, *, timeout: float | None = None) -> Path:
        """Stream url into the workspace as name and return the local path."""
        dest = self.path(name)
        context.check("download")
        try:
            with client.stream("GET", url, timeout=context.timeout(timeout), follow_redirects=True) as r:
                if r.status_code < 200 or r.status_code >= 300:
                    raise TransientIOError(f"download failed: {r.status_code} {url}")
                with open(dest, "wb") as f:
                    for chunk in r.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
        except httpx.TimeoutException as e:
            raise TransientIOError(f"download timed out: {url}") from e
        except httpx.HTTPError as e:
            raise TransientIOError(f"download failed: {url}: {e}") from e
        logger.debug("Downloaded %s -> %s (%d bytes)", url, dest, dest.stat().st_size)
        return dest
