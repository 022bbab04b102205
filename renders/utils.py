import mimetypes
from pathlib import PurePosixPath
from urllib.parse import urlsplit

MAX_LOG_CHARS = 4000


def guess_suffix(url: str, default: str = "") -> str:
    """Return the file suffix of a URL's path ('.mp4'), or default when it has none."""
    suffix = PurePosixPath(urlsplit(url).path).suffix.lower()
    if suffix and mimetypes.guess_type(f"x{suffix}")[0]:
        return suffix
    return default


def truncate_logs(text: str | None, limit: int = MAX_LOG_CHARS) -> str | None:
    """Bound diagnostic text stored on a job; keeps the tail, where errors usually are."""
    if text is None or len(text) <= limit:
        return text
    return "...\n" + text[-(limit - 4):]
