from .errors import MissingSourceError, NotFoundError
from .models import MediaItem

# Checked in order; the first non-blank value wins
SOURCE_FIELDS = ("public_url", "url", "storage_url", "path")


class SourceResolver:
    """Turns a media item id into the URL its bytes can be fetched from."""

    fields = SOURCE_FIELDS

    def resolve(self, media_id: str) -> str:
        media = MediaItem.objects.filter(pk=media_id).first()
        if media is None:
            raise NotFoundError(media_id)

        for field in self.fields:
            value = (getattr(media, field, "") or "").strip()
            if value:
                return value
        raise MissingSourceError(media_id)
