import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

from .errors import TransientIOError

logger = logging.getLogger(__name__)


def _client(endpoint_url: str):
    session = boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )
    return session.client(
        "s3",
        endpoint_url=endpoint_url,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",  # ensures AWS4 signing
        ),
    )


def get_s3_client():
    """
    SDK client for server-side uploads.
    """
    return _client(settings.S3_ENDPOINT_URL)


def get_presign_client():
    """
    Separate client for generating presigned URLs that consumers will call.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the client reaches.
    """
    return _client(settings.S3_PUBLIC_ENDPOINT)


class S3ObjectStorage:
    """
    Object storage backed by S3/MinIO.

    upload() overwrites whatever is stored at the key; create_signed_url()
    returns a presigned GET that stops working after ttl_seconds.
    """

    def __init__(self, client=None, presign_client=None):
        self._client = client
        self._presign_client = presign_client

    @property
    def client(self):
        if self._client is None:
            self._client = get_s3_client()
        return self._client

    @property
    def presign_client(self):
        if self._presign_client is None:
            self._presign_client = get_presign_client()
        return self._presign_client

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        try:
            self.client.put_object(Bucket=bucket, Key=path, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise TransientIOError(f"upload failed: {bucket}/{path}: {e}") from e
        return path

    def create_signed_url(self, bucket: str, path: str, ttl_seconds: int) -> str:
        try:
            return self.presign_client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": bucket, "Key": path},
                ExpiresIn=ttl_seconds,
                HttpMethod="GET",
            )
        except (BotoCoreError, ClientError) as e:
            raise TransientIOError(f"signing failed: {bucket}/{path}: {e}") from e


class ArtifactPublisher:
    """Uploads pipeline output and mints the signed URL stored on the job."""

    def __init__(self, storage, buckets: dict | None = None, ttls: dict | None = None):
        self.storage = storage
        self.buckets = buckets or {
            "render": settings.S3_RENDERS_BUCKET,
            "subtitles": settings.S3_SUBTITLES_BUCKET,
            "inpaint": settings.S3_RENDERS_BUCKET,
        }
        self.ttls = ttls or {
            "render": settings.RENDER_URL_TTL_SECONDS,
            "subtitles": settings.RENDER_URL_TTL_SECONDS,
            "inpaint": settings.INPAINT_URL_TTL_SECONDS,
        }

    def publish(self, artifact, destination: str | None = None) -> str:
        bucket = self.buckets.get(artifact.kind, settings.S3_BUCKET)
        ttl = self.ttls.get(artifact.kind, settings.RENDER_URL_TTL_SECONDS)
        path = destination or artifact.path

        stored = self.storage.upload(bucket, path, artifact.data, artifact.content_type)
        logger.info("Uploaded %s/%s (%d bytes, %s)", bucket, stored, len(artifact.data), artifact.content_type)
        return self.storage.create_signed_url(bucket, stored, ttl)
