from __future__ import annotations
import io
from functools import lru_cache
from minio import Minio
from minio.error import S3Error
import structlog
from skatebounty.config import settings

log = structlog.get_logger()

def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure

@lru_cache(maxsize=1)
def _client() -> Minio:
    host, secure = _parse_endpoint(settings.s3_endpoint)
    client = Minio(host, access_key=settings.s3_access_key, secret_key=settings.s3_secret_key, secure=secure)
    try:
        if not client.bucket_exists(settings.s3_bucket_uploads):
            client.make_bucket(settings.s3_bucket_uploads)
    except S3Error:
        # Bucket creation may race with another worker; it exists either way
        log.info("bucket_create_race", bucket=settings.s3_bucket_uploads)
    return client

def public_url(key: str) -> str:
    base = settings.s3_public_base_url or f"{settings.s3_endpoint.rstrip('/')}/{settings.s3_bucket_uploads}"
    return f"{base.rstrip('/')}/{key}"

def upload(key: str, data: bytes, content_type: str) -> str:
    """Store the object and return its public URL."""
    _client().put_object(
        settings.s3_bucket_uploads, key, io.BytesIO(data), length=len(data), content_type=content_type
    )
    return public_url(key)
