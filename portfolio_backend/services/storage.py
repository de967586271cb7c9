"""
Blob storage for portfolio files (Supabase Storage, private bucket).

Stored paths carry the bucket prefix ("portfolio-files/<portfolio_id>/<name>");
the storage API wants them relative to the bucket.
"""
import logging

from ..config import config
from ..db import get_supabase
from ..errors import NotFound, UpstreamError

logger = logging.getLogger(__name__)


def build_path(portfolio_id, filename):
    """Full stored path for a portfolio file, bucket prefix included."""
    return f"{config.storage_bucket}/{portfolio_id}/{filename}"


def relative_path(stored_path):
    prefix = config.storage_bucket + "/"
    if stored_path.startswith(prefix):
        return stored_path[len(prefix):]
    return stored_path


def _bucket(db=None):
    db = db or get_supabase()
    return db.storage.from_(config.storage_bucket)


def put(stored_path, data, content_type=None, db=None):
    """Upload bytes. Raises UpstreamError when storage refuses."""
    try:
        _bucket(db).upload(
            relative_path(stored_path),
            data,
            {"content-type": content_type or "application/octet-stream", "upsert": "false"},
        )
    except Exception as e:
        logger.error("Storage upload failed for %s: %s", stored_path, e)
        raise UpstreamError("File upload failed") from e
    logger.info("Uploaded %s (%d bytes)", stored_path, len(data))


def signed_url(stored_path, ttl_seconds=None, db=None):
    """Fresh time-limited URL for a private file. Never cached."""
    ttl = ttl_seconds or config.signed_url_ttl
    try:
        result = _bucket(db).create_signed_url(relative_path(stored_path), ttl)
    except Exception as e:
        logger.error("Could not sign %s: %s", stored_path, e)
        raise NotFound("File not found in storage") from e

    url = None
    if isinstance(result, dict):
        url = result.get('signedURL') or result.get('signedUrl')
    if not url:
        raise NotFound("File not found in storage")
    return url


def delete(stored_path, db=None):
    """
    Best-effort delete. Failures are logged and reported as False,
    never raised, because callers use this for cleanup.
    """
    try:
        _bucket(db).remove([relative_path(stored_path)])
    except Exception as e:
        logger.warning("Could not delete stored file %s: %s", stored_path, e)
        return False
    return True
