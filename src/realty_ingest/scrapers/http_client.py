"""
HTTP download helper shared by the source scrapers.
"""
from typing import Optional

import requests

from config.settings import settings
from src.realty_ingest.errors import SourceFetchError
from src.realty_ingest.utils.logger import get_logger

logger = get_logger(__name__)


def download(
    session: requests.Session,
    url: str,
    source_id: str,
    timeout: Optional[int] = None,
) -> bytes:
    """
    Download a source file into memory.

    Args:
        session: requests session to issue the GET on
        url: File URL
        source_id: Source identifier, for logging and errors
        timeout: Seconds before giving up (defaults to settings.http_timeout_seconds)

    Returns:
        Response body

    Raises:
        SourceFetchError: On connection errors, timeouts or non-2xx responses
    """
    timeout = timeout or settings.http_timeout_seconds
    logger.info("source_download_started", source_id=source_id, url=url, timeout=timeout)

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(
            "source_download_failed",
            source_id=source_id,
            url=url,
            error=str(e),
            error_type=type(e).__name__
        )
        raise SourceFetchError(source_id, f"download failed: {e}") from e

    content = response.content
    logger.info(
        "source_download_complete",
        source_id=source_id,
        status_code=response.status_code,
        bytes=len(content)
    )
    return content
