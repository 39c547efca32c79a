"""Download service for game files.

Builds everything an HTTP layer needs to serve a game: status code,
headers and a (possibly throttled) byte stream over the requested range.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.utils.http import content_disposition_header

from .exceptions import FileAccessError
from .ranges import ByteInterval, resolve
from .registry import GameRegistry
from .throttle import ThrottledStream

logger = logging.getLogger(__name__)

KIBIBYTE = 1024


@dataclass
class DownloadResponse:
    """Response descriptor for one download request."""

    status: int
    headers: dict
    stream: ThrottledStream
    interval: ByteInterval
    file_size: int
    filename: str


def get_speed_limit_ceiling() -> Optional[int]:
    """Server-wide download ceiling in bytes/s, or None when unlimited."""
    kibps = getattr(settings, "DOWNLOAD_SPEED_LIMIT_KIBPS", 0) or 0
    return kibps * KIBIBYTE if kibps > 0 else None


def effective_speed_limit(requested: Optional[int]) -> Optional[int]:
    """
    Combine a requested limit with the configured ceiling.

    The ceiling caps every request, including ones that asked for no limit.

    Args:
        requested: Requested limit in bytes/s (None or <= 0 for unlimited)

    Returns:
        Limit in bytes/s, or None for unlimited
    """
    ceiling = get_speed_limit_ceiling()
    if requested is None or requested <= 0:
        return ceiling
    if ceiling is not None:
        return min(requested, ceiling)
    return requested


def parse_speed_limit_header(value: Optional[str]) -> Optional[int]:
    """
    Convert an X-Download-Speed-Limit header (KiB/s) to bytes/s.

    Missing, malformed or non-positive values mean "no limit requested".
    """
    if not value:
        return None
    try:
        kibps = int(value.strip())
    except ValueError:
        logger.debug("Ignoring malformed speed limit header: %r", value)
        return None
    if kibps <= 0:
        return None
    return kibps * KIBIBYTE


def download(
    game_id: int,
    speed_limit: Optional[int] = None,
    range_header: Optional[str] = None,
    registry: Optional[GameRegistry] = None,
) -> DownloadResponse:
    """
    Prepare a download of a game file.

    The file is re-stat'ed on every request: the size stored in the
    registry is only as fresh as the last scan.

    Args:
        game_id: Id of a live game
        speed_limit: Requested limit in bytes/s (None for unlimited)
        range_header: Raw Range header value

    Returns:
        DownloadResponse with status 200 (full file) or 206 (partial)

    Raises:
        NotFoundError: If the game is unknown or soft-deleted
        RangeNotSatisfiable: If the Range header cannot be served
        FileAccessError: If the file vanished since the last scan
    """
    registry = registry or GameRegistry()
    game = registry.find_by_id(game_id)
    file_path = game.file_path

    try:
        stat = os.stat(file_path)
    except OSError as e:
        logger.warning("File for game %s is missing: %s", game_id, file_path)
        raise FileAccessError(
            f"File for game {game_id} is no longer available, reindex the library",
            path=file_path,
            game_id=game_id,
        ) from e

    file_size = stat.st_size
    interval = resolve(range_header, file_size)
    partial = not interval.is_full(file_size)

    try:
        fileobj = open(file_path, "rb")
    except OSError as e:
        raise FileAccessError(
            f"File for game {game_id} could not be opened, reindex the library",
            path=file_path,
            game_id=game_id,
        ) from e

    limit = effective_speed_limit(speed_limit)
    try:
        stream = ThrottledStream(fileobj, interval.start, interval.end, limit=limit)
    except OSError as e:
        fileobj.close()
        raise FileAccessError(
            f"Cannot seek in file for game {game_id}", path=file_path, game_id=game_id
        ) from e

    filename = os.path.basename(file_path)
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Type": "application/octet-stream",
        "Content-Length": str(max(interval.length, 0)),
        "Content-Disposition": content_disposition_header(True, filename),
    }
    if partial:
        headers["Content-Range"] = interval.content_range(file_size)

    logger.info(
        "Serving game %s (%s) bytes %d-%d/%d, limit=%s",
        game_id,
        filename,
        interval.start,
        interval.end,
        file_size,
        f"{limit} B/s" if limit else "none",
    )

    return DownloadResponse(
        status=206 if partial else 200,
        headers=headers,
        stream=stream,
        interval=interval,
        file_size=file_size,
        filename=filename,
    )
