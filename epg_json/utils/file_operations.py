"""
File operation utilities

This module handles downloads and JSON file output.
"""
import hashlib
import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import aiofiles
import httpx

from epg_json.errors import FetchFailure


logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


async def download_bytes(
    url: str,
    client: httpx.AsyncClient | None = None,
    timeout: float = 120.0,
) -> bytes:
    """
    Download a URL into memory

    A single attempt is made; callers decide what a failure means.

    Args:
        url: URL to download from
        client: Optional shared client (a short-lived one is created otherwise)
        timeout: HTTP timeout in seconds when a client is created here

    Returns:
        Response body

    Raises:
        FetchFailure: On transport errors or non-2xx responses
    """
    logger.info(f"Downloading {url}...")

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
                response = await own_client.get(url)
        else:
            response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise FetchFailure(
            url,
            f"{e.response.status_code} {e.response.reason_phrase}",
            status_code=e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        raise FetchFailure(url, f"{type(e).__name__}: {e}") from e

    content = response.content
    logger.info(f"Downloaded {len(content) / (1024 * 1024):.2f} MB from {url}")
    return content


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if it does not exist"""
    path.mkdir(parents=True, exist_ok=True)
    return path


async def write_json_file(path: Path, payload: Any) -> None:
    """
    Write a pretty-printed JSON document, replacing any existing file

    Args:
        path: Target file
        payload: JSON-serializable data
    """
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(payload, indent=2, ensure_ascii=False))
    logger.debug(f"Wrote {path}")


def channel_file_name(channel_id: str) -> str:
    """
    File name of a per-channel output file

    Characters that are unsafe in file names (including path separators) are
    replaced so a channel id can never point outside the output directory.
    """
    safe = _UNSAFE_FILENAME_RE.sub("-", channel_id).strip()
    if safe in ("", ".", ".."):
        safe = safe.replace(".", "-") or "-"
    return f"{safe}.json"


def assign_channel_file_names(channel_ids: Iterable[str]) -> dict[str, str]:
    """
    Map every channel id to a distinct output file name

    Ids are visited in sorted order so the assignment does not depend on feed
    order. The first id to claim a sanitized name keeps it; later ids whose
    name collides (compared case-insensitively) get a digest of the raw id
    appended.

    Args:
        channel_ids: Distinct channel ids

    Returns:
        Dictionary of channel id -> file name
    """
    assigned: dict[str, str] = {}
    taken: set[str] = set()

    for channel_id in sorted(channel_ids):
        file_name = channel_file_name(channel_id)
        if file_name.casefold() in taken:
            stem = file_name[: -len(".json")]
            digest = hashlib.sha1(channel_id.encode("utf-8")).hexdigest()
            for candidate in (f"{stem}-{digest[:8]}.json", f"{stem}-{digest}.json"):
                if candidate.casefold() not in taken:
                    break
            logger.warning(
                "Channel id '%s' collides with another channel on file name %s; writing %s",
                channel_id,
                file_name,
                candidate,
            )
            file_name = candidate
        taken.add(file_name.casefold())
        assigned[channel_id] = file_name

    return assigned


def prune_stale_files(directory: Path, keep: set[str], suffix: str = ".json") -> int:
    """
    Delete files in a directory that were not produced by the current run

    Args:
        directory: Directory to clean
        keep: File names to preserve
        suffix: Only files with this suffix are considered

    Returns:
        Number of deleted files
    """
    if not directory.is_dir():
        return 0

    removed = 0
    for path in directory.iterdir():
        if path.is_file() and path.suffix == suffix and path.name not in keep:
            try:
                path.unlink()
                removed += 1
                logger.debug(f"Removed stale file: {path}")
            except (OSError, PermissionError) as e:
                logger.warning(f"Failed to delete stale file {path}: {e}")
    return removed
