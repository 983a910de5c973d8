"""
Image Database Service

Fetches channel schedules from the schedule API and accumulates the
title -> poster mapping of every channel into one JSON file per channel.
Runs are additive: titles already stored are kept, new ones are appended.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import httpx
from pydantic import ValidationError

from epg_json.config import CustomSettings, settings as default_settings
from epg_json.errors import FetchFailure, MalformedSourceFile
from epg_json.schemas import ImageSourceFile, ScheduleImage
from epg_json.services.image_resolver import load_image_source_file
from epg_json.utils.file_operations import ensure_dir, write_json_file
from epg_json.utils.logging_helpers import log_run_end, log_run_start


logger = logging.getLogger(__name__)


async def fetch_channel_schedule(
    client: httpx.AsyncClient,
    base_url: str,
    path_id: int | str,
) -> dict | None:
    """
    Fetch one channel from the schedule API

    Args:
        client: HTTP client
        base_url: Schedule API channels endpoint
        path_id: Channel id used in the request path

    Returns:
        Decoded response body, or None if the request was not successful

    Raises:
        FetchFailure: On transport errors
    """
    url = f"{base_url}/{path_id}"
    logger.info(f"Fetching: {url}")

    try:
        response = await client.get(url, params={"platform": "WEB"})
    except httpx.HTTPError as e:
        raise FetchFailure(url, f"{type(e).__name__}: {e}") from e

    logger.info(f"HTTP status for {path_id} => {response.status_code}")
    if not response.is_success:
        return None

    try:
        return response.json()
    except ValueError:
        logger.warning(f"Schedule API returned a non-JSON body for {path_id}")
        return None


def load_existing_channel_file(path: Path, channel_id: int | str, channel_name: str) -> ImageSourceFile:
    """
    Load the stored image file of a channel, or start a new one

    A missing or broken file is replaced by an empty document.
    """
    try:
        document = load_image_source_file(path)
    except MalformedSourceFile as e:
        if path.exists():
            logger.warning(f"Recreating broken image file {path}: {e}")
        return ImageSourceFile(channelId=channel_id, channelName=channel_name)

    if document.channelId is None:
        document.channelId = channel_id
    if not document.channelName:
        document.channelName = channel_name
    return document


def merge_schedule_images(document: ImageSourceFile, schedule: Sequence) -> int:
    """
    Append schedule entries whose title is not stored yet

    Entries without a text title or image are skipped.

    Returns:
        Number of added entries
    """
    existing_titles = {item.title for item in document.channelScheduleData}

    added = 0
    for item in schedule:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        box_cover_image = item.get("boxCoverImage")
        if not isinstance(title, str) or not isinstance(box_cover_image, str):
            continue

        title = title.strip()
        if not title or not box_cover_image:
            continue
        if title in existing_titles:
            continue

        document.channelScheduleData.append(ScheduleImage(title=title, boxCoverImage=box_cover_image))
        existing_titles.add(title)
        added += 1

    return added


async def process_channel(
    client: httpx.AsyncClient,
    path_id: int,
    base_url: str,
    data_dir: Path,
) -> dict:
    """
    Update the image file of one schedule API channel

    Returns:
        Summary dictionary with 'status' of 'updated' or 'skipped'
    """
    api_data = await fetch_channel_schedule(client, base_url, path_id)
    if not isinstance(api_data, dict) or api_data.get("code") != 0:
        return {"pathId": path_id, "status": "skipped", "reason": "unsuccessful API response"}

    data = api_data.get("data")
    if not isinstance(data, dict):
        data = {}
    channel_meta = data.get("channelMeta")
    if not isinstance(channel_meta, dict):
        channel_meta = {}
    schedule = data.get("channelScheduleData")
    if not isinstance(schedule, list):
        schedule = []

    channel_id = channel_meta.get("id")
    if isinstance(channel_id, bool) or not isinstance(channel_id, (int, str)) or not channel_id:
        logger.info(f"No channelMeta.id for path id {path_id}")
        return {"pathId": path_id, "status": "skipped", "reason": "missing channelMeta.id"}

    if Path(str(channel_id)).name != str(channel_id):
        logger.warning(f"Unusable channelMeta.id '{channel_id}' for path id {path_id}")
        return {"pathId": path_id, "status": "skipped", "reason": "invalid channelMeta.id"}

    channel_name = channel_meta.get("name")
    if not isinstance(channel_name, str):
        channel_name = ""
    file_path = data_dir / f"{channel_id}.json"

    document = load_existing_channel_file(file_path, channel_id, channel_name)
    added = merge_schedule_images(document, schedule)

    await write_json_file(file_path, document.model_dump(mode="json"))
    total = len(document.channelScheduleData)
    logger.info(f"{file_path}: added {added} new titles, total = {total}")

    return {
        "pathId": path_id,
        "status": "updated",
        "channelId": channel_id,
        "added": added,
        "total": total,
    }


async def update_image_database(
    config: CustomSettings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """
    Refresh the image database for every configured schedule API channel.

    Channels are processed one after another; a failing channel does not stop
    the others.

    Returns:
        Dictionary with per-channel details
    """
    config = config or default_settings
    data_dir = ensure_dir(config.image_data_path)
    log_run_start(logger, "Image database update")

    async def run(http: httpx.AsyncClient) -> list[dict]:
        details = []
        for path_id in config.image_api_channel_ids:
            try:
                details.append(await process_channel(http, path_id, config.image_api_base_url, data_dir))
            except (FetchFailure, ValidationError, OSError) as exc:
                logger.error(f"Failed to update images for channel {path_id}: {exc}")
                details.append({"pathId": path_id, "status": "failed", "error": str(exc)})
        return details

    if client is not None:
        details = await run(client)
    else:
        async with httpx.AsyncClient(timeout=config.http_timeout_sec, follow_redirects=True) as http:
            details = await run(http)

    log_run_end(logger, "Image database update")
    return {
        "status": "success",
        "channels_requested": len(config.image_api_channel_ids),
        "channels_updated": sum(1 for item in details if item["status"] == "updated"),
        "channels_failed": sum(1 for item in details if item["status"] == "failed"),
        "details": details,
    }
