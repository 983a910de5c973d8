"""
Output Service

Writes the per-channel JSON files, the channel index and the run metadata.
Every run replaces the previous output; nothing is merged.
"""
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

from epg_json.models import Programme
from epg_json.schemas import ChannelIndexEntry, RunMetadata
from epg_json.utils.file_operations import (
    assign_channel_file_names,
    ensure_dir,
    prune_stale_files,
    write_json_file,
)

logger = logging.getLogger(__name__)

CHANNELS_INDEX_FILE = "channels.json"
METADATA_FILE = "meta.json"


async def write_channel_files(
    epg_dir: Path,
    groups: Mapping[str, Sequence[Programme]],
    *,
    file_names: Mapping[str, str] | None = None,
    prune_stale: bool = True,
) -> dict[str, str]:
    """
    Write one JSON array per channel

    Args:
        epg_dir: Directory receiving the channel files
        groups: Channel id -> programmes, in bucket order

    Keyword Args:
        file_names: Channel id -> file name, from assign_channel_file_names
        prune_stale: Delete channel files left over from earlier runs

    Returns:
        Dictionary of channel id -> written file name
    """
    ensure_dir(epg_dir)

    if file_names is None:
        file_names = assign_channel_file_names(groups)

    written: dict[str, str] = {}
    for channel_id, programmes in groups.items():
        file_name = file_names[channel_id]
        await write_json_file(epg_dir / file_name, [programme.to_dict() for programme in programmes])
        written[channel_id] = file_name

    if prune_stale:
        removed = prune_stale_files(epg_dir, keep=set(written.values()))
        if removed:
            logger.info(f"Removed {removed} stale channel file(s) from {epg_dir}")

    return written


async def write_channel_index(output_dir: Path, index: Sequence[ChannelIndexEntry]) -> Path:
    """Write the sorted {channel, count, file} summary"""
    path = ensure_dir(output_dir) / CHANNELS_INDEX_FILE
    await write_json_file(path, [entry.model_dump(exclude_none=True) for entry in index])
    return path


async def write_metadata(output_dir: Path, metadata: RunMetadata) -> Path:
    """Write run metadata"""
    path = ensure_dir(output_dir) / METADATA_FILE
    await write_json_file(path, metadata.model_dump(exclude_none=True))
    return path
