"""
Channel grouping utilities

This module partitions extracted programmes into per-channel buckets and
builds the summary index written next to the channel files.
"""
import logging
from collections.abc import Iterable, Mapping, Sequence

from epg_json.models import Programme, UNKNOWN_CHANNEL
from epg_json.schemas import ChannelIndexEntry

logger = logging.getLogger(__name__)


def group_by_channel(programmes: Iterable[Programme]) -> dict[str, list[Programme]]:
    """
    Group programmes by channel id in a single pass.

    Buckets appear in order of first appearance and keep extraction order.
    Programmes without a channel id land in the 'unknown' bucket.

    Args:
        programmes: Programmes in extraction order

    Returns:
        Dictionary of channel id -> list of programmes
    """
    groups: dict[str, list[Programme]] = {}

    for programme in programmes:
        channel_id = programme.channel or UNKNOWN_CHANNEL
        bucket = groups.get(channel_id)
        if bucket is None:
            bucket = groups[channel_id] = []
            logger.debug("New channel bucket: %s", channel_id)
        bucket.append(programme)

    return groups


def build_channel_index(
    groups: Mapping[str, Sequence[Programme]],
    file_names: Mapping[str, str] | None = None,
) -> list[ChannelIndexEntry]:
    """
    Build the channel summary sorted by channel id.

    Args:
        groups: Output of group_by_channel
        file_names: Channel id -> output file name, recorded when given

    Returns:
        List of index entries in ascending channel id order
    """
    return [
        ChannelIndexEntry(
            channel=channel_id,
            count=len(groups[channel_id]),
            file=file_names.get(channel_id) if file_names else None,
        )
        for channel_id in sorted(groups)
    ]
