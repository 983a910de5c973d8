"""
Image Resolver

Attaches poster images to programmes by exact (lowercase, trimmed) title
match against the image database built by the image update command.
A missing or broken image file is never fatal: it simply yields no matches.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from epg_json.errors import MalformedSourceFile
from epg_json.models import Programme
from epg_json.schemas import ImageSourceFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImageSourceConfig:
    """Where image indexes come from for each EPG channel"""
    data_dir: Path
    channel_sources: Mapping[str, str] = field(default_factory=dict)


def title_key(title: str) -> str:
    """Normalize a title for index lookups"""
    return title.strip().lower()


def load_image_source_file(path: Path) -> ImageSourceFile:
    """
    Read and validate an image source file

    Args:
        path: JSON file produced by the image database updater

    Returns:
        Parsed document

    Raises:
        MalformedSourceFile: If the file is missing, unreadable or invalid
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedSourceFile(f"Cannot read image source {path}: {e}") from e

    try:
        return ImageSourceFile.model_validate(json.loads(content))
    except (json.JSONDecodeError, ValidationError) as e:
        raise MalformedSourceFile(f"Invalid image source {path}: {e}") from e


def build_title_index(document: ImageSourceFile) -> dict[str, str]:
    """Map lowercase titles to poster URLs; the first occurrence of a title wins"""
    index: dict[str, str] = {}
    for item in document.channelScheduleData:
        key = title_key(item.title)
        if key and item.boxCoverImage and key not in index:
            index[key] = item.boxCoverImage
    return index


class ImageIndexCache:
    """
    Lazily built title indexes keyed by image source id.

    Each source is read at most once; entries are kept for the lifetime of the
    cache (one conversion run) and never evicted.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._indexes: dict[str, dict[str, str]] = {}

    def source_path(self, source_id: str) -> Path:
        return self.data_dir / f"{source_id}.json"

    def has_source(self, source_id: str) -> bool:
        return source_id in self._indexes or self.source_path(source_id).is_file()

    def get(self, source_id: str) -> dict[str, str]:
        """
        Get the title index of an image source, loading it on first use

        Args:
            source_id: Image source id (file name without extension)

        Returns:
            Title index, empty if the source is missing or malformed
        """
        index = self._indexes.get(source_id)
        if index is not None:
            return index

        try:
            index = build_title_index(load_image_source_file(self.source_path(source_id)))
            logger.debug(f"Loaded image index '{source_id}' with {len(index)} titles")
        except MalformedSourceFile as e:
            logger.warning(f"Image source '{source_id}' unavailable, using no index: {e}")
            index = {}

        self._indexes[source_id] = index
        return index

    def __len__(self) -> int:
        return len(self._indexes)


class ImageResolver:
    """Resolves programme titles to poster URLs per EPG channel"""

    def __init__(
        self,
        config: ImageSourceConfig,
        default_image_url: str,
        cache: ImageIndexCache | None = None,
    ):
        self.config = config
        self.default_image_url = default_image_url
        self.cache = cache or ImageIndexCache(config.data_dir)
        self._channel_sources: dict[str, str | None] = {}

    def source_for_channel(self, channel_id: str) -> str | None:
        """
        Pick the image source of an EPG channel

        The static table wins, then a data file named after the channel id.
        The outcome, including "no source", is remembered per channel.

        Returns:
            Source id, or None when the channel has no image source
        """
        if channel_id in self._channel_sources:
            return self._channel_sources[channel_id]

        mapped = self.config.channel_sources.get(channel_id)
        if mapped is not None:
            source_id = str(mapped)
        # only plain file names, never paths
        elif channel_id and Path(channel_id).name == channel_id and self.cache.has_source(channel_id):
            source_id = channel_id
        else:
            source_id = None

        self._channel_sources[channel_id] = source_id
        return source_id

    def resolve(self, channel_id: str, title: str) -> str:
        """
        Resolve the poster URL of a programme

        Args:
            channel_id: EPG channel id
            title: Programme title

        Returns:
            Indexed poster URL on an exact title match, else the default image URL
        """
        source_id = self.source_for_channel(channel_id)
        if source_id is None:
            return self.default_image_url
        return self.cache.get(source_id).get(title_key(title), self.default_image_url)

    def attach(self, programmes: Iterable[Programme]) -> list[Programme]:
        """Return copies of the programmes with their image field set"""
        return [
            programme.with_image(self.resolve(programme.channel, programme.title))
            for programme in programmes
        ]
