"""
EPG Conversion Service

Coordinates downloading, parsing, grouping and JSON output of EPG data from
multiple sources.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

import httpx

from epg_json.config import CustomSettings, settings as default_settings
from epg_json.errors import EPGError
from epg_json.models import Programme
from epg_json.schemas import RunMetadata, SourceStatus
from epg_json.services.epg_downloader_service import process_single_source
from epg_json.services.image_resolver import ImageResolver, ImageSourceConfig
from epg_json.services.output_service import (
    write_channel_files,
    write_channel_index,
    write_metadata,
)
from epg_json.utils.file_operations import assign_channel_file_names
from epg_json.utils.grouping import build_channel_index, group_by_channel
from epg_json.utils.logging_helpers import (
    log_output_summary,
    log_run_end,
    log_run_start,
    log_section_end,
    log_section_start,
    sanitize_url_for_logging,
)


logger = logging.getLogger(__name__)

# Global lock to prevent concurrent conversion runs
_convert_lock = asyncio.Lock()

METADATA_NOTE = "start/stop fields are formatted in {label}; startRaw/stopRaw hold original XMLTV timestamps."


@dataclass(slots=True)
class SourceSummary:
    index: int
    source_url: str
    sanitized_url: str
    started_at: datetime
    completed_at: datetime
    status: Literal["success", "failed"]
    error: str | None = None
    programmes: list[Programme] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.completed_at - self.started_at).total_seconds())

    def to_status(self) -> SourceStatus:
        return SourceStatus(
            url=self.sanitized_url,
            status=self.status,
            count=len(self.programmes),
            error=self.error,
        )

    def to_dict(self) -> dict:
        payload = {
            "source_index": self.index,
            "source_url": self.sanitized_url,
            "status": self.status,
            "programmes_parsed": len(self.programmes),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
        }
        if self.error:
            payload["error"] = self.error
        return payload


class EPGConvertPipeline:
    """Coordinates download, grouping, image and output stages for a conversion run."""

    def __init__(
        self,
        config: CustomSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = config or default_settings
        self.sources = [source for source in self.settings.epg_sources if source]
        self.total_sources = len(self.sources)
        self.zone = self.settings.display_zone
        self._client = client
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrent_downloads)

    async def run(self) -> dict:
        started_at = datetime.now(timezone.utc)
        logger.info("Display timezone: %s", self.zone.description)

        summaries = await self._collect_sources()
        succeeded = [summary for summary in summaries if summary.status == "success"]

        if not succeeded:
            logger.error("No EPG source could be processed - output left untouched")
            return self._build_result(started_at, summaries, status="failed", channels=0, programmes=0)

        # Sources are merged in configured order, each in document order
        programmes = [programme for summary in succeeded for programme in summary.programmes]
        logger.info("Total merged programmes: %s", len(programmes))

        if self.settings.images_enabled:
            programmes = self._attach_images(programmes)

        groups = group_by_channel(programmes)
        file_names = assign_channel_file_names(groups)
        index = build_channel_index(groups, file_names)

        log_section_start(logger, "writing JSON output")
        await write_channel_files(
            self.settings.epg_path,
            groups,
            file_names=file_names,
            prune_stale=self.settings.prune_stale_channel_files,
        )
        await write_channel_index(self.settings.output_path, index)
        await write_metadata(
            self.settings.output_path,
            self._build_metadata(started_at, summaries, len(programmes), len(index)),
        )
        log_section_end(logger, "writing JSON output")
        log_output_summary(logger, len(index), len(programmes))

        status = "success" if len(succeeded) == len(summaries) else "partial"
        return self._build_result(
            started_at,
            summaries,
            status=status,
            channels=len(index),
            programmes=len(programmes),
        )

    async def _collect_sources(self) -> list[SourceSummary]:
        if not self.sources:
            logger.warning("No EPG sources configured - skipping conversion")
            return []

        if self._client is not None:
            return await self._gather_sources(self._client)

        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout_sec,
            follow_redirects=True,
        ) as client:
            return await self._gather_sources(client)

    async def _gather_sources(self, client: httpx.AsyncClient) -> list[SourceSummary]:
        tasks = [
            asyncio.create_task(self._process_source(index, source_url, client))
            for index, source_url in enumerate(self.sources, start=1)
        ]

        summaries = await asyncio.gather(*tasks)
        summaries.sort(key=lambda summary: summary.index)
        return summaries

    async def _process_source(
        self,
        index: int,
        source_url: str,
        client: httpx.AsyncClient,
    ) -> SourceSummary:
        sanitized_url = sanitize_url_for_logging(source_url)
        started_at = datetime.now(timezone.utc)
        logger.info(
            "[Source %s/%s] Queued for download: %s",
            index,
            self.total_sources,
            sanitized_url,
        )

        async with self._semaphore:
            logger.info(
                "[Source %s/%s] Starting download: %s",
                index,
                self.total_sources,
                sanitized_url,
            )
            try:
                programmes = await process_single_source(
                    source_url,
                    index,
                    self.zone,
                    client=client,
                    timeout=self.settings.http_timeout_sec,
                    parse_timeout_seconds=self.settings.epg_parse_timeout_sec,
                )
            except (EPGError, ValueError) as exc:
                completed_at = datetime.now(timezone.utc)
                logger.error(
                    "[Source %s] Failed to process %s: %s",
                    index,
                    sanitized_url,
                    exc,
                )
                return SourceSummary(
                    index=index,
                    source_url=source_url,
                    sanitized_url=sanitized_url,
                    started_at=started_at,
                    completed_at=completed_at,
                    status="failed",
                    error=str(exc),
                )

        completed_at = datetime.now(timezone.utc)
        logger.info(
            "[Source %s/%s] Completed: %s (%s programmes)",
            index,
            self.total_sources,
            sanitized_url,
            len(programmes),
        )

        return SourceSummary(
            index=index,
            source_url=source_url,
            sanitized_url=sanitized_url,
            started_at=started_at,
            completed_at=completed_at,
            status="success",
            programmes=programmes,
        )

    def _attach_images(self, programmes: list[Programme]) -> list[Programme]:
        resolver = ImageResolver(
            ImageSourceConfig(
                data_dir=self.settings.image_data_path,
                channel_sources=self.settings.channel_image_sources,
            ),
            default_image_url=self.settings.default_image_url,
        )
        with_images = resolver.attach(programmes)
        matched = sum(1 for programme in with_images if programme.image != resolver.default_image_url)
        logger.info(
            "Attached images: %s matched, %s default (%s image sources loaded)",
            matched,
            len(with_images) - matched,
            len(resolver.cache),
        )
        return with_images

    def _build_metadata(
        self,
        started_at: datetime,
        summaries: list[SourceSummary],
        total_programmes: int,
        total_channels: int,
    ) -> RunMetadata:
        return RunMetadata(
            lastUpdate=started_at.isoformat().replace("+00:00", "Z"),
            totalProgrammes=total_programmes,
            totalChannels=total_channels,
            timeZone=self.zone.description or self.zone.label,
            note=METADATA_NOTE.format(label=self.zone.label),
            imagesEnabled=self.settings.images_enabled,
            sourcesSucceeded=sum(1 for summary in summaries if summary.status == "success"),
            sourcesFailed=sum(1 for summary in summaries if summary.status == "failed"),
            sources=[summary.to_status() for summary in summaries],
        )

    def _build_result(
        self,
        started_at: datetime,
        summaries: list[SourceSummary],
        *,
        status: str,
        channels: int,
        programmes: int,
    ) -> dict:
        successes = sum(1 for summary in summaries if summary.status == "success")
        failures = sum(1 for summary in summaries if summary.status == "failed")

        return {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "started_at": started_at.isoformat(),
            "sources_processed": len(self.sources),
            "sources_succeeded": successes,
            "sources_failed": failures,
            "channels_written": channels,
            "programmes_written": programmes,
            "source_details": [summary.to_dict() for summary in summaries],
        }


async def convert_epg(
    config: CustomSettings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """
    Main entry point for EPG conversion with concurrency protection.

    Returns:
        Dictionary with run statistics or error/skip message.
    """
    if _convert_lock.locked():
        logger.warning("EPG conversion already in progress, skipping this request")
        return {
            "status": "skipped",
            "message": "EPG conversion already in progress",
        }

    async with _convert_lock:
        log_run_start(logger, "EPG conversion")

        pipeline = EPGConvertPipeline(config, client=client)
        try:
            result = await pipeline.run()
        except OSError as exc:
            logger.error("EPG conversion failed while writing output: %s", exc, exc_info=True)
            return {"status": "failed", "error": str(exc)}

        log_run_end(logger, "EPG conversion")
        return result
