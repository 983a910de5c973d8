"""
EPG Downloader Service

Handles downloading, decompressing and parsing a single EPG source.
Separated from orchestration logic for better testability.
"""
import asyncio
import logging

import httpx

from epg_json.models import Programme
from epg_json.services.xmltv_parser_service import decode_xmltv_payload, parse_programmes
from epg_json.utils.file_operations import download_bytes
from epg_json.utils.timezone import DEFAULT_DISPLAY_ZONE, DisplayZone


logger = logging.getLogger(__name__)


async def process_single_source(
    source_url: str,
    source_index: int,
    zone: DisplayZone = DEFAULT_DISPLAY_ZONE,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 120.0,
    parse_timeout_seconds: int | None = None
) -> list[Programme]:
    """
    Download and parse a single EPG source

    Args:
        source_url: URL to download from
        source_index: Index of this source (for logging)
        zone: Display zone for start/stop strings

    Returns:
        Programmes in document order

    Keyword Args:
        client: Optional shared HTTP client
        timeout: HTTP timeout in seconds
        parse_timeout_seconds: Timeout in seconds for parsing (0/None disables timeout)

    Raises:
        FetchFailure: If the download fails
        DecodeFailure: If the payload cannot be decompressed or decoded
        ValueError: If parsing times out
    """
    logger.debug(f"  [Source {source_index}] Download URL: {source_url}")
    data = await download_bytes(source_url, client=client, timeout=timeout)

    logger.info(f"  [Source {source_index}] Decompressing...")
    xml_text = decode_xmltv_payload(data)

    logger.info(f"  [Source {source_index}] Parsing XMLTV content...")
    programmes = await parse_xmltv_async(
        xml_text,
        zone,
        parse_timeout_seconds=parse_timeout_seconds
    )
    logger.info(f"  [Source {source_index}] Parsed programmes from {source_url}: {len(programmes)}")
    return programmes


async def parse_xmltv_async(
    xml_text: str,
    zone: DisplayZone = DEFAULT_DISPLAY_ZONE,
    *,
    parse_timeout_seconds: int | None = None
) -> list[Programme]:
    """
    Parse XMLTV text asynchronously with optional timeout protection.

    Parsing is offloaded to the default thread pool to avoid blocking the event loop.

    Args:
        xml_text: XMLTV document
        zone: Display zone for start/stop strings

    Returns:
        Programmes in document order

    Keyword Args:
        parse_timeout_seconds: Timeout in seconds for parsing (0/None disables timeout)

    Raises:
        ValueError: If parsing times out
    """
    effective_timeout = parse_timeout_seconds if parse_timeout_seconds and parse_timeout_seconds > 0 else None
    timeout_display = f"{effective_timeout}s" if effective_timeout else "disabled"

    loop = asyncio.get_running_loop()
    logger.debug("Offloading XMLTV parsing to thread pool executor (timeout: %s)...", timeout_display)
    parse_task = loop.run_in_executor(None, parse_programmes, xml_text, zone)

    try:
        if effective_timeout:
            programmes = await asyncio.wait_for(parse_task, timeout=effective_timeout)
        else:
            programmes = await parse_task
    except asyncio.TimeoutError:
        logger.error("XMLTV parsing timed out after %s", timeout_display)
        raise ValueError("XMLTV parsing timed out - document may be too large")

    if not programmes:
        logger.warning("No programmes found in XMLTV document")

    return programmes
