"""
XMLTV Programme Extractor

Scans XMLTV text for <programme> blocks and turns each one into a Programme.
The scan is lexical: every block is matched non-greedily and never nested,
so no DOM is built and well-formedness is not checked.
"""
from collections.abc import Iterator
import gzip
import logging
import re
import zlib

from epg_json.errors import DecodeFailure
from epg_json.models import Programme, UNTITLED
from epg_json.utils.text import strip_tags
from epg_json.utils.timezone import DEFAULT_DISPLAY_ZONE, DisplayZone, format_or_passthrough

logger = logging.getLogger(__name__)

_GZIP_MAGIC = b"\x1f\x8b"

_PROGRAMME_RE = re.compile(r"<programme\b([^>]*)>([\s\S]*?)</programme>", re.IGNORECASE)
_ATTRIBUTE_RE = re.compile(r'([\w:\-]+)="([^"]*)"')
_TITLE_RE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_SUB_TITLE_RE = re.compile(
    r"<(?:sub-title|sub_title)[^>]*>([\s\S]*?)</(?:sub-title|sub_title)>",
    re.IGNORECASE,
)


def decode_xmltv_payload(data: bytes) -> str:
    """
    Turn a downloaded feed into XML text

    Gzip payloads are decompressed; anything else is taken as plain XML.

    Args:
        data: Raw response body

    Returns:
        Decoded XML document

    Raises:
        DecodeFailure: If decompression or UTF-8 decoding fails
    """
    try:
        if data[:2] == _GZIP_MAGIC:
            logger.debug(f"  Decompressing {len(data) / 1024 / 1024:.2f} MB gzip payload...")
            data = gzip.decompress(data)
        return data.decode("utf-8-sig")
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeFailure(f"Invalid gzip payload: {e}") from e
    except UnicodeDecodeError as e:
        raise DecodeFailure(f"Payload is not valid UTF-8: {e}") from e


def iter_programmes(xml_text: str, zone: DisplayZone = DEFAULT_DISPLAY_ZONE) -> Iterator[Programme]:
    """
    Yield one Programme per <programme> block, in document order

    Args:
        xml_text: XMLTV document
        zone: Display zone for the derived start/stop strings

    Raises:
        TypeError: If xml_text is not a string
    """
    if not isinstance(xml_text, str):
        raise TypeError(f"XMLTV document must be text, got {type(xml_text).__name__}")

    for match in _PROGRAMME_RE.finditer(xml_text):
        yield _parse_single_programme(match.group(1), match.group(2), zone)


def parse_programmes(xml_text: str, zone: DisplayZone = DEFAULT_DISPLAY_ZONE) -> list[Programme]:
    """
    Extract every programme of an XMLTV document

    Args:
        xml_text: XMLTV document
        zone: Display zone for the derived start/stop strings

    Returns:
        List of programmes in document order
    """
    logger.debug(f"Scanning XMLTV document ({len(xml_text)} characters)...")
    programmes = list(iter_programmes(xml_text, zone))
    logger.info(f"XMLTV parsing complete: {len(programmes)} programmes")
    return programmes


def _parse_single_programme(attr_text: str, inner: str, zone: DisplayZone) -> Programme:
    """Build a Programme from the attribute list and body of one block"""
    attrs = _parse_attributes(attr_text)

    start_raw = attrs.get("start", "")
    stop_raw = attrs.get("stop", "")

    title = _first_element_text(_TITLE_RE, inner)
    sub_title = _first_element_text(_SUB_TITLE_RE, inner)

    return Programme(
        channel=attrs.get("channel", ""),
        start_raw=start_raw,
        stop_raw=stop_raw,
        start=format_or_passthrough(start_raw, zone),
        stop=format_or_passthrough(stop_raw, zone),
        title=UNTITLED if title is None else title,
        sub_title=sub_title or "",
    )


def _parse_attributes(attr_text: str) -> dict[str, str]:
    """Parse name="value" pairs; a repeated name keeps its last value"""
    return dict(_ATTRIBUTE_RE.findall(attr_text))


def _first_element_text(pattern: re.Pattern, inner: str) -> str | None:
    """Return the cleaned text of the first matching element, or None"""
    match = pattern.search(inner)
    if match is None:
        return None
    return strip_tags(match.group(1))
