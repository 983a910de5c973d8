"""
In-memory models for the EPG conversion pipeline

Programme records are produced by the XMLTV extractor and consumed by the
grouping, image resolution and output stages.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

UNTITLED = "Untitled"
UNKNOWN_CHANNEL = "unknown"


@dataclass(frozen=True, slots=True)
class Programme:
    """One scheduled broadcast slot as extracted from an XMLTV feed"""
    channel: str
    start_raw: str
    stop_raw: str
    start: str
    stop: str
    title: str = UNTITLED
    sub_title: str = ""
    image: str | None = None

    def with_image(self, image: str) -> Programme:
        """Return a copy carrying the resolved poster URL"""
        return replace(self, image=image)

    def to_dict(self) -> dict[str, str]:
        """Serialize using the field names of the per-channel JSON files"""
        payload = {
            "startRaw": self.start_raw,
            "stopRaw": self.stop_raw,
            "start": self.start,
            "stop": self.stop,
            "channel": self.channel,
            "title": self.title,
            "subTitle": self.sub_title,
        }
        if self.image is not None:
            payload["image"] = self.image
        return payload

    def __repr__(self) -> str:
        return f"<Programme(channel={self.channel}, start={self.start_raw}, title={self.title})>"


__all__ = ["Programme", "UNTITLED", "UNKNOWN_CHANNEL"]
