from pathlib import Path
from typing import Annotated
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from epg_json.utils.timezone import DisplayZone, IST


logger = logging.getLogger(__name__)

DEFAULT_EPG_SOURCES = [
    "https://tsepg.cf/jio.xml.gz",
    "http://tsepg.cf/epg.xml.gz",
]

DEFAULT_IMAGE_API_CHANNEL_IDS = [
    239, 681, 433, 138, 681, 238, 119, 127, 867, 1340, 118, 114, 45, 144, 587,
]

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    epg_sources: Annotated[list[str], NoDecode] = list(DEFAULT_EPG_SOURCES)
    output_dir: str = "./public"
    epg_subdir: str = "epg"
    prune_stale_channel_files: bool = True

    display_timezone_label: str = IST.label
    display_timezone_offset_minutes: int = IST.offset_minutes
    display_timezone_description: str = IST.description

    http_timeout_sec: float = 120.0
    max_concurrent_downloads: int = 4
    epg_parse_timeout_sec: int = 0  # 0 disables the timeout

    images_enabled: bool = False
    image_data_dir: str = "./data"
    default_image_url: str = "https://via.placeholder.com/300x450?text=No+Image"
    channel_image_sources: dict[str, str] = {}
    image_api_base_url: str = "https://ts-more-api.videoready.tv/content-detail/pub/api/v6/channels"
    image_api_channel_ids: Annotated[list[int], NoDecode] = list(DEFAULT_IMAGE_API_CHANNEL_IDS)

    epg_convert_cron: str = "0 */6 * * *"  # Every 6 hours
    image_update_cron: str = "30 2 * * *"  # Daily at 2:30 AM, empty disables
    schedule_misfire_grace_sec: int = 3600

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("epg_sources", mode="before")
    @classmethod
    def parse_epg_sources(cls, value):
        """Parse comma-separated URLs or list."""
        if value is None:
            return []
        if isinstance(value, str):
            if not value.strip():
                return []
            return [url.strip() for url in value.split(",") if url.strip()]
        if isinstance(value, list):
            return value
        return []

    @field_validator("epg_sources", mode="after")
    @classmethod
    def validate_epg_sources(cls, value):
        """Validate EPG source URLs are HTTP/HTTPS."""
        for url in value:
            if not url.lower().startswith(("http://", "https://")):
                raise ValueError(f"EPG source URL must be HTTP/HTTPS: {url}")
        return value

    @field_validator("image_api_channel_ids", mode="before")
    @classmethod
    def parse_image_api_channel_ids(cls, value):
        """Parse comma-separated ids or list, keeping duplicates and order."""
        if value is None:
            return []
        if isinstance(value, str):
            return [int(item) for item in value.split(",") if item.strip()]
        return value

    @field_validator("image_api_base_url")
    @classmethod
    def validate_image_api_base_url(cls, value: str) -> str:
        """Validate the schedule API URL and drop a trailing slash."""
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError(f"Image API URL must be HTTP/HTTPS: {value}")
        return value.rstrip("/")

    @field_validator("output_dir", "image_data_dir")
    @classmethod
    def validate_directory(cls, value: str, info) -> str:
        """Reject paths that exist but are not directories."""
        path = Path(value)
        if path.exists() and not path.is_dir():
            raise ValueError(f"{info.field_name} '{value}' exists and is not a directory")
        return value

    @field_validator("epg_subdir")
    @classmethod
    def validate_epg_subdir(cls, value: str) -> str:
        """Keep the channel directory inside the output directory."""
        if not value or Path(value).is_absolute() or ".." in Path(value).parts:
            raise ValueError(f"epg_subdir must be a relative path inside output_dir: '{value}'")
        return value

    @field_validator("display_timezone_offset_minutes")
    @classmethod
    def validate_display_offset(cls, value: int) -> int:
        """Validate the display offset is a real-world UTC offset."""
        if not -14 * 60 <= value <= 14 * 60:
            raise ValueError("display_timezone_offset_minutes must be within +/-840")
        return value

    @field_validator("display_timezone_label")
    @classmethod
    def validate_display_label(cls, value: str) -> str:
        """Validate the display label is not blank."""
        if not value.strip():
            raise ValueError("display_timezone_label must not be empty")
        return value.strip()

    @field_validator("http_timeout_sec")
    @classmethod
    def validate_http_timeout(cls, value: float) -> float:
        """Validate HTTP timeout (seconds)."""
        if value <= 0:
            raise ValueError("http_timeout_sec must be > 0")
        return value

    @field_validator("max_concurrent_downloads")
    @classmethod
    def validate_concurrency(cls, value: int) -> int:
        """Ensure at least one download slot."""
        if value <= 0:
            raise ValueError("max_concurrent_downloads must be > 0")
        return value

    @field_validator("epg_parse_timeout_sec", "schedule_misfire_grace_sec")
    @classmethod
    def validate_non_negative_ints(cls, value: int, info) -> int:
        """Ensure second-based settings are non-negative."""
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return value

    @field_validator("epg_convert_cron", "image_update_cron")
    @classmethod
    def validate_cron_expression(cls, value: str, info) -> str:
        """Validate cron expression is valid."""
        if not value and info.field_name == "image_update_cron":
            return value
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate logging level name."""
        normalized = value.upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return normalized

    @model_validator(mode="after")
    def validate_epg_configuration(self):
        """Validate cross-field configuration."""
        if not self.epg_sources:
            logger.warning(
                "No EPG sources configured - conversion will not retrieve any data"
            )

        if self.images_enabled and not self.default_image_url:
            raise ValueError("default_image_url is required when images_enabled is set")

        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.debug("Configuration loaded:")
        logger.debug("  EPG Sources: %s configured", len(self.epg_sources))
        logger.debug("  Output Directory: %s", self.output_dir)
        logger.debug("  Display Timezone: %s", self.display_zone.description)
        logger.debug("  Max Concurrent Downloads: %s", self.max_concurrent_downloads)
        logger.debug(
            "  Parse Timeout: %s",
            f"{self.epg_parse_timeout_sec}s" if self.epg_parse_timeout_sec else "disabled",
        )
        logger.debug("  Images: %s", "enabled" if self.images_enabled else "disabled")
        logger.debug("  Image Data Directory: %s", self.image_data_dir)
        logger.debug("  Image API Channels: %s configured", len(self.image_api_channel_ids))
        logger.debug("  Convert Schedule: %s", self.epg_convert_cron)
        logger.debug("  Image Update Schedule: %s", self.image_update_cron or "disabled")

    @property
    def display_zone(self) -> DisplayZone:
        """Fixed-offset zone used for start/stop display strings."""
        description = self.display_timezone_description
        if (
            self.display_timezone_label != IST.label
            or self.display_timezone_offset_minutes != IST.offset_minutes
        ) and description == IST.description:
            description = _describe_offset(self.display_timezone_label, self.display_timezone_offset_minutes)
        return DisplayZone(
            label=self.display_timezone_label,
            offset_minutes=self.display_timezone_offset_minutes,
            description=description,
        )

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @property
    def epg_path(self) -> Path:
        return Path(self.output_dir) / self.epg_subdir

    @property
    def image_data_path(self) -> Path:
        return Path(self.image_data_dir)


def _describe_offset(label: str, offset_minutes: int) -> str:
    sign = "-" if offset_minutes < 0 else "+"
    hours, minutes = divmod(abs(offset_minutes), 60)
    return f"{label} (UTC{sign}{hours}:{minutes:02d})"


settings = CustomSettings()


def setup_logging(level: str | None = None) -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.log_level).upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
