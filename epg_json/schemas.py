from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScheduleImage(BaseModel):
    """Title to poster mapping entry of an image source file"""
    title: str = Field(..., description="Programme title as published by the schedule API")
    boxCoverImage: str = Field(..., description="Poster image URL")


class ImageSourceFile(BaseModel):
    """Image database file accumulated per schedule API channel"""
    model_config = ConfigDict(extra="allow")

    channelId: int | str | None = Field(None, description="Schedule API channel id")
    channelName: str = Field("", description="Schedule API channel name")
    channelScheduleData: list[ScheduleImage] = Field(default_factory=list)

    @field_validator("channelName", mode="before")
    @classmethod
    def default_channel_name(cls, v):
        """Treat a null channel name as empty"""
        return v or ""

    @field_validator("channelScheduleData", mode="before")
    @classmethod
    def drop_invalid_entries(cls, v):
        """Keep only entries that carry both a title and an image"""
        if not isinstance(v, list):
            return []
        return [
            item for item in v
            if isinstance(item, dict)
            and isinstance(item.get("title"), str)
            and isinstance(item.get("boxCoverImage"), str)
        ]


class ChannelIndexEntry(BaseModel):
    """Summary index entry"""
    channel: str = Field(..., description="EPG channel id")
    count: int = Field(..., ge=0, description="Number of programmes written for the channel")
    file: str | None = Field(None, description="Per-channel file name under the EPG directory")


class SourceStatus(BaseModel):
    """Per-source outcome recorded in run metadata"""
    url: str
    status: str = Field(..., description="'success' or 'failed'")
    count: int = 0
    error: str | None = None


class RunMetadata(BaseModel):
    """Contents of meta.json"""
    lastUpdate: str = Field(..., description="ISO8601 UTC time of the run")
    totalProgrammes: int
    totalChannels: int
    timeZone: str = Field(..., description="Display timezone used for start/stop")
    note: str
    imagesEnabled: bool = False
    sourcesSucceeded: int = 0
    sourcesFailed: int = 0
    sources: list[SourceStatus] = Field(default_factory=list)
