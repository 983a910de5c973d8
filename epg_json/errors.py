"""
Exception types raised by the EPG conversion pipeline.
"""


class EPGError(Exception):
    """Base class for pipeline errors"""
    pass


class FetchFailure(EPGError):
    """Raised when a source cannot be downloaded (transport error or non-2xx)"""

    def __init__(self, url: str, reason: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"Download failed ({url}): {reason}")


class DecodeFailure(EPGError):
    """Raised when a downloaded payload cannot be decompressed or decoded"""
    pass


class MalformedSourceFile(EPGError):
    """Raised when an image source file is missing or not a valid document"""
    pass
