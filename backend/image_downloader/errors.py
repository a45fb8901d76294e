"""
Download Errors

Failures raised while downloading an image. All of them end a
download stream; none are retried internally.
"""


class TransportFailure(Exception):
    """Base class for download failures."""


class DownloadTimeout(TransportFailure):
    """The request timed out."""


class ConnectivityLost(TransportFailure):
    """The connection could not be established or was dropped."""


class HTTPStatusFailure(TransportFailure):
    """The server answered with a non-success status."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code}")


class DecodeFailure(TransportFailure):
    """The downloaded body is not a decodable image."""
