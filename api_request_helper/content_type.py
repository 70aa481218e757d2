"""Content type values for request headers.

More content types: https://www.iana.org/assignments/media-types/media-types.xhtml
"""

from __future__ import annotations

from enum import Enum


class ContentType(str, Enum):
    """MIME types accepted by the request helper."""

    # Application
    json = "application/json"

    # Image
    gif = "image/gif"
    jpeg = "image/jpeg"
    png = "image/png"

    # Multipart
    form_data = "multipart/form-data"

    # Text
    html = "text/html"
    csv = "text/csv"
    xml = "text/xml"

    # Video
    mpeg = "video/mpeg"
    mp4 = "video/mp4"
    quicktime = "video/quicktime"

    @classmethod
    def parse(cls, value: str) -> ContentType:
        """Look up a member by name (``form_data``, ``form-data``) or MIME string."""
        key = value.strip().lower()
        for member in cls:
            if key in (member.name, member.name.replace("_", "-"), member.value):
                return member
        raise ValueError(f"unknown content type: {value}")
