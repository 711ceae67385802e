"""
Content-Type detection utilities.
Guess MIME types for stored objects from their file names.
"""

import mimetypes
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def detect_content_type(filename: str, provided_type: Optional[str] = None) -> str:
    """
    Detect Content-Type from filename extension.

    A specific type provided by the client wins; the extension is used
    otherwise, and 'application/octet-stream' as last resort.

    Args:
        filename: Uploaded file name (e.g., "report.pdf")
        provided_type: Optional Content-Type sent by the client

    Returns:
        MIME type string

    Examples:
        >>> detect_content_type("report.pdf")
        'application/pdf'

        >>> detect_content_type("unknown.xyz")
        'application/octet-stream'
    """
    if provided_type and provided_type != DEFAULT_CONTENT_TYPE:
        return provided_type

    guessed_type, _ = mimetypes.guess_type(filename)
    return guessed_type or provided_type or DEFAULT_CONTENT_TYPE
