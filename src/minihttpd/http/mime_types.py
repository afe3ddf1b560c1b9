"""
=============================================================================
FILE TYPE WHITELIST AND MIME TABLE
=============================================================================

Static mode only serves a closed set of file extensions. The same table
answers two questions:

    1. Is this extension allowed at all?      (no → 400 Bad Request)
    2. Which Content-Type goes on the wire?

    ┌──────────────┬──────────────────────────────┐
    │  Extension   │  MIME type                   │
    ├──────────────┼──────────────────────────────┤
    │  .html       │  text/html                   │
    │  .txt        │  text/plain                  │
    │  .css        │  text/css                    │
    │  .gif        │  image/gif                   │
    │  .jpeg .jpg  │  image/jpeg                  │
    └──────────────┴──────────────────────────────┘

Extensions are matched case-insensitively (.HTML == .html).

=============================================================================
"""

from pathlib import Path
from typing import Mapping, Optional


MIME_TYPES: Mapping[str, str] = {
    ".html": "text/html",
    ".txt": "text/plain",
    ".css": "text/css",
    ".gif": "image/gif",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
}


def get_mime_type(
    path: str | Path,
    table: Mapping[str, str] = MIME_TYPES,
) -> Optional[str]:
    """
    Get the MIME type for a file based on its extension.

    Returns None when the extension is not in the table, which callers
    treat as "file type not supported".

    Examples:
        >>> get_mime_type("style.css")
        'text/css'

        >>> get_mime_type("/files/PHOTO.JPG")
        'image/jpeg'

        >>> get_mime_type("setup.exe") is None
        True
    """
    if isinstance(path, str):
        path = Path(path)

    return table.get(path.suffix.lower())


def is_supported(path: str | Path, table: Mapping[str, str] = MIME_TYPES) -> bool:
    """Check whether the file's extension is in the whitelist."""
    return get_mime_type(path, table) is not None


def get_content_type(
    path: str | Path,
    table: Mapping[str, str] = MIME_TYPES,
    charset: str = "utf-8",
) -> Optional[str]:
    """
    Get the full Content-Type header value for a file.

    text/* types carry a charset parameter, binary types don't:

        >>> get_content_type("page.html")
        'text/html; charset=utf-8'

        >>> get_content_type("cat.gif")
        'image/gif'
    """
    mime_type = get_mime_type(path, table)
    if mime_type is None:
        return None

    if mime_type.startswith("text/"):
        return f"{mime_type}; charset={charset}"

    return mime_type
