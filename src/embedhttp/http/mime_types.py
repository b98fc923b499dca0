"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

When Response.send_file() serves a file from disk, the browser needs a
Content-Type to know what to do with the bytes:

    index.html  → text/html                 (render it)
    app.js      → application/javascript    (execute it)
    logo.png    → image/png                 (draw it)

We look at the file extension only. Sniffing file contents is out of
scope for an embedded server.

Unknown extensions fall back to text/plain, which makes browsers show
the content instead of triggering a download.

=============================================================================
"""

from pathlib import Path
from typing import Optional, Union


# Extension (lowercase, with dot) → MIME type
MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".xml": "application/xml",

    # Scripts and data
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".wasm": "application/wasm",
    ".pdf": "application/pdf",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
}

DEFAULT_MIME_TYPE = "text/plain"


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("public/style.css")
        'text/css'
        >>> get_mime_type("LOGO.PNG")
        'image/png'
        >>> get_mime_type("notes.xyz")
        'text/plain'
    """
    if isinstance(path, str):
        path = Path(path)

    extension = path.suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)
