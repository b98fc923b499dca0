"""
=============================================================================
STATIC FILE PROVIDER
=============================================================================

Reads a file from disk for Response.send_file():

    content, mime_type = read_static_file("public/index.html")
    # → (b"<html>...", "text/html")

The path is used exactly as given, relative to the process working
directory. There is no document root and no traversal check: handlers
pass paths they chose themselves, never raw request paths.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  UNSAFE:   response.send_file("public" + request.path)              │
    │  SAFE:     response.send_file("public/index.html")                  │
    └─────────────────────────────────────────────────────────────────────┘

Any reason the file cannot be read (missing, a directory, no permission)
is reported as FileNotFoundError so the caller has one case to handle.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Tuple, Union

from ..http.mime_types import DEFAULT_MIME_TYPE, get_mime_type


logger = logging.getLogger(__name__)


def read_static_file(filepath: Union[str, Path]) -> Tuple[bytes, str]:
    """
    Load a file and guess its MIME type from the extension.

    Returns:
        (content, mime_type). Unknown extensions are text/plain.

    Raises:
        FileNotFoundError: If the file does not exist or cannot be read.
    """
    path = Path(filepath)

    if not path.is_file():
        raise FileNotFoundError(f"No such file: {filepath}")

    try:
        content = path.read_bytes()
    except OSError as e:
        logger.warning(f"Cannot read {filepath}: {e}")
        raise FileNotFoundError(f"Cannot read file: {filepath}") from e

    return content, get_mime_type(path, DEFAULT_MIME_TYPE)
