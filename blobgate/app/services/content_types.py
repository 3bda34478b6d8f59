from __future__ import annotations

import os

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".html": "text/html",
    ".htm": "text/html",
}


def guess_content_type(file_name: str | os.PathLike[str] | None) -> str:
    """Infer a MIME type from the file extension; unknown names get the default."""
    if file_name is None:
        return DEFAULT_CONTENT_TYPE
    try:
        ext = os.path.splitext(os.fspath(file_name))[1].lower()
    except (TypeError, ValueError):
        return DEFAULT_CONTENT_TYPE
    return CONTENT_TYPES_BY_EXTENSION.get(ext, DEFAULT_CONTENT_TYPE)
