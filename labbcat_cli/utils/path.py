"""
Utilities for handling file names and download directories.
"""

import re
import tempfile
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import unquote

from pathvalidate import sanitize_filename

# RFC 6266: filename*=<charset>'<language>'<percent-encoded name> takes precedence
_EXTENDED_FILENAME_PATTERN = re.compile(
    r"filename\*\s*=\s*(?P<charset>[\w-]*)'[\w-]*'(?P<name>[^;\s]+)",
    re.IGNORECASE,
)
_FILENAME_PATTERN = re.compile(
    r"filename\s*=\s*(?P<quote>[\"']?)(?P<name>[^;\"']+)(?P=quote)",
    re.IGNORECASE,
)


def _decode_extended(name: str, charset: str) -> str:
    try:
        return unquote(name, encoding=charset or "utf-8", errors="replace")
    except LookupError:
        return unquote(name, errors="replace")


def filename_from_content_disposition(header: Optional[str]) -> Optional[str]:
    """
    Extracts a safe file name from a Content-Disposition header value,
    e.g. ``attachment; filename=AP511_MikeThorpe__1.23-4.56.wav`` or
    ``attachment; filename*=UTF-8''AP511%20MikeThorpe.wav``.
    """
    if not header:
        return None
    match = _EXTENDED_FILENAME_PATTERN.search(header)
    if match:
        name = _decode_extended(match.group("name"), match.group("charset"))
    else:
        match = _FILENAME_PATTERN.search(header)
        if not match:
            return None
        name = match.group("name")
    name = sanitize_filename(name.strip(), platform="auto")
    return name or None


def format_offset(offset: Any) -> str:
    """Formats an offset the way the server does in file names (no trailing '.0')."""
    if isinstance(offset, float) and offset.is_integer():
        return str(int(offset))
    return str(offset)


def fragment_file_name(
    resource_id: str, start_offset: Any, end_offset: Any, extension: str = ""
) -> str:
    """Synthesizes a file name for a fragment the server didn't name."""
    name = f"{resource_id}__{format_offset(start_offset)}-{format_offset(end_offset)}{extension}"
    return sanitize_filename(name, platform="auto")


def resolve_download_dir(directory: Optional[Union[str, Path]]) -> Path:
    """
    Returns the directory fragments should be written to.

    None means the system temporary directory. A missing directory is created,
    but only one level deep; its parent must already exist.
    """
    if directory is None:
        return Path(tempfile.gettempdir())
    path = Path(directory)
    if not path.exists():
        path.mkdir()
    return path
