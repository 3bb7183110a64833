"""
Utility functions for session-scrub.

Encoding-aware file reading for exported transcripts.
"""

from __future__ import annotations

from pathlib import Path

import chardet


def detect_encoding(file_path: Path, sample_size: int = 8192) -> str:
    """
    Detect the encoding of an exported transcript or log file.

    BOM markers win, then UTF-8 (nearly every agent log is UTF-8), then
    chardet as a last resort.

    Args:
        file_path: Path to the file
        sample_size: Number of bytes to sample for detection

    Returns:
        Encoding name (e.g., 'utf-8', 'utf-16-le')
    """
    try:
        with open(file_path, "rb") as f:
            sample = f.read(sample_size)
    except OSError:
        return "utf-8"

    if not sample:
        return "utf-8"

    if sample.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if sample.startswith(b"\xff\xfe"):
        return "utf-16-le"
    if sample.startswith(b"\xfe\xff"):
        return "utf-16-be"

    try:
        sample.decode("utf-8")
        return "utf-8"
    except UnicodeDecodeError:
        pass

    encoding = chardet.detect(sample).get("encoding")
    if encoding is None:
        return "utf-8"

    encoding = encoding.lower()
    if encoding in ("ascii", "utf-8", "utf8"):
        return "utf-8"
    return encoding


def read_file_safe(file_path: Path, encoding: str | None = None) -> tuple[str, str]:
    """
    Read a text file without crashing on odd encodings.

    Tries the given encoding, then strict UTF-8, then the detected encoding
    with replacement characters.

    Returns:
        Tuple of (content, encoding_used)

    Raises:
        OSError: If the file cannot be opened
    """
    if encoding is not None:
        try:
            with open(file_path, encoding=encoding, errors="replace") as f:
                return f.read(), encoding
        except LookupError:
            # Unknown encoding name, fall through to auto-detect
            pass

    # utf-8-sig also decodes plain UTF-8 and drops a leading BOM
    try:
        with open(file_path, encoding="utf-8-sig", errors="strict") as f:
            return f.read(), "utf-8"
    except UnicodeDecodeError:
        pass

    detected = detect_encoding(file_path)
    try:
        with open(file_path, encoding=detected, errors="replace") as f:
            return f.read(), detected
    except LookupError:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            return f.read(), "utf-8"

