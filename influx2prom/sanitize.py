"""Identifier sanitization for Prometheus metric and label names."""
import re

_INVALID_BYTES = re.compile(rb"[^a-zA-Z0-9_]")


def sanitize_name(name: str) -> str:
    """
    Rewrite an identifier into the Prometheus-safe character set.

    Every byte of the UTF-8 encoding outside [a-zA-Z0-9_] becomes '_', so a
    multi-byte character turns into one '_' per byte. A leading digit gets
    a '_' prefix. Empty input is returned unchanged.
    """
    if not name:
        return name

    cleaned = _INVALID_BYTES.sub(b"_", name.encode("utf-8")).decode("ascii")
    if cleaned[0].isdigit():
        cleaned = "_" + cleaned
    return cleaned
